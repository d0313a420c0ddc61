"""junos-client: NETCONF client for Juniper Networks devices.

Configuration lifecycle (lock, load, commit check, commit, unlock),
rollback and rescue addressing, operational views that understand
multi-RE and clustered replies, and a Junos Space REST client.

Usage::

    from junos_client import Session

    with Session.connect("rt1.example.net", "admin", "secret") as jnpr:
        print(jnpr.hostname, [re.version for re in jnpr.routing_engines])
        jnpr.lock()
        jnpr.load_configuration("set system ntp server 192.0.2.1", fmt="set")
        print(jnpr.diff())
        jnpr.commit_check()
        jnpr.commit()
        jnpr.unlock()
"""

from junos_client.exceptions import (
    CommitError,
    DeviceRPCError,
    InvalidArgument,
    JunosError,
    LoadError,
    LockConflict,
    NotFoundError,
    SpaceAPIError,
    TransportError,
    UnsupportedOnPlatform,
    ValidationError,
)
from junos_client.rollback import RESCUE, Numbered, Rescue, rollback_target
from junos_client.session import NoOutput, Session
from junos_client.space import Space, SoftwareUpgrade

__version__ = "0.1.0"

__all__ = [
    "CommitError",
    "DeviceRPCError",
    "InvalidArgument",
    "JunosError",
    "LoadError",
    "LockConflict",
    "NoOutput",
    "NotFoundError",
    "Numbered",
    "RESCUE",
    "Rescue",
    "Session",
    "SoftwareUpgrade",
    "Space",
    "SpaceAPIError",
    "TransportError",
    "UnsupportedOnPlatform",
    "ValidationError",
    "rollback_target",
]
