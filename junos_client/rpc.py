"""RPC request builders.

Each entry of :data:`RPC_TABLE` maps a logical operation name to a
function returning the ``lxml`` element PyEZ sends inside ``<rpc>``.
Arguments are checked when the request is built, so a bad format tag or
rollback number never reaches the device.
"""

import re
from logging import getLogger
from types import MappingProxyType

from lxml import etree
from lxml.builder import E

from junos_client.exceptions import InvalidArgument

logger = getLogger(__name__)

FORMATS = ("set", "text", "xml")
MAX_ROLLBACK = 49
# 24h device-local time, e.g. 23:30:00
AT_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d$")
CONFIG_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")


def check_format(fmt):
    if fmt not in FORMATS:
        raise InvalidArgument(f"format must be one of {', '.join(FORMATS)}: {fmt!r}")
    return fmt


def check_slot(slot):
    """Validate a numeric rollback slot (0 = active configuration)."""
    if isinstance(slot, bool) or not isinstance(slot, int):
        raise InvalidArgument(f"rollback slot must be an integer: {slot!r}")
    if slot < 0 or slot > MAX_ROLLBACK:
        raise InvalidArgument(f"rollback slot must be 0-{MAX_ROLLBACK}: {slot}")
    return slot


def command(cmd, fmt="text"):
    if fmt not in ("text", "xml"):
        raise InvalidArgument(f"command format must be text or xml: {fmt!r}")
    return E("command", {"format": fmt}, cmd)


def lock():
    return E("lock-configuration")


def unlock():
    return E("unlock-configuration")


def commit():
    return E("commit-configuration")


def commit_check():
    return E("commit-configuration", E("check"))


def commit_full():
    return E("commit-configuration", E("full"))


def commit_at(at_time, log=None):
    if not isinstance(at_time, str) or AT_TIME_PATTERN.match(at_time) is None:
        raise InvalidArgument(f"commit time must be HH:MM:SS (24h): {at_time!r}")
    rpc = E("commit-configuration", E("at-time", at_time))
    if log:
        rpc.append(E("log", log))
    return rpc


def commit_confirmed(minutes):
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1:
        raise InvalidArgument(f"confirm timeout must be a positive number of minutes: {minutes!r}")
    return E(
        "commit-configuration",
        E("confirmed"),
        E("confirm-timeout", str(minutes)),
    )


def load_configuration(payload, fmt):
    """Inline load. ``payload`` is text for set/text, an element for xml."""
    check_format(fmt)
    if fmt == "set":
        return E(
            "load-configuration",
            {"action": "set", "format": "text"},
            E("configuration-set", payload),
        )
    if fmt == "text":
        return E(
            "load-configuration",
            {"format": "text"},
            E("configuration-text", payload),
        )
    rpc = E("load-configuration", {"format": "xml"})
    rpc.append(payload)
    return rpc


def load_configuration_url(url, fmt):
    check_format(fmt)
    attrs = {"format": "xml" if fmt == "xml" else "text", "url": url}
    if fmt == "set":
        attrs = {"action": "set", **attrs}
    return E("load-configuration", attrs)


def load_rollback(slot):
    return E("load-configuration", {"rollback": str(check_slot(slot))})


def load_rescue():
    return E("load-configuration", {"rescue": "rescue"})


def get_rollback_information(slot):
    return E(
        "get-rollback-information",
        E("rollback", str(check_slot(slot))),
        E("format", "text"),
    )


def get_rollback_compare(slot):
    """Active configuration (rollback 0) compared with ``slot``."""
    return E(
        "get-rollback-information",
        E("rollback", "0"),
        E("compare", str(check_slot(slot))),
        E("format", "text"),
    )


def get_candidate_compare(slot):
    """Candidate configuration compared with rollback ``slot``."""
    return E(
        "get-configuration",
        {"compare": "rollback", "rollback": str(check_slot(slot)), "format": "text"},
    )


def get_configuration(section=None, fmt="text"):
    """Committed configuration, optionally one section such as
    ``"security>address-book"``.
    """
    check_format(fmt)
    rpc = E("get-configuration", {"database": "committed", "format": fmt})
    if section:
        parts = [p.strip() for p in section.split(">")]
        if not all(CONFIG_NAME_PATTERN.match(p) for p in parts):
            raise InvalidArgument(f"invalid configuration section: {section!r}")
        filter_ = E(parts[-1])
        for part in reversed(parts[:-1]):
            filter_ = E(part, filter_)
        rpc.append(E("configuration", filter_))
    return rpc


def get_rescue_information():
    return E("get-rescue-information", E("format", "text"))


def save_rescue():
    return E("request-save-rescue-configuration")


def delete_rescue():
    return E("request-delete-rescue-configuration")


def get_software_information():
    return E("get-software-information")


def get_route_engine_information():
    return E("get-route-engine-information")


def get_chassis_inventory():
    return E("get-chassis-inventory")


RPC_TABLE = MappingProxyType(
    {
        "command": command,
        "lock": lock,
        "unlock": unlock,
        "commit": commit,
        "commit-check": commit_check,
        "commit-full": commit_full,
        "commit-at": commit_at,
        "commit-confirm": commit_confirmed,
        "load-config": load_configuration,
        "load-config-url": load_configuration_url,
        "rollback-config": load_rollback,
        "rescue-config": load_rescue,
        "get-rollback-information": get_rollback_information,
        "get-rollback-information-compare": get_rollback_compare,
        "get-candidate-compare": get_candidate_compare,
        "get-config": get_configuration,
        "get-rescue-information": get_rescue_information,
        "rescue-save": save_rescue,
        "rescue-delete": delete_rescue,
        "software": get_software_information,
        "facts-re": get_route_engine_information,
        "facts-chassis": get_chassis_inventory,
    }
)


def render(rpc):
    """Wire form of a request, wrapped in ``<rpc>``."""
    return "<rpc>" + etree.tostring(rpc, encoding="unicode") + "</rpc>"


def build(table, name, *args, **kwargs):
    """Build the request ``name`` from ``table``."""
    try:
        builder = table[name]
    except KeyError:
        raise InvalidArgument(f"unknown rpc: {name}") from None
    rpc = builder(*args, **kwargs)
    logger.debug(f"build: {name} {render(rpc)}")
    return rpc
