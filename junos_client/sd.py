"""Security Director objects on Junos Space.

Address and service objects, their groups, firewall policies, security
devices and polymorphic (variable) objects.  :class:`SecurityDirector` is
a mixin of :class:`junos_client.space.Space` and relies on its
``api_call``, ``_list`` and ``_job_id``.
"""

import re
from dataclasses import dataclass
from logging import getLogger

from lxml.builder import E

from junos_client.exceptions import InvalidArgument, NotFoundError, SpaceAPIError

logger = getLogger(__name__)

ADDRESSES_PATH = "juniper/sd/address-management/addresses"
SERVICES_PATH = "juniper/sd/service-management/services"
SD_DEVICES_PATH = "juniper/sd/device-management/devices"
POLICIES_PATH = "juniper/sd/fwpolicy-management/firewall-policies"
PUBLISH_PATH = "juniper/sd/fwpolicy-management/publish"
UPDATE_DEVICES_PATH = "juniper/sd/device-management/update-devices"
VARIABLES_PATH = "juniper/sd/variable-management/variable-definitions"

DNS_PATTERN = re.compile(r"[-\w.]*\.(com|net|org|us)$")
ADDRESS_PATTERN = re.compile(r"(\d+\.\d+\.\d+\.\d+)(/\d+)?")
IPV4_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")

# group type: (collection path, diff selector root, body operation, patch operation)
GROUP_TYPES = {
    "address": (ADDRESSES_PATH, "address", "address", "address-patch"),
    "service": (SERVICES_PATH, "service", "service", "service-patch"),
}
GROUP_ACTIONS = ("add", "remove")

PROTOCOL_NUMBERS = {"TCP": 6, "UDP": 17}

DEVICE_MOID = "net.juniper.jnap.sm.om.jpa.SecurityDeviceEntity"
ADDRESS_MOID = "net.juniper.jnap.sm.om.jpa.AddressEntity"


def _int(elem, path):
    try:
        return int(elem.findtext(path, default=""))
    except ValueError:
        return 0


@dataclass(frozen=True)
class Address:
    id: int
    name: str
    address_type: str = ""
    description: str = ""
    ip_address: str = ""
    hostname: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem, "id"),
            name=elem.findtext("name", default=""),
            address_type=elem.findtext("address-type", default=""),
            description=elem.findtext("description", default=""),
            ip_address=elem.findtext("ip-address", default=""),
            hostname=elem.findtext("host-name", default=""),
        )


@dataclass(frozen=True)
class Service:
    id: int
    name: str
    is_group: bool = False
    description: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem, "id"),
            name=elem.findtext("name", default=""),
            is_group=elem.findtext("is-group", default="").strip() == "true",
            description=elem.findtext("description", default=""),
        )


@dataclass(frozen=True)
class Member:
    id: int
    name: str


@dataclass(frozen=True)
class Policy:
    id: int
    name: str
    description: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem, "id"),
            name=elem.findtext("name", default=""),
            description=elem.findtext("description", default=""),
        )


@dataclass(frozen=True)
class SecurityDevice:
    id: int
    name: str
    ip_address: str = ""
    family: str = ""
    platform: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem, "id"),
            name=elem.findtext("name", default=""),
            ip_address=elem.findtext("device-ip", default=""),
            family=elem.findtext("device-family", default=""),
            platform=elem.findtext("platform", default=""),
        )


@dataclass(frozen=True)
class Variable:
    id: int
    name: str
    description: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem, "id"),
            name=elem.findtext("name", default=""),
            description=elem.findtext("description", default=""),
        )


def address_type(value):
    """Return ``(address-type, ip-address)`` for an address object value.

    >>> address_type("10.1.1.1/32")
    ('IPADDRESS', '10.1.1.1')
    >>> address_type("10.1.0.0/16")
    ('NETWORK', '10.1.0.0/16')
    """
    if DNS_PATTERN.match(value):
        return "DNS", value
    m = ADDRESS_PATTERN.search(value)
    if m is None:
        raise InvalidArgument(f"not an IPv4 address, network or DNS name: {value}")
    if m.group(2) in (None, "/32"):
        return "IPADDRESS", m.group(1)
    return "NETWORK", value


def _xpath_literal(value):
    """Quote ``value`` for an XPath 1.0 predicate, which has no escapes."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    raise InvalidArgument(f"name cannot hold both quote characters: {value!r}")


def _group_info(value):
    try:
        return GROUP_TYPES[value]
    except KeyError:
        raise InvalidArgument(f"group type must be 'address' or 'service': {value!r}") from None


def _address_body(name, kind, value, description, edit_version=None):
    dns = kind == "DNS"
    version = E("edit-version") if edit_version is None else E("edit-version", str(edit_version))
    return E(
        "address",
        E("name", name),
        E("address-type", kind),
        E("host-name", value) if dns else E("host-name"),
        version,
        E("members"),
        E("address-version", "IPV4"),
        E("definition-type", "CUSTOM"),
        E("ip-address") if dns else E("ip-address", value),
        E("description", description),
    )


def _variable_value(moid, device, value, value_name):
    return E(
        "variable-values",
        E("device", E("moid", moid), E("name", device)),
        E("variable-value-detail", E("variable-value", value), E("name", value_name)),
    )


def _ports(ports):
    if isinstance(ports, int) and not isinstance(ports, bool):
        return str(ports)
    if isinstance(ports, str):
        parts = [p.strip() for p in ports.split("-")]
        if all(p.isdigit() for p in parts) and len(parts) in (1, 2):
            return "-".join(parts)
    raise InvalidArgument(f"ports must be a number or a 'low-high' range: {ports!r}")


class SecurityDirector:
    """Security Director API calls."""

    # --- lookups ---

    def _object_id(self, kind, name):
        if isinstance(name, int) and not isinstance(name, bool):
            return name
        _group_info(kind)
        if kind == "service":
            matches = [s.id for s in self.services(name) if s.name == name]
        else:
            matches = [
                a.id for a in self.addresses(name)
                if a.name == name or a.ip_address == name
            ]
        if not matches:
            raise NotFoundError(f"{kind} object not found: {name}")
        return matches[-1]

    def _object_path(self, kind, name):
        path = _group_info(kind)[0]
        return f"{path}/{self._object_id(kind, name)}"

    def sd_device_id(self, device) -> int:
        """Resolve a security device id from an id, an IPv4 address or a name."""
        if isinstance(device, int) and not isinstance(device, bool):
            return device
        if IPV4_PATTERN.match(device):
            matches = [d.id for d in self.security_devices() if d.ip_address == device]
        else:
            matches = [d.id for d in self.security_devices() if d.name == device]
        if not matches:
            raise NotFoundError(f"security device not found: {device}")
        return matches[-1]

    def policy_id(self, policy) -> int:
        if isinstance(policy, int) and not isinstance(policy, bool):
            return policy
        matches = [p.id for p in self.policies() if p.name == policy]
        if not matches:
            raise NotFoundError(f"no policy found: {policy}")
        return matches[-1]

    def variable_id(self, name) -> int:
        matches = [v.id for v in self.variables() if v.name == name]
        if not matches:
            raise NotFoundError(f"variable not found: {name}")
        return matches[-1]

    # --- addresses and services ---

    def addresses(self, filter=None) -> list[Address]:
        """Address objects, optionally narrowed by a global search term."""
        params = {"filter": f"(global eq '{filter or ''}')"}
        return self._list(ADDRESSES_PATH, "address", Address, params=params)

    def add_address(self, name, ip, description=""):
        """Create an address object. ``ip`` is a host, a network or a DNS name."""
        kind, value = address_type(ip)
        self.api_call("post", ADDRESSES_PATH, _address_body(name, kind, value, description), "address")

    def edit_address(self, name, new_ip):
        """Change the IP, network or FQDN of the address object ``name``."""
        kind, value = address_type(new_ip)
        path = self._object_path("address", name)
        existing = self.api_call("get", path)
        if existing is None:
            raise NotFoundError(f"address object not found: {name}")
        body = _address_body(
            existing.findtext("name", default=name),
            kind,
            value,
            existing.findtext("description", default=""),
            edit_version=_int(existing, "edit-version"),
        )
        self.api_call("put", path, body, "address")

    def services(self, filter=None) -> list[Service]:
        params = {"filter": f"(global eq '{filter or ''}')"}
        return self._list(SERVICES_PATH, "service", Service, params=params)

    def add_service(self, protocol, name, ports, description="", timeout=0):
        """Create a service object.

        ``ports`` is a port number or a ``"low-high"`` range.  A zero
        ``timeout`` disables the inactivity timeout.
        """
        protocol = protocol.upper()
        if protocol not in PROTOCOL_NUMBERS:
            raise InvalidArgument(f"protocol must be tcp or udp: {protocol}")
        if timeout:
            inactivity = E("inactivity-timeout", str(timeout))
        else:
            inactivity = E("inactivity-timeout")
        body = E(
            "service",
            E("name", name),
            E("description", description),
            E("is-group", "false"),
            E(
                "protocols",
                E(
                    "protocol",
                    E("name", name),
                    E("dst-port", _ports(ports)),
                    E("sunrpc-protocol-type", protocol),
                    E("msrpc-protocol-type", protocol),
                    E("protocol-number", str(PROTOCOL_NUMBERS[protocol])),
                    E("protocol-type", f"PROTOCOL_{protocol}"),
                    E("disable-timeout", "false" if timeout else "true"),
                    inactivity,
                ),
            ),
        )
        self.api_call("post", SERVICES_PATH, body, "service")

    def add_group(self, group_type, name, description=""):
        """Create an empty address or service group."""
        path, _, operation, _ = _group_info(group_type)
        if group_type == "service":
            body = E(
                "service",
                E("name", name),
                E("is-group", "true"),
                E("description", description),
            )
        else:
            body = E(
                "address",
                E("name", name),
                E("address-type", "GROUP"),
                E("host-name"),
                E("edit-version"),
                E("address-version", "IPV4"),
                E("definition-type", "CUSTOM"),
                E("description", description),
            )
        self.api_call("post", path, body, operation)

    def edit_group(self, group_type, action, member, name):
        """Add ``member`` to, or remove it from, the group ``name``."""
        _, rel, _, patch = _group_info(group_type)
        if action not in GROUP_ACTIONS:
            raise InvalidArgument(f"action must be 'add' or 'remove': {action!r}")
        if action == "add":
            change = E("add", E("member", E("name", member)), sel=f"{rel}/members")
        else:
            change = E("remove", sel=f"{rel}/members/member[name={_xpath_literal(member)}]")
        self.api_call("patch", self._object_path(group_type, name), E("diff", change), patch)

    def rename_object(self, group_type, name, new_name):
        _, rel, _, patch = _group_info(group_type)
        change = E("replace", E("name", new_name), sel=f"{rel}/name")
        self.api_call("patch", self._object_path(group_type, name), E("diff", change), patch)

    def delete_object(self, group_type, name):
        _group_info(group_type)
        self.api_call("delete", self._object_path(group_type, name))

    def group_members(self, group_type, name) -> list[Member]:
        _group_info(group_type)
        elem = self.api_call("get", self._object_path(group_type, name))
        if elem is None:
            return []
        return [
            Member(id=_int(m, "id"), name=m.findtext("name", default=""))
            for m in elem.iterfind("members/member")
        ]

    # --- devices and policies ---

    def security_devices(self) -> list[SecurityDevice]:
        return self._list(SD_DEVICES_PATH, "device", SecurityDevice)

    def policies(self) -> list[Policy]:
        return self._list(POLICIES_PATH, "firewall-policy", Policy)

    def publish_policy(self, policy, update=False) -> int:
        """Publish a changed firewall policy; ``update`` also pushes it to the devices."""
        body = E("publish", E("policy-ids", E("policy-id", str(self.policy_id(policy)))))
        params = {"update": "true"} if update else None
        elem = self.api_call("post", PUBLISH_PATH, body, "publish", params=params)
        try:
            return self._job_id(elem)
        except SpaceAPIError:
            raise SpaceAPIError("no policy changes to publish") from None

    def update_device(self, device) -> int:
        """Push pending policy changes to a security device. Returns the job id."""
        body = E(
            "update-devices",
            E("sd-ids", E("id", str(self.sd_device_id(device)))),
            E("service-types", E("service-type", "POLICY")),
            E("update-options", E("enable-policy-rematch-srx-only", "false")),
        )
        return self._job_id(self.api_call("post", UPDATE_DEVICES_PATH, body, "update-devices"))

    # --- polymorphic objects ---

    def variables(self) -> list[Variable]:
        return self._list(VARIABLES_PATH, "variable-definition", Variable)

    def add_variable(self, name, address, description=""):
        """Create a variable whose default value is the existing address object ``address``."""
        address_id = self._object_id("address", address)
        body = E(
            "variable-definition",
            E("name", name),
            E("type", "ADDRESS"),
            E("description", description),
            E("context", "DEVICE"),
            E("default-name", address),
            E("default-value-detail", E("default-value", str(address_id))),
        )
        self.api_call("post", VARIABLES_PATH, body, "variable")

    def edit_variable(self, name, address, firewall):
        """Give the variable ``name`` the value ``address`` on the security device ``firewall``.

        Values already set for other devices are kept.
        """
        path = f"{VARIABLES_PATH}/{self.variable_id(name)}"
        device_id = self.sd_device_id(firewall)
        address_id = self._object_id("address", address)
        existing = self.api_call("get", path)
        if existing is None:
            raise NotFoundError(f"variable not found: {name}")

        values = E("variable-values-list")
        for v in existing.iterfind("variable-values-list/variable-values"):
            values.append(
                _variable_value(
                    v.findtext("device/moid", default=""),
                    v.findtext("device/name", default=""),
                    v.findtext("variable-value-detail/variable-value", default=""),
                    v.findtext("variable-value-detail/name", default=""),
                )
            )
        values.append(
            _variable_value(
                f"{DEVICE_MOID}:{device_id}",
                firewall,
                f"{ADDRESS_MOID}:{address_id}",
                address,
            )
        )
        body = E(
            "variable-definition",
            E("name", existing.findtext("name", default=name)),
            E("type", existing.findtext("type", default="ADDRESS")),
            E("description", existing.findtext("description", default="")),
            E("edit-version", str(_int(existing, "edit-version"))),
            E("context", "DEVICE"),
            E("default-name", existing.findtext("default-name", default="")),
            E(
                "default-value-detail",
                E("default-value", existing.findtext("default-value-detail/default-value", default="")),
            ),
            values,
        )
        self.api_call("put", path, body, "variable")

    def delete_variable(self, name):
        """Remove a variable. Space refuses while a policy still uses it."""
        self.api_call("delete", f"{VARIABLES_PATH}/{self.variable_id(name)}")
