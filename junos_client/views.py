"""Operational views.

A view is a fixed RPC plus a decoder.  Replies from clustered SRX and
multi-RE systems are wrapped in ``<multi-routing-engine-results>``; those
decode to :class:`Clustered` (one value per node), everything else to
:class:`Single`.

Supported views::

    arp, route, interface, vlan, lldp, ethernetswitch, inventory,
    virtualchassis, bgp, staticnat, sourcenat, storage, firewallpolicy
"""

from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType

from lxml.builder import E

from junos_client.exceptions import InvalidArgument, UnsupportedOnPlatform
from junos_client.facts import as_element, is_multi_re, split_multi_re

logger = getLogger(__name__)


def _text(elem, path):
    return (elem.findtext(path) or "").strip()


def _int(elem, path):
    try:
        return int(_text(elem, path))
    except ValueError:
        return 0


def _texts(elem, path):
    return [e.text.strip() for e in elem.iterfind(path) if e.text and e.text.strip()]


@dataclass
class Single:
    value: object

    def values(self):
        return [self.value]


@dataclass
class Clustered:
    """Per-node values keyed by ``re-name`` (node0, node1, ...)."""

    nodes: dict

    def values(self):
        return list(self.nodes.values())


# --- arp ---


@dataclass
class ArpEntry:
    mac_address: str
    ip_address: str
    interface: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            mac_address=_text(elem, "mac-address"),
            ip_address=_text(elem, "ip-address"),
            interface=_text(elem, "interface-name"),
        )


@dataclass
class ArpTable:
    count: int
    entries: list

    @classmethod
    def from_xml(cls, elem):
        entries = [ArpEntry.from_xml(e) for e in elem.iter("arp-table-entry")]
        count = _int(elem, ".//arp-entry-count") or len(entries)
        return cls(count=count, entries=entries)


# --- route ---


@dataclass
class Route:
    destination: str
    active: str
    protocol: str
    preference: int
    age: str
    next_hop: str
    next_hop_interface: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            destination=_text(elem, "rt-destination"),
            active=_text(elem, "rt-entry/active-tag"),
            protocol=_text(elem, "rt-entry/protocol-name"),
            preference=_int(elem, "rt-entry/preference"),
            age=_text(elem, "rt-entry/age"),
            next_hop=_text(elem, "rt-entry/nh/to"),
            next_hop_interface=_text(elem, "rt-entry/nh/via"),
        )


@dataclass
class RouteTable:
    name: str
    total_routes: int
    active_routes: int
    holddown_routes: int
    hidden_routes: int
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "table-name"),
            total_routes=_int(elem, "total-route-count"),
            active_routes=_int(elem, "active-route-count"),
            holddown_routes=_int(elem, "holddown-route-count"),
            hidden_routes=_int(elem, "hidden-route-count"),
            entries=[Route.from_xml(rt) for rt in elem.iterfind("rt")],
        )


@dataclass
class RoutingTable:
    tables: list

    @classmethod
    def from_xml(cls, elem):
        return cls(tables=[RouteTable.from_xml(t) for t in elem.iter("route-table")])


# --- interface ---


@dataclass
class LogicalInterface:
    name: str
    mtu: str
    cidr: str
    ip_address: str
    local_index: int
    snmp_index: int
    encapsulation: str
    zone: str
    address_family: str
    input_packets: int
    output_packets: int

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "name"),
            mtu=_text(elem, "address-family/mtu"),
            cidr=_text(elem, "address-family/interface-address/ifa-destination"),
            ip_address=_text(elem, "address-family/interface-address/ifa-local"),
            local_index=_int(elem, "local-index"),
            snmp_index=_int(elem, "snmp-index"),
            encapsulation=_text(elem, "encapsulation"),
            zone=_text(elem, "logical-interface-zone-name"),
            address_family=_text(elem, "address-family/address-family-name"),
            input_packets=_int(elem, "traffic-statistics/input-packets"),
            output_packets=_int(elem, "traffic-statistics/output-packets"),
        )


@dataclass
class PhysicalInterface:
    name: str
    admin_status: str
    oper_status: str
    local_index: int
    snmp_index: int
    link_level_type: str
    mtu: str
    speed: str
    hardware_address: str
    flapped: str
    input_bps: int
    output_bps: int
    logical_interfaces: list = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "name"),
            admin_status=_text(elem, "admin-status"),
            oper_status=_text(elem, "oper-status"),
            local_index=_int(elem, "local-index"),
            snmp_index=_int(elem, "snmp-index"),
            link_level_type=_text(elem, "link-level-type"),
            mtu=_text(elem, "mtu"),
            speed=_text(elem, "speed"),
            hardware_address=_text(elem, "hardware-physical-address"),
            flapped=_text(elem, "interface-flapped"),
            input_bps=_int(elem, "traffic-statistics/input-bps"),
            output_bps=_int(elem, "traffic-statistics/output-bps"),
            logical_interfaces=[
                LogicalInterface.from_xml(li) for li in elem.iterfind("logical-interface")
            ],
        )


@dataclass
class Interfaces:
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(entries=[PhysicalInterface.from_xml(e) for e in elem.iter("physical-interface")])


# --- vlan / lldp / ethernet-switching ---


@dataclass
class Vlan:
    name: str
    tag: int
    members: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "l2ng-l2rtb-vlan-name"),
            tag=_int(elem, "l2ng-l2rtb-vlan-tag"),
            members=_texts(elem, "l2ng-l2rtb-vlan-member/l2ng-l2rtb-vlan-member-interface"),
        )


@dataclass
class Vlans:
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(entries=[Vlan.from_xml(e) for e in elem.iter("l2ng-l2ald-vlan-instance-group")])


@dataclass
class LLDPNeighbor:
    local_port_id: str
    local_parent_interface: str
    remote_chassis_id_subtype: str
    remote_chassis_id: str
    remote_port_description: str
    remote_port_id: str
    remote_system_name: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            local_port_id=_text(elem, "lldp-local-port-id"),
            local_parent_interface=_text(elem, "lldp-local-parent-interface-name"),
            remote_chassis_id_subtype=_text(elem, "lldp-remote-chassis-id-subtype"),
            remote_chassis_id=_text(elem, "lldp-remote-chassis-id"),
            remote_port_description=_text(elem, "lldp-remote-port-description"),
            remote_port_id=_text(elem, "lldp-remote-port-id"),
            remote_system_name=_text(elem, "lldp-remote-system-name"),
        )


@dataclass
class LLDPNeighbors:
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(entries=[LLDPNeighbor.from_xml(e) for e in elem.iter("lldp-neighbor-information")])


@dataclass
class MACEntry:
    vlan_name: str
    mac_address: str
    age: str
    flags: str
    logical_interface: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            vlan_name=_text(elem, "l2ng-l2-mac-vlan-name"),
            mac_address=_text(elem, "l2ng-l2-mac-address"),
            age=_text(elem, "l2ng-l2-mac-age"),
            flags=_text(elem, "l2ng-l2-mac-flags"),
            logical_interface=_text(elem, "l2ng-l2-mac-logical-interface"),
        )


@dataclass
class L2MACEntry:
    global_mac_count: int
    learned_mac_count: int
    routing_instance: str
    vlan_id: int
    mac_entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            global_mac_count=_int(elem, "mac-count-global"),
            learned_mac_count=_int(elem, "learnt-mac-count"),
            routing_instance=_text(elem, "l2ng-l2-mac-routing-instance"),
            vlan_id=_int(elem, "l2ng-l2-vlan-id"),
            mac_entries=[MACEntry.from_xml(m) for m in elem.iterfind("l2ng-mac-entry")],
        )


@dataclass
class EthernetSwitchingTable:
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(entries=[L2MACEntry.from_xml(e) for e in elem.iter("l2ng-l2ald-mac-entry-vlan")])


# --- inventory ---

MODULE_LEVELS = (
    "chassis-module",
    "chassis-sub-module",
    "chassis-sub-sub-module",
    "chassis-sub-sub-sub-module",
)


@dataclass
class Module:
    name: str
    version: str
    part_number: str
    serial_number: str
    description: str
    modules: list = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem, depth=0):
        children = []
        if depth + 1 < len(MODULE_LEVELS):
            children = [
                cls.from_xml(sub, depth + 1) for sub in elem.iterfind(MODULE_LEVELS[depth + 1])
            ]
        return cls(
            name=_text(elem, "name"),
            version=_text(elem, "version"),
            part_number=_text(elem, "part-number"),
            serial_number=_text(elem, "serial-number"),
            description=_text(elem, "description"),
            modules=children,
        )


@dataclass
class Chassis:
    name: str
    serial_number: str
    description: str
    modules: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "name"),
            serial_number=_text(elem, "serial-number"),
            description=_text(elem, "description"),
            modules=[Module.from_xml(m) for m in elem.iterfind(MODULE_LEVELS[0])],
        )


@dataclass
class HardwareInventory:
    chassis: list

    @classmethod
    def from_xml(cls, elem):
        return cls(chassis=[Chassis.from_xml(c) for c in elem.iter("chassis")])


# --- virtual-chassis ---


@dataclass
class VCMember:
    status: str
    id: int
    fpc_slot: str
    serial_number: str
    model: str
    priority: int
    role: str
    neighbors: dict

    @classmethod
    def from_xml(cls, elem):
        neighbors = {}
        for n in elem.iterfind("neighbor-list/neighbor"):
            neighbors[_text(n, "neighbor-interface")] = _int(n, "neighbor-id")
        return cls(
            status=_text(elem, "member-status"),
            id=_int(elem, "member-id"),
            fpc_slot=_text(elem, "fpc-slot"),
            serial_number=_text(elem, "member-serial-number"),
            model=_text(elem, "member-model"),
            priority=_int(elem, "member-priority"),
            role=_text(elem, "member-role"),
            neighbors=neighbors,
        )


@dataclass
class VirtualChassis:
    id: str
    mode: str
    members: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_text(elem, ".//preprovisioned-virtual-chassis-information/virtual-chassis-id"),
            mode=_text(elem, ".//preprovisioned-virtual-chassis-information/virtual-chassis-mode"),
            members=[VCMember.from_xml(m) for m in elem.iterfind(".//member-list/member")],
        )


# --- bgp ---


@dataclass
class BGPPeer:
    address: str
    asn: int
    state: str
    flaps: int
    elapsed_time: str
    input_messages: int
    output_messages: int
    routing_table: str
    active_prefixes: int
    received_prefixes: int
    accepted_prefixes: int

    @classmethod
    def from_xml(cls, elem):
        return cls(
            address=_text(elem, "peer-address"),
            asn=_int(elem, "peer-as"),
            state=_text(elem, "peer-state"),
            flaps=_int(elem, "flap-count"),
            elapsed_time=_text(elem, "elapsed-time"),
            input_messages=_int(elem, "input-messages"),
            output_messages=_int(elem, "output-messages"),
            routing_table=_text(elem, "bgp-rib/name"),
            active_prefixes=_int(elem, "bgp-rib/active-prefix-count"),
            received_prefixes=_int(elem, "bgp-rib/received-prefix-count"),
            accepted_prefixes=_int(elem, "bgp-rib/accepted-prefix-count"),
        )


@dataclass
class BGPTable:
    total_groups: int
    total_peers: int
    down_peers: int
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            total_groups=_int(elem, ".//group-count"),
            total_peers=_int(elem, ".//peer-count"),
            down_peers=_int(elem, ".//down-peer-count"),
            entries=[BGPPeer.from_xml(p) for p in elem.iter("bgp-peer")],
        )


# --- nat ---


@dataclass
class StaticNatEntry:
    name: str
    set_name: str
    id: str
    from_zone: str
    destination_prefix: str
    host_prefix: str
    routing_instance: str
    translation_hits: int

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "rule-name"),
            set_name=_text(elem, "rule-set-name"),
            id=_text(elem, "rule-id"),
            from_zone=_text(elem, "rule-from-context-name"),
            destination_prefix=_text(elem, "rule-destination-address-prefix"),
            host_prefix=_text(elem, "rule-host-address-prefix"),
            routing_instance=_text(elem, "rule-host-routing-instance"),
            translation_hits=_int(elem, "rule-translation-hits"),
        )


@dataclass
class StaticNats:
    count: int
    entries: list

    @classmethod
    def from_xml(cls, elem):
        entries = [StaticNatEntry.from_xml(e) for e in elem.iter("static-nat-rule-entry")]
        return cls(count=len(entries), entries=entries)


@dataclass
class SourceNatEntry:
    name: str
    set_name: str
    id: str
    from_zone: str
    to_zone: str
    source_addresses: list
    destination_addresses: list
    action: str
    translation_hits: int

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "rule-name"),
            set_name=_text(elem, "rule-set-name"),
            id=_text(elem, "rule-id"),
            from_zone=_text(elem, "rule-from-context-name"),
            to_zone=_text(elem, "rule-to-context-name"),
            source_addresses=_texts(elem, "source-address-range-entry/rule-source-address"),
            destination_addresses=_texts(
                elem, "destination-address-range-entry/rule-destination-address"
            ),
            action=_text(elem, "source-nat-rule-action-entry/source-nat-rule-action"),
            translation_hits=_int(elem, "source-nat-rule-hits-entry/rule-translation-hits"),
        )


@dataclass
class SourceNats:
    count: int
    entries: list

    @classmethod
    def from_xml(cls, elem):
        entries = [SourceNatEntry.from_xml(e) for e in elem.iter("source-nat-rule-entry")]
        return cls(count=len(entries), entries=entries)


# --- storage ---


@dataclass
class FileSystem:
    name: str
    total_blocks: int
    used_blocks: int
    available_blocks: int
    used_percent: str
    mounted_on: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "filesystem-name"),
            total_blocks=_int(elem, "total-blocks"),
            used_blocks=_int(elem, "used-blocks"),
            available_blocks=_int(elem, "available-blocks"),
            used_percent=_text(elem, "used-percent"),
            mounted_on=_text(elem, "mounted-on"),
        )


@dataclass
class SystemStorage:
    filesystems: list

    @classmethod
    def from_xml(cls, elem):
        return cls(filesystems=[FileSystem.from_xml(f) for f in elem.iter("filesystem")])


# --- firewall policy ---


@dataclass
class Rule:
    name: str
    state: str
    identifier: int
    sequence_number: int
    source_addresses: list
    destination_addresses: list
    applications: list
    action: str

    @classmethod
    def from_xml(cls, elem):
        return cls(
            name=_text(elem, "policy-name"),
            state=_text(elem, "policy-state"),
            identifier=_int(elem, "policy-identifier"),
            sequence_number=_int(elem, "policy-sequence-number"),
            source_addresses=_texts(elem, "source-addresses/source-address/address-name"),
            destination_addresses=_texts(
                elem, "destination-addresses/destination-address/address-name"
            ),
            applications=_texts(elem, "applications/application/application-name"),
            action=_text(elem, "policy-action/action-type"),
        )


@dataclass
class SecurityContext:
    source_zone: str
    destination_zone: str
    rules: list

    @classmethod
    def from_xml(cls, elem):
        return cls(
            source_zone=_text(elem, "context-information/source-zone-name"),
            destination_zone=_text(elem, "context-information/destination-zone-name"),
            rules=[Rule.from_xml(r) for r in elem.iterfind("policies/policy-information")],
        )


@dataclass
class FirewallPolicy:
    entries: list

    @classmethod
    def from_xml(cls, elem):
        return cls(entries=[SecurityContext.from_xml(c) for c in elem.iter("security-context")])


# --- table ---


def _interface_rpc(name=None):
    rpc = E("get-interface-information")
    if name:
        rpc.append(E("interface-name", name))
    return rpc


@dataclass(frozen=True)
class View:
    rpc: object
    decoder: object


VIEWS = MappingProxyType(
    {
        "arp": View(lambda: E("get-arp-table-information", E("no-resolve")), ArpTable),
        "route": View(lambda: E("get-route-information"), RoutingTable),
        "interface": View(_interface_rpc, Interfaces),
        "vlan": View(lambda: E("get-vlan-information"), Vlans),
        "lldp": View(lambda: E("get-lldp-neighbors-information"), LLDPNeighbors),
        "ethernetswitch": View(
            lambda: E("get-ethernet-switching-table-information"), EthernetSwitchingTable
        ),
        "inventory": View(lambda: E("get-chassis-inventory"), HardwareInventory),
        "virtualchassis": View(lambda: E("get-virtual-chassis-information"), VirtualChassis),
        "bgp": View(lambda: E("get-bgp-summary-information"), BGPTable),
        "staticnat": View(
            lambda: E("get-static-nat-rule-information", E("all")), StaticNats
        ),
        "sourcenat": View(
            lambda: E("get-source-nat-rule-sets-information", E("all")), SourceNats
        ),
        "storage": View(lambda: E("get-system-storage"), SystemStorage),
        "firewallpolicy": View(lambda: E("get-firewall-policies"), FirewallPolicy),
    }
)

# view -> model families that do not implement it
PLATFORM_TABLE = MappingProxyType(
    {
        "ethernetswitch": ("SRX", "MX"),
        "virtualchassis": ("SRX", "MX"),
    }
)


def get_view(name, views=VIEWS):
    try:
        return views[name]
    except KeyError:
        raise InvalidArgument(
            f"unknown view {name!r}, expected one of: {', '.join(views)}"
        ) from None


def check_platform(name, model, table=PLATFORM_TABLE):
    """Reject ``name`` on a model family listed in ``table``."""
    model = (model or "").upper()
    for family in table.get(name, ()):
        if family in model:
            raise UnsupportedOnPlatform(
                f"{name} information is not available on this platform ({model})"
            )


def build_view_rpc(name, interface=None, views=VIEWS):
    view = get_view(name, views)
    if name == "interface":
        return view.rpc(interface)
    if interface is not None:
        raise InvalidArgument(f"{name} view does not take an interface name")
    return view.rpc()


def decode_view(name, data, views=VIEWS):
    """Decode a view reply into :class:`Single` or :class:`Clustered`."""
    decoder = get_view(name, views).decoder
    elem = as_element(data)
    if is_multi_re(elem):
        nodes = {}
        for i, (re_name, payload) in enumerate(split_multi_re(elem)):
            nodes[re_name or f"node{i}"] = decoder.from_xml(payload)
        logger.debug(f"decode_view: {name} clustered {list(nodes)}")
        return Clustered(nodes)
    return Single(decoder.from_xml(elem))
