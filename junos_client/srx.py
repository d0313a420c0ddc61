"""SRX configuration generators.

Builders here return lists of ``set`` lines; nothing is sent until the
caller loads them::

    policy = new_policy(jnpr)
    policy.create_application("tcp-8080", "tcp", "8080")
    policy.add_rule("web", "trust", "any", "untrust", "srv1", "tcp-8080", "permit")
    jnpr.lock()
    jnpr.load_configuration(policy.build(), fmt="set")
    jnpr.commit()
    jnpr.unlock()
"""

import re
from dataclasses import dataclass
from logging import getLogger

from junos_client.exceptions import (
    DeviceRPCError,
    InvalidArgument,
    NotFoundError,
    UnsupportedOnPlatform,
)
from junos_client.rollback import is_not_found

logger = getLogger(__name__)

# predefined applications of an SRX
JUNOS_DEFAULT_APPS = (
    "junos-aol", "junos-bgp", "junos-biff", "junos-bootpc", "junos-bootps",
    "junos-chargen", "junos-cifs", "junos-cvspserver", "junos-dhcp-client",
    "junos-dhcp-relay", "junos-dhcp-server", "junos-discard", "junos-dns-tcp",
    "junos-dns-udp", "junos-echo", "junos-finger", "junos-ftp", "junos-gnutella",
    "junos-gopher", "junos-gre", "junos-gtp", "junos-h323", "junos-http",
    "junos-http-ext", "junos-https", "junos-icmp-all", "junos-icmp-ping",
    "junos-icmp6-all", "junos-icmp6-dst-unreach-addr",
    "junos-icmp6-dst-unreach-admin", "junos-icmp6-dst-unreach-beyond",
    "junos-icmp6-dst-unreach-port", "junos-icmp6-dst-unreach-route",
    "junos-icmp6-echo-reply", "junos-icmp6-echo-request",
    "junos-icmp6-packet-too-big", "junos-icmp6-param-prob-header",
    "junos-icmp6-param-prob-nexthdr", "junos-icmp6-param-prob-option",
    "junos-icmp6-time-exceed-reassembly", "junos-icmp6-time-exceed-transit",
    "junos-ident", "junos-ike", "junos-ike-nat", "junos-imap", "junos-imaps",
    "junos-internet-locator-service", "junos-irc", "junos-l2tp", "junos-ldap",
    "junos-ldp-tcp", "junos-ldp-udp", "junos-lpr", "junos-mail", "junos-mgcp",
    "junos-mgcp-ca", "junos-mgcp-ua", "junos-ms-rpc", "junos-ms-rpc-any",
    "junos-ms-rpc-epm", "junos-ms-rpc-iis-com", "junos-ms-rpc-iis-com-1",
    "junos-ms-rpc-iis-com-adminbase", "junos-ms-rpc-msexchange",
    "junos-ms-rpc-msexchange-directory-nsp",
    "junos-ms-rpc-msexchange-directory-rfr",
    "junos-ms-rpc-msexchange-info-store", "junos-ms-rpc-tcp", "junos-ms-rpc-udp",
    "junos-ms-rpc-uuid-any-tcp", "junos-ms-rpc-uuid-any-udp", "junos-ms-rpc-wmic",
    "junos-ms-rpc-wmic-admin", "junos-ms-rpc-wmic-admin2",
    "junos-ms-rpc-wmic-mgmt", "junos-ms-rpc-wmic-webm-callresult",
    "junos-ms-rpc-wmic-webm-classobject", "junos-ms-rpc-wmic-webm-level1login",
    "junos-ms-rpc-wmic-webm-login-clientid", "junos-ms-rpc-wmic-webm-login-helper",
    "junos-ms-rpc-wmic-webm-objectsink",
    "junos-ms-rpc-wmic-webm-refreshing-services",
    "junos-ms-rpc-wmic-webm-remote-refresher", "junos-ms-rpc-wmic-webm-services",
    "junos-ms-rpc-wmic-webm-shutdown", "junos-ms-sql", "junos-msn", "junos-nbds",
    "junos-nbname", "junos-netbios-session", "junos-nfs", "junos-nfsd-tcp",
    "junos-nfsd-udp", "junos-nntp", "junos-ns-global", "junos-ns-global-pro",
    "junos-nsm", "junos-ntalk", "junos-ntp", "junos-ospf", "junos-pc-anywhere",
    "junos-persistent-nat", "junos-ping", "junos-pingv6", "junos-pop3",
    "junos-pptp", "junos-printer", "junos-r2cp", "junos-radacct", "junos-radius",
    "junos-realaudio", "junos-rip", "junos-routing-inbound", "junos-rsh",
    "junos-rtsp", "junos-sccp", "junos-sctp-any", "junos-sip", "junos-smb",
    "junos-smb-session", "junos-smtp", "junos-snmp-agentx", "junos-snpp",
    "junos-sql-monitor", "junos-sqlnet-v1", "junos-sqlnet-v2", "junos-ssh",
    "junos-stun", "junos-sun-rpc", "junos-sun-rpc-any", "junos-sun-rpc-any-tcp",
    "junos-sun-rpc-any-udp", "junos-sun-rpc-mountd", "junos-sun-rpc-mountd-tcp",
    "junos-sun-rpc-mountd-udp", "junos-sun-rpc-nfs", "junos-sun-rpc-nfs-access",
    "junos-sun-rpc-nfs-tcp", "junos-sun-rpc-nfs-udp", "junos-sun-rpc-nlockmgr",
    "junos-sun-rpc-nlockmgr-tcp", "junos-sun-rpc-nlockmgr-udp",
    "junos-sun-rpc-portmap", "junos-sun-rpc-portmap-tcp",
    "junos-sun-rpc-portmap-udp", "junos-sun-rpc-rquotad",
    "junos-sun-rpc-rquotad-tcp", "junos-sun-rpc-rquotad-udp",
    "junos-sun-rpc-ruserd", "junos-sun-rpc-ruserd-tcp", "junos-sun-rpc-ruserd-udp",
    "junos-sun-rpc-sadmind", "junos-sun-rpc-sadmind-tcp",
    "junos-sun-rpc-sadmind-udp", "junos-sun-rpc-sprayd",
    "junos-sun-rpc-sprayd-tcp", "junos-sun-rpc-sprayd-udp", "junos-sun-rpc-status",
    "junos-sun-rpc-status-tcp", "junos-sun-rpc-status-udp", "junos-sun-rpc-tcp",
    "junos-sun-rpc-udp", "junos-sun-rpc-walld", "junos-sun-rpc-walld-tcp",
    "junos-sun-rpc-walld-udp", "junos-sun-rpc-ypbind", "junos-sun-rpc-ypbind-tcp",
    "junos-sun-rpc-ypbind-udp", "junos-sun-rpc-ypserv", "junos-sun-rpc-ypserv-tcp",
    "junos-sun-rpc-ypserv-udp", "junos-syslog", "junos-tacacs", "junos-tacacs-ds",
    "junos-talk", "junos-tcp-any", "junos-telnet", "junos-tftp", "junos-udp-any",
    "junos-uucp", "junos-vdo-live", "junos-vnc", "junos-wais", "junos-who",
    "junos-whois", "junos-winframe", "junos-wxcontrol", "junos-x-windows",
    "junos-xnm-clear-text", "junos-xnm-ssl", "junos-ymsg",
)

ANY_ADDRESSES = ("any", "any-ipv4", "any-ipv6")
RULE_ACTIONS = ("permit", "deny", "reject")
APPLICATION_PROTOCOLS = ("tcp", "udp")

DH_GROUPS = {1: "group1", 2: "group2", 5: "group5", 14: "group14",
             19: "group19", 20: "group20", 24: "group24"}
ENCRYPTION = {
    "3des": "3des-cbc",
    "aes-128": "aes-128-cbc",
    "aes-192": "aes-192-cbc",
    "aes-256": "aes-256-cbc",
    "des": "des-cbc",
}
P1_AUTHENTICATION = {"md5": "md5", "sha1": "sha1"}
P2_AUTHENTICATION = {"md5": "hmac-md5-96", "sha1": "hmac-sha1-96"}
P2_PROTOCOLS = ("ah", "esp")
ESTABLISH = {"traffic": "on-traffic", "immediately": "immediately"}
IKE_MODES = ("main", "aggressive")

# global address books need 11.2 or later
GLOBAL_ADDRESS_BOOK_RELEASE = (11, 2)
RELEASE_PATTERN = re.compile(r"(\d+)\.(\d+)[RBISX]")


def _choice(value, choices, what):
    if value not in choices:
        raise InvalidArgument(f"{what} must be one of {', '.join(map(str, choices))}: {value!r}")
    return choices[value] if isinstance(choices, dict) else value


def _names(value):
    """Split ``"a, b"`` or accept a list."""
    if isinstance(value, str):
        value = value.split(",")
    names = [v.strip() for v in value if v and v.strip()]
    if not names:
        raise InvalidArgument("empty name list")
    return names


# --- security policy ---


@dataclass(frozen=True)
class PolicyRule:
    name: str
    source_zone: str
    source_addresses: tuple
    destination_zone: str
    destination_addresses: tuple
    applications: tuple
    action: str

    def lines(self):
        prefix = (
            f"set security policies from-zone {self.source_zone} "
            f"to-zone {self.destination_zone} policy {self.name}"
        )
        return [
            f"{prefix} match source-address [ {' '.join(self.source_addresses)} ] "
            f"destination-address [ {' '.join(self.destination_addresses)} ] "
            f"application [ {' '.join(self.applications)} ]",
            f"{prefix} then {self.action}",
            f"{prefix} then log session-init session-close",
        ]


class FirewallPolicy:
    """Rules and applications to add to an SRX security policy.

    With ``addresses``/``applications`` known, rules naming anything else
    are refused. Applications made with :meth:`create_application` count
    as known.
    """

    def __init__(self, addresses=None, applications=None):
        self.addresses = None if addresses is None else set(addresses)
        self.applications = None if applications is None else set(applications)
        self.app_config = []
        self.rules = []

    def create_application(self, name, protocol, dst_port):
        """Define a TCP or UDP application not yet on the device."""
        protocol = _choice(protocol.lower(), APPLICATION_PROTOCOLS, "protocol")
        self.app_config.append(
            f"set applications application {name} protocol {protocol} destination-port {dst_port}"
        )
        if self.applications is not None:
            self.applications.add(name)

    def _check(self, names, known, extra, what):
        if known is None:
            return
        unknown = [n for n in names if n not in known and n not in extra]
        if unknown:
            raise InvalidArgument(f"unknown {what}: {', '.join(unknown)}")

    def add_rule(self, name, src_zone, src, dst_zone, dst, application, action):
        """Append a rule. ``src``, ``dst`` and ``application`` are lists or
        comma separated names.
        """
        src, dst, apps = _names(src), _names(dst), _names(application)
        self._check(src + dst, self.addresses, ANY_ADDRESSES, "address")
        self._check(apps, self.applications, ("any",), "application")
        rule = PolicyRule(
            name=str(name),
            source_zone=src_zone,
            source_addresses=tuple(src),
            destination_zone=dst_zone,
            destination_addresses=tuple(dst),
            applications=tuple(apps),
            action=_choice(action, RULE_ACTIONS, "action"),
        )
        self.rules.append(rule)
        return rule

    def build(self):
        lines = list(self.app_config)
        for rule in self.rules:
            lines.extend(rule.lines())
        return lines


def _config_names(elem, container, *kinds):
    names = []
    for parent in elem.iter(container):
        for kind in kinds:
            names.extend(
                n.strip() for n in parent.xpath(f"{kind}/name/text()") if n.strip()
            )
    return names


def new_policy(session) -> FirewallPolicy:
    """A blank policy that knows the device's address book and applications."""
    book = session.get_config("security>address-book", "xml")
    apps = session.get_config("applications", "xml")
    addresses = _config_names(book, "address-book", "address", "address-set")
    applications = _config_names(apps, "applications", "application", "application-set")
    logger.debug(f"new_policy: {len(addresses)=} {len(applications)=}")
    return FirewallPolicy(addresses, applications + list(JUNOS_DEFAULT_APPS))


# --- address book ---


def _check_global_address_book(session):
    for re_ in session.routing_engines:
        if "FIREFLY" in re_.model:
            continue
        if "SRX" not in re_.model:
            raise UnsupportedOnPlatform(f"not an SRX: {re_.model}")
        m = RELEASE_PATTERN.search(re_.version)
        if m is None:
            raise UnsupportedOnPlatform(f"unknown Junos release: {re_.version!r}")
        if (int(m.group(1)), int(m.group(2))) < GLOBAL_ADDRESS_BOOK_RELEASE:
            raise UnsupportedOnPlatform(
                f"global address book needs Junos 11.2 or later: {re_.version}"
            )


def convert_address_book(session):
    """``set`` lines moving every zone address book into the global one."""
    _check_global_address_book(session)
    zones = session.get_config("security>zones", "xml")
    lines = []
    for zone in zones.iter("security-zone"):
        zone_name = zone.findtext("name", default="").strip()
        book = zone.find("address-book")
        if book is None:
            continue
        for addr in book.iterfind("address"):
            name = addr.findtext("name", default="").strip()
            dns = addr.findtext("dns-name/name")
            wildcard = addr.findtext("wildcard-address/name")
            prefix = addr.findtext("ip-prefix")
            if dns:
                lines.append(f"set security address-book global address {name} dns-name {dns.strip()}")
            if wildcard:
                lines.append(
                    f"set security address-book global address {name} wildcard-address {wildcard.strip()}"
                )
            if prefix:
                lines.append(f"set security address-book global address {name} {prefix.strip()}")
        for addr_set in book.iterfind("address-set"):
            set_name = addr_set.findtext("name", default="").strip()
            for kind in ("address", "address-set"):
                for member in addr_set.iterfind(f"{kind}/name"):
                    lines.append(
                        f"set security address-book global address-set {set_name} {kind} {(member.text or '').strip()}"
                    )
        lines.append(f"delete security zones security-zone {zone_name} address-book")
    return lines


# --- IPsec VPN ---


@dataclass(frozen=True)
class Phase1Proposal:
    name: str
    dh_group: str
    authentication: str
    encryption: str
    lifetime: int


@dataclass(frozen=True)
class Phase2Proposal:
    name: str
    authentication: str
    encryption: str
    lifetime: int
    protocol: str


class IPsecVPN:
    """A route-based site-to-site VPN bound to ``st0``.

    :param pfs: Diffie-Hellman group for perfect forward secrecy, 0 disables
    :param establish: ``traffic`` or ``immediately``
    :param mode: IKE ``main`` or ``aggressive`` mode
    """

    def __init__(self, name, local, peer, interface, zone, st0,
                 pfs=0, establish="traffic", mode="main", psk=""):
        if '"' in psk:
            raise InvalidArgument("pre-shared key must not contain '\"'")
        self.name = name
        self.local = local
        self.peer = peer
        self.interface = interface
        self.zone = zone
        self.st0 = st0
        self.pfs = None if pfs == 0 else _choice(pfs, DH_GROUPS, "pfs group")
        self.establish = _choice(establish, ESTABLISH, "establish")
        self.mode = _choice(mode, IKE_MODES, "mode")
        self.psk = psk
        self.phase1_proposals = []
        self.phase2_proposals = []
        self.traffic_selectors = []

    def phase1(self, name, dh, auth, encryption, lifetime):
        """Add an IKE proposal."""
        self.phase1_proposals.append(
            Phase1Proposal(
                name=name,
                dh_group=_choice(dh, DH_GROUPS, "dh group"),
                authentication=_choice(auth, P1_AUTHENTICATION, "authentication"),
                encryption=_choice(encryption, ENCRYPTION, "encryption"),
                lifetime=int(lifetime),
            )
        )

    def phase2(self, name, auth, encryption, lifetime, protocol="esp"):
        """Add an IPsec proposal."""
        self.phase2_proposals.append(
            Phase2Proposal(
                name=name,
                authentication=_choice(auth, P2_AUTHENTICATION, "authentication"),
                encryption=_choice(encryption, ENCRYPTION, "encryption"),
                lifetime=int(lifetime),
                protocol=_choice(protocol, P2_PROTOCOLS, "protocol"),
            )
        )

    def traffic_selector(self, local, remote):
        """Replace the traffic selectors with one per local/remote pair."""
        pairs = [(lo, rem) for lo in _names(local) for rem in _names(remote)]
        self.traffic_selectors = [
            f"set security ipsec vpn {self.name} traffic-selector ts{n} local-ip {lo} remote-ip {rem}"
            for n, (lo, rem) in enumerate(pairs, 1)
        ]

    def build(self):
        name = self.name
        lines = [
            f"set interfaces {self.st0} family inet",
            f"set security zones security-zone {self.zone} interfaces {self.st0}",
        ]
        for p1 in self.phase1_proposals:
            prefix = f"set security ike proposal {p1.name}"
            lines += [
                f"{prefix} authentication-method pre-shared-keys",
                f"{prefix} dh-group {p1.dh_group}",
                f"{prefix} authentication-algorithm {p1.authentication}",
                f"{prefix} encryption-algorithm {p1.encryption}",
                f"{prefix} lifetime-seconds {p1.lifetime}",
            ]
        lines.append(f"set security ike policy {name} mode {self.mode}")
        lines.append(f'set security ike policy {name} pre-shared-key ascii-text "{self.psk}"')
        lines += [f"set security ike policy {name} proposals {p1.name}" for p1 in self.phase1_proposals]
        lines += [
            f"set security ike gateway {name} address {self.peer}",
            f"set security ike gateway {name} external-interface {self.interface}",
            f"set security ike gateway {name} ike-policy {name}",
            f"set security ike gateway {name} local-address {self.local}",
        ]
        for p2 in self.phase2_proposals:
            prefix = f"set security ipsec proposal {p2.name}"
            lines += [
                f"{prefix} protocol {p2.protocol}",
                f"{prefix} authentication-algorithm {p2.authentication}",
                f"{prefix} encryption-algorithm {p2.encryption}",
                f"{prefix} lifetime-seconds {p2.lifetime}",
            ]
        lines += [f"set security ipsec policy {name} proposals {p2.name}" for p2 in self.phase2_proposals]
        if self.pfs:
            lines.append(f"set security ipsec policy {name} perfect-forward-secrecy keys {self.pfs}")
        lines += [
            f"set security ipsec vpn {name} bind-interface {self.st0}",
            f"set security ipsec vpn {name} ike gateway {name}",
            f"set security ipsec vpn {name} ike idle-time 60",
            f"set security ipsec vpn {name} ike ipsec-policy {name}",
            f"set security ipsec vpn {name} establish-tunnels {self.establish}",
        ]
        lines += self.traffic_selectors
        return lines


def st0_units(session):
    """Unit numbers of the configured st0 interfaces."""
    try:
        result = session.view("interface", "st0")
    except NotFoundError:
        return []
    except DeviceRPCError as e:
        if is_not_found(e.errors):
            return []
        raise
    units = set()
    for interfaces in result.values():
        for phys in interfaces.entries:
            for logical in phys.logical_interfaces:
                _, _, unit = logical.name.partition(".")
                if unit.isdigit():
                    units.add(int(unit))
    return sorted(units)


def new_ipsec_vpn(session, name, local, peer, interface, zone,
                  pfs=0, establish="traffic", mode="main", psk=""):
    """An :class:`IPsecVPN` on the next free ``st0`` unit of the device."""
    st0 = f"st0.{max(st0_units(session), default=0) + 1}"
    logger.debug(f"new_ipsec_vpn: {name} {st0}")
    return IPsecVPN(name, local, peer, interface, zone, st0,
                    pfs=pfs, establish=establish, mode=mode, psk=psk)
