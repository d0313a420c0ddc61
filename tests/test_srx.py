"""SRX 設定生成 (ポリシー・アドレス帳・IPsec VPN) のテスト"""

import pytest
from conftest import FakeTransport, error, ok

from junos_client.exceptions import InvalidArgument, UnsupportedOnPlatform
from junos_client.session import Session
from junos_client.srx import (
    JUNOS_DEFAULT_APPS,
    FirewallPolicy,
    IPsecVPN,
    convert_address_book,
    new_ipsec_vpn,
    new_policy,
    st0_units,
)

ADDRESS_BOOK = """
<configuration>
  <security>
    <address-book>
      <name>global</name>
      <address><name>srv1</name><ip-prefix>10.0.0.1/32</ip-prefix></address>
      <address><name>srv2</name><ip-prefix>10.0.0.2/32</ip-prefix></address>
      <address-set><name>servers</name><address><name>srv1</name></address></address-set>
    </address-book>
  </security>
</configuration>
"""

APPLICATIONS = """
<configuration>
  <applications>
    <application><name>tcp-8443</name><protocol>tcp</protocol></application>
    <application-set><name>web-apps</name></application-set>
  </applications>
</configuration>
"""

ZONES = """
<configuration>
  <security>
    <zones>
      <security-zone>
        <name>trust</name>
        <address-book>
          <address><name>lan</name><ip-prefix>192.168.0.0/24</ip-prefix></address>
          <address><name>www</name><dns-name><name>www.example.net</name></dns-name></address>
          <address><name>wild</name><wildcard-address><name>10.0.0.1/255.0.255.255</name></wildcard-address></address>
          <address-set>
            <name>inside</name>
            <address><name>lan</name></address>
            <address-set><name>others</name></address-set>
          </address-set>
        </address-book>
      </security-zone>
      <security-zone>
        <name>untrust</name>
      </security-zone>
    </zones>
  </security>
</configuration>
"""

ST0 = """
<interface-information>
  <physical-interface>
    <name>st0</name>
    <logical-interface><name>st0.0</name></logical-interface>
    <logical-interface><name>st0.3</name></logical-interface>
  </physical-interface>
</interface-information>
"""


def software(model, version):
    return f"""
<software-information>
  <host-name>rt1</host-name>
  <product-model>{model}</product-model>
  <junos-version>{version}</junos-version>
</software-information>
"""


def connect(model, version):
    """指定した機種・バージョンに接続済みの Session"""
    transport = FakeTransport([ok(software(model, version))])
    jnpr = Session(transport).open()
    transport.requests.clear()
    return jnpr, transport


class TestFirewallPolicy:
    """セキュリティポリシー生成のテスト"""

    def test_build(self):
        """ルールごとに match/then/log の 3 行"""
        policy = FirewallPolicy()
        policy.add_rule("web", "trust", "any", "untrust", "srv1, srv2", "junos-http", "permit")
        prefix = "set security policies from-zone trust to-zone untrust policy web"
        assert policy.build() == [
            f"{prefix} match source-address [ any ] destination-address [ srv1 srv2 ] application [ junos-http ]",
            f"{prefix} then permit",
            f"{prefix} then log session-init session-close",
        ]

    def test_create_application(self):
        """アプリケーション定義はルールより前"""
        policy = FirewallPolicy(addresses=[], applications=[])
        policy.create_application("tcp-8080", "TCP", "8080")
        policy.add_rule(10, "trust", "any", "untrust", "any-ipv4", "tcp-8080", "deny")
        lines = policy.build()
        assert lines[0] == "set applications application tcp-8080 protocol tcp destination-port 8080"
        assert lines[2].endswith("policy 10 then deny")

    def test_invalid_protocol(self):
        """tcp/udp 以外は InvalidArgument"""
        with pytest.raises(InvalidArgument):
            FirewallPolicy().create_application("gre", "gre", "0")

    def test_unknown_address(self):
        """アドレス帳にない名前は InvalidArgument"""
        policy = FirewallPolicy(addresses=["srv1"], applications=["junos-http"])
        with pytest.raises(InvalidArgument, match="srv9"):
            policy.add_rule("web", "trust", "any", "untrust", "srv9", "junos-http", "permit")
        assert policy.rules == []

    def test_unknown_application(self):
        """未定義のアプリケーションは InvalidArgument"""
        policy = FirewallPolicy(addresses=["srv1"], applications=["junos-http"])
        with pytest.raises(InvalidArgument, match="tcp-8080"):
            policy.add_rule("web", "trust", "any", "untrust", "srv1", "tcp-8080", "permit")

    def test_invalid_action(self):
        """permit/deny/reject 以外は InvalidArgument"""
        with pytest.raises(InvalidArgument):
            FirewallPolicy().add_rule("web", "trust", "any", "untrust", "any", "any", "allow")

    def test_empty_names(self):
        """空の名前リストは InvalidArgument"""
        with pytest.raises(InvalidArgument):
            FirewallPolicy().add_rule("web", "trust", " , ", "untrust", "any", "any", "permit")


class TestNewPolicy:
    """デバイス設定を読むポリシー生成のテスト"""

    def test_reads_device(self, session, transport):
        """アドレス帳とアプリケーションを get-configuration で取得"""
        transport.queue(ok(ADDRESS_BOOK), ok(APPLICATIONS))
        policy = new_policy(session)
        assert transport.tags == ["get-configuration", "get-configuration"]
        assert transport.requests[0].find("configuration/security/address-book") is not None
        assert transport.requests[1].get("format") == "xml"
        assert policy.addresses == {"srv1", "srv2", "servers"}
        assert {"tcp-8443", "web-apps"} <= policy.applications
        assert set(JUNOS_DEFAULT_APPS) <= policy.applications

    def test_known_names(self, session, transport):
        """取得した名前と既定アプリケーションでルールを作成"""
        transport.queue(ok(ADDRESS_BOOK), ok(APPLICATIONS))
        policy = new_policy(session)
        policy.add_rule("web", "trust", "servers", "untrust", "any", "web-apps, junos-https", "permit")
        with pytest.raises(InvalidArgument):
            policy.add_rule("db", "trust", "db1", "untrust", "any", "any", "permit")
        assert len(policy.build()) == 3


class TestConvertAddressBook:
    """ゾーンアドレス帳からグローバルアドレス帳への変換テスト"""

    def test_lines(self, session, transport):
        """アドレス・アドレスセットを移し、ゾーンの定義を削除"""
        transport.queue(ok(ZONES))
        lines = convert_address_book(session)
        book = "set security address-book global"
        assert lines == [
            f"{book} address lan 192.168.0.0/24",
            f"{book} address www dns-name www.example.net",
            f"{book} address wild wildcard-address 10.0.0.1/255.0.255.255",
            f"{book} address-set inside address lan",
            f"{book} address-set inside address-set others",
            "delete security zones security-zone trust address-book",
        ]

    def test_not_srx(self):
        """SRX 以外は UnsupportedOnPlatform で設定を読まない"""
        jnpr, transport = connect("mx240", "18.4R3.3")
        with pytest.raises(UnsupportedOnPlatform):
            convert_address_book(jnpr)
        assert transport.requests == []

    def test_old_release(self):
        """11.2 より前のリリースは UnsupportedOnPlatform"""
        jnpr, _ = connect("srx240h", "11.1R4.4")
        with pytest.raises(UnsupportedOnPlatform, match="11.2"):
            convert_address_book(jnpr)

    def test_release_11_4(self):
        """11.4 は対象"""
        jnpr, transport = connect("srx240h", "11.4R7.5")
        transport.queue(ok(ZONES))
        assert convert_address_book(jnpr)[-1].startswith("delete security zones")

    def test_firefly(self):
        """vSRX (FIREFLY) はバージョンを問わず対象"""
        jnpr, transport = connect("firefly-perimeter", "12.1X47-D15.4")
        transport.queue(ok(ZONES))
        assert len(convert_address_book(jnpr)) == 6


class TestIPsecVPN:
    """ルートベース VPN 生成のテスト"""

    def vpn(self, **kwargs):
        vpn = IPsecVPN("site-b", "198.51.100.1", "203.0.113.1", "ge-0/0/0.0",
                       "vpn", "st0.1", psk="s3cret", **kwargs)
        vpn.phase1("p1", 14, "sha1", "aes-256", 28800)
        vpn.phase2("p2", "sha1", "aes-256", 3600)
        return vpn

    def test_build(self):
        """インターフェース・IKE・IPsec・VPN の順に生成"""
        lines = self.vpn(pfs=14).build()
        assert lines[:2] == [
            "set interfaces st0.1 family inet",
            "set security zones security-zone vpn interfaces st0.1",
        ]
        assert "set security ike proposal p1 dh-group group14" in lines
        assert "set security ike proposal p1 encryption-algorithm aes-256-cbc" in lines
        assert 'set security ike policy site-b pre-shared-key ascii-text "s3cret"' in lines
        assert "set security ike gateway site-b address 203.0.113.1" in lines
        assert "set security ike gateway site-b local-address 198.51.100.1" in lines
        assert "set security ipsec proposal p2 protocol esp" in lines
        assert "set security ipsec proposal p2 authentication-algorithm hmac-sha1-96" in lines
        assert "set security ipsec policy site-b perfect-forward-secrecy keys group14" in lines
        assert lines[-1] == "set security ipsec vpn site-b establish-tunnels on-traffic"
        assert lines.index("set security ike policy site-b proposals p1") < lines.index(
            "set security ipsec policy site-b proposals p2"
        )

    def test_no_pfs(self):
        """pfs=0 は perfect-forward-secrecy を出力しない"""
        assert not any("perfect-forward-secrecy" in line for line in self.vpn().build())

    def test_traffic_selector(self):
        """ローカル×リモートの組み合わせごとに ts1 から番号付け"""
        vpn = self.vpn(establish="immediately")
        vpn.traffic_selector("10.1.0.0/24, 10.2.0.0/24", "10.9.0.0/24")
        lines = vpn.build()
        assert lines[-3] == "set security ipsec vpn site-b establish-tunnels immediately"
        assert lines[-2:] == [
            "set security ipsec vpn site-b traffic-selector ts1 local-ip 10.1.0.0/24 remote-ip 10.9.0.0/24",
            "set security ipsec vpn site-b traffic-selector ts2 local-ip 10.2.0.0/24 remote-ip 10.9.0.0/24",
        ]

    @pytest.mark.parametrize(
        "kwargs",
        [{"pfs": 3}, {"establish": "now"}, {"mode": "quick"}, {"psk": 'a"b'}],
    )
    def test_invalid_options(self, kwargs):
        """不正なオプションは InvalidArgument"""
        with pytest.raises(InvalidArgument):
            IPsecVPN("site-b", "198.51.100.1", "203.0.113.1", "ge-0/0/0.0", "vpn", "st0.1", **kwargs)

    def test_invalid_proposal(self):
        """未対応の暗号・認証方式は InvalidArgument"""
        vpn = IPsecVPN("site-b", "198.51.100.1", "203.0.113.1", "ge-0/0/0.0", "vpn", "st0.1")
        with pytest.raises(InvalidArgument):
            vpn.phase1("p1", 14, "sha256", "aes-256", 28800)
        with pytest.raises(InvalidArgument):
            vpn.phase2("p2", "sha1", "aes-512", 3600)
        with pytest.raises(InvalidArgument):
            vpn.phase2("p2", "sha1", "aes-256", 3600, protocol="gre")


class TestSt0Units:
    """st0 ユニット番号の取得テスト"""

    def test_units(self, session, transport):
        """設定済みユニット番号を昇順で返す"""
        transport.queue(ok(ST0))
        assert st0_units(session) == [0, 3]
        assert transport.requests[0].findtext("interface-name") == "st0"

    def test_no_st0(self, session, transport):
        """st0 がなければ空リスト"""
        transport.queue(error("device st0 not found"))
        assert st0_units(session) == []

    def test_next_unit(self, session, transport):
        """最大のユニット番号 + 1 を使う"""
        transport.queue(ok(ST0))
        vpn = new_ipsec_vpn(session, "site-b", "198.51.100.1", "203.0.113.1", "ge-0/0/0.0", "vpn")
        assert vpn.st0 == "st0.4"

    def test_first_unit(self, session, transport):
        """st0 がなければ st0.1"""
        transport.queue(error("device st0 not found"))
        vpn = new_ipsec_vpn(session, "site-b", "198.51.100.1", "203.0.113.1", "ge-0/0/0.0", "vpn")
        assert vpn.st0 == "st0.1"
