import configparser

import pytest
from lxml import etree

from junos_client import common
from junos_client.exceptions import RpcErrorDetail
from junos_client.session import Session
from junos_client.transport import Reply

SINGLE_RE = """
<software-information>
  <host-name>rt1</host-name>
  <product-model>srx345</product-model>
  <product-name>srx345</product-name>
  <junos-version>18.4R3-S4.2</junos-version>
  <package-information>
    <name>junos</name>
    <comment>JUNOS Software Release [18.4R3-S4.2]</comment>
  </package-information>
</software-information>
"""

MULTI_RE = """
<multi-routing-engine-results>
  <multi-routing-engine-item>
    <re-name>node0</re-name>
    <software-information>
      <host-name>fw1-node0</host-name>
      <product-model>srx1500</product-model>
      <package-information>
        <name>junos</name>
        <comment>JUNOS Software Release [15.1X49-D100.6]</comment>
      </package-information>
    </software-information>
  </multi-routing-engine-item>
  <multi-routing-engine-item>
    <re-name>node1</re-name>
    <software-information>
      <host-name>fw1-node1</host-name>
      <product-model>srx1500</product-model>
      <package-information>
        <name>junos</name>
        <comment>JUNOS Software Release [15.1X49-D100.6]</comment>
      </package-information>
    </software-information>
  </multi-routing-engine-item>
</multi-routing-engine-results>
"""


def xml(text):
    """XML 文字列を lxml 要素に変換"""
    return etree.fromstring(text.strip())


def ok(text=None):
    """正常応答"""
    return Reply(xml(text) if text else None)


def error(*messages):
    """rpc-error 付き応答"""
    return Reply(errors=[RpcErrorDetail(message=m) for m in messages])


class FakeTransport:
    """送信した要求を記録し、キューに積んだ応答を順に返す"""

    def __init__(self, replies=()):
        self.replies = list(replies)
        self.requests = []
        self.opened = False
        self.closed = False

    def queue(self, *replies):
        self.replies.extend(replies)

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def execute(self, request):
        self.requests.append(request)
        if not self.replies:
            return Reply()
        return self.replies.pop(0)

    @property
    def tags(self):
        return [r.tag for r in self.requests]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    """シングル RE (SRX345) に接続済みの Session"""
    transport.queue(ok(SINGLE_RE))
    jnpr = Session(transport).open()
    transport.requests.clear()
    return jnpr


@pytest.fixture
def cluster_session(transport):
    """シャーシクラスタ (node0/node1) に接続済みの Session"""
    transport.queue(ok(MULTI_RE))
    jnpr = Session(transport).open()
    transport.requests.clear()
    return jnpr


@pytest.fixture
def mock_config():
    """テスト用の config グローバル変数を設定"""
    cfg = configparser.ConfigParser(allow_no_value=True)
    cfg.read_dict(
        {
            "DEFAULT": {
                "id": "testuser",
                "pw": "testpass",
                "sshkey": "id_ed25519",
                "port": "830",
            },
            "test-host": {"host": "192.0.2.1", "tags": "tokyo, core"},
            "edge-host": {"host": "192.0.2.2", "tags": "osaka, edge", "commit_timeout": "5"},
        }
    )
    common.config = cfg
    yield cfg
    common.config = None
