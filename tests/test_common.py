"""設定読込・接続・ターゲット解決・並列実行のテスト"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from junos_client import common
from junos_client.exceptions import InvalidArgument, TransportError


class TestGetDefaultConfig:
    """get_default_config() のテスト"""

    def test_current_dir(self, tmp_path, monkeypatch):
        """カレントディレクトリの config.ini を優先する"""
        (tmp_path / "config.ini").write_text("[DEFAULT]\n")
        monkeypatch.chdir(tmp_path)
        assert common.get_default_config() == "config.ini"

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        """XDG_CONFIG_HOME 配下の config.ini を検出する"""
        xdg_dir = tmp_path / "xdg" / "junos-client"
        xdg_dir.mkdir(parents=True)
        (xdg_dir / "config.ini").write_text("[DEFAULT]\n")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path / "xdg")  # config.ini がないディレクトリ
        assert common.get_default_config() == str(xdg_dir / "config.ini")

    def test_fallback(self, tmp_path, monkeypatch):
        """どこにも見つからない場合は config.ini を返す"""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty"))
        assert common.get_default_config() == "config.ini"


class TestReadConfig:
    """read_config() のテスト"""

    def test_valid_config(self, tmp_path):
        """正常なINIファイルを読み込める"""
        ini = tmp_path / "test.ini"
        ini.write_text(
            "[DEFAULT]\n"
            "id = testuser\n"
            "port = 830\n"
            "\n"
            "[rt1.example.jp]\n"
            "\n"
            "[rt2.example.jp]\n"
            "host = 192.0.2.1\n"
        )
        assert common.read_config(str(ini)) is False
        assert common.config.has_section("rt1.example.jp")
        assert common.config.get("rt1.example.jp", "host") == "rt1.example.jp"
        assert common.config.get("rt2.example.jp", "host") == "192.0.2.1"

    def test_empty_config(self, tmp_path):
        """空のINIファイルはエラー（True）を返す"""
        ini = tmp_path / "empty.ini"
        ini.write_text("")
        assert common.read_config(str(ini)) is True


class TestSetupLogging:
    """setup_logging() のテスト"""

    def test_logging_ini(self, tmp_path, monkeypatch):
        """logging.ini があれば fileConfig"""
        (tmp_path / "logging.ini").write_text("")
        monkeypatch.chdir(tmp_path)
        with patch("junos_client.common.logging.config.fileConfig") as mock_file_config:
            common.setup_logging()
        mock_file_config.assert_called_once_with("logging.ini")

    def test_default(self, tmp_path, monkeypatch):
        """なければ INFO で basicConfig"""
        monkeypatch.chdir(tmp_path)
        with patch("junos_client.common.logging.basicConfig") as mock_basic:
            common.setup_logging()
        assert mock_basic.call_args.kwargs["level"] == logging.INFO


class TestConnect:
    """connect() のテスト"""

    def test_success(self, mock_config):
        """正常接続"""
        with patch("junos_client.common.Session") as MockSession:
            mock_session = MagicMock()
            MockSession.connect.return_value = mock_session

            err, jnpr = common.connect("test-host")

            assert err is False
            assert jnpr is mock_session
            args, kwargs = MockSession.connect.call_args
            assert args == ("192.0.2.1", "testuser")
            assert kwargs["password"] == "testpass"
            assert kwargs["port"] == 830
            assert kwargs["ssh_private_key_file"] == "id_ed25519"
            assert kwargs["commit_timeout"] == 0
            assert kwargs["timeout"] is None

    def test_commit_timeout(self, mock_config):
        """commit_timeout を渡す"""
        with patch("junos_client.common.Session") as MockSession:
            common.connect("edge-host")
            assert MockSession.connect.call_args.kwargs["commit_timeout"] == 5

    def test_failure(self, mock_config):
        """接続失敗は (True, None)"""
        with patch("junos_client.common.Session") as MockSession:
            MockSession.connect.side_effect = TransportError("Authentication failed")

            err, jnpr = common.connect("test-host")

            assert err is True
            assert jnpr is None


class TestGetTargets:
    """get_targets() のテスト"""

    def test_all_sections(self, mock_config):
        """指定なしは全セクション"""
        assert common.get_targets() == ["test-host", "edge-host"]

    def test_specific_hosts(self, mock_config):
        """ホスト指定"""
        assert common.get_targets(["edge-host"]) == ["edge-host"]

    def test_unknown_host(self, mock_config):
        """存在しないホストは InvalidArgument"""
        with pytest.raises(InvalidArgument):
            common.get_targets(["unknown-host"])

    def test_tags(self, mock_config):
        """タグの AND フィルタ"""
        assert common.get_targets(tags="tokyo,core") == ["test-host"]
        assert common.get_targets(tags="TOKYO") == ["test-host"]

    def test_tags_no_match(self, mock_config):
        """タグに一致しなければ InvalidArgument"""
        with pytest.raises(InvalidArgument):
            common.get_targets(tags="tokyo,edge")

    def test_tags_and_hosts(self, mock_config):
        """タグ一致分と指定ホストの和集合 (重複なし)"""
        assert common.get_targets(["test-host", "edge-host"], tags="core") == ["test-host", "edge-host"]


class TestLoadCommands:
    """load_commands() のテスト"""

    def test_comments_and_blank(self, tmp_path):
        """空行とコメントを除く"""
        f = tmp_path / "commands.set"
        f.write_text(
            "# ntp\n"
            "set system ntp server 192.0.2.1\n"
            "\n"
            "  set system ntp server 192.0.2.2  \n"
        )
        assert common.load_commands(str(f)) == [
            "set system ntp server 192.0.2.1",
            "set system ntp server 192.0.2.2",
        ]


class TestRunParallel:
    """run_parallel() のテスト"""

    def test_serial(self):
        """max_workers=1 でシリアル実行"""
        results = common.run_parallel(lambda t: t.upper(), ["a", "b", "c"], max_workers=1)
        assert results == {"a": "A", "b": "B", "c": "C"}

    def test_parallel(self):
        """max_workers>1 で並列実行"""
        results = common.run_parallel(lambda t: t.upper(), ["a", "b", "c"], max_workers=3)
        assert results == {"a": "A", "b": "B", "c": "C"}

    def test_parallel_exception(self):
        """並列実行中の例外はエラーコード1を返す"""
        def failing(t):
            if t == "b":
                raise RuntimeError("fail")
            return 0

        results = common.run_parallel(failing, ["a", "b", "c"], max_workers=3)
        assert results == {"a": 0, "b": 1, "c": 0}

    def test_empty_targets(self):
        """空のターゲットリスト"""
        assert common.run_parallel(lambda t: 0, [], max_workers=4) == {}
