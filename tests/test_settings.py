"""Tests for configuration loading and the server table."""

import sys
import ipaddress
from pathlib import Path

import pytest
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from settings import FrontendSettings, ProxySettings, ServerTable, listen_kwargs, parse_allow_list


class TestServerTable:

    def test_display_name_and_domain(self):
        table = ServerTable.from_specs(["East<fra1>", "sjc2"], "example.net")
        assert table.display == ["East", "sjc2"]
        assert table.actual == ["fra1.example.net", "sjc2.example.net"]

    def test_fqdn_in_domain_gets_short_display(self):
        table = ServerTable.from_specs(["fra1.example.net"], "example.net")
        assert table.display == ["fra1"]
        assert table.actual == ["fra1.example.net"]

    def test_ip_literals_untouched(self):
        table = ServerTable.from_specs(["Lab<fd00::1>", "10.0.0.1"], "example.net")
        assert table.actual == ["fd00::1", "10.0.0.1"]

    def test_no_domain(self):
        table = ServerTable.from_specs(["fra1"])
        assert table.actual == ["fra1"]

    def test_resolve_drops_unknown_tokens(self):
        table = ServerTable.from_specs(["East<fra1>", "sjc2"], "example.net")
        assert table.resolve("East+missing") == ["fra1.example.net"]
        assert table.resolve("sjc2+East") == ["sjc2.example.net", "fra1.example.net"]
        assert table.resolve("") == []

    def test_resolve_accepts_actual_names(self):
        table = ServerTable.from_specs(["East<fra1>"], "example.net")
        assert table.resolve("fra1.example.net") == ["fra1.example.net"]

    def test_display_lookup(self):
        table = ServerTable.from_specs(["East<fra1>", "sjc2"], "example.net")
        assert table.display_name("fra1.example.net") == "East"
        assert table.display_name("unknown") == "unknown"
        assert table.all_display_string() == "East+sjc2"


class TestProxySettings:

    def test_defaults(self):
        s = ProxySettings()
        assert s.bird_socket == "/var/run/bird/bird.ctl"
        assert s.traceroute_max_concurrent == 10
        assert s.allowed_nets == []

    def test_allowed_from_comma_string(self):
        s = ProxySettings(allowed="10.0.0.0/8, 192.168.1.1,fd00::/8")
        assert s.allowed == ["10.0.0.0/8", "192.168.1.1", "fd00::/8"]
        assert ipaddress.ip_network("192.168.1.1/32") in s.allowed_nets

    def test_invalid_allowed_rejected_at_load(self):
        with pytest.raises(ValidationError):
            ProxySettings(allowed=["not-an-ip"])

    def test_flags_shell_split(self):
        s = ProxySettings(traceroute_flags="-q1 -w 1")
        assert s.traceroute_flags == ["-q1", "-w", "1"]

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProxySettings(traceroute_max_concurrent=0)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "proxy.yaml"
        path.write_text(
            "bird_socket: /run/bird.ctl\n"
            "allowed: [10.0.0.0/8]\n"
            "traceroute_bin: mtr\n"
            "auth_enabled: true\n"
            "auth_token: s3cret\n"
        )
        s = ProxySettings.from_yaml(path)
        assert s.bird_socket == "/run/bird.ctl"
        assert s.traceroute_bin == "mtr"
        assert s.auth_enabled
        assert s.auth_token == "s3cret"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProxySettings.from_yaml(tmp_path / "nope.yaml")


class TestFrontendSettings:

    def test_servers_from_comma_string(self):
        s = FrontendSettings(servers="East<fra1>, sjc2", domain="example.net")
        assert s.server_table().display == ["East", "sjc2"]

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "frontend.yaml"
        path.write_text("")
        assert FrontendSettings.from_yaml(path).proxy_port == 8000


class TestHelpers:

    def test_parse_allow_list(self):
        nets = parse_allow_list(["10.1.2.3", "", "fd00::/8"])
        assert [str(n) for n in nets] == ["10.1.2.3/32", "fd00::/8"]

    def test_parse_allow_list_error(self):
        with pytest.raises(ValueError, match="Invalid IP address or network"):
            parse_allow_list(["300.1.1.1"])

    def test_listen_kwargs(self):
        assert listen_kwargs("8000") == {"host": "0.0.0.0", "port": 8000}
        assert listen_kwargs("127.0.0.1:5000") == {"host": "127.0.0.1", "port": 5000}
        assert listen_kwargs("[::1]:5000") == {"host": "::1", "port": 5000}
        assert listen_kwargs("/run/lg.sock") == {"uds": "/run/lg.sock"}
