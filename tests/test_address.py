"""Tests for listen address classification."""

import socket

import pytest

from fpmctl.local.supervisor.address import TCP, UNIX, Address, probe, resolve_address, socket_target


class TestResolveAddress:

    @pytest.mark.parametrize("listen", [
        "127.0.0.1:9000",
        "0.0.0.0:80",
        "192.168.100.200:65535",
        "1.2.3.4:12",
    ])
    def test_ip_and_port_is_tcp_unchanged(self, listen):
        assert resolve_address(listen) == Address(TCP, listen)

    @pytest.mark.parametrize("listen", ["9000", "1", "80", "123456"])
    def test_bare_port_is_tcp_on_all_interfaces(self, listen):
        assert resolve_address(listen) == Address(TCP, ":" + listen)

    @pytest.mark.parametrize("listen", [
        "",
        "/var/run/php-fpm.sock",
        "relative/path.sock",
        "localhost:9000",
        "1234.1.1.1:9000",
        "127.0.0.1:9",
        "127.0.0.1:123456",
        "127.0.0.1:9000 ",
        "[::1]:9000",
        "9000/",
    ])
    def test_everything_else_is_a_unix_socket(self, listen):
        assert resolve_address(listen) == Address(UNIX, listen)

    def test_same_input_gives_same_result(self):
        for listen in ("127.0.0.1:9000", "9000", "/tmp/x.sock"):
            assert resolve_address(listen) == resolve_address(listen)

    def test_result_fields(self):
        addr = resolve_address("9000")
        assert addr.network == "tcp"
        assert addr.address == ":9000"


class TestSocketTarget:

    def test_tcp_with_host(self):
        assert socket_target(Address(TCP, "10.0.0.1:9000")) == (socket.AF_INET, ("10.0.0.1", 9000))

    def test_tcp_without_host_dials_loopback(self):
        assert socket_target(Address(TCP, ":9000")) == (socket.AF_INET, ("127.0.0.1", 9000))

    def test_unix(self):
        assert socket_target(Address(UNIX, "/tmp/a.sock")) == (socket.AF_UNIX, "/tmp/a.sock")

    @pytest.mark.parametrize("addr", [Address(TCP, ":99999"), Address(TCP, "127.0.0.1:70000")])
    def test_port_out_of_range_is_an_os_error(self, addr):
        with pytest.raises(OSError, match="out of range"):
            socket_target(addr)

    def test_probe_out_of_range_port_raises_os_error(self):
        with pytest.raises(OSError):
            probe(resolve_address("99999"))


class TestProbe:

    def test_probe_connects_to_unix_listener(self, data_dir):
        path = str(data_dir / "probe.sock")
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as server:
            server.bind(path)
            server.listen(1)
            assert probe(resolve_address(path)) is True

    def test_probe_connects_to_tcp_listener(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]
            assert probe(resolve_address(str(port))) is True

    def test_probe_raises_when_nothing_listens(self, data_dir):
        with pytest.raises(OSError):
            probe(resolve_address(str(data_dir / "missing.sock")))
