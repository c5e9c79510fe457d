"""
Listen address classification.

php-fpm accepts 'ip.add.re.ss:port', 'port' or '/path/to/unix/socket' as its
`listen` value. The supervisor dials the same endpoint to detect readiness, so
the classification must give an address usable for both listening and dialing.
"""

import re
import errno
import socket
from collections import namedtuple
from typing import Any, Tuple

TCP = "tcp"
UNIX = "unix"

Address = namedtuple("Address", ["network", "address"])

_IP_PORT_RE = re.compile(r"(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}):(\d{2,5})", re.ASCII)
_PORT_RE = re.compile(r"(\d+)", re.ASCII)


def resolve_address(listen: str) -> Address:
    """
    Classifies a listen specification. Never fails: anything that is neither
    'ip:port' nor a bare port is taken to be a unix socket path.

    :param listen: The raw listen specification.
    :return: An Address(network, address) tuple.
    """
    if _IP_PORT_RE.fullmatch(listen):
        return Address(TCP, listen)
    if _PORT_RE.fullmatch(listen):
        # bind / dial on all interfaces
        return Address(TCP, ":" + listen)
    return Address(UNIX, listen)


def socket_target(addr: Address) -> Tuple[int, Any]:
    """
    Converts an Address into a socket family and a sockaddr for connect().

    A tcp address without a host (':port') is dialed on the loopback interface.

    :raises OSError: If the port is outside 0-65535; such an address is never connectable.
    """
    if addr.network == TCP:
        host, _, port = addr.address.rpartition(":")
        port = int(port)
        if not 0 <= port <= 65535:
            raise OSError(errno.EINVAL, f"Port {port} is out of range 0-65535")
        return socket.AF_INET, (host or "127.0.0.1", port)
    return socket.AF_UNIX, addr.address


def probe(addr: Address, timeout: float = 1.0) -> bool:
    """
    Attempts a single connection to the address. The connection is closed
    immediately; it only tells whether something is listening.

    :raises OSError: If the connection cannot be established.
    """
    family, target = socket_target(addr)
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        sock.connect(target)
    return True
