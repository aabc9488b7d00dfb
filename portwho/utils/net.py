from __future__ import annotations
import socket, struct, ipaddress
from typing import Tuple

WILDCARD = {4: "0.0.0.0", 6: "::"}

def ipv4_from_hex(h: str) -> str:
    # /proc/net/tcp stores the address as one 32-bit word in host byte order
    return socket.inet_ntoa(struct.pack('=I', int(h, 16)))

def ipv6_from_hex(h: str) -> str:
    raw = b"".join(struct.pack('=I', int(h[i:i + 8], 16)) for i in range(0, 32, 8))
    return str(ipaddress.IPv6Address(raw))

def parse_hex_endpoint(field: str) -> Tuple[str, int]:
    """'0100007F:0035' -> ('127.0.0.1', 53)"""
    host, port = field.rsplit(':', 1)
    if len(host) == 8:
        ip = ipv4_from_hex(host)
    elif len(host) == 32:
        ip = ipv6_from_hex(host)
    else:
        raise ValueError(f"bad address field: {field!r}")
    return ip, int(port, 16)

def is_wildcard(addr: Tuple[str, int]) -> bool:
    host, port = addr
    if port:
        return False
    try:
        return ipaddress.ip_address(host).is_unspecified
    except ValueError:
        return host in ('', '*')

def format_endpoint(addr: Tuple[str, int], family: int) -> str:
    host, port = addr
    if family == 6:
        return f"[{host}]:{port}"
    return f"{host}:{port}"

def addr_sort_key(host: str) -> tuple:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return (9, 0, host)
    return (ip.version, int(ip), host)
