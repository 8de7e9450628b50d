"""Arithmetic, comparison and range helpers for IPv4 and IPv6 addresses.

Addresses are handled as :mod:`ipaddress` objects. IPv4-mapped IPv6
addresses (``::ffff:a.b.c.d``) are treated as IPv4 addresses throughout.
Internally every address is placed in the 128-bit space, with IPv4
addresses in their IPv4-mapped form, so addresses of either family can be
compared with one another.
"""

from __future__ import annotations

import ipaddress
from typing import List, Optional, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_V4_MAPPED_PREFIX = 0xFFFF << 32
_UINT64_MASK = (1 << 64) - 1
_UINT128_MASK = (1 << 128) - 1
_IPV4_OFFSET_LIMIT = 0xFFFFFFFF
_WIDE_LENGTH = 16


def _ip(value) -> IPAddress:
    """Coerce *value* to an address, unwrapping IPv4-mapped IPv6 addresses."""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        address = value
    else:
        address = ipaddress.ip_address(value)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def _network(value) -> IPNetwork:
    """Coerce *value* to a network; host bits of a CIDR string are dropped."""
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value
    if isinstance(value, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return value.network
    return ipaddress.ip_network(value, strict=False)


def _to_wide(address: IPAddress) -> int:
    """Return the 128-bit integer form of *address*."""
    if address.version == 4:
        return _V4_MAPPED_PREFIX | int(address)
    return int(address)


def _from_wide(number: int) -> IPAddress:
    return _ip(ipaddress.IPv6Address(number & _UINT128_MASK))


def compare_ips(ip_x, ip_y) -> int:
    """Return -1, 0 or 1 as *ip_x* is smaller than, equal to or larger than *ip_y*."""
    x = _to_wide(_ip(ip_x))
    y = _to_wide(_ip(ip_y))
    return (x > y) - (x < y)


def divide_range_by_size(input_network: str, slice_size: str) -> List[str]:
    """Split an IPv4 CIDR range into consecutive subnets of prefix *slice_size*.

    *slice_size* may be written with or without a leading ``/``. A slice size
    that is not a number yields an empty list.
    """
    size_text = slice_size[1:] if slice_size.startswith("/") else slice_size
    try:
        size = int(size_text)
    except ValueError:
        return []

    try:
        if "/" not in input_network:
            raise ValueError("missing prefix length")
        interface = ipaddress.ip_interface(input_network)
    except ValueError as exc:
        raise ValueError(f"error parsing CIDR {input_network}: {exc}") from exc

    network = interface.network
    if interface.ip != network.network_address:
        raise ValueError("netCIDR is not a valid network address")
    if network.version != 4:
        raise ValueError(f"cannot divide IPv6 range {input_network}: only IPv4 is supported")
    if network.prefixlen > size:
        raise ValueError("subnetMaskSize must be greater or equal than netMaskSize")
    if size > network.max_prefixlen:
        raise ValueError(f"slice size /{size} is longer than /{network.max_prefixlen}")

    return [str(subnet) for subnet in network.subnets(new_prefix=size)]


def is_ip_in_range(ip, start, end) -> bool:
    """Return True if *ip* lies between *start* and *end*, both inclusive."""
    if ip is None or start is None or end is None:
        raise ValueError(
            "cannot determine if IP is in range, either of the values is 'None', "
            f"in: {ip}, start: {start}, end: {end}"
        )
    return compare_ips(ip, start) >= 0 and compare_ips(ip, end) <= 0


def network_ip(network) -> IPAddress:
    """Return the network address of *network*."""
    return _network(network).network_address


def subnet_broadcast_ip(network) -> IPAddress:
    """Return the broadcast address of *network*."""
    return _network(network).broadcast_address


def has_usable_ips(network) -> bool:
    """Return True if *network* has addresses besides its network and broadcast ones."""
    net = _network(network)
    return net.max_prefixlen - net.prefixlen > 1


def _require_usable(net: IPNetwork) -> None:
    if not has_usable_ips(net):
        raise ValueError(
            f"net mask is too short, subnet {net} has no usable IP addresses, it is too small"
        )


def first_usable_ip(network) -> IPAddress:
    """Return the first address after the network address of *network*."""
    net = _network(network)
    _require_usable(net)
    return inc_ip(net.network_address)


def last_usable_ip(network) -> IPAddress:
    """Return the last address before the broadcast address of *network*."""
    net = _network(network)
    _require_usable(net)
    return dec_ip(net.broadcast_address)


def inc_ip(ip) -> IPAddress:
    """Return *ip* plus one, wrapping around within its address family."""
    address = _ip(ip)
    size = 1 << address.max_prefixlen
    return type(address)((int(address) + 1) % size)


def dec_ip(ip) -> IPAddress:
    """Return *ip* minus one, wrapping around within its address family."""
    address = _ip(ip)
    size = 1 << address.max_prefixlen
    return type(address)((int(address) - 1) % size)


def ip_get_offset(ip1, ip2) -> int:
    """Return the absolute distance between two addresses of the same family.

    The result is truncated to 64 bits.
    """
    first = _ip(ip1)
    second = _ip(ip2)
    if first.version == 4 and second.version == 6:
        raise ValueError(
            f"cannot calculate offset between IPv4 ({first}) and IPv6 address ({second})"
        )
    if first.version == 6 and second.version == 4:
        raise ValueError(
            f"cannot calculate offset between IPv6 ({first}) and IPv4 address ({second})"
        )
    return abs(_to_wide(first) - _to_wide(second)) & _UINT64_MASK


def ip_add_offset(ip, offset: int) -> Optional[IPAddress]:
    """Return *ip* advanced by *offset*, or None if an IPv4 offset is too large."""
    if not 0 <= offset <= _UINT64_MASK:
        raise ValueError(f"offset {offset} is outside the unsigned 64-bit range")
    address = _ip(ip)
    if address.version == 4 and offset >= _IPV4_OFFSET_LIMIT:
        return None
    return _from_wide(_to_wide(address) + offset)


def is_ipv4(ip) -> bool:
    """Return True if *ip* is an IPv4 (or IPv4-mapped) address."""
    return _ip(ip).version == 4


def get_ip_range(network, range_start=None, range_end=None) -> Tuple[IPAddress, IPAddress]:
    """Return the first and last address to allocate from *network*.

    *range_start* and *range_end* replace the first and last usable addresses
    only when they fall inside the usable span; otherwise they are ignored.
    An end that lies before a valid start is ignored as well.
    """
    net = _network(network)
    first = first_usable_ip(net)
    last = last_usable_ip(net)
    if range_start is not None:
        start = _ip(range_start)
        if is_ip_in_range(start, first, last):
            first = start
    if range_end is not None:
        end = _ip(range_end)
        if is_ip_in_range(end, first, last):
            last = end
    return first, last


def _check_wide_pair(a: bytes, b: bytes) -> None:
    if len(a) != len(b):
        raise ValueError(f"bytes array mismatch: {len(a)} != {len(b)}")
    if len(a) != _WIDE_LENGTH:
        raise ValueError(f"expected {_WIDE_LENGTH} bytes, got {len(a)}")


def bytes_add(a, b) -> bytes:
    """Add two 16-byte big-endian numbers, discarding any overflow."""
    a, b = bytes(a), bytes(b)
    _check_wide_pair(a, b)
    total = (int.from_bytes(a, "big") + int.from_bytes(b, "big")) & _UINT128_MASK
    return total.to_bytes(_WIDE_LENGTH, "big")


def bytes_sub(a, b) -> bytes:
    """Subtract 16-byte big-endian *b* from *a*, wrapping on underflow."""
    a, b = bytes(a), bytes(b)
    _check_wide_pair(a, b)
    difference = (int.from_bytes(a, "big") - int.from_bytes(b, "big")) & _UINT128_MASK
    return difference.to_bytes(_WIDE_LENGTH, "big")


def bytes_to_int(data) -> int:
    """Read big-endian *data* as an unsigned number truncated to 64 bits."""
    return int.from_bytes(bytes(data), "big") & _UINT64_MASK


def int_to_bytes(number: int) -> bytes:
    """Write an unsigned 64-bit *number* as 16 big-endian bytes."""
    if not 0 <= number <= _UINT64_MASK:
        raise ValueError(f"number {number} is outside the unsigned 64-bit range")
    return number.to_bytes(_WIDE_LENGTH, "big")