"""
IPv4 CIDR value type
Host bits are kept as a 32-bit int; bits below the prefix are retained verbatim
"""

import ipaddress
from dataclasses import dataclass, replace

MAX_PREFIX = 32


class InvalidAddressFormat(ValueError):
    """Raised for CIDR text that is not a.b.c.d/n"""

    def __init__(self, text: str, reason: str):
        super().__init__(f"invalid address format {text!r}: {reason}")
        self.text = text
        self.reason = reason


def format_address(host_bits: int, prefix_length: int) -> str:
    return f"{ipaddress.IPv4Address(host_bits)}/{prefix_length}"


@dataclass(frozen=True)
class Address:
    host_bits: int
    prefix_length: int
    label: str = ""

    def __str__(self):
        return format_address(self.host_bits, self.prefix_length)

    def masked_base(self) -> int:
        shift = MAX_PREFIX - self.prefix_length
        return (self.host_bits >> shift) << shift

    def with_prefix(self, prefix_length: int, label: str = "") -> "Address":
        """Same host bits reinterpreted at another prefix length"""
        return replace(self, prefix_length=prefix_length, label=label)

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network((self.masked_base(), self.prefix_length))

    @property
    def num_addresses(self) -> int:
        return 1 << (MAX_PREFIX - self.prefix_length)

    def contains(self, other: "Address") -> bool:
        """Check if other lies within this block"""
        return other.network.subnet_of(self.network)


def parse_address(text: str, label: str = "", tolerant: bool = False) -> Address:
    """
    Parse a.b.c.d/n into an Address.
    tolerant=True accepts a bare a.b.c.d as a /32 host entry, the shape
    reserved addresses come in from cloud inventory.
    """
    if not isinstance(text, str):
        raise InvalidAddressFormat(repr(text), "not a string")

    host, sep, prefix = text.partition("/")
    if not sep:
        if not tolerant:
            raise InvalidAddressFormat(text, "missing prefix length")
        prefix = str(MAX_PREFIX)

    if not prefix.isdigit() or not prefix.isascii():
        raise InvalidAddressFormat(text, "prefix length is not a number")
    prefix_length = int(prefix)
    if prefix_length > MAX_PREFIX:
        raise InvalidAddressFormat(text, f"prefix length must be /0-/{MAX_PREFIX}")

    octets = host.split(".")
    if len(octets) != 4:
        raise InvalidAddressFormat(text, "expected four dot-separated octets")
    host_bits = 0
    for octet in octets:
        if not octet.isdigit() or not octet.isascii():
            raise InvalidAddressFormat(text, f"octet {octet!r} is not a number")
        value = int(octet)
        if value > 255:
            raise InvalidAddressFormat(text, f"octet {octet!r} is out of range")
        host_bits = (host_bits << 8) | value

    return Address(host_bits, prefix_length, label)
