# src/pipeshaper/ipam/addresses.py

from __future__ import annotations
import ipaddress
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import InvalidAddress

_MAC_RE = re.compile(r"^[0-9a-f]{2}([:-])[0-9a-f]{2}(?:\1[0-9a-f]{2}){4}$", re.I)

ANY_TOKEN = "any"

@dataclass(frozen=True)
class AddressSpec:
    kind: str           # "any" | "ip" | "mac"
    value: str = ANY_TOKEN

    @property
    def token(self) -> str:
        """Literal the backend prints and accepts for this address."""
        return self.value

    @property
    def is_any(self) -> bool:
        return self.kind == "any"

    @property
    def is_mac(self) -> bool:
        return self.kind == "mac"

    def __str__(self) -> str:
        return self.value

ANY = AddressSpec("any", ANY_TOKEN)

def normalize_mac(s: str) -> str:
    return s.strip().lower().replace("-", ":")

def is_mac_literal(s: str) -> bool:
    return bool(_MAC_RE.match((s or "").strip()))

def parse_address(raw: Optional[str], *, reserved: Iterable[str] = ()) -> AddressSpec:
    """
    Accept "", "any", an IPv4/IPv6 literal or a hardware address.

    `reserved` lists literals that may never be shaped (the allocator's
    dummy address); they are rejected like any other invalid input.
    """
    s = (raw or "").strip()
    if not s or s.lower() == ANY_TOKEN:
        return ANY

    if is_mac_literal(s):
        return AddressSpec("mac", normalize_mac(s))

    try:
        ip = ipaddress.ip_address(s)
    except ValueError:
        raise InvalidAddress(raw, "expected any, an IP address or a hardware address") from None

    if ip.is_unspecified:
        raise InvalidAddress(raw, "unspecified address cannot be shaped")
    if str(ip) in {str(r).strip() for r in reserved}:
        raise InvalidAddress(raw, "address is reserved for identifier allocation")
    return AddressSpec("ip", str(ip))
