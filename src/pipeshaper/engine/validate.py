# src/pipeshaper/engine/validate.py
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..errors import InvalidBandwidth, InvalidDelay, InvalidLossRate
from ..ipam.addresses import AddressSpec, parse_address
from ..models import Direction, ShapingParams

__all__ = [
    "ShapingRequest",
    "parse_bandwidth_input",
    "parse_delay_input",
    "parse_loss_input",
    "validate_request",
]

_BW_INPUT_RE = re.compile(r"^(\d+)\s*([km]?)(?:bit/s|bps|bit)?$", re.I)
_DELAY_INPUT_RE = re.compile(r"^(\d+)\s*(?:ms)?$", re.I)
_UNIT = {"": 1, "k": 1_000, "m": 1_000_000}


@dataclass(frozen=True)
class ShapingRequest:
    direction: Direction
    address: AddressSpec
    params: ShapingParams

    @property
    def is_delete(self) -> bool:
        return self.params.is_empty


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def parse_bandwidth_input(raw: Any) -> Optional[int]:
    if _blank(raw):
        return None
    if isinstance(raw, bool):
        raise InvalidBandwidth(raw)
    if isinstance(raw, int):
        if raw < 0:
            raise InvalidBandwidth(raw, "must not be negative")
        return raw
    s = str(raw).strip()
    if s.lower() == "unlimited":
        return 0
    m = _BW_INPUT_RE.match(s)
    if not m:
        raise InvalidBandwidth(raw, "expected unlimited or a non-negative number of bit/s")
    num, unit = m.groups()
    return int(num) * _UNIT[unit.lower()]


def parse_delay_input(raw: Any) -> Optional[int]:
    if _blank(raw):
        return None
    if isinstance(raw, bool):
        raise InvalidDelay(raw)
    if isinstance(raw, int):
        if raw < 0:
            raise InvalidDelay(raw, "must not be negative")
        return raw
    m = _DELAY_INPUT_RE.match(str(raw).strip())
    if not m:
        raise InvalidDelay(raw, "expected a non-negative number of milliseconds")
    return int(m.group(1))


def parse_loss_input(raw: Any) -> Optional[Decimal]:
    if _blank(raw):
        return None
    if isinstance(raw, bool):
        raise InvalidLossRate(raw)
    try:
        # str() first so floats keep their printed value (0.1, not 0.1000000000000000055...)
        val = Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidLossRate(raw, "expected a decimal between 0 and 1") from None
    if not val.is_finite() or val < 0 or val > 1:
        raise InvalidLossRate(raw, "must be between 0 and 1")
    return val


def validate_request(
    direction: Direction,
    address: Any,
    bandwidth: Any = None,
    delay: Any = None,
    loss: Any = None,
    *,
    reserved: Iterable[str] = (),
) -> ShapingRequest:
    """All input checks, no backend contact."""
    if isinstance(address, AddressSpec):
        addr = address
    else:
        addr = parse_address(address, reserved=reserved)
    params = ShapingParams(
        bandwidth=parse_bandwidth_input(bandwidth),
        delay=parse_delay_input(delay),
        loss=parse_loss_input(loss),
    )
    return ShapingRequest(direction=direction, address=addr, params=params)
