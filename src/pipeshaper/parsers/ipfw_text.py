# src/pipeshaper/parsers/ipfw_text.py
"""
Typed records out of ipfw/dummynet text.

Nothing outside this module looks at raw backend output. Lines we don't
recognise (headers, mask/bucket lines, unrelated rules) are skipped; a line
that clearly *is* a queue header but carries a malformed number raises
BackendProtocolViolation instead of being defaulted.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..errors import BackendProtocolViolation

__all__ = [
    "RuleRecord",
    "QueueRecord",
    "parse_rule_line",
    "parse_rule_listing",
    "parse_bandwidth",
    "parse_queue_header",
    "parse_loss",
    "parse_queue_status",
    "parse_confirmation",
]

_UNIT = {"": 1, "K": 1_000, "M": 1_000_000}

# 00200 pipe 100 ip from 1.2.3.4 to any out
_IP_RULE_RE = re.compile(
    r"^\s*(\d+)\s+pipe\s+(\d+)\s+ip\s+from\s+(\S+)\s+to\s+(\S+)\s+(in|out)(?:\s|$)"
)
# 00300 pipe 200 ip from any to any MAC any 00:11:22:33:44:55 out
# 00300 pipe 200 MAC any 00:11:22:33:44:55 out
_MAC_RULE_RE = re.compile(
    r"^\s*(\d+)\s+pipe\s+(\d+)\s+(?:ip\s+from\s+any\s+to\s+any\s+)?MAC\s+(\S+)\s+(\S+)\s+(in|out)(?:\s|$)"
)
_QUEUE_HEADER_RE = re.compile(r"^\s*(\d+):\s+(.*)$")
_BW_DELAY_RE = re.compile(
    r"^(unlimited|(\d+)(?:\.(\d+))?\s+([KM]?)bit/s)\s+(\d+)\s+ms(?:\s|$)"
)
_BW_RE = re.compile(r"^\s*(?:(unlimited)|(\d+)(?:\.(\d+))?\s*([KM]?)bit/s)\s*$")
_PLR_RE = re.compile(r"\bsl\.\s*plr\s+(\S+)")
_CONFIRM_RE = re.compile(r"^\s*(\d+)(?:\s|$)")


@dataclass(frozen=True)
class RuleRecord:
    rule_id: int
    queue_id: int
    kind: str          # "ip" | "mac"
    src: str
    dst: str
    direction: str     # "in" | "out"


@dataclass(frozen=True)
class QueueRecord:
    queue_id: int
    bandwidth: Optional[int]
    delay: int
    loss: Optional[Decimal]


def parse_rule_line(line: str) -> RuleRecord | None:
    m = _MAC_RULE_RE.match(line)
    if m:
        rid, qid, dst, src, direction = m.groups()
        # ipfw MAC predicates are written destination first
        return RuleRecord(int(rid), int(qid), "mac", src.lower(), dst.lower(), direction)
    m = _IP_RULE_RE.match(line)
    if m:
        rid, qid, src, dst, direction = m.groups()
        return RuleRecord(int(rid), int(qid), "ip", src, dst, direction)
    return None


def parse_rule_listing(text: str) -> list[RuleRecord]:
    out = []
    for ln in (text or "").splitlines():
        rec = parse_rule_line(ln)
        if rec is not None:
            out.append(rec)
    return out


def _scaled(whole: str, frac: Optional[str], unit: str, source: str) -> int:
    mult = _UNIT[unit]
    if frac is None:
        return int(whole) * mult
    if len(frac) != 3 or mult == 1:
        raise BackendProtocolViolation(source, "a three digit fraction on a Kbit/s or Mbit/s rate")
    return int(whole) * mult + int(frac) * (mult // 1000)


def parse_bandwidth(text: str) -> int | None:
    """`unlimited` -> None, `1.234 Mbit/s` -> 1234000, `300 bit/s` -> 300."""
    m = _BW_RE.match(text or "")
    if not m:
        raise BackendProtocolViolation(text, "unlimited or <n>.<nnn> Kbit/s|Mbit/s")
    unlimited, whole, frac, unit = m.groups()
    if unlimited:
        return None
    return _scaled(whole, frac, unit, text)


def parse_queue_header(line: str) -> tuple[int, Optional[int], int] | None:
    """`00300:   1.234 Mbit/s 42 ms ...` -> (300, 1234000, 42)."""
    m = _QUEUE_HEADER_RE.match(line or "")
    if not m:
        return None
    qid, rest = m.groups()
    f = _BW_DELAY_RE.match(rest.strip())
    if not f:
        raise BackendProtocolViolation(line, "<bandwidth> <n> ms after the queue number")
    unlimited, whole, frac, unit, delay = f.groups()
    bw = None if unlimited else _scaled(whole, frac, unit, line)
    return int(qid), bw, int(delay)


def parse_loss(line: str) -> Decimal | None:
    m = _PLR_RE.search(line or "")
    if not m:
        return None
    raw = m.group(1)
    try:
        val = Decimal(raw)
    except InvalidOperation:
        raise BackendProtocolViolation(line, "a decimal after sl.plr") from None
    if not val.is_finite() or val < 0 or val > 1:
        raise BackendProtocolViolation(line, "a loss rate between 0 and 1")
    return val


def parse_queue_status(text: str) -> QueueRecord | None:
    header = None
    loss = None
    for ln in (text or "").splitlines():
        if header is None:
            header = parse_queue_header(ln)
        if loss is None:
            # same line on older dummynet, the flowset block on newer ones
            loss = parse_loss(ln)
    if header is None:
        return None
    qid, bw, delay = header
    return QueueRecord(qid, bw, delay, loss)


def parse_confirmation(text: str) -> int:
    """Rule number the backend echoes back after an add."""
    m = _CONFIRM_RE.match(text or "")
    if not m:
        raise BackendProtocolViolation(text, "a rule number at the start of the confirmation")
    return int(m.group(1))
