# src/pipeshaper/engine/allocator.py
from __future__ import annotations

from typing import Protocol

from ..backends.base import RuleMatch, ShaperBackend
from ..logging import get_logger
from ..parsers.ipfw_text import parse_confirmation

__all__ = ["IdentifierAllocator", "DummyRuleAllocator"]

log = get_logger()


class IdentifierAllocator(Protocol):
    def allocate(self) -> int: ...
    def release(self, identifier: int) -> None: ...


class DummyRuleAllocator:
    """
    Borrow a rule number from the backend to use as a queue number.

    ipfw has no "next free pipe" call, so we add a count rule that can never
    match (dummy address to itself) and keep the number it was given. The
    rule stays while the queue is in use and is removed by release().
    """

    def __init__(self, backend: ShaperBackend, dummy_address: str = "0.0.0.0"):
        self.backend = backend
        self.dummy_address = dummy_address

    def allocate(self) -> int:
        match = RuleMatch(kind="ip", src=self.dummy_address, dst=self.dummy_address)
        ident = parse_confirmation(self.backend.add_rule(match))
        log.debug(f"allocated identifier {ident} via dummy rule")
        return ident

    def release(self, identifier: int) -> None:
        self.backend.delete_rule(identifier)
        log.debug(f"released dummy rule {identifier}")
