from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True)
class RuleMatch:
    """Match predicate of a classification rule, in backend tokens."""
    kind: str                       # "ip" | "mac"
    src: str
    dst: str
    direction: Optional[str] = None  # "in" | "out" | None (both)


class ShaperBackend(Protocol):
    """
    Line-oriented classify+queue control surface.

    Listing/show calls return raw text for the parsers; every call raises
    BackendCallFailed when the backend exits non-zero.
    """
    def list_rules(self) -> str: ...
    def show_queue(self, queue_id: int) -> str: ...
    def add_rule(self, match: RuleMatch, *, queue_id: Optional[int] = None,
                 rule_id: Optional[int] = None) -> str: ...
    def configure_queue(self, queue_id: int, *, bandwidth: Optional[int] = None,
                        delay: Optional[int] = None, loss: Optional[Decimal] = None) -> str: ...
    def delete_rule(self, rule_id: int) -> str: ...
    def delete_queue(self, queue_id: int) -> str: ...
