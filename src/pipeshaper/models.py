# src/pipeshaper/models.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .ipam.addresses import ANY, AddressSpec

__all__ = [
    "Direction",
    "ShapingParams",
    "ClassificationRule",
    "QueueConfig",
    "Snapshot",
]


class Direction(enum.Enum):
    """Relative to the shaped address, not to the host running the backend."""
    INBOUND = "in"
    OUTBOUND = "out"

    @property
    def token(self) -> str:
        return self.value

    def endpoints(self, address: AddressSpec) -> tuple[AddressSpec, AddressSpec]:
        """(from, to) for a rule matching `address` in this direction."""
        if self is Direction.OUTBOUND:
            return address, ANY
        return ANY, address


@dataclass(frozen=True)
class ShapingParams:
    """None means absent; zero is kept so a caller can zero one field explicitly."""
    bandwidth: Optional[int] = None     # bit/s, 0 = unlimited
    delay: Optional[int] = None         # ms
    loss: Optional[Decimal] = None      # probability in [0, 1]

    @property
    def is_empty(self) -> bool:
        return not (self.bandwidth or self.delay or self.loss)

    def satisfied_by(self, current: "ShapingParams") -> bool:
        """
        True when `current` already has every field set here.

        Absent fields are never sent to the backend, so they cannot differ.
        Decimal comparison makes "0.000100" equal "0.0001".
        """
        if self.bandwidth is not None and self.bandwidth != (current.bandwidth or 0):
            return False
        if self.delay is not None and self.delay != (current.delay or 0):
            return False
        if self.loss is not None and Decimal(self.loss) != Decimal(current.loss or 0):
            return False
        return True

    def render(self) -> str:
        bw = f"{self.bandwidth} bit/s" if self.bandwidth else "unlimited"
        loss = f"{self.loss.normalize():f}" if self.loss else "0"
        return f"bandwidth={bw} delay={self.delay or 0} ms loss={loss}"


@dataclass(frozen=True)
class ClassificationRule:
    rule_id: int
    queue_id: int
    direction: Direction
    match_from: AddressSpec
    match_to: AddressSpec


@dataclass(frozen=True)
class QueueConfig:
    queue_id: int
    bandwidth: Optional[int] = None     # None = unlimited
    delay: int = 0
    loss: Optional[Decimal] = None

    @property
    def params(self) -> ShapingParams:
        return ShapingParams(bandwidth=self.bandwidth, delay=self.delay, loss=self.loss)


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of one (address, direction); may be stale as soon as it is read."""
    rule: Optional[ClassificationRule] = None
    queue: Optional[QueueConfig] = None

    @property
    def is_absent(self) -> bool:
        return self.rule is None and self.queue is None

    @property
    def is_partial(self) -> bool:
        return (self.rule is None) != (self.queue is None)

    @property
    def params(self) -> Optional[ShapingParams]:
        return self.queue.params if self.queue else None
