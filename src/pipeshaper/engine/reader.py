# src/pipeshaper/engine/reader.py
from __future__ import annotations

from typing import Optional

from ..backends.base import RuleMatch, ShaperBackend
from ..ipam.addresses import ANY, AddressSpec, parse_address
from ..logging import get_logger, pair_logger
from ..models import ClassificationRule, Direction, QueueConfig, Snapshot
from ..parsers.ipfw_text import RuleRecord, parse_queue_status, parse_rule_listing

__all__ = ["StateReader", "match_for"]

log = get_logger()


def match_for(direction: Direction, address: AddressSpec) -> RuleMatch:
    """Backend predicate for the one rule that shapes `address` in `direction`."""
    src, dst = direction.endpoints(address)
    kind = "mac" if address.is_mac else "ip"
    return RuleMatch(kind=kind, src=src.token, dst=dst.token, direction=direction.token)


def _spec_from_token(token: str, kind: str) -> AddressSpec:
    if token == ANY.token:
        return ANY
    return AddressSpec(kind, token)


class StateReader:
    def __init__(self, backend: ShaperBackend):
        self.backend = backend

    def find_rule(self, direction: Direction, address: AddressSpec) -> Optional[RuleRecord]:
        want = match_for(direction, address)
        found: Optional[RuleRecord] = None
        hits = 0
        for rec in parse_rule_listing(self.backend.list_rules()):
            # literal comparison: "any" only matches the token "any"
            if (rec.kind, rec.src, rec.dst, rec.direction) != (want.kind, want.src, want.dst, want.direction):
                continue
            hits += 1
            # listing is rule-number ordered, so the last hit is the highest id
            found = rec
        if hits > 1 and found is not None:
            pair_logger(address, direction).warning(f"{hits} rules match; using rule {found.rule_id}")
        return found

    def read_queue(self, queue_id: int) -> Optional[QueueConfig]:
        """Queue status, or None when the backend shows nothing for it. Call failures propagate."""
        rec = parse_queue_status(self.backend.show_queue(queue_id))
        if rec is None:
            log.warning(f"queue {queue_id} not present in backend output")
            return None
        return QueueConfig(queue_id=rec.queue_id, bandwidth=rec.bandwidth, delay=rec.delay, loss=rec.loss)

    def read(self, direction: Direction, address) -> Snapshot:
        if not isinstance(address, AddressSpec):
            address = parse_address(address)
        rec = self.find_rule(direction, address)
        if rec is None:
            return Snapshot()

        rule = ClassificationRule(
            rule_id=rec.rule_id,
            queue_id=rec.queue_id,
            direction=direction,
            match_from=_spec_from_token(rec.src, rec.kind),
            match_to=_spec_from_token(rec.dst, rec.kind),
        )
        return Snapshot(rule=rule, queue=self.read_queue(rec.queue_id))
