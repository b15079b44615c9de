# src/pipeshaper/engine/reconciler.py
"""
Drive one (address, direction) pair to a desired shaping state.

Read, diff, then issue the fewest mutations. Nothing here is transactional:
a failing call aborts the apply and leaves whatever was already done in
place; the next apply with the same input reads that state and finishes
the job.
"""
from __future__ import annotations

import enum
from typing import Any, Optional

from ..backends.base import ShaperBackend
from ..config import ShaperCfg
from ..errors import BackendCallFailed
from ..logging import pair_logger
from ..models import ClassificationRule, Direction, ShapingParams, Snapshot
from ..parsers.ipfw_text import parse_confirmation
from .allocator import DummyRuleAllocator, IdentifierAllocator
from .reader import StateReader, match_for
from .validate import ShapingRequest, validate_request

__all__ = ["Outcome", "Reconciler"]


class Outcome(str, enum.Enum):
    NOOP = "noop"
    UPDATED = "updated"
    CREATED = "created"
    DELETED = "deleted"


class Reconciler:
    def __init__(
        self,
        backend: ShaperBackend,
        allocator: Optional[IdentifierAllocator] = None,
        cfg: Optional[ShaperCfg] = None,
        reader: Optional[StateReader] = None,
    ):
        self.cfg = cfg or ShaperCfg()
        self.backend = backend
        self.allocator = allocator or DummyRuleAllocator(backend, self.cfg.dummy_address)
        self.reader = reader or StateReader(backend)

    # ---------------- validation ----------------
    def validate(self, direction: Direction, address: Any, bandwidth: Any = None,
                 delay: Any = None, loss: Any = None) -> ShapingRequest:
        return validate_request(
            direction, address, bandwidth, delay, loss,
            reserved=(self.cfg.dummy_address,),
        )

    # ---------------- apply ----------------
    def apply(self, direction: Direction, address: Any, bandwidth: Any = None,
              delay: Any = None, loss: Any = None) -> Outcome:
        req = self.validate(direction, address, bandwidth, delay, loss)
        return self.apply_request(req)

    def apply_request(self, req: ShapingRequest) -> Outcome:
        log = pair_logger(req.address, req.direction)
        snap = self.reader.read(req.direction, req.address)

        repaired = False
        if snap.is_partial:
            self._repair(snap, log)
            snap = Snapshot()
            repaired = True

        if req.is_delete:
            if snap.rule is None:
                if repaired:
                    return Outcome.DELETED
                log.debug("nothing configured, nothing to delete")
                return Outcome.NOOP
            self._teardown(snap.rule)
            log.info(f"removed rule {snap.rule.rule_id} and queue {snap.rule.queue_id}")
            return Outcome.DELETED

        if snap.queue is not None:
            if req.params.satisfied_by(snap.queue.params):
                log.debug(f"queue {snap.queue.queue_id} already matches")
                return Outcome.NOOP
            queue_id = snap.queue.queue_id
            self._configure(queue_id, req.params)
            outcome = Outcome.UPDATED
        else:
            queue_id = self.allocator.allocate()
            self._configure(queue_id, req.params)
            outcome = Outcome.CREATED

        if snap.rule is None:
            rule_id = self._create_rule(req, queue_id)
            log.info(f"created rule {rule_id} -> queue {queue_id} ({req.params.render()})")
        else:
            log.info(f"updated queue {queue_id} ({req.params.render()})")
        return outcome

    # ---------------- helpers ----------------
    def wildcard_rule_id(self, direction: Direction) -> int:
        # fixed slots; rules the backend numbers afterwards land above them
        offset = 0 if direction is Direction.OUTBOUND else 1
        return self.cfg.wildcard_rule_base - offset

    def _configure(self, queue_id: int, params: ShapingParams) -> None:
        # absent fields are left out, so the backend keeps whatever it had
        self.backend.configure_queue(
            queue_id,
            bandwidth=params.bandwidth,
            delay=params.delay,
            loss=params.loss,
        )

    def _create_rule(self, req: ShapingRequest, queue_id: int) -> int:
        rule_id = self.wildcard_rule_id(req.direction) if req.address.is_any else None
        out = self.backend.add_rule(match_for(req.direction, req.address), queue_id=queue_id, rule_id=rule_id)
        return parse_confirmation(out)

    def _teardown(self, rule: ClassificationRule) -> None:
        self.backend.delete_rule(rule.rule_id)
        self.backend.delete_queue(rule.queue_id)
        self.allocator.release(rule.queue_id)

    def _repair(self, snap: Snapshot, log) -> None:
        """Rule without a queue: clear out the rule, queue and dummy rule before building fresh."""
        rule = snap.rule
        if rule is None:
            return
        log.warning(f"rule {rule.rule_id} points at missing queue {rule.queue_id}; removing it")
        self.backend.delete_rule(rule.rule_id)
        try:
            self.backend.delete_queue(rule.queue_id)
        except BackendCallFailed as e:
            log.warning(f"queue {rule.queue_id} already gone: {e}")
        try:
            self.allocator.release(rule.queue_id)
        except BackendCallFailed as e:
            log.warning(f"no dummy rule {rule.queue_id} to release: {e}")
