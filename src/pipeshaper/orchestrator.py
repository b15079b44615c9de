from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd
from tqdm import tqdm

from pipeshaper.engine.reader import StateReader
from pipeshaper.engine.reconciler import Outcome, Reconciler
from pipeshaper.errors import ShaperError
from pipeshaper.logging import get_logger
from pipeshaper.models import Direction, Snapshot

log = get_logger()

REPORT_COLUMNS = ["Address", "Down", "Up", "Status"]


@dataclass(frozen=True)
class DirectionInput:
    """Raw per-direction values as typed by the caller; validated later."""
    bandwidth: Optional[str] = None
    delay: Optional[str] = None
    loss: Optional[str] = None


@dataclass(frozen=True)
class ShapingRow:
    address: str
    down: DirectionInput
    up: DirectionInput


def set_pair(reconciler: Reconciler, address: str, down: DirectionInput, up: DirectionInput) -> dict:
    """
    Shape both directions of one address.

    Both directions are validated (up first) before either is touched, so a
    bad value in one cannot leave the other half applied.
    """
    up_req = reconciler.validate(Direction.OUTBOUND, address, up.bandwidth, up.delay, up.loss)
    down_req = reconciler.validate(Direction.INBOUND, address, down.bandwidth, down.delay, down.loss)
    return {
        "down": reconciler.apply_request(down_req),
        "up": reconciler.apply_request(up_req),
    }


def get_pair(reader: StateReader, address: str) -> dict:
    return {
        "down": reader.read(Direction.INBOUND, address),
        "up": reader.read(Direction.OUTBOUND, address),
    }


def render_snapshot(snap: Snapshot) -> str:
    if snap.rule is None:
        return "not configured"
    if snap.queue is None:
        return f"rule {snap.rule.rule_id} -> queue {snap.rule.queue_id} (queue missing)"
    return snap.queue.params.render()


def run_batch(rows: Iterable[ShapingRow], reconciler: Reconciler, *, show_progress: bool = True) -> pd.DataFrame:
    """
    Apply each row in order and collect a report.

    Rows run one at a time: the backend has no locking, so we never overlap calls.
    A failing row is logged and reported; the rest still run.
    """
    rows = list(rows)
    records: List[list] = []
    with tqdm(total=len(rows), desc="Applying shaping", disable=not show_progress, dynamic_ncols=True) as bar:
        for row in rows:
            try:
                res = set_pair(reconciler, row.address, row.down, row.up)
                records.append([row.address, outcome_label(res["down"]), outcome_label(res["up"]), "OK"])
            except ShaperError as e:
                log.error(f"{row.address} failed: {e}")
                records.append([row.address, "", "", f"Error: {e}"])
            finally:
                bar.update(1)
    return pd.DataFrame(records, columns=REPORT_COLUMNS)


def outcome_label(outcome: Outcome) -> str:
    return {
        Outcome.NOOP: "unchanged",
        Outcome.UPDATED: "updated",
        Outcome.CREATED: "created",
        Outcome.DELETED: "removed",
    }[outcome]
