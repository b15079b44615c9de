# src/pipeshaper/backends/ipfw.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from ..config import ShaperCfg
from ..errors import BackendCallFailed
from ..logging import get_logger
from ..transports.base import Runner
from .base import RuleMatch

__all__ = ["IpfwBackend", "match_args"]

log = get_logger()


def match_args(match: RuleMatch) -> List[str]:
    if match.kind == "mac":
        # ipfw wants MAC <dst> <src>
        args = ["MAC", match.dst, match.src]
    else:
        args = ["ip", "from", match.src, "to", match.dst]
    if match.direction:
        args.append(match.direction)
    return args


class IpfwBackend:
    """ipfw rules as classifiers, dummynet pipes as queues."""

    def __init__(self, runner: Runner, cfg: Optional[ShaperCfg] = None):
        self.r = runner
        self.cfg = cfg or ShaperCfg()

    def _run(self, args: List[str]) -> str:
        argv = [self.cfg.ipfw_bin, *[str(a) for a in args]]
        log.debug(f"backend: {' '.join(argv)}")
        out, err, rc = self.r.run(argv)
        if rc != 0:
            raise BackendCallFailed(argv, rc, (err or "").strip() or (out or "").strip())
        return out or ""

    # ---------------- reads ----------------
    def list_rules(self) -> str:
        return self._run(["list"])

    def show_queue(self, queue_id: int) -> str:
        return self._run(["pipe", str(queue_id), "show"])

    # ---------------- mutations ----------------
    def add_rule(self, match: RuleMatch, *, queue_id: Optional[int] = None,
                 rule_id: Optional[int] = None) -> str:
        args: List[str] = ["add"]
        if rule_id is not None:
            args.append(str(rule_id))
        # no queue: a count rule, which never changes how traffic flows
        args += ["pipe", str(queue_id)] if queue_id is not None else ["count"]
        args += match_args(match)
        return self._run(args)

    def configure_queue(self, queue_id: int, *, bandwidth: Optional[int] = None,
                        delay: Optional[int] = None, loss: Optional[Decimal] = None) -> str:
        args = ["pipe", str(queue_id), "config"]
        if bandwidth is not None:
            args += ["bw", f"{int(bandwidth)}bit/s"]
        if delay is not None:
            args += ["delay", str(int(delay))]
        if loss is not None:
            args += ["plr", f"{Decimal(loss):f}"]
        return self._run(args)

    def delete_rule(self, rule_id: int) -> str:
        return self._run(["delete", str(rule_id)])

    def delete_queue(self, queue_id: int) -> str:
        return self._run(["pipe", "delete", str(queue_id)])
