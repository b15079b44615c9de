from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from pipeshaper.backends.ipfw import IpfwBackend
from pipeshaper.config import ShaperCfg
from pipeshaper.engine.reader import StateReader
from pipeshaper.engine.reconciler import Reconciler

READ_VERBS = {"list", "show"}


def format_bw(bw: int) -> str:
    if not bw:
        return "unlimited"
    if bw >= 1_000_000:
        return f"{bw // 1_000_000}.{(bw % 1_000_000) // 1000:03d} Mbit/s"
    if bw >= 1000:
        return f"{bw // 1000}.{bw % 1000:03d} Kbit/s"
    return f"{bw} bit/s"


class RuleTable:
    """
    ipfw's rule chain: several rules may share a number, `delete N` drops
    all of them, and lookups by number see the last one added.
    """

    def __init__(self):
        self._entries: List[Tuple[int, str]] = []

    def __setitem__(self, n: int, body: str) -> None:
        self._entries.append((n, body))

    def __getitem__(self, n: int) -> str:
        bodies = [b for k, b in self._entries if k == n]
        if not bodies:
            raise KeyError(n)
        return bodies[-1]

    def __contains__(self, n: object) -> bool:
        return any(k == n for k, _ in self._entries)

    def __delitem__(self, n: int) -> None:
        if n not in self:
            raise KeyError(n)
        self._entries = [(k, b) for k, b in self._entries if k != n]

    def __len__(self) -> int:
        return len(self._entries)

    def count(self, n: int) -> int:
        return sum(1 for k, _ in self._entries if k == n)

    def entries(self) -> List[Tuple[int, str]]:
        # stable sort keeps insertion order among equal numbers, as ipfw does
        return sorted(self._entries, key=lambda e: e[0])


class FakeIpfw:
    """
    In-memory ipfw/dummynet speaking the same text the real tool prints.

    Rules without an explicit number are numbered like the kernel does it:
    highest rule before the default one plus autoinc_step, unless that would
    reach the default rule, in which case the highest number is reused.
    Pipe config keeps values that a later config leaves out.
    """

    DEFAULT_RULE = 65535
    STEP = 100

    def __init__(self, dialect: str = "new"):
        self.dialect = dialect
        self.rules = RuleTable()
        self.pipes: Dict[int, dict] = {}
        self.calls: List[List[str]] = []
        self.fail: Dict[Tuple[str, ...], Tuple[int, str]] = {}
        self.confirm_override: Optional[str] = None

    # ---------------- helpers for tests ----------------
    @property
    def mutations(self) -> List[List[str]]:
        return [c for c in self.calls if not (set(c) & READ_VERBS)]

    def reset_calls(self) -> None:
        self.calls.clear()

    def fail_on(self, *prefix: str, rc: int = 65, err: str = "ipfw: setsockopt: Invalid argument") -> None:
        self.fail[tuple(prefix)] = (rc, err)

    # ---------------- Runner ----------------
    def run(self, argv: Sequence[str]) -> Tuple[str, str, int]:
        args = [str(a) for a in argv[1:]]
        self.calls.append(args)
        for prefix, (rc, err) in self.fail.items():
            if tuple(args[: len(prefix)]) == prefix:
                return "", err, rc
        if args == ["list"]:
            return self._list(), "", 0
        if args[0] == "add":
            return self._add(args[1:])
        if args[0] == "delete":
            n = int(args[1])
            if n not in self.rules:
                return "", f"ipfw: rule {n}: setsockopt(IP_FW_XDEL): Invalid argument", 71
            del self.rules[n]
            return "", "", 0
        if args[0] == "pipe" and args[1] == "delete":
            n = int(args[2])
            if n not in self.pipes:
                return "", f"ipfw: pipe {n} not found", 71
            del self.pipes[n]
            return "", "", 0
        if args[0] == "pipe" and args[2] == "show":
            return self._show(int(args[1])), "", 0
        if args[0] == "pipe" and args[2] == "config":
            return self._config(int(args[1]), args[3:])
        return "", f"ipfw: unknown command {' '.join(args)}", 64

    def close(self) -> None:
        return

    # ---------------- internals ----------------
    def _list(self) -> str:
        lines = [f"{n:05d} {body}" for n, body in self.rules.entries()]
        lines.append(f"{self.DEFAULT_RULE} allow ip from any to any")
        return "\n".join(lines) + "\n"

    def _next_rule(self) -> int:
        entries = self.rules.entries()
        last = entries[-1][0] if entries else 0
        if last < self.DEFAULT_RULE - self.STEP:
            return last + self.STEP
        return last

    def _add(self, args: List[str]) -> Tuple[str, str, int]:
        if args and args[0].isdigit():
            n = int(args[0])
            args = args[1:]
        else:
            n = self._next_rule()
        body = " ".join(args)
        self.rules[n] = body
        out = self.confirm_override if self.confirm_override is not None else f"{n:05d} {body}\n"
        return out, "", 0

    def _config(self, n: int, args: List[str]) -> Tuple[str, str, int]:
        p = self.pipes.setdefault(n, {"bw": 0, "delay": 0, "plr": Decimal(0)})
        it = iter(args)
        for key in it:
            val = next(it)
            if key == "bw":
                p["bw"] = int(val.replace("bit/s", ""))
            elif key == "delay":
                p["delay"] = int(val)
            elif key == "plr":
                p["plr"] = Decimal(val)
            else:
                return "", f"ipfw: unrecognised option {key}", 64
        return "", "", 0

    def _show(self, n: int) -> str:
        p = self.pipes.get(n)
        if p is None:
            return ""
        head = f"{n:05d}: {format_bw(p['bw']):>14} {p['delay']:3d} ms"
        plr = f"sl.plr {p['plr']:.6f}" if p["plr"] else "sl."
        if self.dialect == "old":
            return (
                f"{head}   50 {plr} 0 queues (1 buckets) droptail\n"
                "    mask: 0x00 0x00000000/0x0000 -> 0x00000000/0x0000\n"
            )
        return (
            f"{head} burst 0\n"
            f"q{65536 + n:05d}  50 {plr} 0 flows (1 buckets) sched {65536 + n} weight 0 lmax 0 pri 0 droptail\n"
            f" sched {65536 + n} type FIFO flags 0x0 0 buckets 0 active\n"
        )


@pytest.fixture
def fake():
    return FakeIpfw()


@pytest.fixture
def cfg():
    return ShaperCfg(ipfw_bin="/sbin/ipfw")


@pytest.fixture
def backend(fake, cfg):
    return IpfwBackend(fake, cfg)


@pytest.fixture
def reader(backend):
    return StateReader(backend)


@pytest.fixture
def reconciler(backend, cfg):
    return Reconciler(backend, cfg=cfg)
