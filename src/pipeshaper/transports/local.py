from __future__ import annotations

import subprocess
from typing import Sequence, Tuple

__all__ = ["LocalRunner"]

DEFAULT_TIMEOUT = 10


class LocalRunner:
    """Run backend commands on this host."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def run(self, argv: Sequence[str]) -> Tuple[str, str, int]:
        try:
            proc = subprocess.run(
                [str(a) for a in argv],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            return (proc.stdout or ""), (proc.stderr or ""), int(proc.returncode)
        except (OSError, subprocess.SubprocessError) as exc:
            return "", str(exc), 127

    def close(self) -> None:
        return

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
