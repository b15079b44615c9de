from typing import Protocol, Sequence, Tuple

class Runner(Protocol):
    """Runs one backend command, blocking; returns (stdout, stderr, returncode)."""
    def run(self, argv: Sequence[str]) -> Tuple[str, str, int]: ...
    def close(self) -> None: ...
