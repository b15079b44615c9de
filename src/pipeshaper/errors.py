# src/pipeshaper/errors.py
from __future__ import annotations

from typing import Any, Sequence

__all__ = [
    "ShaperError",
    "ValidationError",
    "InvalidAddress",
    "InvalidBandwidth",
    "InvalidDelay",
    "InvalidLossRate",
    "BackendError",
    "BackendCallFailed",
    "BackendProtocolViolation",
]


class ShaperError(Exception):
    """Base for everything pipeshaper raises on purpose."""


class ValidationError(ShaperError, ValueError):
    field = "value"

    def __init__(self, value: Any, reason: str = ""):
        self.value = value
        self.reason = reason
        msg = f"Invalid {self.field}: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InvalidAddress(ValidationError):
    field = "address"


class InvalidBandwidth(ValidationError):
    field = "bandwidth"


class InvalidDelay(ValidationError):
    field = "delay"


class InvalidLossRate(ValidationError):
    field = "loss rate"


class BackendError(ShaperError):
    pass


class BackendCallFailed(BackendError):
    """The backend command exited non-zero; its own diagnostic is kept in `output`."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = (output or "").strip()
        detail = self.output or "no output"
        super().__init__(f"`{' '.join(self.argv)}` failed (rc={returncode}): {detail}")


class BackendProtocolViolation(BackendError):
    """Backend output was not in the shape we parse."""

    def __init__(self, text: str, expected: str = ""):
        self.text = text
        self.expected = expected
        snippet = (text or "").strip().splitlines()[0] if (text or "").strip() else "<empty>"
        msg = f"Unexpected backend output: {snippet!r}"
        if expected:
            msg += f" (expected {expected})"
        super().__init__(msg)
