"""
Error taxonomy for decoding, inference and session control.

Decode and provider errors are scoped to one head for one frame; they are
caught by the pipeline and never stop the scheduler. Session errors are
raised from start() and leave the scheduler idle.
"""

from __future__ import annotations

from typing import Any, Optional


class VisionRuntimeError(Exception):
    """Base class for all runtime errors raised by this project."""


class HeadError(VisionRuntimeError):
    """An error attributed to a single inference head."""

    def __init__(self, message: str, head: Optional[Any] = None):
        super().__init__(message)
        self.head = head

    def __str__(self) -> str:
        base = super().__str__()
        if self.head is None:
            return base
        name = getattr(self.head, "value", self.head)
        return f"[{name}] {base}"


class ShapeMismatch(HeadError):
    """A tensor does not match the fixed layout a decoder expects."""


class ProviderFailure(HeadError):
    """The inference call itself failed or returned no usable output."""


class ResourceBusy(VisionRuntimeError):
    """A camera or model swap was attempted while a frame is still processing."""


class SessionStartError(VisionRuntimeError):
    """The capture session could not be started (camera or provider unavailable)."""
