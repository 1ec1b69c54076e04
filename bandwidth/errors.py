"""Exception hierarchy for the bandwidth estimation service."""
from __future__ import annotations

from typing import List, Tuple


class SpeedTestError(Exception):
    """Base class for every error raised by the measurement pipeline."""


class ProbeFailure(SpeedTestError):
    """A single probe's network call failed or timed out."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Probe failed for {url}: {reason}")
        self.url = url
        self.reason = reason


class DirectionUnmeasured(SpeedTestError):
    """No successful sample exists for one direction (download / upload)."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"No successful {kind} samples")
        self.kind = kind


class MethodExhausted(SpeedTestError):
    """A measurement method produced no usable download figure."""

    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"{method}: {reason}")
        self.method = method
        self.reason = reason


class AllMethodsFailed(SpeedTestError):
    """Every method in the fallback chain failed.  Terminal for a request."""

    def __init__(self, errors: List[Tuple[str, str]]) -> None:
        self.errors = list(errors)
        if self.errors:
            detail = "; ".join(f"{name}: {reason}" for name, reason in self.errors)
        else:
            detail = "no measurement methods configured"
        super().__init__(detail)
