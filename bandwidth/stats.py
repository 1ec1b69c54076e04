"""
Throughput estimation and aggregation.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .constants import MIN_ELAPSED_SECONDS
from .errors import DirectionUnmeasured

DOWNLOAD = "download"
UPLOAD = "upload"


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class Sample:
    """Outcome of one timed probe."""

    kind: str
    url: str = ""
    byte_size: int = 0
    elapsed_seconds: float = 0.0
    succeeded: bool = False
    status: Optional[int] = None
    error: Optional[str] = None

    def throughput(self, calibration_factor: float = 1.0) -> float:
        return throughput_mbps(self.byte_size, self.elapsed_seconds, calibration_factor)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "url": self.url,
            "bytes": self.byte_size,
            "elapsed_s": round(self.elapsed_seconds, 4),
            "succeeded": self.succeeded,
            "status": self.status,
            "error": self.error,
        }


@dataclass
class DirectionStats:
    """Mean / min / max over the per-sample Mbps values of one direction."""

    values: List[float] = field(default_factory=list)
    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    count: int = 0

    def calculate(self) -> None:
        if not self.values:
            return
        self.count = len(self.values)
        self.mean = statistics.mean(self.values)
        self.min = min(self.values)
        self.max = max(self.values)

    def to_dict(self, decimals: int = 2) -> dict:
        return {
            "mean": round(self.mean, decimals),
            "min": round(self.min, decimals),
            "max": round(self.max, decimals),
            "count": self.count,
        }


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------

def throughput_mbps(
    byte_size: int,
    elapsed_seconds: float,
    calibration_factor: float = 1.0,
) -> float:
    """Megabits per second for *byte_size* bytes moved in *elapsed_seconds*.

    Not rounded; rounding happens only when a figure is reported.
    """
    if byte_size < 0:
        raise ValueError(f"byte_size must be >= 0, got {byte_size}")
    if not elapsed_seconds >= MIN_ELAPSED_SECONDS:
        raise ValueError(
            f"elapsed_seconds must be >= {MIN_ELAPSED_SECONDS}, got {elapsed_seconds}"
        )
    return (byte_size * 8 / 1_000_000) / elapsed_seconds * calibration_factor


def complete_sample(
    sample: Sample,
    byte_size: int,
    elapsed_seconds: float,
    expected_bytes: Optional[int] = None,
) -> Sample:
    """Record a finished transfer on *sample* and classify it.

    Transfers below timer resolution, empty bodies, and bodies shorter than
    the advertised size are failures; their bytes are not counted.
    """
    sample.elapsed_seconds = elapsed_seconds
    if elapsed_seconds < MIN_ELAPSED_SECONDS:
        sample.error = f"elapsed {elapsed_seconds:.6f}s below timer resolution"
    elif byte_size <= 0:
        sample.error = "empty body"
    elif expected_bytes is not None and byte_size < expected_bytes:
        sample.error = f"truncated body ({byte_size} of {expected_bytes} bytes)"
    else:
        sample.byte_size = byte_size
        sample.succeeded = True
    return sample


def estimate_samples(samples: Iterable[Sample], calibration_factor: float = 1.0) -> List[float]:
    """Mbps for every successful sample, in probe order."""
    return [s.throughput(calibration_factor) for s in samples if s.succeeded]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

def aggregate(values: List[float], kind: str = DOWNLOAD) -> DirectionStats:
    """Reduce one direction's Mbps values; raises if there are none."""
    if not values:
        raise DirectionUnmeasured(kind)
    stats = DirectionStats(values=list(values))
    stats.calculate()
    return stats


def synthesize_upload(download_mbps: float, ratio: float) -> float:
    """Upload figure derived from a measured download figure."""
    if ratio <= 0:
        raise ValueError(f"upload ratio must be > 0, got {ratio}")
    return download_mbps * ratio


def round_to_precision(value: float, decimals: int = 2, coarse: bool = False) -> float:
    """Round to *decimals* places, or half-up to a multiple of 10 if *coarse*."""
    if coarse:
        return float(math.floor(value / 10 + 0.5) * 10)
    return round(value, decimals)


def finalize(
    value: float,
    floor_mbps: float,
    decimals: int = 2,
    coarse: bool = False,
) -> float:
    """Reported figure: rounded, then never below the floor.

    The floor itself is expected to sit on the rounding grid (the calibration
    profile enforces this), so the result satisfies both constraints.
    """
    return max(round_to_precision(value, decimals, coarse), floor_mbps)


# ---------------------------------------------------------------------------
# Latency helpers
# ---------------------------------------------------------------------------

def calculate_jitter(samples: List[float]) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return statistics.mean(diffs)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: Optional[float]) -> str:
    """Human-readable latency string."""
    if latency_ms is None:
        return "n/a"
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
