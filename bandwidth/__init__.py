"""Bandwidth estimation library -- probes, estimation, and the fallback chain."""

from .config import CalibrationProfile, load_config, load_profile
from .download import DownloadResult, DownloadTester
from .errors import (
    AllMethodsFailed,
    DirectionUnmeasured,
    MethodExhausted,
    ProbeFailure,
    SpeedTestError,
)
from .latency import LatencyResult, LatencyTester
from .methods import (
    BandwidthMeasurementMethod,
    LibreSpeedMethod,
    MethodResult,
    ProbeMethod,
    build_methods,
)
from .selector import MethodSelector, SpeedTestResult
from .stats import (
    DirectionStats,
    Sample,
    aggregate,
    finalize,
    round_to_precision,
    throughput_mbps,
)
from .targets import ProbeTarget
from .upload import UploadResult, UploadTester

__all__ = [
    "AllMethodsFailed",
    "BandwidthMeasurementMethod",
    "CalibrationProfile",
    "DirectionStats",
    "DirectionUnmeasured",
    "DownloadResult",
    "DownloadTester",
    "LatencyResult",
    "LatencyTester",
    "LibreSpeedMethod",
    "MethodExhausted",
    "MethodResult",
    "MethodSelector",
    "ProbeFailure",
    "ProbeMethod",
    "ProbeTarget",
    "Sample",
    "SpeedTestError",
    "SpeedTestResult",
    "UploadResult",
    "UploadTester",
    "aggregate",
    "build_methods",
    "finalize",
    "load_config",
    "load_profile",
    "round_to_precision",
    "throughput_mbps",
]
