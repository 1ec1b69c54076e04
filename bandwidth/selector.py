"""
Fallback chain.

``MethodSelector.run`` tries each configured method in order and turns the
first usable ``MethodResult`` into the reported ``SpeedTestResult``::

    Start -> method[0] -> ok? -> Done
                       -> failed -> method[1] -> ... -> AllMethodsFailed

A method fails when it raises; it never returns without download figures.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import CalibrationProfile
from .errors import AllMethodsFailed, MethodExhausted
from .methods import BandwidthMeasurementMethod, MethodResult
from .stats import (
    DOWNLOAD,
    UPLOAD,
    DirectionStats,
    Sample,
    aggregate,
    finalize,
    synthesize_upload,
)

logger = logging.getLogger(__name__)

RatioSource = Callable[[], float]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class SpeedTestResult:
    """The figure pair reported for one request."""

    download: float
    upload: float
    method: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    ping: Optional[float] = None
    jitter: Optional[float] = None
    server: Optional[str] = None
    upload_estimated: bool = False
    tests_run: int = 0
    download_stats: Optional[DirectionStats] = None
    upload_stats: Optional[DirectionStats] = None
    samples: List[Sample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "download": self.download,
            "upload": self.upload,
            "ping": round(self.ping, 1) if self.ping is not None else None,
            "jitter": round(self.jitter, 2) if self.jitter is not None else None,
            "server": self.server,
            "timestamp": self.timestamp,
            "method": self.method,
            "upload_estimated": self.upload_estimated,
            "tests_run": self.tests_run,
            "download_stats": self.download_stats.to_dict() if self.download_stats else None,
            "upload_stats": self.upload_stats.to_dict() if self.upload_stats else None,
        }


# ---------------------------------------------------------------------------
# Upload ratio sources
# ---------------------------------------------------------------------------

def fixed_ratio(ratio: float) -> RatioSource:
    return lambda: ratio


def uniform_ratio(low: float, high: float, rng: Optional[random.Random] = None) -> RatioSource:
    """Ratio drawn uniformly from [low, high]; pass a seeded *rng* to pin it."""
    rng = rng or random.Random()
    return lambda: rng.uniform(low, high)


def ratio_source_for(profile: CalibrationProfile) -> RatioSource:
    if profile.upload_ratio_range is not None:
        return uniform_ratio(*profile.upload_ratio_range)
    return fixed_ratio(profile.upload_to_download_ratio)


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class MethodSelector:
    """Ordered fallback over measurement methods."""

    def __init__(
        self,
        methods: List[BandwidthMeasurementMethod],
        profile: CalibrationProfile,
        ratio_source: Optional[RatioSource] = None,
    ) -> None:
        self.methods = list(methods)
        self.profile = profile
        self.ratio_source = ratio_source or ratio_source_for(profile)

    @property
    def method_names(self) -> List[str]:
        return [m.name for m in self.methods]

    async def run(self) -> SpeedTestResult:
        """Full download + upload measurement.  Raises ``AllMethodsFailed``."""
        raw = await self._first_success(download_only=False)
        return self.build_result(raw)

    async def run_download(self) -> SpeedTestResult:
        """Download-only measurement; upload is reported as synthesized."""
        raw = await self._first_success(download_only=True)
        return self.build_result(raw)

    async def _first_success(self, download_only: bool) -> MethodResult:
        errors: List[Tuple[str, str]] = []

        for method in self.methods:
            logger.info("Trying measurement method %s", method.name)
            try:
                if download_only:
                    raw = await method.measure_download()
                else:
                    raw = await method.measure()
            except asyncio.CancelledError:
                raise
            except MethodExhausted as exc:
                logger.warning("Method %s exhausted: %s", method.name, exc.reason)
                errors.append((method.name, exc.reason))
                continue
            except Exception as exc:
                logger.warning("Method %s raised", method.name, exc_info=True)
                errors.append((method.name, str(exc) or type(exc).__name__))
                continue

            if not raw.download_mbps:
                errors.append((method.name, "no download samples"))
                continue
            return raw

        failure = AllMethodsFailed(errors)
        logger.error("Speed test failed: %s", failure)
        raise failure

    def build_result(self, raw: MethodResult) -> SpeedTestResult:
        """Aggregate, synthesize upload if needed, apply floor and precision."""
        p = self.profile

        def _report(value: float) -> float:
            return finalize(value, p.minimum_floor_mbps, p.precision_decimals, p.coarse_rounding)

        dl_stats = aggregate(raw.download_mbps, DOWNLOAD)

        if raw.upload_mbps:
            ul_stats: Optional[DirectionStats] = aggregate(raw.upload_mbps, UPLOAD)
            upload_raw = ul_stats.mean
            estimated = False
        else:
            ratio = self.ratio_source()
            upload_raw = synthesize_upload(dl_stats.mean, ratio)
            ul_stats = None
            estimated = True
            logger.info("Upload unmeasured; synthesized at ratio %.2f of download", ratio)

        result = SpeedTestResult(
            download=_report(dl_stats.mean),
            upload=_report(upload_raw),
            method=raw.method,
            ping=raw.ping,
            jitter=raw.jitter,
            server=raw.server,
            upload_estimated=estimated,
            tests_run=raw.tests_run,
            download_stats=dl_stats,
            upload_stats=ul_stats,
            samples=list(raw.samples),
        )
        logger.info(
            "Speed test via %s: download %.2f Mbps, upload %.2f Mbps%s",
            result.method, result.download, result.upload,
            " (estimated)" if estimated else "",
        )
        return result
