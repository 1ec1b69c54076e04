"""
Download probes.

Each probe is one timed HTTPS GET of a fixed-size payload over its own
single-connection session.  Probes run strictly one after another with a
short pause in between so they never contend for the same link.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import aiohttp

from .constants import (
    CHUNK_SIZE,
    COMMON_HEADERS,
    DEFAULT_PROBE_DELAY,
    DEFAULT_PROBE_TIMEOUT,
)
from .errors import ProbeFailure
from .stats import DOWNLOAD, Sample, complete_sample, estimate_samples
from .targets import ProbeTarget

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class DownloadResult:
    """All download samples from one sequential run."""

    samples: List[Sample] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def successful(self) -> List[Sample]:
        return [s for s in self.samples if s.succeeded]

    @property
    def bytes_total(self) -> int:
        return sum(s.byte_size for s in self.successful)

    def speeds(self, calibration_factor: float = 1.0) -> List[float]:
        return estimate_samples(self.samples, calibration_factor)

    def to_dict(self) -> dict:
        return {
            "bytes_total": self.bytes_total,
            "duration_ms": round(self.duration_ms, 2),
            "succeeded": len(self.successful),
            "attempted": len(self.samples),
            "samples": [s.to_dict() for s in self.samples],
        }


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class DownloadTester:
    """
    Sequential download prober.

    ``probe`` never raises for network trouble: timeouts, DNS failures,
    connection resets and non-2xx answers all come back as a failed
    ``Sample`` so the caller's loop can move on to the next target.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        delay: float = DEFAULT_PROBE_DELAY,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.timeout = timeout
        self.delay = delay
        self._clock = clock

    async def probe(self, target: ProbeTarget) -> Sample:
        sample = Sample(kind=DOWNLOAD, url=target.url)
        try:
            received, elapsed = await self._fetch(target, sample)
        except ProbeFailure as exc:
            sample.error = exc.reason
            return sample
        return complete_sample(sample, received, elapsed, target.size_bytes)

    async def _fetch(self, target: ProbeTarget, sample: Sample) -> Tuple[int, float]:
        """GET *target* and drain the body.  Returns (bytes, seconds)."""
        connector = aiohttp.TCPConnector(limit=1, force_close=True)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(
                headers=COMMON_HEADERS,
                connector=connector,
                timeout=timeout,
            ) as session:
                t0 = self._clock()
                async with session.get(target.url) as resp:
                    sample.status = resp.status
                    if not 200 <= resp.status < 300:
                        raise ProbeFailure(target.url, f"HTTP {resp.status}")

                    received = 0
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        received += len(chunk)
                return received, self._clock() - t0

        except asyncio.TimeoutError:
            raise ProbeFailure(target.url, f"timed out after {self.timeout:.1f}s") from None
        except (aiohttp.ClientError, OSError) as exc:
            raise ProbeFailure(target.url, str(exc) or type(exc).__name__) from exc

    async def test(self, targets: List[ProbeTarget]) -> DownloadResult:
        result = DownloadResult()
        start = self._clock()

        for idx, target in enumerate(targets):
            if idx and self.delay > 0:
                await asyncio.sleep(self.delay)

            sample = await self.probe(target)
            result.samples.append(sample)

            if sample.succeeded:
                logger.debug(
                    "Download %s: %d bytes in %.3fs",
                    target.url, sample.byte_size, sample.elapsed_seconds,
                )
            else:
                logger.info("Download probe failed for %s: %s", target.url, sample.error)

        result.duration_ms = (self._clock() - start) * 1000
        return result
