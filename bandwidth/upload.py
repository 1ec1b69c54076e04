"""
Upload probes.

Uses HTTPS POST of a synthetic payload to an accept-and-discard endpoint.
The byte count is always the serialized payload length, so a JSON-wrapped
filler string is measured by what actually goes on the wire.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import aiohttp

from .constants import (
    COMMON_HEADERS,
    DEFAULT_PROBE_DELAY,
    DEFAULT_PROBE_TIMEOUT,
    UPLOAD_ENCODINGS,
)
from .errors import ProbeFailure
from .stats import UPLOAD, Sample, complete_sample, estimate_samples

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """All upload samples from one sequential run."""

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


def build_payload(size: int, encoding: str = "raw") -> Tuple[bytes, str]:
    """Return (body, content_type) for a nominal *size*-byte upload."""
    if encoding == "raw":
        # Random bytes so no hop can compress the body away.
        return os.urandom(size), "application/octet-stream"
    if encoding == "json":
        body = json.dumps({"data": "x" * size}).encode("utf-8")
        return body, "application/json"
    raise ValueError(f"Unknown upload encoding {encoding!r}; expected one of {UPLOAD_ENCODINGS}")


class UploadTester:
    """Sequential upload prober; mirrors ``DownloadTester``."""

    def __init__(
        self,
        url: str,
        encoding: str = "raw",
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        delay: float = DEFAULT_PROBE_DELAY,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if encoding not in UPLOAD_ENCODINGS:
            raise ValueError(f"Unknown upload encoding {encoding!r}")
        self.url = url
        self.encoding = encoding
        self.timeout = timeout
        self.delay = delay
        self._clock = clock

    async def probe(self, size: int) -> Sample:
        sample = Sample(kind=UPLOAD, url=self.url)
        body, content_type = build_payload(size, self.encoding)
        try:
            elapsed = await self._send(body, content_type, sample)
        except ProbeFailure as exc:
            sample.error = exc.reason
            return sample
        return complete_sample(sample, len(body), elapsed)

    async def _send(self, body: bytes, content_type: str, sample: Sample) -> float:
        """POST *body* and wait for the full answer.  Returns seconds."""
        connector = aiohttp.TCPConnector(limit=1, force_close=True)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {**COMMON_HEADERS, "Content-Type": content_type}

        try:
            async with aiohttp.ClientSession(
                headers=headers,
                connector=connector,
                timeout=timeout,
            ) as session:
                t0 = self._clock()
                async with session.post(self.url, data=body) as resp:
                    sample.status = resp.status
                    await resp.read()
                elapsed = self._clock() - t0

        except asyncio.TimeoutError:
            raise ProbeFailure(self.url, f"timed out after {self.timeout:.1f}s") from None
        except (aiohttp.ClientError, OSError) as exc:
            raise ProbeFailure(self.url, str(exc) or type(exc).__name__) from exc

        if not 200 <= sample.status < 300:
            raise ProbeFailure(self.url, f"HTTP {sample.status}")
        return elapsed

    async def test(self, sizes: List[int]) -> UploadResult:
        result = UploadResult()
        start = self._clock()

        for idx, size in enumerate(sizes):
            if idx and self.delay > 0:
                await asyncio.sleep(self.delay)

            sample = await self.probe(size)
            result.samples.append(sample)

            if sample.succeeded:
                logger.debug(
                    "Upload %s: %d bytes in %.3fs",
                    self.url, sample.byte_size, sample.elapsed_seconds,
                )
            else:
                logger.info("Upload probe failed for %s: %s", self.url, sample.error)

        result.duration_ms = (self._clock() - start) * 1000
        return result
