"""
HTTP round-trip latency measurement.

Protocol flow::

    1. Open one keep-alive connection to the ping URL.
    2. Send one warm-up GET (absorbs DNS, TCP and TLS setup; not counted).
    3. Send ``count`` GETs for a zero-byte payload, timing each round trip.

``latency_ms`` is the best round trip and ``jitter_ms`` the mean absolute
difference between consecutive round trips.  When no round trip succeeds
both are reported as ``None`` rather than a made-up constant.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import urlparse

import aiohttp

from .constants import COMMON_HEADERS, DEFAULT_PING_COUNT, DEFAULT_PING_URL
from .stats import calculate_jitter

logger = logging.getLogger(__name__)

_PING_TIMEOUT = 5.0   # per round trip


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Aggregated round-trip data for one ping target."""

    url: str = ""
    pings: List[float] = field(default_factory=list)
    attempts: int = 0
    latency_ms: Optional[float] = None
    jitter_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return bool(self.pings)

    @property
    def server(self) -> str:
        return urlparse(self.url).hostname or ""

    def calculate(self) -> None:
        """Derive best latency and jitter from collected pings."""
        if self.pings:
            self.latency_ms = min(self.pings)
            self.jitter_ms = calculate_jitter(self.pings)

    def to_dict(self) -> dict:
        return {
            "server": self.server,
            "pings": [round(p, 1) for p in self.pings],
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 1) if self.latency_ms is not None else None,
            "jitter_ms": round(self.jitter_ms, 3) if self.jitter_ms is not None else None,
            "success": self.success,
        }


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class LatencyTester:
    """Time small GET round trips over one established connection."""

    def __init__(
        self,
        url: str = DEFAULT_PING_URL,
        count: int = DEFAULT_PING_COUNT,
        timeout: float = _PING_TIMEOUT,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.url = url
        self.count = count
        self.timeout = timeout
        self._clock = clock

    async def test(self) -> LatencyResult:
        result = LatencyResult(url=self.url)

        connector = aiohttp.TCPConnector(limit=1)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(
                headers=COMMON_HEADERS,
                connector=connector,
                timeout=timeout,
            ) as session:
                await self._round_trip(session)

                for _ in range(self.count):
                    result.attempts += 1
                    try:
                        result.pings.append(await self._round_trip(session))
                    except asyncio.TimeoutError:
                        result.error = "ping timeout"
                    except aiohttp.ClientError as exc:
                        result.error = str(exc) or type(exc).__name__

        except asyncio.TimeoutError:
            result.error = "connection timeout"
        except (aiohttp.ClientError, OSError) as exc:
            result.error = str(exc) or type(exc).__name__

        if not result.success:
            logger.info("Latency probe to %s failed: %s", self.url, result.error)

        result.calculate()
        return result

    async def _round_trip(self, session: aiohttp.ClientSession) -> float:
        """One GET; returns milliseconds.  Raises on any failure."""
        t0 = self._clock()
        async with session.get(self.url) as resp:
            resp.raise_for_status()
            await resp.read()
        return (self._clock() - t0) * 1000
