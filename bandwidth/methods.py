"""
Bandwidth measurement methods.

Every method implements one contract, ``measure() -> MethodResult``, and
raises ``MethodExhausted`` when it cannot produce a download figure.  The
selector composes an ordered list of methods into the fallback chain.
"""
from __future__ import annotations

import abc
import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from .config import CalibrationProfile
from .constants import COMMON_HEADERS, METHOD_FALLBACK, METHOD_LIBRESPEED, METHOD_PRIMARY
from .download import DownloadTester
from .errors import MethodExhausted
from .latency import LatencyTester
from .stats import Sample
from .targets import ProbeTarget, parse_targets
from .upload import UploadTester

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class MethodResult:
    """Calibrated per-sample Mbps values produced by one method."""

    method: str
    download_mbps: List[float] = field(default_factory=list)
    upload_mbps: List[float] = field(default_factory=list)
    samples: List[Sample] = field(default_factory=list)
    ping: Optional[float] = None
    jitter: Optional[float] = None
    server: Optional[str] = None

    @property
    def tests_run(self) -> int:
        return len(self.download_mbps) + len(self.upload_mbps)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class BandwidthMeasurementMethod(abc.ABC):
    """One way of obtaining download / upload figures."""

    name: str = ""

    @abc.abstractmethod
    async def measure(self) -> MethodResult:
        """Run a full measurement.  Raises ``MethodExhausted`` on failure."""

    async def measure_download(self) -> MethodResult:
        """Download-only measurement; methods without a cheaper path reuse ``measure``."""
        result = await self.measure()
        result.upload_mbps = []
        return result


# ---------------------------------------------------------------------------
# Timed probes
# ---------------------------------------------------------------------------

class ProbeMethod(BandwidthMeasurementMethod):
    """
    Timed GET/POST probes against fixed-size remote payloads.

    Download targets are probed sequentially; upload probes (if any) follow
    after the same inter-probe delay.  An optional latency probe runs first,
    on the idle link.
    """

    def __init__(
        self,
        name: str,
        targets: List[ProbeTarget],
        profile: CalibrationProfile,
        downloader: DownloadTester,
        uploader: Optional[UploadTester] = None,
        upload_sizes: Optional[List[int]] = None,
        latency: Optional[LatencyTester] = None,
    ) -> None:
        self.name = name
        self.targets = list(targets)
        self.profile = profile
        self.downloader = downloader
        self.uploader = uploader
        self.upload_sizes = list(upload_sizes or [])
        self.latency = latency

    async def measure_download(self) -> MethodResult:
        if not self.targets:
            raise MethodExhausted(self.name, "no download targets configured")

        dl = await self.downloader.test(self.targets)
        speeds = dl.speeds(self.profile.download_factor)
        if not speeds:
            last = dl.samples[-1].error if dl.samples else "no samples"
            raise MethodExhausted(
                self.name, f"all {len(dl.samples)} download probes failed (last: {last})"
            )

        first_ok = dl.successful[0]
        return MethodResult(
            method=self.name,
            download_mbps=speeds,
            samples=list(dl.samples),
            server=ProbeTarget.from_url(first_ok.url).host or None,
        )

    async def measure(self) -> MethodResult:
        ping = jitter = None
        if self.latency is not None and self.latency.count > 0:
            lat = await self.latency.test()
            ping, jitter = lat.latency_ms, lat.jitter_ms

        result = await self.measure_download()
        result.ping, result.jitter = ping, jitter

        if self.uploader is not None and self.upload_sizes:
            if self.downloader.delay > 0:
                await asyncio.sleep(self.downloader.delay)
            ul = await self.uploader.test(self.upload_sizes)
            result.upload_mbps = ul.speeds(self.profile.upload_factor)
            result.samples.extend(ul.samples)

        logger.info(
            "%s: %d/%d download and %d/%d upload probes succeeded",
            self.name,
            len(result.download_mbps), len(self.targets),
            len(result.upload_mbps), len(self.upload_sizes) if self.uploader else 0,
        )
        return result


# ---------------------------------------------------------------------------
# Remote report
# ---------------------------------------------------------------------------

class LibreSpeedMethod(BandwidthMeasurementMethod):
    """
    Ask a LibreSpeed-compatible ``api.php`` for a finished measurement.

    The endpoint answers ``{"ping", "jitter", "dl", "ul", "server"}`` with
    speeds already in Mbps, so no calibration factor is applied.
    """

    name = METHOD_LIBRESPEED

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout

    async def measure(self) -> MethodResult:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {**COMMON_HEADERS, "Content-Type": "application/json"}

        try:
            async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
                async with session.get(self.url) as resp:
                    resp.raise_for_status()
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise MethodExhausted(self.name, f"timed out after {self.timeout:.1f}s")
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            raise MethodExhausted(self.name, str(exc) or type(exc).__name__) from exc

        if not isinstance(data, dict):
            raise MethodExhausted(self.name, "unexpected response shape")

        download = _positive(data.get("dl"))
        if download is None:
            raise MethodExhausted(self.name, "response carried no download figure")
        upload = _positive(data.get("ul"))

        server = data.get("server")
        return MethodResult(
            method=self.name,
            download_mbps=[download],
            upload_mbps=[upload] if upload is not None else [],
            ping=_non_negative(data.get("ping")),
            jitter=_non_negative(data.get("jitter")),
            server=str(server) if server else None,
        )


def _positive(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number > 0 else None


def _non_negative(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number >= 0 else None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_methods(
    config: Dict[str, Any],
    profile: CalibrationProfile,
    clock: Callable[[], float] = time.perf_counter,
) -> List[BandwidthMeasurementMethod]:
    """Instantiate the configured methods, in fallback order."""
    delay = float(config["probe_delay"])
    methods: List[BandwidthMeasurementMethod] = []

    for name in config["methods"]:
        if name == METHOD_PRIMARY:
            timeout = float(config["probe_timeout"])
            methods.append(ProbeMethod(
                name=METHOD_PRIMARY,
                targets=parse_targets(config["download_urls"]),
                profile=profile,
                downloader=DownloadTester(timeout=timeout, delay=delay, clock=clock),
                uploader=UploadTester(
                    config["upload_url"],
                    encoding=config["upload_encoding"],
                    timeout=timeout,
                    delay=delay,
                    clock=clock,
                ),
                upload_sizes=[int(s) for s in config["upload_sizes"]],
                latency=LatencyTester(
                    config["ping_url"], count=int(config["ping_count"]), clock=clock
                ),
            ))
        elif name == METHOD_FALLBACK:
            timeout = float(config["fallback_probe_timeout"])
            methods.append(ProbeMethod(
                name=METHOD_FALLBACK,
                targets=parse_targets(config["fallback_download_urls"]),
                profile=profile,
                downloader=DownloadTester(timeout=timeout, delay=delay, clock=clock),
            ))
        elif name == METHOD_LIBRESPEED:
            methods.append(LibreSpeedMethod(
                config["librespeed_url"], timeout=float(config["fallback_probe_timeout"])
            ))
        else:
            raise ValueError(f"Unknown measurement method: {name}")

    return methods
