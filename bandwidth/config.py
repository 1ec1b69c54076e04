"""
Service configuration file support.

Reads/writes ``~/.speedcheck/config.json``.  The location can be moved with
the ``SPEEDCHECK_CONFIG`` environment variable or ``--config`` on the
command line.

Supported keys::

    host = "0.0.0.0"             # HTTP listen address
    port = 5000
    log_level = "INFO"
    log_file = ""                # empty -> console only
    require_auth = false         # bearer token on /api/speedtest
    api_tokens = {}              # token -> user id
    methods = ["primary", "fallback"]
    download_urls = [...]        # primary download targets
    fallback_download_urls = [...]
    upload_url = "https://httpbin.org/post"
    upload_sizes = [1048576]
    upload_encoding = "raw"      # raw | json
    probe_timeout = 15.0
    fallback_probe_timeout = 10.0
    probe_delay = 0.5
    ping_url = "..."
    ping_count = 5               # 0 disables the latency probe
    librespeed_url = "..."
    calibration = {...}          # see CalibrationProfile
"""
from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .constants import (
    DEFAULT_DOWNLOAD_URLS,
    DEFAULT_FALLBACK_DOWNLOAD_URLS,
    DEFAULT_HOST,
    DEFAULT_LIBRESPEED_URL,
    DEFAULT_PING_COUNT,
    DEFAULT_PING_URL,
    DEFAULT_PORT,
    DEFAULT_PROBE_DELAY,
    DEFAULT_FALLBACK_PROBE_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_UPLOAD_SIZES,
    DEFAULT_UPLOAD_URL,
    KNOWN_METHODS,
    MAX_PING_COUNT,
    MAX_PORT,
    MAX_PROBE_DELAY,
    MAX_PROBE_TIMEOUT,
    MAX_UPLOAD_SIZE,
    METHOD_FALLBACK,
    METHOD_PRIMARY,
    MIN_PING_COUNT,
    MIN_PORT,
    MIN_PROBE_DELAY,
    MIN_PROBE_TIMEOUT,
    UPLOAD_ENCODINGS,
)
from .stats import round_to_precision

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "SPEEDCHECK_CONFIG"
_CONFIG_DIR = os.path.join(Path.home(), ".speedcheck")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.environ.get(ENV_CONFIG_PATH) or os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Calibration profile
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CalibrationProfile:
    """Process-wide estimation constants, built once and passed explicitly.

    ``download_factor`` / ``upload_factor`` multiply raw Mbps to compensate
    for HTTP overhead.  ``upload_to_download_ratio`` derives an upload figure
    when no upload probe succeeded; ``upload_ratio_range`` (low, high) makes
    that ratio uniformly random instead.  ``minimum_floor_mbps`` must sit on
    the rounding grid selected by ``precision_decimals`` / ``coarse_rounding``.
    """

    download_factor: float = 1.0
    upload_factor: float = 1.0
    upload_to_download_ratio: float = 0.35
    upload_ratio_range: Optional[Tuple[float, float]] = None
    minimum_floor_mbps: float = 1.0
    precision_decimals: int = 2
    coarse_rounding: bool = False

    def __post_init__(self) -> None:
        if self.download_factor <= 0 or self.upload_factor <= 0:
            raise ValueError("Calibration factors must be > 0")
        if self.upload_to_download_ratio <= 0:
            raise ValueError("upload_to_download_ratio must be > 0")
        if self.upload_ratio_range is not None:
            low, high = self.upload_ratio_range
            if not 0 < low <= high:
                raise ValueError("upload_ratio_range must satisfy 0 < low <= high")
        if self.minimum_floor_mbps < 0:
            raise ValueError("minimum_floor_mbps must be >= 0")
        if not 0 <= self.precision_decimals <= 6:
            raise ValueError("precision_decimals must be between 0 and 6")

        on_grid = round_to_precision(
            self.minimum_floor_mbps, self.precision_decimals, self.coarse_rounding
        )
        if on_grid != self.minimum_floor_mbps:
            raise ValueError(
                f"minimum_floor_mbps {self.minimum_floor_mbps} is not representable "
                f"at the configured precision (nearest: {on_grid})"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CalibrationProfile:
        ratio_range = data.get("upload_ratio_range")
        return cls(
            download_factor=float(data.get("download_factor", 1.0)),
            upload_factor=float(data.get("upload_factor", 1.0)),
            upload_to_download_ratio=float(data.get("upload_to_download_ratio", 0.35)),
            upload_ratio_range=(
                (float(ratio_range[0]), float(ratio_range[1])) if ratio_range else None
            ),
            minimum_floor_mbps=float(data.get("minimum_floor_mbps", 1.0)),
            precision_decimals=int(data.get("precision_decimals", 2)),
            coarse_rounding=bool(data.get("coarse_rounding", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.upload_ratio_range is not None:
            data["upload_ratio_range"] = list(self.upload_ratio_range)
        return data


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "log_level": "INFO",
    "log_file": "",
    "require_auth": False,
    "api_tokens": {},
    "methods": [METHOD_PRIMARY, METHOD_FALLBACK],
    "download_urls": list(DEFAULT_DOWNLOAD_URLS),
    "fallback_download_urls": list(DEFAULT_FALLBACK_DOWNLOAD_URLS),
    "upload_url": DEFAULT_UPLOAD_URL,
    "upload_sizes": list(DEFAULT_UPLOAD_SIZES),
    "upload_encoding": "raw",
    "probe_timeout": DEFAULT_PROBE_TIMEOUT,
    "fallback_probe_timeout": DEFAULT_FALLBACK_PROBE_TIMEOUT,
    "probe_delay": DEFAULT_PROBE_DELAY,
    "ping_url": DEFAULT_PING_URL,
    "ping_count": DEFAULT_PING_COUNT,
    "librespeed_url": DEFAULT_LIBRESPEED_URL,
    "calibration": CalibrationProfile().to_dict(),
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = path or _config_path()
    config = copy.deepcopy(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        calibration = user.pop("calibration", None)
        config.update(user)
        if isinstance(calibration, dict):
            config["calibration"].update(calibration)

    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = path or _config_path()
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str, path: Optional[str] = None) -> Any:
    """Get a single config value."""
    return load_config(path).get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any, path: Optional[str] = None) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config(path)
    config[key] = value
    return save_config(config, path)


# ---------------------------------------------------------------------------
# Derived objects
# ---------------------------------------------------------------------------

def load_profile(config: Dict[str, Any]) -> CalibrationProfile:
    """Build the calibration profile from a loaded config dict."""
    return CalibrationProfile.from_dict(config.get("calibration") or {})


def validate_config(config: Dict[str, Any]) -> None:
    """Raise ``ValueError`` if any setting is out of range."""
    if not MIN_PORT <= int(config["port"]) <= MAX_PORT:
        raise ValueError(f"Port must be between {MIN_PORT} and {MAX_PORT}")
    for key in ("probe_timeout", "fallback_probe_timeout"):
        if not MIN_PROBE_TIMEOUT <= float(config[key]) <= MAX_PROBE_TIMEOUT:
            raise ValueError(
                f"{key} must be between {MIN_PROBE_TIMEOUT} and {MAX_PROBE_TIMEOUT} s"
            )
    if not MIN_PROBE_DELAY <= float(config["probe_delay"]) <= MAX_PROBE_DELAY:
        raise ValueError(
            f"probe_delay must be between {MIN_PROBE_DELAY} and {MAX_PROBE_DELAY} s"
        )
    if not MIN_PING_COUNT <= int(config["ping_count"]) <= MAX_PING_COUNT:
        raise ValueError(f"ping_count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if config["upload_encoding"] not in UPLOAD_ENCODINGS:
        raise ValueError(f"upload_encoding must be one of {', '.join(UPLOAD_ENCODINGS)}")
    for size in config["upload_sizes"]:
        if not 0 < int(size) <= MAX_UPLOAD_SIZE:
            raise ValueError(f"upload sizes must be between 1 and {MAX_UPLOAD_SIZE} bytes")
    methods = config["methods"]
    if not methods:
        raise ValueError("At least one measurement method is required")
    unknown = [m for m in methods if m not in KNOWN_METHODS]
    if unknown:
        raise ValueError(f"Unknown measurement method(s): {', '.join(unknown)}")
    load_profile(config)
