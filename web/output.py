"""
Output formatting -- HTTP response bodies, JSON export, and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict

from bandwidth.latency import LatencyResult
from bandwidth.selector import SpeedTestResult


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_result_json(result: SpeedTestResult) -> Dict[str, Any]:
    """Success body for ``/api/speedtest``."""
    data = result.to_dict()
    return {
        "success": True,
        "download": data["download"],
        "upload": data["upload"],
        "ping": data["ping"],
        "jitter": data["jitter"],
        "server": data["server"],
        "timestamp": data["timestamp"],
        "method": data["method"],
        "uploadEstimated": data["upload_estimated"],
        "testsRun": data["tests_run"],
        "downloadStats": data["download_stats"],
        "uploadStats": data["upload_stats"],
    }


def create_download_json(result: SpeedTestResult) -> Dict[str, Any]:
    """Success body for ``/api/speedtest/download-test``."""
    return {
        "success": True,
        "download": result.download,
        "downloadStats": result.download_stats.to_dict() if result.download_stats else None,
        "server": result.server,
        "testsRun": result.tests_run,
        "method": result.method,
        "timestamp": result.timestamp,
    }


def create_latency_json(result: LatencyResult) -> Dict[str, Any]:
    """Success body for ``/api/speedtest/ping``."""
    data = result.to_dict()
    return {
        "success": True,
        "ping": data["latency_ms"],
        "jitter": data["jitter_ms"],
        "pings": data["pings"],
        "server": data["server"],
        "timestamp": _now(),
    }


def create_error_json(message: str, error: str) -> Dict[str, Any]:
    """The single failure shape every route uses."""
    return {"success": False, "message": message, "error": error}


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


def format_text_result(result: SpeedTestResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    ping = f"{result.ping:.1f} ms" if result.ping is not None else "n/a"
    jitter = f"{result.jitter:.2f} ms" if result.jitter is not None else "n/a"
    upload_note = " (estimated)" if result.upload_estimated else ""
    return (
        f"{sep}\n"
        f"Speed Test Results\n"
        f"{sep}\n"
        f"Method: {result.method}\n"
        f"Server: {result.server or 'n/a'}\n"
        f"{mid}\n"
        f"Ping: {ping} (jitter: {jitter})\n"
        f"Download: {result.download:.2f} Mbps\n"
        f"Upload: {result.upload:.2f} Mbps{upload_note}\n"
        f"{sep}"
    )
