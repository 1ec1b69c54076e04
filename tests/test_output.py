"""Tests for web.output -- response bodies, JSON export and text output."""

import json
import os
import tempfile
import unittest

from bandwidth.latency import LatencyResult
from bandwidth.selector import SpeedTestResult
from bandwidth.stats import aggregate
from web.output import (
    create_download_json,
    create_error_json,
    create_latency_json,
    create_result_json,
    format_text_result,
    save_json,
)


def _result(**overrides):
    fields = dict(
        download=40.0,
        upload=14.0,
        method="primary",
        ping=12.345,
        jitter=1.2345,
        server="speed.cloudflare.com",
        upload_estimated=True,
        tests_run=3,
        download_stats=aggregate([32.0, 40.0, 48.0]),
    )
    fields.update(overrides)
    return SpeedTestResult(**fields)


class TestCreateResultJson(unittest.TestCase):
    def test_keys(self):
        data = create_result_json(_result())
        self.assertEqual(
            set(data),
            {"success", "download", "upload", "ping", "jitter", "server", "timestamp",
             "method", "uploadEstimated", "testsRun", "downloadStats", "uploadStats"},
        )
        self.assertTrue(data["success"])
        self.assertEqual(data["ping"], 12.3)
        self.assertEqual(data["jitter"], 1.23)
        self.assertEqual(data["downloadStats"], {"mean": 40.0, "min": 32.0, "max": 48.0, "count": 3})

    def test_serializable(self):
        json.dumps(create_result_json(_result(ping=None, jitter=None)))

    def test_download_json(self):
        data = create_download_json(_result())
        self.assertTrue(data["success"])
        self.assertEqual(data["download"], 40.0)
        self.assertNotIn("upload", data)

    def test_latency_json(self):
        lat = LatencyResult(url="https://speed.cloudflare.com/__down?bytes=0", pings=[10.0, 12.0])
        lat.calculate()
        data = create_latency_json(lat)
        self.assertEqual(data["ping"], 10.0)
        self.assertEqual(data["jitter"], 2.0)
        self.assertEqual(data["server"], "speed.cloudflare.com")

    def test_error_json(self):
        self.assertEqual(
            create_error_json("Speed test failed", "primary: timeout"),
            {"success": False, "message": "Speed test failed", "error": "primary: timeout"},
        )


class TestSaveJson(unittest.TestCase):
    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            save_json({"download": 40.0}, path)
            with open(path) as f:
                self.assertEqual(json.load(f), {"download": 40.0})
            self.assertEqual(os.listdir(tmpdir), ["result.json"])

    def test_missing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "missing", "result.json")
            with self.assertRaises(IOError):
                save_json({}, path)


class TestFormatText(unittest.TestCase):
    def test_estimated_marker(self):
        text = format_text_result(_result())
        self.assertIn("Download: 40.00 Mbps", text)
        self.assertIn("Upload: 14.00 Mbps (estimated)", text)
        self.assertIn("Method: primary", text)

    def test_missing_ping(self):
        text = format_text_result(_result(ping=None, jitter=None, upload_estimated=False))
        self.assertIn("Ping: n/a", text)
        self.assertNotIn("estimated", text)


if __name__ == "__main__":
    unittest.main()
