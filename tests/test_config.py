"""Tests for bandwidth.config -- persistence, validation, calibration profile."""

import copy
import json
import os
import tempfile
import unittest
from unittest import mock

from bandwidth.config import (
    DEFAULTS,
    ENV_CONFIG_PATH,
    CalibrationProfile,
    _config_path,
    get_config_value,
    load_config,
    load_profile,
    save_config,
    set_config_value,
    validate_config,
)


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("host", "port", "log_level", "log_file", "require_auth", "api_tokens",
                    "methods", "download_urls", "fallback_download_urls", "upload_url",
                    "upload_sizes", "upload_encoding", "probe_timeout",
                    "fallback_probe_timeout", "probe_delay", "ping_url", "ping_count",
                    "librespeed_url", "calibration"):
            self.assertIn(key, DEFAULTS)

    def test_defaults_are_valid(self):
        validate_config(copy.deepcopy(DEFAULTS))

    def test_default_chain(self):
        self.assertEqual(DEFAULTS["methods"], ["primary", "fallback"])


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("bandwidth.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["port"], 5000)
                self.assertEqual(cfg["probe_delay"], 0.5)

    def test_load_does_not_alias_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            cfg = load_config(path)
            cfg["download_urls"].append("http://example.invalid/")
            cfg["calibration"]["download_factor"] = 9.0
            self.assertNotIn("http://example.invalid/", DEFAULTS["download_urls"])
            self.assertEqual(DEFAULTS["calibration"]["download_factor"], 1.0)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("bandwidth.config._config_path", return_value=path):
                save_config({"port": 8080, "ping_count": 3})
                cfg = load_config()
                self.assertEqual(cfg["port"], 8080)
                self.assertEqual(cfg["ping_count"], 3)
                # Defaults still present
                self.assertEqual(cfg["upload_encoding"], "raw")

    def test_calibration_merged_key_by_key(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                json.dump({"calibration": {"upload_to_download_ratio": 0.5}}, f)
            cfg = load_config(path)
            self.assertEqual(cfg["calibration"]["upload_to_download_ratio"], 0.5)
            self.assertEqual(cfg["calibration"]["minimum_floor_mbps"], 1.0)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("bandwidth.config._config_path", return_value=path):
                with self.assertLogs("bandwidth.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["port"], 5000)

    def test_get_set_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("bandwidth.config._config_path", return_value=path):
                set_config_value("probe_delay", 1.5)
                self.assertEqual(get_config_value("probe_delay"), 1.5)

    def test_save_creates_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "nested", "config.json")
            self.assertEqual(save_config({"port": 6000}, path), path)
            self.assertTrue(os.path.isfile(path))

    def test_env_var_overrides_location(self):
        with mock.patch.dict(os.environ, {ENV_CONFIG_PATH: "/tmp/elsewhere.json"}):
            self.assertEqual(_config_path(), "/tmp/elsewhere.json")


class TestValidateConfig(unittest.TestCase):
    def _config(self, **overrides):
        cfg = copy.deepcopy(DEFAULTS)
        cfg.update(overrides)
        return cfg

    def test_port_out_of_range(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(port=0))
        with self.assertRaises(ValueError):
            validate_config(self._config(port=70000))

    def test_timeout_out_of_range(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(probe_timeout=0.1))
        with self.assertRaises(ValueError):
            validate_config(self._config(fallback_probe_timeout=500))

    def test_negative_delay(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(probe_delay=-1))

    def test_ping_count_zero_allowed(self):
        validate_config(self._config(ping_count=0))

    def test_unknown_encoding(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(upload_encoding="multipart"))

    def test_bad_upload_size(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(upload_sizes=[0]))

    def test_empty_methods(self):
        with self.assertRaises(ValueError):
            validate_config(self._config(methods=[]))

    def test_unknown_method(self):
        with self.assertRaises(ValueError) as ctx:
            validate_config(self._config(methods=["primary", "carrier-pigeon"]))
        self.assertIn("carrier-pigeon", str(ctx.exception))

    def test_bad_profile(self):
        cfg = self._config()
        cfg["calibration"]["download_factor"] = 0
        with self.assertRaises(ValueError):
            validate_config(cfg)


class TestCalibrationProfile(unittest.TestCase):
    def test_defaults(self):
        p = CalibrationProfile()
        self.assertEqual(p.download_factor, 1.0)
        self.assertEqual(p.upload_to_download_ratio, 0.35)
        self.assertEqual(p.minimum_floor_mbps, 1.0)
        self.assertIsNone(p.upload_ratio_range)

    def test_floor_must_sit_on_grid(self):
        with self.assertRaises(ValueError):
            CalibrationProfile(minimum_floor_mbps=1.0, coarse_rounding=True)
        with self.assertRaises(ValueError):
            CalibrationProfile(minimum_floor_mbps=0.05, precision_decimals=1)
        CalibrationProfile(minimum_floor_mbps=10.0, coarse_rounding=True)

    def test_invalid_ratio_range(self):
        with self.assertRaises(ValueError):
            CalibrationProfile(upload_ratio_range=(0.5, 0.2))
        with self.assertRaises(ValueError):
            CalibrationProfile(upload_ratio_range=(0.0, 0.2))

    def test_non_positive_factor(self):
        with self.assertRaises(ValueError):
            CalibrationProfile(upload_factor=-1.0)

    def test_from_dict_to_dict(self):
        data = {
            "download_factor": 1.2,
            "upload_ratio_range": [0.2, 0.5],
            "precision_decimals": 1,
        }
        p = CalibrationProfile.from_dict(data)
        self.assertEqual(p.upload_ratio_range, (0.2, 0.5))
        d = p.to_dict()
        self.assertEqual(d["upload_ratio_range"], [0.2, 0.5])
        self.assertEqual(d["download_factor"], 1.2)
        self.assertEqual(CalibrationProfile.from_dict(d), p)

    def test_load_profile(self):
        cfg = copy.deepcopy(DEFAULTS)
        cfg["calibration"]["upload_factor"] = 1.1
        self.assertEqual(load_profile(cfg).upload_factor, 1.1)

    def test_profile_is_frozen(self):
        p = CalibrationProfile()
        with self.assertRaises(AttributeError):
            p.download_factor = 2.0


if __name__ == "__main__":
    unittest.main()
