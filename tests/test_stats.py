"""Unit tests for bandwidth.stats -- estimator, aggregator, rounding."""

import math
import statistics
import unittest

from bandwidth.errors import DirectionUnmeasured
from bandwidth.stats import (
    DOWNLOAD,
    UPLOAD,
    DirectionStats,
    Sample,
    aggregate,
    calculate_jitter,
    complete_sample,
    estimate_samples,
    finalize,
    format_latency,
    format_speed,
    round_to_precision,
    synthesize_upload,
    throughput_mbps,
)


class TestThroughput(unittest.TestCase):
    def test_reference_scenario(self):
        sizes = [2_000_000, 5_000_000, 10_000_000]
        elapsed = [0.5, 1.2, 2.0]
        speeds = [throughput_mbps(b, t) for b, t in zip(sizes, elapsed)]

        self.assertAlmostEqual(speeds[0], 32.0)
        self.assertAlmostEqual(speeds[1], 33.333333, places=5)
        self.assertAlmostEqual(speeds[2], 40.0)

        mean = statistics.mean(speeds)
        self.assertAlmostEqual(mean, 35.1111, places=3)
        self.assertEqual(round_to_precision(mean, 1), 35.1)

    def test_calibration_factor_scales(self):
        self.assertAlmostEqual(throughput_mbps(1_000_000, 1.0, 1.5), 12.0)

    def test_positive_and_finite(self):
        for size, secs in [(1, 0.001), (10 ** 9, 0.001), (1, 3600.0), (12345, 0.75)]:
            mbps = throughput_mbps(size, secs)
            self.assertGreater(mbps, 0)
            self.assertTrue(math.isfinite(mbps))

    def test_zero_elapsed_rejected(self):
        with self.assertRaises(ValueError):
            throughput_mbps(1000, 0.0)

    def test_sub_millisecond_rejected(self):
        with self.assertRaises(ValueError):
            throughput_mbps(1000, 0.0005)

    def test_nan_elapsed_rejected(self):
        with self.assertRaises(ValueError):
            throughput_mbps(1000, float("nan"))

    def test_negative_bytes_rejected(self):
        with self.assertRaises(ValueError):
            throughput_mbps(-1, 1.0)


class TestCompleteSample(unittest.TestCase):
    def test_success(self):
        s = complete_sample(Sample(kind=DOWNLOAD), 2_000_000, 0.5, expected_bytes=2_000_000)
        self.assertTrue(s.succeeded)
        self.assertEqual(s.byte_size, 2_000_000)
        self.assertIsNone(s.error)
        self.assertAlmostEqual(s.throughput(), 32.0)

    def test_zero_elapsed_fails(self):
        s = complete_sample(Sample(kind=DOWNLOAD), 1000, 0.0)
        self.assertFalse(s.succeeded)
        self.assertEqual(s.byte_size, 0)
        self.assertIn("timer resolution", s.error)

    def test_empty_body_fails(self):
        s = complete_sample(Sample(kind=UPLOAD), 0, 1.0)
        self.assertFalse(s.succeeded)
        self.assertEqual(s.error, "empty body")

    def test_truncated_body_fails(self):
        s = complete_sample(Sample(kind=DOWNLOAD), 500, 1.0, expected_bytes=1000)
        self.assertFalse(s.succeeded)
        self.assertIn("truncated", s.error)

    def test_unknown_expected_size_accepts_any_body(self):
        s = complete_sample(Sample(kind=DOWNLOAD), 500, 1.0)
        self.assertTrue(s.succeeded)

    def test_estimate_skips_failed(self):
        ok = complete_sample(Sample(kind=DOWNLOAD), 1_000_000, 1.0)
        bad = complete_sample(Sample(kind=DOWNLOAD), 1_000_000, 0.0)
        self.assertEqual(estimate_samples([bad, ok]), [8.0])
        self.assertEqual(estimate_samples([bad]), [])

    def test_to_dict(self):
        s = complete_sample(Sample(kind=DOWNLOAD, url="http://x/", status=200), 10, 0.125)
        d = s.to_dict()
        self.assertEqual(d["bytes"], 10)
        self.assertEqual(d["elapsed_s"], 0.125)
        self.assertTrue(d["succeeded"])


class TestAggregate(unittest.TestCase):
    def test_mean_min_max(self):
        stats = aggregate([32.0, 40.0, 36.0])
        self.assertAlmostEqual(stats.mean, 36.0)
        self.assertEqual(stats.min, 32.0)
        self.assertEqual(stats.max, 40.0)
        self.assertEqual(stats.count, 3)

    def test_empty_raises_with_kind(self):
        with self.assertRaises(DirectionUnmeasured) as ctx:
            aggregate([], UPLOAD)
        self.assertEqual(ctx.exception.kind, UPLOAD)

    def test_to_dict_rounds(self):
        d = aggregate([1.234, 5.678]).to_dict()
        self.assertEqual(d, {"mean": 3.46, "min": 1.23, "max": 5.68, "count": 2})

    def test_calculate_on_empty_is_noop(self):
        stats = DirectionStats()
        stats.calculate()
        self.assertEqual(stats.count, 0)


class TestRounding(unittest.TestCase):
    def test_idempotent_decimals(self):
        for value in [0.0, 1.005, 35.1111, 99.995, 1234.5678]:
            for decimals in (0, 1, 2, 3):
                once = round_to_precision(value, decimals)
                self.assertEqual(round_to_precision(once, decimals), once)

    def test_idempotent_coarse(self):
        for value in [0.0, 4.9, 5.0, 35.0, 44.99, 45.0, 1234.5]:
            once = round_to_precision(value, coarse=True)
            self.assertEqual(round_to_precision(once, coarse=True), once)

    def test_coarse_half_up(self):
        self.assertEqual(round_to_precision(35.0, coarse=True), 40.0)
        self.assertEqual(round_to_precision(45.0, coarse=True), 50.0)
        self.assertEqual(round_to_precision(34.9, coarse=True), 30.0)

    def test_finalize_applies_floor(self):
        self.assertEqual(finalize(0.3, 1.0), 1.0)
        self.assertEqual(finalize(12.3456, 1.0), 12.35)
        self.assertEqual(finalize(3.0, 10.0, coarse=True), 10.0)
        self.assertEqual(finalize(37.0, 10.0, coarse=True), 40.0)

    def test_finalize_never_below_floor(self):
        for value in [0.0, 0.001, 0.5, 0.999, 1.0, 2.5]:
            self.assertGreaterEqual(finalize(value, 1.0), 1.0)

    def test_finalize_idempotent(self):
        once = finalize(7.777, 1.0, 1)
        self.assertEqual(finalize(once, 1.0, 1), once)


class TestSynthesizeUpload(unittest.TestCase):
    def test_ratio(self):
        self.assertAlmostEqual(synthesize_upload(40.0, 0.35), 14.0)

    def test_non_positive_ratio_rejected(self):
        with self.assertRaises(ValueError):
            synthesize_upload(40.0, 0.0)


class TestJitter(unittest.TestCase):
    def test_single_sample(self):
        self.assertEqual(calculate_jitter([10.0]), 0.0)

    def test_consecutive_differences(self):
        self.assertAlmostEqual(calculate_jitter([10.0, 12.0, 11.0]), 1.5)


class TestFormatting(unittest.TestCase):
    def test_format_speed(self):
        self.assertEqual(format_speed(35.111), "35.11 Mbps")
        self.assertEqual(format_speed(1500.0), "1.50 Gbps")

    def test_format_latency(self):
        self.assertEqual(format_latency(None), "n/a")
        self.assertEqual(format_latency(12.34), "12.3 ms")
        self.assertEqual(format_latency(1500.0), "1.50 s")


if __name__ == "__main__":
    unittest.main()
