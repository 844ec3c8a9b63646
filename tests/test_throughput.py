"""
Tests for the Throughput Benchmark guardrail.
"""

import pytest

from codec_guardrails.config import Severity
from codec_guardrails.guardrails import BreachKind, ThroughputBenchmark, VerdictStatus
from codec_guardrails.monitoring import MetricSample, last


class TestThroughputBenchmarkEvaluate:
    """Tests for the verdict derived from the fps sample."""

    def test_fast_enough_passes(self, reference_target, quiet_logger):
        benchmark = ThroughputBenchmark(reference_target, logger=quiet_logger)
        verdict = benchmark.evaluate([MetricSample("fps", 45.2)])
        assert verdict.status == VerdictStatus.PASSED
        assert verdict.message == "45.20 FPS (Target: 30 FPS)"

    def test_exactly_on_target_passes(self, reference_target, quiet_logger):
        benchmark = ThroughputBenchmark(reference_target, logger=quiet_logger)
        assert benchmark.evaluate([MetricSample("fps", 30.0)]).passed

    def test_too_slow_fails(self, reference_target, quiet_logger, log_stream):
        benchmark = ThroughputBenchmark(reference_target, logger=quiet_logger)
        verdict = benchmark.evaluate([MetricSample("fps", 12.5)])
        benchmark.report(verdict)

        assert verdict.status == VerdictStatus.FAILED
        assert verdict.exit_code == 1
        assert verdict.breaches[0].kind == BreachKind.THRESHOLD
        assert verdict.breaches[0].limit == 30.0
        assert "FAILURE: Too slow (12.50 FPS < 30 FPS target)" in log_stream.getvalue()

    def test_advisory_severity_warns(self, reference_target, quiet_logger):
        benchmark = ThroughputBenchmark(
            reference_target, severity=Severity.ADVISORY, logger=quiet_logger
        )
        assert benchmark.evaluate([MetricSample("fps", 1.0)]).status == VerdictStatus.WARNED

    def test_missing_sample_fails(self, reference_target, quiet_logger):
        benchmark = ThroughputBenchmark(reference_target, logger=quiet_logger)
        assert benchmark.evaluate([]).status == VerdictStatus.FAILED

    def test_frames_must_be_positive(self, reference_target):
        with pytest.raises(ValueError):
            ThroughputBenchmark(reference_target, frames=0)


class TestThroughputBenchmarkRun:
    """Tests running the benchmark."""

    def test_small_run(self, reference_target, quiet_logger):
        benchmark = ThroughputBenchmark(
            reference_target, frames=10, width=32, height=32, target_fps=1.0,
            logger=quiet_logger,
        )
        verdict = benchmark.run()

        assert verdict.status == VerdictStatus.PASSED
        fps = last(verdict.samples, "fps").value
        elapsed = last(verdict.samples, "elapsed_s").value
        assert fps == pytest.approx(10 / elapsed)

    def test_result_logs_chunk_totals(self, reference_target, quiet_logger, log_stream):
        benchmark = ThroughputBenchmark(
            reference_target, frames=10, width=32, height=32, target_fps=1.0,
            logger=quiet_logger,
        )
        benchmark.run()

        result_line = next(
            line for line in log_stream.getvalue().splitlines() if "/result: " in line
        )
        assert "chunks=10" in result_line
        assert "key_chunks=1" in result_line
        assert "bytes=" in result_line

    def test_slow_encoder_fails(self, slow_target, quiet_logger):
        benchmark = ThroughputBenchmark(
            slow_target, frames=3, width=8, height=8, logger=quiet_logger
        )
        verdict = benchmark.run()

        # 50ms per frame caps the rate at 20 FPS.
        assert verdict.status == VerdictStatus.FAILED
        assert last(verdict.samples, "fps").value < 30.0
