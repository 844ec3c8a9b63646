"""
Tests for the guardrail runner.

Child processes are small `python -c` scripts so each outcome (pass,
failure, crash, hang) can be produced on demand.
"""

import io
import os
import signal
import sys
from pathlib import Path

import pytest

from codec_guardrails.config import HarnessConfig
from codec_guardrails.runner import (
    GuardrailResult,
    GuardrailSpec,
    Outcome,
    Runner,
    classify,
    default_specs,
    describe_returncode,
)

REPO_ROOT = Path(__file__).resolve().parent.parent


def script(name, code, timeout=30.0):
    return GuardrailSpec(name=name, executable=sys.executable, args=("-c", code), timeout=timeout)


PASSING = script("passing", "print('SUCCESS: all good')")
FAILING = script("failing", "import sys; print('FAILURE: too slow'); sys.exit(1)")
EXIT_THREE = script("exit-three", "import sys; sys.exit(3)")
HANGING = script(
    "hanging",
    "import time; print('started', flush=True); time.sleep(60)",
    timeout=1.0,
)


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def runner(stream):
    return Runner(stream=stream)


class TestClassify:
    """Tests for exit status mapping."""

    def test_zero_passes(self):
        assert classify(0) == Outcome.PASSED

    def test_one_fails(self):
        assert classify(1) == Outcome.FAILED

    @pytest.mark.parametrize("returncode", [2, 3, 127, -11, -6])
    def test_anything_else_crashes(self, returncode):
        assert classify(returncode) == Outcome.CRASHED

    def test_describe_signal(self):
        assert describe_returncode(-signal.SIGTERM) == "terminated by signal SIGTERM"

    def test_describe_exit_code(self):
        assert describe_returncode(3) == "exit code 3"

    def test_describe_not_started(self):
        assert describe_returncode(None) == "process did not start"

    def test_outcome_labels(self):
        assert Outcome.TIMED_OUT.label == "TIMED OUT"
        assert Outcome.CRASHED.label == "CRASHED"


class TestGuardrailSpec:
    """Tests for GuardrailSpec."""

    def test_command(self):
        spec = GuardrailSpec("x", "/usr/bin/python3", ("-m", "mod"))
        assert spec.command == ["/usr/bin/python3", "-m", "mod"]

    @pytest.mark.parametrize("timeout", [0, -5.0, float("nan"), float("inf")])
    def test_timeout_must_be_finite_and_positive(self, timeout):
        with pytest.raises(ValueError):
            GuardrailSpec("x", "python", timeout=timeout)


class TestRunOne:
    """Tests for running a single guardrail process."""

    def test_passing(self, runner, stream):
        result = runner.run_one(PASSING)

        assert result.outcome == Outcome.PASSED
        assert result.returncode == 0
        assert "SUCCESS: all good" in result.output
        assert result.duration > 0
        output = stream.getvalue()
        assert ">>> passing..." in output
        assert "SUCCESS: all good" in output
        assert "<<< passing: PASSED" in output

    def test_failing(self, runner):
        result = runner.run_one(FAILING)
        assert result.outcome == Outcome.FAILED
        assert result.returncode == 1
        assert "FAILURE: too slow" in result.output

    def test_unexpected_exit_code_is_crash(self, runner, stream):
        result = runner.run_one(EXIT_THREE)
        assert result.outcome == Outcome.CRASHED
        assert "exit code 3" in stream.getvalue()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_segfault_is_crash(self, runner, stream):
        spec = script("segfault", "import os, signal; os.kill(os.getpid(), signal.SIGSEGV)")
        result = runner.run_one(spec)

        assert result.outcome == Outcome.CRASHED
        assert result.returncode == -signal.SIGSEGV
        assert "terminated by signal SIGSEGV" in stream.getvalue()

    def test_stderr_is_captured(self, runner):
        spec = script("stderr", "import sys; sys.stderr.write('from stderr\\n')")
        assert "from stderr" in runner.run_one(spec).output

    def test_timeout_kills_process(self, runner, stream):
        result = runner.run_one(HANGING)

        assert result.outcome == Outcome.TIMED_OUT
        assert result.duration < 30
        assert "started" in result.output
        assert "timed out after 1s" in stream.getvalue()
        assert "<<< hanging: TIMED OUT" in stream.getvalue()

    def test_missing_executable_is_crash(self, runner):
        spec = GuardrailSpec("missing", "/nonexistent/guardrail-interpreter")
        result = runner.run_one(spec)

        assert result.outcome == Outcome.CRASHED
        assert result.returncode is None
        assert "Failed to start" in result.output

    def test_child_environment(self, stream):
        runner = Runner(stream=stream, env={**os.environ, "GUARDRAILS_MARKER": "present"})
        spec = script(
            "env",
            "import os; print(os.environ['GUARDRAILS_MARKER'], os.environ['PYTHONUNBUFFERED'])",
        )
        assert "present 1" in runner.run_one(spec).output


class TestRun:
    """Tests for running a whole suite."""

    def test_every_spec_runs_despite_failures(self, runner):
        specs = [FAILING, EXIT_THREE, HANGING, PASSING]
        results = runner.run(specs)

        assert [r.name for r in results] == ["failing", "exit-three", "hanging", "passing"]
        assert [r.outcome for r in results] == [
            Outcome.FAILED,
            Outcome.CRASHED,
            Outcome.TIMED_OUT,
            Outcome.PASSED,
        ]

    def test_report(self, runner, stream):
        runner.run([PASSING, FAILING])
        output = stream.getvalue()

        assert output.startswith("Running Guardrail Tests")
        assert output.rstrip().endswith("Guardrails: 1 passed, 1 failed")

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_signal_crash_mid_suite_does_not_stop_later_specs(self, runner, stream):
        segfault = script("segfault", "import os, signal; os.kill(os.getpid(), signal.SIGSEGV)")
        results = runner.run([FAILING, segfault, PASSING])

        assert [r.outcome for r in results] == [Outcome.FAILED, Outcome.CRASHED, Outcome.PASSED]
        assert results[1].returncode == -signal.SIGSEGV
        assert "<<< passing: PASSED" in stream.getvalue()
        assert "Guardrails: 1 passed, 2 failed" in stream.getvalue()

    def test_report_names_target(self, stream):
        runner = Runner(stream=stream, target="mycodec.bindings:webcodecs")
        runner.run([PASSING])
        output = stream.getvalue()

        assert output.startswith("Running Guardrail Tests (target=mycodec.bindings:webcodecs)")
        assert "Target: mycodec.bindings:webcodecs" in Runner.report([], target="mycodec.bindings:webcodecs")
        assert output.count("mycodec.bindings:webcodecs") == 2

    def test_report_without_target(self):
        assert "Target:" not in Runner.report([])

    def test_empty_suite(self, runner, stream):
        assert runner.run([]) == []
        assert "Guardrails: 0 passed, 0 failed" in stream.getvalue()


class TestExitCode:
    """Tests for the aggregate CI verdict."""

    @staticmethod
    def result(outcome):
        return GuardrailResult(name="x", outcome=outcome, duration=0.1, output="")

    def test_all_passed(self):
        assert Runner.exit_code([self.result(Outcome.PASSED)] * 4) == 0

    @pytest.mark.parametrize("outcome", [Outcome.FAILED, Outcome.TIMED_OUT, Outcome.CRASHED])
    def test_any_non_pass_fails(self, outcome):
        results = [self.result(Outcome.PASSED), self.result(outcome), self.result(Outcome.PASSED)]
        assert Runner.exit_code(results) == 1


class TestDefaultSpecs:
    """Tests for the default guardrail suite."""

    def test_order_and_names(self):
        specs = default_specs(HarnessConfig())
        assert [s.name for s in specs] == [
            "Memory Sentinel",
            "Responsiveness Watchdog",
            "Input Fuzzer",
            "Throughput Benchmark",
        ]

    def test_command_line(self):
        spec = default_specs(HarnessConfig(), executable="/opt/python")[0]
        assert spec.command == [
            "/opt/python", "-X", "faulthandler", "-m", "codec_guardrails.guardrails", "memory",
        ]

    def test_timeout_from_config(self):
        specs = default_specs(HarnessConfig(timeout_seconds=12.0))
        assert {s.timeout for s in specs} == {12.0}

    def test_selection_keeps_registry_order(self):
        specs = default_specs(HarnessConfig(), names=["throughput", "memory"])
        assert [s.args[-1] for s in specs] == ["memory", "throughput"]

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown guardrail"):
            default_specs(HarnessConfig(), names=["speed"])


@pytest.mark.slow
class TestGuardrailProcesses:
    """Run real guardrail processes against the reference codec."""

    @staticmethod
    def child_runner(stream, target="reference"):
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
        env["GUARDRAILS_TARGET"] = target
        return Runner(stream=stream, env=env, cwd=str(REPO_ROOT))

    def test_fuzzer_process_passes(self, stream):
        specs = default_specs(HarnessConfig(timeout_seconds=120), names=["fuzzer"])
        results = self.child_runner(stream).run(specs)

        assert results[0].outcome == Outcome.PASSED
        assert "All malformed inputs rejected safely" in results[0].output
        assert "<<< Input Fuzzer: PASSED" in stream.getvalue()

    def test_bad_target_fails_process(self, stream):
        runner = self.child_runner(stream, target="no_such_codec_module_for_tests")
        specs = default_specs(HarnessConfig(timeout_seconds=120), names=["throughput"])
        result = runner.run(specs)[0]

        assert result.outcome == Outcome.FAILED
        assert "Cannot load codec target" in result.output
