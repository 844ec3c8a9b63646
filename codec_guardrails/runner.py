"""
Guardrail Runner - Run every guardrail in its own process, decide the CI gate.

Each GuardrailSpec is executed as a child process. Its output is copied to
the runner's stream line by line as it arrives and also kept on the
result. A crash (for example a segfault in native encoder code) only ends
that child; the runner records it and moves on to the next guardrail.

Exit status mapping:
    0                   -> PASSED
    1                   -> FAILED   (guardrail reported a breach)
    killed on timeout   -> TIMED_OUT
    anything else       -> CRASHED  (signal, abort, interpreter failure)

Usage:
    runner = Runner()
    results = runner.run(default_specs(HarnessConfig.from_env()))
    sys.exit(Runner.exit_code(results))
"""

from __future__ import annotations

import math
import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterable, Mapping, Sequence, TextIO

from codec_guardrails.config import DEFAULT_TIMEOUT_SECONDS, HarnessConfig
from codec_guardrails.guardrails import EXIT_FAILED, EXIT_PASSED, GUARDRAILS, get_guardrail

# How long to wait for the output pipe to drain after the child exits.
# A grandchild that inherited the pipe can keep it open indefinitely.
PIPE_DRAIN_TIMEOUT = 5.0

RULE_WIDTH = 50


class Outcome(Enum):
    """Result of one guardrail invocation, as seen from outside the process."""

    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CRASHED = "crashed"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").upper()


@dataclass(frozen=True)
class GuardrailSpec:
    """How to launch one guardrail.

    Attributes:
        name: Display name.
        executable: Program to run.
        args: Arguments passed to the program.
        timeout: Wall-clock limit in seconds.
    """

    name: str
    executable: str
    args: tuple[str, ...] = ()
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not math.isfinite(self.timeout) or self.timeout <= 0:
            raise ValueError(f"timeout must be a finite number > 0, got {self.timeout!r}")

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.args]


@dataclass(frozen=True)
class GuardrailResult:
    """What the runner observed for one GuardrailSpec."""

    name: str
    outcome: Outcome
    duration: float
    output: str
    returncode: int | None = None

    @property
    def passed(self) -> bool:
        return self.outcome == Outcome.PASSED


def classify(returncode: int) -> Outcome:
    """Map a child exit status to an Outcome (timeouts are decided separately)."""
    if returncode == EXIT_PASSED:
        return Outcome.PASSED
    if returncode == EXIT_FAILED:
        return Outcome.FAILED
    return Outcome.CRASHED


def describe_returncode(returncode: int | None) -> str:
    if returncode is None:
        return "process did not start"
    if returncode < 0:
        try:
            return f"terminated by signal {signal.Signals(-returncode).name}"
        except ValueError:
            return f"terminated by signal {-returncode}"
    return f"exit code {returncode}"


def default_specs(
    config: HarnessConfig,
    names: Iterable[str] | None = None,
    executable: str | None = None,
) -> list[GuardrailSpec]:
    """One spec per registered guardrail, in registry order.

    Args:
        config: Supplies the timeout.
        names: Restrict to these guardrail names (registry order is kept).
        executable: Interpreter to launch (default: the current one).
    """
    selected = set(names) if names is not None else None
    if selected is not None:
        for name in selected:
            get_guardrail(name)

    return [
        GuardrailSpec(
            name=guardrail.title,
            executable=executable or sys.executable,
            args=("-X", "faulthandler", "-m", "codec_guardrails.guardrails", guardrail.name),
            timeout=config.timeout_seconds,
        )
        for guardrail in GUARDRAILS
        if selected is None or guardrail.name in selected
    ]


class Runner:
    """Runs guardrail processes sequentially and aggregates their outcomes.

    Args:
        stream: Where live child output and the report go (default: stdout).
        env: Environment for children (default: os.environ).
        cwd: Working directory for children.
        target: Codec target the children load, shown in the header and report.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        target: str | None = None,
    ):
        self.target = target
        self._stream = stream
        self._env = env
        self._cwd = cwd
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _write(self, text: str) -> None:
        with self._lock:
            self.stream.write(text)
            self.stream.flush()

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ if self._env is None else self._env)
        env["PYTHONUNBUFFERED"] = "1"
        return env

    def _pump(self, pipe: IO[bytes], lines: list[str]) -> None:
        for raw in iter(pipe.readline, b""):
            text = raw.decode("utf-8", errors="replace")
            lines.append(text)
            self._write(text)

    def run_one(self, spec: GuardrailSpec) -> GuardrailResult:
        """Run a single guardrail process to completion (or timeout)."""
        self._write(f"\n>>> {spec.name}...\n{'-' * RULE_WIDTH}\n")
        start = time.perf_counter()

        try:
            proc = subprocess.Popen(
                spec.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self._child_env(),
                cwd=self._cwd,
            )
        except OSError as exc:
            message = f"Failed to start {spec.command[0]!r}: {exc}"
            self._write(f"    Error: {message}\n<<< {spec.name}: {Outcome.CRASHED.label}\n")
            return GuardrailResult(
                name=spec.name,
                outcome=Outcome.CRASHED,
                duration=time.perf_counter() - start,
                output=message,
            )

        lines: list[str] = []
        reader = threading.Thread(
            target=self._pump,
            args=(proc.stdout, lines),
            name=f"guardrail-output-{spec.name}",
            daemon=True,
        )
        reader.start()

        timed_out = False
        try:
            returncode = proc.wait(timeout=spec.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            proc.kill()
            returncode = proc.wait()

        reader.join(timeout=PIPE_DRAIN_TIMEOUT)
        if not reader.is_alive() and proc.stdout is not None:
            proc.stdout.close()
        duration = time.perf_counter() - start

        if timed_out:
            outcome = Outcome.TIMED_OUT
            self._write(f"    Error: timed out after {spec.timeout:g}s\n")
        else:
            outcome = classify(returncode)
            if outcome != Outcome.PASSED:
                self._write(f"    Error: {describe_returncode(returncode)}\n")

        self._write(f"<<< {spec.name}: {outcome.label} ({duration:.2f}s)\n")
        return GuardrailResult(
            name=spec.name,
            outcome=outcome,
            duration=duration,
            output="".join(lines),
            returncode=returncode,
        )

    def run(self, specs: Sequence[GuardrailSpec]) -> list[GuardrailResult]:
        """Run every spec in order, then write the report.

        A failing, crashing or hanging guardrail never stops the rest.
        """
        header = "Running Guardrail Tests"
        if self.target:
            header += f" (target={self.target})"
        self._write(f"{header}\n{'=' * RULE_WIDTH}\n")
        results = [self.run_one(spec) for spec in specs]
        self._write(self.report(results, target=self.target))
        return results

    @staticmethod
    def report(results: Sequence[GuardrailResult], target: str | None = None) -> str:
        passed = sum(1 for r in results if r.passed)
        failed = len(results) - passed
        width = max((len(r.name) for r in results), default=10)

        lines = ["", "=" * RULE_WIDTH]
        if target:
            lines.append(f"Target: {target}")
        for r in results:
            lines.append(f"  {r.name:<{width}}  {r.outcome.label:<10} {r.duration:7.2f}s")
        lines.append("-" * RULE_WIDTH)
        lines.append(f"Guardrails: {passed} passed, {failed} failed")
        return "\n".join(lines) + "\n"

    @staticmethod
    def exit_code(results: Sequence[GuardrailResult]) -> int:
        """0 iff every guardrail passed."""
        return 0 if all(r.passed for r in results) else 1
