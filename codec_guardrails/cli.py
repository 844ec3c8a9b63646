"""
CLI - Command-line entry point for the guardrail gate.

Thin wrapper over config + runner. With no arguments every guardrail runs
and the exit status is the CI verdict.
"""

from __future__ import annotations

import argparse
import sys

from codec_guardrails.config import HarnessConfig
from codec_guardrails.errors import GuardrailError


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    from codec_guardrails.guardrails import GUARDRAILS

    parser = argparse.ArgumentParser(
        prog="codec-guardrails",
        description="Release gate for the video encoding library: memory, "
        "responsiveness, input safety and throughput guardrails",
    )
    parser.add_argument(
        "--only",
        action="append",
        choices=[g.name for g in GUARDRAILS],
        metavar="NAME",
        help="Run only this guardrail (repeatable)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-guardrail timeout in seconds (default: GUARDRAILS_TIMEOUT or 300)",
    )
    parser.add_argument("--list", action="store_true", help="List guardrails and exit")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    parsed = parser.parse_args(args)

    if parsed.version:
        from codec_guardrails import __version__
        print(f"codec-guardrails {__version__}")
        return 0

    if parsed.list:
        return _cmd_list()

    return _cmd_run(parsed)


def _cmd_list() -> int:
    """List registered guardrails in execution order."""
    from codec_guardrails.config import DEFAULT_SEVERITIES, Severity
    from codec_guardrails.guardrails import GUARDRAILS

    print("Guardrails (execution order):")
    print()
    for guardrail in GUARDRAILS:
        severity = DEFAULT_SEVERITIES.get(guardrail.name, Severity.BLOCKING)
        print(f"  {guardrail.name:15} - {guardrail.title} ({severity.value})")

    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    """Run the selected guardrails and return the aggregate verdict."""
    from dataclasses import replace

    from codec_guardrails.runner import Runner, default_specs

    try:
        config = HarnessConfig.from_env()
        if args.timeout is not None:
            config = replace(config, timeout_seconds=args.timeout)
    except GuardrailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    specs = default_specs(config, names=args.only)
    results = Runner(target=config.target).run(specs)
    return Runner.exit_code(results)


if __name__ == "__main__":
    sys.exit(main())
