"""
Run one guardrail in this process.

    python -X faulthandler -m codec_guardrails.guardrails <name>

This is what the runner spawns for every guardrail. Exit status is the
guardrail's verdict: 0 passed, 1 failed.
"""

from __future__ import annotations

import argparse
import sys

from codec_guardrails.guardrails import GUARDRAILS, get_guardrail, run_guardrail


def main(args: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m codec_guardrails.guardrails",
        description="Run a single guardrail against the configured codec target",
    )
    parser.add_argument("name", choices=[g.name for g in GUARDRAILS], help="Guardrail to run")
    parsed = parser.parse_args(args)

    return run_guardrail(get_guardrail(parsed.name))


if __name__ == "__main__":
    sys.exit(main())
