import sys

from codec_guardrails.cli import main

if __name__ == "__main__":
    sys.exit(main())
