"""Local deterministic stub backend for integration tests and demos.

Reads the prompt from stdin (or ``--prompt-file``) and behaves according to
``--mode``:

- ``echo``: print the prompt and exit 0.
- ``json``: print ``{"result": <prompt>}`` and exit 0.
- ``stream``: print ``partial-<n>`` and hang until terminated; ``n`` counts
  invocations through ``--counter-file``.
- ``fail``: print ``--message`` to stderr and exit with ``--exit-code``.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Run one stub backend invocation."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--mode", choices=("echo", "json", "stream", "fail"), default="echo")
    parser.add_argument("--prompt-file", default=None)
    parser.add_argument("--counter-file", default=None)
    parser.add_argument("--message", default="boom")
    parser.add_argument("--exit-code", type=int, default=1)
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--noise", action="store_true")
    parser.add_argument("--ignore-sigterm", action="store_true")
    args = parser.parse_args(argv)

    if args.ignore_sigterm:
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    prompt = (
        Path(args.prompt_file).read_text("utf-8")
        if args.prompt_file
        else sys.stdin.read()
    ).strip()

    if args.sleep:
        time.sleep(args.sleep)
    if args.noise:
        print("Loaded cached credentials.", flush=True)

    if args.mode == "fail":
        print(args.message, file=sys.stderr, flush=True)
        return args.exit_code
    if args.mode == "json":
        print(json.dumps({"result": prompt}), flush=True)
        return 0
    if args.mode == "stream":
        print(f"partial-{_next_invocation(args.counter_file)}", flush=True)
        while True:
            time.sleep(0.1)

    print(prompt, flush=True)
    return 0


def _next_invocation(counter_file: str | None) -> int:
    if counter_file is None:
        return 1
    path = Path(counter_file)
    count = int(path.read_text("utf-8")) + 1 if path.exists() else 1
    path.write_text(str(count), "utf-8")
    return count


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
