#!/usr/bin/env python3
"""Run the reminder dispatcher.

Starts the reminder and confirmation cadences and, unless `--no-http` is
given, the control-plane API on $PORT. Configuration comes from the
environment; a `.env` file at the repository root is loaded first.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from reminders.adapters.runtime import run_service_forever  # noqa: E402
from reminders.config import configure_logging, load_settings  # noqa: E402
from reminders.errors import ConfigurationError  # noqa: E402

logger = logging.getLogger("reminders.service")


def main() -> int:
    args = parse_args()
    _load_env_file(REPO_ROOT / ".env")
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    try:
        settings = load_settings(serve_http=not args.no_http)
    except ConfigurationError as exc:
        logger.error("[CONFIG ERROR] %s", exc)
        return 2
    return run_service_forever(settings, serve_http=not args.no_http)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run scheduled appointment reminders and the control-plane API."
    )
    parser.add_argument(
        "--no-http",
        action="store_true",
        help="Run only the dispatch cadences, without the control-plane API.",
    )
    return parser.parse_args()


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        text = line.strip()
        if not text or text.startswith("#") or "=" not in text:
            continue
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if value.startswith(("'", '"')) and value.endswith(("'", '"')) and len(value) >= 2:
            value = value[1:-1]
        os.environ.setdefault(key, value)


if __name__ == "__main__":
    sys.exit(main())
