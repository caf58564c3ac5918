# service/cli.py
"""
Command-line entrypoints for the lead search engine.

Subcommands
-----------
search [--keywords K] [--location L] [--platform P ...] [--radius-km N]
       [--max-results N] [--summary] [--kwargs k=v ...] [--pretty]
    - Runs one search via modules.lead_search.main.run(...)
    - Prints the response dict as JSON
    - Exit code 0 on success (including partial platform coverage),
      2 on an invalid query or settings, 1 when every platform failed

platforms
    - Lists the platforms registered in the default adapter registry
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from collections.abc import Iterable
from typing import Any

from modules.lead_search import main as _lead_search
from modules.lead_search.lib.adapters.registry import build_default_registry
from modules.lead_search.lib.config import ConfigError, Settings
from service import logging_utils as L

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "WARNING").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.WARNING),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except ValueError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


# ------------------------------ Subcommands ----------------------------------
def cmd_search(args: argparse.Namespace) -> int:
    start_time = time.monotonic()
    kwargs = _parse_kv_pairs(args.kwargs or [])

    if args.keywords is not None:
        kwargs["keywords"] = args.keywords
    if args.location is not None:
        kwargs["location"] = args.location
    if args.platform:
        kwargs["platforms"] = args.platform
    if args.radius_km is not None:
        kwargs["radius_km"] = args.radius_km
    if args.max_results is not None:
        kwargs["max_results"] = args.max_results
    if args.summary:
        kwargs["include_summary"] = True
    LOG.debug("search kwargs=%s", kwargs)

    try:
        payload = _lead_search.run(**kwargs)
    except ConfigError as e:
        print(f"ERROR: invalid settings: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130

    duration_ms = int((time.monotonic() - start_time) * 1000)
    try:
        L.write_activity_log({
            "event": "cli_search",
            "total": payload.get("total"),
            "error": payload.get("error"),
            "duration_ms": duration_ms,
        })
    except OSError:
        LOG.debug("cli activity log write failed", exc_info=True)

    print(json.dumps(payload, ensure_ascii=False, indent=2 if args.pretty else None))

    error = payload.get("error")
    if error == "Invalid request":
        return 2
    if error:
        return 1
    return 0


def cmd_platforms(args: argparse.Namespace) -> int:
    settings = Settings.from_env_and_kwargs({})
    registry = build_default_registry(settings)
    try:
        rows = [(p, type(registry.get(p)).__name__) for p in registry.platforms()]
    finally:
        registry.close()
    _print_table(rows, headers=("PLATFORM", "ADAPTER"))
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job lead search command-line tools",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # search
    sp = sub.add_parser("search", help="Search the selected platforms and print ranked leads as JSON.")
    sp.add_argument("--keywords", help='Search keywords (default "job vacancy").')
    sp.add_argument("--location", help='Location text (default "Butwal, Nepal").')
    sp.add_argument(
        "--platform",
        action="append",
        metavar="P",
        help="Platform to search; repeat for several (default: all built-in platforms).",
    )
    sp.add_argument("--radius-km", type=float, help="Search radius in km (1-200).")
    sp.add_argument("--max-results", type=int, help="Result cap (1-30).")
    sp.add_argument("--summary", action="store_true", help="Add an AI digest (needs OPENAI_API_KEY).")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Settings overrides, e.g. run_deadline_s=10 skip_network=true (JSON values supported).",
    )
    sp.add_argument("--pretty", action="store_true", help="Indent the JSON output.")
    sp.set_defaults(func=cmd_search)

    # platforms
    sp = sub.add_parser("platforms", help="List registered platforms.")
    sp.set_defaults(func=cmd_platforms)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
