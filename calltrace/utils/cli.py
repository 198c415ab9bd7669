"""Command-line argument parsing for the calltrace runner."""
from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from calltrace.trace.filters import FilterConfig
from calltrace.utils.config import load_config, load_filter_config, traces_root


def default_output_path(script: str, root: Optional[Path] = None) -> Path:
    """
    Construct a default log path from the script name and current UTC time.
    Example: 'logs/traces/dog_2025-12-03T01-23-45Z.csv'
    """
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    return (root or traces_root()) / f"{Path(script).stem}_{ts}Z.csv"


def parse_trace_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, FilterConfig]:
    """
    Parse calltrace CLI arguments.

    Filter patterns given on the command line are added to those loaded from
    --config. Patterns written as /.../ are regular expressions.

    Returns:
        Tuple of (parsed_args, filter_config) where parsed_args.output is
        always set to the resolved log path.
    """
    parser = argparse.ArgumentParser(
        prog="calltrace",
        description="Run a Python script and log the method calls it makes.",
    )
    parser.add_argument("script", help="Path to the Python script to trace.")
    parser.add_argument("script_args", nargs=argparse.REMAINDER, help="Arguments passed to the script.")
    parser.add_argument("-o", "--output", type=str, help="Path of the trace log to write.")
    parser.add_argument("--output-dir", type=str, help="Directory for the trace log (ignored with --output).")
    parser.add_argument("--config", type=str, help="JSON file with class_whitelist/class_blacklist/path_blacklist.")
    parser.add_argument("--whitelist", action="append", default=[], metavar="PATTERN",
                        help="Only record calls to or from matching classes. Repeatable.")
    parser.add_argument("--blacklist", action="append", default=[], metavar="PATTERN",
                        help="Never record calls to or from matching classes. Repeatable.")
    parser.add_argument("--path-blacklist", action="append", default=[], metavar="PATTERN",
                        help="Never record calls made from matching source paths. Repeatable.")

    args = parser.parse_args(argv)

    if args.output is None:
        root = Path(args.output_dir) if args.output_dir else None
        args.output = str(default_output_path(args.script, root))

    cfg: Dict[str, Any] = load_config(args.config) if args.config else {}
    cfg = dict(cfg.get("filters", cfg))
    for key, extra in (
        ("class_whitelist", args.whitelist),
        ("class_blacklist", args.blacklist),
        ("path_blacklist", args.path_blacklist),
    ):
        current = cfg.get(key) or []
        if isinstance(current, str):
            current = [current]
        cfg[key] = list(current) + list(extra)

    return args, load_filter_config(cfg)
