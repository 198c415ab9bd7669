#!/usr/bin/env python3
"""CLI entry point: run a Python script under a trace session.

Usage:
  python -m calltrace [--whitelist Dog] [-o trace.csv] script.py [script args...]
"""
from __future__ import annotations

import builtins
import logging
import os
import sys
import tokenize
from pathlib import Path
from types import CodeType
from typing import Any, Dict, Optional, Sequence, Tuple

from calltrace.trace import TraceSession
from calltrace.utils.cli import parse_trace_args

logger = logging.getLogger("calltrace")


def _load_script(path: str) -> Tuple[CodeType, Dict[str, Any]]:
    """Compile a script and build the globals it runs with as __main__."""
    with tokenize.open(path) as f:
        source = f.read()
    code = compile(source, path, "exec")
    globs = {"__name__": "__main__", "__file__": path, "__builtins__": builtins}
    return code, globs


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    args, filters = parse_trace_args(argv)

    # Compile before creating the log so a missing script leaves no empty trace behind
    code, globs = _load_script(args.script)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    session = TraceSession(
        output,
        class_whitelist=filters.class_whitelist,
        class_blacklist=filters.class_blacklist,
        path_blacklist=filters.path_blacklist,
    )

    saved_argv, saved_path = sys.argv, list(sys.path)
    sys.argv = [args.script, *args.script_args]
    sys.path.insert(0, os.path.dirname(os.path.abspath(args.script)))
    try:
        session.trace(exec, code, globs)
    except SystemExit as e:
        # a script calling sys.exit() still gets its log
        logger.debug("Traced script exited with %s", e.code)
        if e.code is None:
            return 0
        if isinstance(e.code, int):
            return e.code
        print(e.code, file=sys.stderr)
        return 1
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path
        session.close()
        print(f"Wrote call trace to {output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
