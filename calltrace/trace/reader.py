"""Trace loading utilities for analysis.

This module parses a call trace log back into a pandas DataFrame with one
row per recorded call.
"""

from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd

from calltrace.trace.schema import COLUMNS, HEADER, MARK_PREFIX

SEGMENT_COLUMN = "segment"


def load_trace(path: str | Path) -> pd.DataFrame:
    """Load a trace log written by a TraceSession.

    Args:
        path: Path to the trace log.

    Returns:
        DataFrame with the eight log columns (entity, caller_entity, filepath,
        lineno, method_name, method_level, caller_method_name,
        caller_method_level) plus:
        - segment: message of the most recent ``---`` mark line above the
          call, or "" for calls recorded before any mark.

    Raises:
        ValueError: If the file does not start with the trace header or a
            data line does not have eight fields.
    """
    path = Path(path)
    rows = []
    segment = ""
    with path.open("r", encoding="utf-8", newline="") as f:
        header = f.readline()
        if header.rstrip("\r\n") != HEADER.rstrip("\n"):
            raise ValueError(f"Not a call trace log (bad header): {path}")

        for lineno, line in enumerate(f, start=2):
            line = line.rstrip("\r\n")
            if not line:
                continue
            if line.startswith(MARK_PREFIX) or line == MARK_PREFIX.rstrip():
                segment = line[len(MARK_PREFIX):]
                continue

            fields = next(csv.reader([line]))
            if len(fields) != len(COLUMNS):
                raise ValueError(
                    f"Expected {len(COLUMNS)} fields on line {lineno} of {path}, got {len(fields)}"
                )
            row = dict(zip(COLUMNS, fields))
            row[SEGMENT_COLUMN] = segment
            rows.append(row)

    df = pd.DataFrame(rows, columns=[*COLUMNS, SEGMENT_COLUMN])
    df["lineno"] = df["lineno"].astype(int)
    return df
