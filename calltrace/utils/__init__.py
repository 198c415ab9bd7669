"""Shared utilities for configuration and command-line parsing."""
from calltrace.utils.config import get_env_var, load_env_file, load_filter_config, traces_root
from calltrace.utils.cli import parse_trace_args

__all__ = [
    "get_env_var",
    "load_env_file",
    "load_filter_config",
    "traces_root",
    "parse_trace_args",
]
