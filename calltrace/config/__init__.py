"""Centralized configuration constants."""
from calltrace.config.paths import PACKAGE_ROOT, LOGS_ROOT, TRACES_ROOT, TRACES_ROOT_ENV

__all__ = ["PACKAGE_ROOT", "LOGS_ROOT", "TRACES_ROOT", "TRACES_ROOT_ENV"]
