"""Configuration and environment utilities."""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from calltrace.config.paths import TRACES_ROOT, TRACES_ROOT_ENV
from calltrace.trace.errors import FilterConfigError
from calltrace.trace.filters import FilterConfig

logger = logging.getLogger(__name__)

DEFAULT_ENV_PATH = Path(".env")

FILTER_KEYS = ("class_whitelist", "class_blacklist", "path_blacklist")

_ENV_VARS: Dict[str, str] = {}
_ENV_LOADED = False


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from a .env file if present."""
    global _ENV_VARS, _ENV_LOADED

    if _ENV_LOADED:
        return _ENV_VARS

    path = env_path or DEFAULT_ENV_PATH
    if not path.exists():
        _ENV_LOADED = True
        return _ENV_VARS

    loaded_vars: Dict[str, str] = {}
    with path.open("r", encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            if "#" in line:
                line = line.split("#", 1)[0].strip()

            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if not key:
                continue

            if value and value[0] == value[-1] and value[0] in {"'", '"'}:
                value = value[1:-1]

            loaded_vars[key] = value

    _ENV_VARS = loaded_vars
    _ENV_LOADED = True
    return _ENV_VARS


def get_env_var(key: str, default: Optional[str] = None) -> Optional[str]:
    """Fetch a value from the loaded .env data or environment."""
    load_env_file()
    # First check loaded .env vars, then fall back to os.environ
    if key in _ENV_VARS:
        return _ENV_VARS[key]
    return os.environ.get(key, default)


def traces_root() -> Path:
    """Directory trace logs are written to when no output path is given."""
    override = get_env_var(TRACES_ROOT_ENV)
    return Path(override) if override else TRACES_ROOT


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from JSON file."""
    return json.loads(Path(path).read_text())


def parse_pattern(text: str) -> Union[str, "re.Pattern[str]"]:
    """
    Turn a configured pattern into a filter pattern.

    ``"/Dog|Cat/"`` compiles to a regular expression; anything else is kept
    as a literal string.
    """
    if len(text) >= 2 and text.startswith("/") and text.endswith("/"):
        try:
            return re.compile(text[1:-1])
        except re.error as e:
            raise FilterConfigError(f"Invalid regular expression {text!r}: {e}") from e
    return text


def _patterns(value: Any, key: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise FilterConfigError(f"'{key}' must be a string or a list of strings, got {value!r}")
    return [parse_pattern(item) if isinstance(item, str) else item for item in value]


def load_filter_config(source: Union[str, Path, Dict[str, Any]]) -> FilterConfig:
    """
    Build a FilterConfig from a JSON file or an already loaded dict.

    Expected shape (every key optional):
        {
          "class_whitelist": ["Dog", "/^Noise/"],
          "class_blacklist": [],
          "path_blacklist": ["/site-packages/"]
        }

    A top-level "filters" object is used when present, so the filter block
    can live inside a larger project config.
    """
    cfg = source if isinstance(source, dict) else load_config(source)
    cfg = cfg.get("filters", cfg)

    unknown = sorted(set(cfg) - set(FILTER_KEYS))
    if unknown:
        logger.warning("Ignoring unknown filter keys: %s", ", ".join(unknown))

    return FilterConfig(**{key: _patterns(cfg.get(key), key) for key in FILTER_KEYS})
