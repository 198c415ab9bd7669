"""Tests for calltrace/utils — config loading, CLI parsing and the runner.

Covers:
- load_filter_config from dicts and JSON files, /regex/ syntax, bad input
- .env / environment lookup of the traces directory
- parse_trace_args merging of --config with command-line patterns
- python -m calltrace end to end on a small script
"""
from __future__ import annotations

import json
import re
import sys
from pathlib import Path

import pytest

import calltrace.utils.config as config_module
from calltrace.__main__ import main
from calltrace.config import TRACES_ROOT, TRACES_ROOT_ENV
from calltrace.trace import FilterConfigError, load_trace
from calltrace.utils.cli import default_output_path, parse_trace_args
from calltrace.utils.config import load_filter_config, parse_pattern, traces_root


DOG_SCRIPT = """\
import sys


class Noisemaker:
    @classmethod
    def speak(cls, sound):
        return sound


class Dog:
    def bark(self):
        return Noisemaker.speak("woof!")


Dog().bark()
if len(sys.argv) > 1:
    sys.exit(int(sys.argv[1]))
"""


@pytest.fixture
def clean_env(monkeypatch):
    """Pretend no .env file exists so only os.environ is consulted."""
    monkeypatch.setattr(config_module, "_ENV_VARS", {})
    monkeypatch.setattr(config_module, "_ENV_LOADED", True)
    monkeypatch.delenv(TRACES_ROOT_ENV, raising=False)
    return monkeypatch


@pytest.fixture
def dog_script(tmp_path):
    path = tmp_path / "dog.py"
    path.write_text(DOG_SCRIPT)
    return path


# ---------------------------------------------------------------------------
# TestLoadFilterConfig
# ---------------------------------------------------------------------------

class TestLoadFilterConfig:

    def test_from_dict(self):
        cfg = load_filter_config({"class_whitelist": ["Dog"], "path_blacklist": "vendor"})
        assert cfg.class_whitelist.matches("Dog")
        assert not cfg.class_whitelist.matches("Cat")
        assert cfg.path_blacklist.matches("/x/vendor/y.py")
        assert not cfg.class_blacklist.matches("Dog")

    def test_regex_syntax(self):
        cfg = load_filter_config({"class_blacklist": ["/^Noise/"]})
        assert cfg.class_blacklist.matches("Noisemaker")
        assert not cfg.class_blacklist.matches("LoudNoise")

    def test_filters_sub_key_in_file(self, tmp_path):
        path = tmp_path / "calltrace.json"
        path.write_text(json.dumps({"name": "demo", "filters": {"class_whitelist": ["Dog"]}}))
        cfg = load_filter_config(path)
        assert cfg.class_whitelist.matches("Dog")
        assert not cfg.class_whitelist.matches("Cat")

    def test_unknown_keys_warn(self, caplog):
        with caplog.at_level("WARNING"):
            load_filter_config({"class_whitelist": [], "colour": "blue"})
        assert "colour" in caplog.text

    def test_bad_type_raises(self):
        with pytest.raises(FilterConfigError):
            load_filter_config({"class_whitelist": 3})

    def test_non_string_item_raises(self):
        with pytest.raises(FilterConfigError):
            load_filter_config({"class_blacklist": ["Dog", 7]})

    def test_invalid_regex_raises(self):
        with pytest.raises(FilterConfigError, match="Invalid regular expression"):
            parse_pattern("/(unclosed/")

    def test_parse_pattern(self):
        assert parse_pattern("Dog") == "Dog"
        assert parse_pattern("/") == "/"
        assert isinstance(parse_pattern("/D.g/"), re.Pattern)


# ---------------------------------------------------------------------------
# TestEnvironment
# ---------------------------------------------------------------------------

class TestEnvironment:

    def test_default_traces_root(self, clean_env):
        assert traces_root() == TRACES_ROOT

    def test_traces_root_from_environment(self, clean_env, tmp_path):
        clean_env.setenv(TRACES_ROOT_ENV, str(tmp_path))
        assert traces_root() == tmp_path

    def test_env_file_wins(self, clean_env, tmp_path):
        env = tmp_path / ".env"
        env.write_text(f'# local settings\n{TRACES_ROOT_ENV}="{tmp_path / "from_file"}"\n')
        clean_env.setattr(config_module, "_ENV_LOADED", False)
        config_module.load_env_file(env)
        clean_env.setenv(TRACES_ROOT_ENV, "ignored")
        assert traces_root() == tmp_path / "from_file"


# ---------------------------------------------------------------------------
# TestParseTraceArgs
# ---------------------------------------------------------------------------

class TestParseTraceArgs:

    def test_default_output_path(self, tmp_path):
        path = default_output_path("scripts/dog.py", tmp_path)
        assert path.parent == tmp_path
        assert re.fullmatch(r"dog_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}Z\.csv", path.name)

    def test_output_dir(self, clean_env, tmp_path):
        args, _ = parse_trace_args(["--output-dir", str(tmp_path), "dog.py"])
        assert Path(args.output).parent == tmp_path

    def test_script_args_pass_through(self):
        args, _ = parse_trace_args(["-o", "t.csv", "dog.py", "--loud", "-v"])
        assert args.script == "dog.py"
        assert args.script_args == ["--loud", "-v"]
        assert args.output == "t.csv"

    def test_cli_patterns_extend_config_file(self, tmp_path):
        config = tmp_path / "filters.json"
        config.write_text(json.dumps({"filters": {"class_whitelist": "Dog", "class_blacklist": ["/^Cat$/"]}}))
        _, filters = parse_trace_args([
            "-o", "t.csv",
            "--config", str(config),
            "--whitelist", "Noisemaker",
            "--blacklist", "Hamster",
            "--path-blacklist", "site-packages",
            "dog.py",
        ])
        assert filters.class_whitelist.matches("Dog")
        assert filters.class_whitelist.matches("Noisemaker")
        assert not filters.class_whitelist.matches("Owl")
        assert filters.class_blacklist.matches("Cat")
        assert not filters.class_blacklist.matches("Catfish")
        assert filters.class_blacklist.matches("Hamster")
        assert filters.path_blacklist.matches("/usr/lib/site-packages/x.py")


# ---------------------------------------------------------------------------
# TestMain
# ---------------------------------------------------------------------------

class TestMain:
    """python -m calltrace on a real script."""

    def test_traces_script(self, tmp_path, dog_script):
        out = tmp_path / "traces" / "dog.csv"
        assert main(["-o", str(out), "--whitelist", "Dog", str(dog_script)]) == 0

        df = load_trace(out)
        speak = df[df["method_name"] == "speak"]
        assert len(speak) == 1
        row = speak.iloc[0]
        assert row["entity"] == "Noisemaker"
        assert row["caller_entity"] == "Dog"
        assert row["method_level"] == "class"
        assert row["caller_method_name"] == "bark"
        assert row["caller_method_level"] == "instance"
        assert row["filepath"] == str(dog_script)
        assert row["lineno"] == 12

    def test_script_exit_code_returned(self, tmp_path, dog_script):
        out = tmp_path / "dog.csv"
        argv_before, path_before = list(sys.argv), list(sys.path)
        assert main(["-o", str(out), str(dog_script), "3"]) == 3
        assert out.exists()
        assert sys.argv == argv_before
        assert sys.path == path_before

    def test_exit_message_printed_to_stderr(self, tmp_path, capsys):
        script = tmp_path / "quit.py"
        script.write_text('import sys\nsys.exit("kennel is closed")\n')
        out = tmp_path / "quit.csv"
        assert main(["-o", str(out), str(script)]) == 1
        err = capsys.readouterr().err
        assert "kennel is closed" in err
        assert f"Wrote call trace to {out}" in err

    def test_missing_script_leaves_no_log(self, tmp_path):
        out = tmp_path / "dog.csv"
        with pytest.raises(OSError):
            main(["-o", str(out), str(tmp_path / "missing.py")])
        assert not out.exists()
