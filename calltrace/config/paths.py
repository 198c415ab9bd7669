from pathlib import Path

# Package root (calltrace/)
PACKAGE_ROOT = Path(__file__).resolve().parents[1]

# Logging root, relative to the working directory of the traced program
LOGS_ROOT = Path("logs")

# Subdirectories
TRACES_ROOT = LOGS_ROOT / "traces"

# Environment variable overriding TRACES_ROOT
TRACES_ROOT_ENV = "CALLTRACE_TRACES_ROOT"
