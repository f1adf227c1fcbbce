import os
import tempfile
from pathlib import Path

# Keep configuration and log files of the test run out of the home directory
_CONFIG_DIR = Path(tempfile.mkdtemp(prefix="routine-test-config-"))
os.environ.setdefault("DAILY_ROUTINE_CONFIG", str(_CONFIG_DIR / "config.toml"))
