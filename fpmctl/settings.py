"""
This module contains the configuration settings for fpmctl.
It defines the php-fpm executable, the data directory and the derived file paths,
the supervisor timings and the logging options.
Values can be overridden through environment variables or a `.env` file.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def parse_optional_seconds(raw):
    """Parses a timeout in seconds. None, 'none', '' or 0 mean no deadline."""
    if raw is None:
        return None
    text = str(raw).strip().lower()
    if text in ("", "none"):
        return None
    seconds = float(text)
    if seconds < 0:
        raise ValueError(f"Timeout must not be negative, got {raw!r}")
    return seconds or None


#* --- Core Paths ---
BASE_DIR = pathlib.Path.cwd()
DATA_DIR = pathlib.Path(os.getenv("FPM_DATA_DIR", str(BASE_DIR / "var")))
OVERRIDES_JSON_PATH = DATA_DIR / "overrides.json"

#* --- php-fpm Process ---
FPM_EXECUTABLE = os.getenv("PHP_FPM_BIN", "php-fpm")
FPM_NAME = os.getenv("FPM_NAME", "phpfpm")
CONFIG_FILE_PATH = pathlib.Path(os.getenv("FPM_CONFIG", str(DATA_DIR / f"{FPM_NAME}.conf")))
FPM_WORKERS = int(os.getenv("FPM_WORKERS", "10"))
FPM_USER = os.getenv("FPM_USER", "")
# Empty means the default unix socket '<DATA_DIR>/<FPM_NAME>.sock'.
# Valid syntaxes are: 'ip.add.re.ss:port', 'port', '/path/to/unix/socket'.
FPM_LISTEN = os.getenv("FPM_LISTEN", "")

#* --- Supervisor Timings ---
POLL_INTERVAL = float(os.getenv("FPM_POLL_INTERVAL", "0.002"))  # seconds
READY_TIMEOUT = float(os.getenv("FPM_READY_TIMEOUT", "10"))    # seconds
PID_FILE_TIMEOUT = parse_optional_seconds(os.getenv("FPM_PID_FILE_TIMEOUT", "10"))
GRACEFUL_SHUTDOWN_TIMEOUT = float(os.getenv("FPM_SHUTDOWN_TIMEOUT", "10"))  # seconds before force-killing

#* --- Logging ---
LOG_FILE = os.getenv("FPMCTL_LOG_FILE", "")
VERBOSE_LOGGING = os.getenv("FPMCTL_VERBOSE", "False").lower() in ('true', '1', 't')

#* --- Process Title ---
PROCESS_TITLE = "fpmctl - Supervisor"

#* --- MODIFIABLE SETTINGS (Changeable via 'config set') ---
MODIFIABLE_SETTINGS = {
    "FPM_WORKERS", "FPM_USER", "FPM_LISTEN",
    "READY_TIMEOUT", "PID_FILE_TIMEOUT", "GRACEFUL_SHUTDOWN_TIMEOUT",
}
