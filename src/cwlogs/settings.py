"""Static configuration for cwlogs.

Paths follow the XDG base directory layout and can be overridden from the
environment (or a .env file). Optional settings such as logging live in a
single JSON file so they can be tweaked without touching Python.
"""

import json
import os

from dotenv import load_dotenv

from cwlogs.core.config import DEFAULT_CHANNEL_CAPACITY

load_dotenv()

APP_DIR_NAME = "cw"


def _xdg_dir(env_name: str, *default_parts: str) -> str:
    base = os.getenv(env_name) or os.path.join(os.path.expanduser("~"), *default_parts)
    return os.path.join(base, APP_DIR_NAME)


# Query history database.
DATA_DIR = _xdg_dir("XDG_DATA_HOME", ".local", "share")
DB_PATH = os.getenv("CW_DB_PATH") or os.path.join(DATA_DIR, "db.sqlite3")

# Log file for the rotating file handler.
CACHE_DIR = _xdg_dir("XDG_CACHE_HOME", ".local", "cache")
LOG_PATH = os.getenv("CW_LOG_PATH") or os.path.join(CACHE_DIR, "cw.log")

CONFIG_DIR = _xdg_dir("XDG_CONFIG_HOME", ".config")
CONFIG_PATH = os.getenv("CW_CONFIG") or os.path.join(CONFIG_DIR, "config.json")


def _load_json_config(path: str) -> dict:
    """Load config.json; a missing file means defaults everywhere."""

    if not os.path.exists(path):
        return {}

    with open(path, "r", encoding="utf-8") as handle:
        loaded = json.load(handle)
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: config root must be an object")
    return loaded


_CONFIG = _load_json_config(CONFIG_PATH)

# Logging configuration (optional). See app._configure_logging for keys.
LOGGING = _CONFIG.get("logging", {})

# Tail settings.
# - channel_capacity: events buffered between producers and the writer
#   before producers wait; 0 means unbounded
_tail = _CONFIG.get("tail", {})
CHANNEL_CAPACITY = int(_tail.get("channel_capacity", DEFAULT_CHANNEL_CAPACITY))
