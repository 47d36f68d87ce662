"""Where ftpclient keeps its files.

Settings and logs live in one per-user directory. FTPCLIENT_HOME
overrides the platform default, which keeps test runs and multiple
profiles apart.
"""

import os
import sys
from pathlib import Path


APP_NAME = "ftpclient"
HOME_ENV_VAR = "FTPCLIENT_HOME"

SETTINGS_FILE_NAME = "settings.json"
LOG_FILE_NAME = "ftpclient.log"


def _platform_config_base() -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def get_app_data_dir() -> Path:
    """
    Get the ftpclient data directory, creating it if needed.

    Resolution order:
        - $FTPCLIENT_HOME
        - Windows: %APPDATA%/ftpclient
        - macOS: ~/Library/Application Support/ftpclient
        - Others: $XDG_CONFIG_HOME/ftpclient or ~/.config/ftpclient
    """
    override = os.environ.get(HOME_ENV_VAR)
    app_dir = Path(override) if override else _platform_config_base() / APP_NAME
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_settings_path() -> Path:
    """Path of the saved connection settings."""
    return get_app_data_dir() / SETTINGS_FILE_NAME


def get_log_file_path() -> Path:
    """Path of the log file; its directory is created by setup_logging."""
    return get_app_data_dir() / "logs" / LOG_FILE_NAME
