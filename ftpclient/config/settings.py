"""Saved connection defaults for ftpclient.

The command line merges its options over these, so a host saved once
with --save is used by later invocations that do not name one.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from ftpclient.config.paths import get_settings_path
from ftpclient.utils.validators import validate_host, validate_port, validate_timeout

logger = logging.getLogger("ftpclient.settings")


@dataclass
class ClientSettings:
    """Connection defaults that persist between sessions."""

    host: str = ""
    port: int = 21
    username: str = "anonymous"
    passive_mode: bool = True
    timeout: int = 90

    # FTPS
    use_tls: bool = False
    implicit_tls: bool = False

    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a JSON-ready dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientSettings":
        """Create settings from a dictionary. Keys of older or newer versions are dropped."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def with_overrides(self, **overrides: Any) -> "ClientSettings":
        """Return a copy with every override that is not None applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    def validate(self) -> List[str]:
        """
        Check that the settings can be used to connect.

        Returns:
            Error messages, empty if valid
        """
        errors = []
        for is_valid, error in (
            validate_host(self.host),
            validate_port(self.port),
            validate_timeout(self.timeout),
        ):
            if not is_valid:
                errors.append(error)
        return errors


class SettingsManager:
    """Reads and writes ClientSettings as JSON."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Optional custom path, defaults to the ftpclient data directory
        """
        self._config_path = config_path or get_settings_path()

    @property
    def config_path(self) -> Path:
        """Path to settings file."""
        return self._config_path

    def load(self) -> ClientSettings:
        """
        Load settings from disk.

        A missing file gives defaults silently, an unreadable one gives
        defaults with a warning.
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return ClientSettings()
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self._config_path}: {e}")
            return ClientSettings()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self._config_path}: expected a JSON object")
            return ClientSettings()
        return ClientSettings.from_dict(data)

    def save(self, settings: ClientSettings) -> None:
        """Write settings, replacing the previous file in one step."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self._config_path.with_name(self._config_path.name + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2, sort_keys=True)
        os.replace(temp_path, self._config_path)
        logger.debug(f"Settings saved to {self._config_path}")

    def reset(self) -> None:
        """Forget saved settings by removing the file."""
        try:
            self._config_path.unlink()
        except FileNotFoundError:
            return
        logger.debug(f"Settings file {self._config_path} removed")
