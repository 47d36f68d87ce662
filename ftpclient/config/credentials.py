"""Password storage for ftpclient.

Passwords saved with --save go to the system keyring (Windows
Credential Manager, macOS Keychain, Secret Service), never to the
settings file. Keyring failures are logged and reported through the
return value; a missing keyring never stops a transfer.
"""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger("ftpclient.credentials")


class CredentialManager:
    """Keyring entries keyed by "host:username" under one service name."""

    SERVICE_NAME = "ftpclient"

    def __init__(self, service_name: str = SERVICE_NAME):
        self._service_name = service_name

    @staticmethod
    def _make_key(host: str, username: str) -> str:
        return f"{host}:{username}"

    def get_password(self, host: str, username: str) -> Optional[str]:
        """Saved password, or None if there is none or the keyring is unavailable."""
        try:
            return keyring.get_password(self._service_name, self._make_key(host, username))
        except KeyringError as e:
            logger.debug(f"Keyring lookup failed for {username}@{host}: {e}")
            return None

    def save_password(self, host: str, username: str, password: str) -> bool:
        """
        Store a password.

        Returns:
            True if stored, False if the keyring refused
        """
        try:
            keyring.set_password(self._service_name, self._make_key(host, username), password)
        except KeyringError as e:
            logger.warning(f"Could not save password for {username}@{host}: {e}")
            return False
        return True

    def delete_password(self, host: str, username: str) -> bool:
        """
        Remove a stored password.

        Returns:
            True if an entry was removed
        """
        try:
            keyring.delete_password(self._service_name, self._make_key(host, username))
        except PasswordDeleteError:
            logger.debug(f"No saved password for {username}@{host}")
            return False
        except KeyringError as e:
            logger.warning(f"Could not delete password for {username}@{host}: {e}")
            return False
        return True
