"""Pytest configuration and shared fixtures for ftpclient tests."""

import pytest
from pathlib import Path
from typing import Generator
from dataclasses import dataclass
from unittest.mock import patch

from ftpclient.ftp.client import FtpClient
from ftpclient.ftp.transport import Transport

from tests.fakes import FakeNetwork


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"

GREETING = "220 Test FTP server ready."
PASV_REPLY = "227 Entering Passive Mode (127,0,0,1,19,136)."


@dataclass
class MockFTPConfig:
    """Configuration for mock FTP server in tests."""
    host: str = TEST_FTP_HOST
    username: str = TEST_FTP_USER
    password: str = TEST_FTP_PASS


@pytest.fixture
def ftp_config() -> MockFTPConfig:
    """Provide mock FTP configuration for tests."""
    return MockFTPConfig()


@pytest.fixture
def temp_settings_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary settings file path for testing."""
    settings_file = tmp_path / "settings.json"
    yield settings_file
    # Cleanup handled by tmp_path fixture


@pytest.fixture
def network() -> Generator[FakeNetwork, None, None]:
    """Replace Transport.open with a scripted in-memory server."""
    fake = FakeNetwork()
    with patch.object(Transport, "open", side_effect=fake.open):
        yield fake


@pytest.fixture
def connected_client(network: FakeNetwork):
    """
    Return a factory for a connected FtpClient.

    The factory takes the control replies that follow the greeting.
    """
    def factory(*replies: str) -> FtpClient:
        network.script(GREETING, *replies)
        client = FtpClient()
        client.connect(TEST_FTP_HOST)
        return client

    return factory
