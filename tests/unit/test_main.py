"""Unit tests for the command line application."""

import io
import pytest
from unittest.mock import MagicMock, patch

from ftpclient.config.settings import ClientSettings, SettingsManager
from ftpclient.ftp.exceptions import FTPAuthenticationError, FTPListingError
from ftpclient.ftp.replies import FtpFileInfo
from ftpclient.ftp.transfer import TransferMode
from ftpclient.main import Application, build_parser, format_entry


@pytest.fixture
def settings_manager(temp_settings_file):
    """Settings manager backed by a temp file."""
    return SettingsManager(config_path=temp_settings_file)


@pytest.fixture
def mock_client():
    """FtpClient double that reports itself connected."""
    client = MagicMock()
    client.is_connected = True
    return client


@pytest.fixture(autouse=True)
def no_keyring():
    """Keep tests away from the real keyring."""
    with patch("keyring.get_password", return_value=None), \
         patch("keyring.set_password") as mock_set:
        yield mock_set


def run(argv, settings_manager, client, out=None):
    args = build_parser().parse_args(argv)
    return Application(args, settings_manager).run(client=client, out=out or io.StringIO())


class TestFormatEntry:
    """Tests for listing output."""

    def test_file(self):
        line = format_entry(FtpFileInfo("a.txt", is_dir=False, size=10, last_modification_time="20230101"))
        assert line.startswith("- ")
        assert line.endswith("a.txt")
        assert " 10 " in line

    def test_directory(self):
        assert format_entry(FtpFileInfo("pub", is_dir=True)).startswith("d ")

    def test_unknown_type(self):
        assert format_entry(FtpFileInfo("name")).startswith("? ")


class TestApplication:
    """Tests for Application.run."""

    def test_ls(self, settings_manager, mock_client):
        """Connect, login, list, close."""
        mock_client.list_directory.return_value = [FtpFileInfo("a.txt", is_dir=False, size=1)]
        out = io.StringIO()

        code = run(["--host", "ftp.example.com", "-u", "bob", "-p", "pw", "ls", "/pub"],
                   settings_manager, mock_client, out)

        assert code == 0
        mock_client.connect.assert_called_once_with(
            "ftp.example.com", 21, use_tls=False, timeout=90, implicit_tls=False
        )
        mock_client.login.assert_called_once_with("bob", "pw")
        mock_client.set_passive.assert_called_once_with(True)
        mock_client.list_directory.assert_called_once_with("/pub")
        mock_client.close.assert_called_once()
        assert "a.txt" in out.getvalue()

    def test_anonymous_default_password(self, settings_manager, mock_client):
        """Anonymous logins do not prompt."""
        run(["--host", "ftp.example.com", "pwd"], settings_manager, mock_client)

        mock_client.login.assert_called_once_with("anonymous", "anonymous@")

    def test_password_from_keyring(self, settings_manager, mock_client):
        """A saved password is used when none is given."""
        with patch("keyring.get_password", return_value="saved"):
            run(["--host", "ftp.example.com", "-u", "bob", "pwd"], settings_manager, mock_client)

        mock_client.login.assert_called_once_with("bob", "saved")

    def test_password_prompt(self, settings_manager, mock_client):
        """Named users without a saved password are prompted."""
        with patch("getpass.getpass", return_value="typed") as mock_prompt:
            run(["--host", "ftp.example.com", "-u", "bob", "pwd"], settings_manager, mock_client)

        mock_prompt.assert_called_once()
        mock_client.login.assert_called_once_with("bob", "typed")

    def test_active_and_tls_options(self, settings_manager, mock_client):
        """Mode flags reach the client."""
        run(["--host", "ftp.example.com", "--tls", "--active", "--timeout", "30", "-P", "2121", "pwd"],
            settings_manager, mock_client)

        mock_client.connect.assert_called_once_with(
            "ftp.example.com", 2121, use_tls=True, timeout=30, implicit_tls=False
        )
        mock_client.set_passive.assert_called_once_with(False)

    def test_saved_settings_used(self, settings_manager, mock_client):
        """Saved host and user fill in missing options."""
        settings_manager.save(ClientSettings(host="saved.example.com", port=2121, username="alice"))

        run(["-p", "pw", "pwd"], settings_manager, mock_client)

        mock_client.connect.assert_called_once_with(
            "saved.example.com", 2121, use_tls=False, timeout=90, implicit_tls=False
        )
        mock_client.login.assert_called_once_with("alice", "pw")

    def test_save_option(self, settings_manager, mock_client, no_keyring):
        """--save stores settings and the password."""
        run(["--host", "ftp.example.com", "-u", "bob", "-p", "pw", "--save", "pwd"],
            settings_manager, mock_client)

        assert settings_manager.load().host == "ftp.example.com"
        no_keyring.assert_called_once_with("ftpclient", "ftp.example.com:bob", "pw")

    def test_get(self, settings_manager, mock_client, tmp_path):
        """get downloads with the requested mode and offset."""
        mock_client.download.return_value = 5
        target = tmp_path / "f.txt"
        out = io.StringIO()

        code = run(["--host", "h.example.com", "get", "r.txt", str(target), "--resume", "3", "--ascii"],
                   settings_manager, mock_client, out)

        assert code == 0
        mock_client.download.assert_called_once_with(target, "r.txt", TransferMode.ASCII, 3)
        assert "5 bytes received" in out.getvalue()

    def test_put_missing_local_file(self, settings_manager, mock_client, tmp_path):
        """A missing local file is a usage error and nothing connects."""
        code = run(["--host", "h.example.com", "put", str(tmp_path / "missing"), "r.txt"],
                   settings_manager, mock_client)

        assert code == 2
        mock_client.connect.assert_not_called()

    def test_missing_host(self, settings_manager, mock_client):
        """No host on the command line or in settings."""
        assert run(["pwd"], settings_manager, mock_client) == 2

    def test_invalid_port(self, settings_manager, mock_client):
        """Out of range ports are rejected."""
        assert run(["--host", "h.example.com", "-P", "70000", "pwd"], settings_manager, mock_client) == 2

    def test_tree_output(self, settings_manager, mock_client):
        """Tree output is sorted by path."""
        mock_client.recursively_list_files_in_directory.return_value = {
            "c/d/bar.txt": FtpFileInfo("bar.txt", is_dir=False, size=4),
            "c/foo.txt": FtpFileInfo("foo.txt", is_dir=False, size=3),
        }
        out = io.StringIO()

        run(["--host", "h.example.com", "tree", "/a/b"], settings_manager, mock_client, out)

        lines = out.getvalue().splitlines()
        assert lines[0].endswith("c/d/bar.txt")
        assert lines[1].endswith("c/foo.txt")

    def test_raw(self, settings_manager, mock_client):
        """raw joins its words and prints the reply lines."""
        mock_client.send_raw_command.return_value = ["211-Features:", " MDTM", "211 End"]
        out = io.StringIO()

        run(["--host", "h.example.com", "raw", "FEAT"], settings_manager, mock_client, out)

        mock_client.send_raw_command.assert_called_once_with("FEAT")
        assert out.getvalue().splitlines() == ["211-Features:", " MDTM", "211 End"]

    def test_ftp_error_exit_code(self, settings_manager, mock_client, capsys):
        """FTP failures exit with 1 and still close the connection."""
        mock_client.list_directory.side_effect = FTPListingError("/x")

        code = run(["--host", "h.example.com", "ls", "/x"], settings_manager, mock_client)

        assert code == 1
        mock_client.close.assert_called_once()
        assert "Failed to list directory '/x'" in capsys.readouterr().err

    def test_forget(self, settings_manager, mock_client, temp_settings_file):
        """forget removes saved settings and password without connecting."""
        settings_manager.save(ClientSettings(host="saved.example.com", username="alice"))

        with patch("keyring.delete_password") as mock_delete:
            code = run(["forget"], settings_manager, mock_client)

        assert code == 0
        assert not temp_settings_file.exists()
        mock_delete.assert_called_once_with("ftpclient", "saved.example.com:alice")
        mock_client.connect.assert_not_called()

    def test_login_failure(self, settings_manager, mock_client):
        """Authentication errors exit with 1."""
        mock_client.login.side_effect = FTPAuthenticationError("bob")

        code = run(["--host", "h.example.com", "-u", "bob", "-p", "x", "pwd"],
                   settings_manager, mock_client)

        assert code == 1
        mock_client.get_working_directory.assert_not_called()
