"""Command line entry point for ftpclient.

Wires settings, credentials and logging to the FtpClient and runs one
command per invocation.
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config.credentials import CredentialManager
from .config.paths import get_log_file_path
from .config.settings import ClientSettings, SettingsManager
from .ftp.client import FtpClient
from .ftp.exceptions import FTPError
from .ftp.replies import FtpFileInfo
from .ftp.transfer import TransferMode
from .utils.logging import setup_logging, get_logger
from .utils.validators import validate_file_path, validate_offset, validate_remote_path

ANONYMOUS_PASSWORD = "anonymous@"


class UsageError(Exception):
    """Invalid command line input."""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ftpclient",
        description="FTP client with MLSD listings, resumable transfers and FTPS"
    )
    parser.add_argument("--host", help="server host (default: saved setting)")
    parser.add_argument("-P", "--port", type=int, help="server port")
    parser.add_argument("-u", "--user", help="username")
    parser.add_argument("-p", "--password", help="password (default: keyring, then prompt)")
    parser.add_argument("--tls", action="store_true", default=None, help="explicit FTPS (AUTH TLS)")
    parser.add_argument("--implicit-tls", action="store_true", default=None, help="implicit FTPS")
    parser.add_argument("--active", action="store_true", help="use active mode (PORT)")
    parser.add_argument("--timeout", type=int, help="timeout in seconds")
    parser.add_argument("--save", action="store_true", help="save connection settings and password")
    parser.add_argument("-v", "--verbose", action="store_true", help="log protocol traffic")

    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="list a directory")
    ls.add_argument("path", nargs="?", default="")

    tree = sub.add_parser("tree", help="list all files below a directory")
    tree.add_argument("path")

    get = sub.add_parser("get", help="download a file")
    get.add_argument("remote")
    get.add_argument("local", type=Path)
    get.add_argument("--resume", type=int, default=0, metavar="OFFSET")
    get.add_argument("--ascii", action="store_true")

    put = sub.add_parser("put", help="upload a file")
    put.add_argument("local", type=Path)
    put.add_argument("remote")
    put.add_argument("--offset", type=int, default=0)
    put.add_argument("--ascii", action="store_true")

    rm = sub.add_parser("rm", help="delete a file")
    rm.add_argument("path")

    rmdir = sub.add_parser("rmdir", help="remove a directory")
    rmdir.add_argument("path")

    mv = sub.add_parser("mv", help="rename a file or directory")
    mv.add_argument("old")
    mv.add_argument("new")

    size = sub.add_parser("size", help="print the size of a file")
    size.add_argument("path")

    sub.add_parser("pwd", help="print the login directory")

    raw = sub.add_parser("raw", help="send a raw command")
    raw.add_argument("words", nargs="+")

    sub.add_parser("forget", help="remove saved settings and the saved password")

    return parser


def format_entry(entry: FtpFileInfo) -> str:
    """Format one listing entry as 'type size modified name'."""
    if entry.is_dir is None:
        kind = "?"
    else:
        kind = "d" if entry.is_dir else "-"
    size = "" if entry.size is None else str(entry.size)
    modified = entry.last_modification_time or ""
    return f"{kind} {size:>12} {modified:<18} {entry.name}"


class Application:
    """Command line application controller."""

    def __init__(self, args: argparse.Namespace, settings_manager: Optional[SettingsManager] = None):
        """
        Args:
            args: Parsed command line arguments
            settings_manager: Optional settings manager (tests use a temp file)
        """
        self._args = args
        self._settings_manager = settings_manager or SettingsManager()
        self._settings = self._settings_manager.load()
        self._credential_manager = CredentialManager()
        self._logger = get_logger("ftpclient.main")

    def resolve_settings(self) -> ClientSettings:
        """
        Merge command line options over saved settings and validate them.

        Raises:
            UsageError: If a value is invalid
        """
        args = self._args
        settings = self._settings.with_overrides(
            host=args.host,
            port=args.port,
            username=args.user,
            timeout=args.timeout,
            use_tls=args.tls,
            implicit_tls=args.implicit_tls,
            passive_mode=False if args.active else None
        )

        errors = settings.validate()
        if errors:
            raise UsageError(errors[0])
        return settings

    def resolve_password(self, settings: ClientSettings) -> str:
        """Password from the command line, the keyring, or a prompt."""
        if self._args.password is not None:
            return self._args.password
        saved = self._credential_manager.get_password(settings.host, settings.username)
        if saved is not None:
            return saved
        if settings.username == "anonymous":
            return ANONYMOUS_PASSWORD
        return getpass.getpass(f"Password for {settings.username}@{settings.host}: ")

    def run(self, client: Optional[FtpClient] = None, out=None) -> int:
        """
        Connect, run the command and disconnect.

        Returns:
            Exit code (0 success, 1 FTP failure, 2 invalid input)
        """
        out = out or sys.stdout
        if self._args.command == "forget":
            self._forget()
            return 0

        try:
            settings = self.resolve_settings()
            self._validate_command()
        except UsageError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

        password = self.resolve_password(settings)
        client = client or FtpClient()
        try:
            client.connect(
                settings.host,
                settings.port,
                use_tls=settings.use_tls,
                timeout=settings.timeout,
                implicit_tls=settings.implicit_tls
            )
            client.login(settings.username, password)
            client.set_passive(settings.passive_mode)

            if self._args.save:
                self._save(settings, password)

            self._dispatch(client, out)
            return 0
        except FTPError as e:
            self._logger.error(str(e))
            print(f"Error: {e}", file=sys.stderr)
            return 1
        finally:
            if client.is_connected:
                client.close()

    def _validate_command(self) -> None:
        args = self._args
        checks = []
        if args.command == "get":
            checks += [validate_remote_path(args.remote), validate_offset(args.resume),
                       validate_file_path(args.local, must_exist=False)]
        elif args.command == "put":
            checks += [validate_file_path(args.local), validate_offset(args.offset),
                       validate_remote_path(args.remote)]
        elif args.command in ("rm", "rmdir", "size", "tree"):
            checks.append(validate_remote_path(args.path))
        elif args.command == "mv":
            checks += [validate_remote_path(args.old), validate_remote_path(args.new)]

        for is_valid, error in checks:
            if not is_valid:
                raise UsageError(error)

    def _save(self, settings: ClientSettings, password: str) -> None:
        self._settings_manager.save(settings)
        if settings.username != "anonymous":
            self._credential_manager.save_password(settings.host, settings.username, password)
        self._logger.info("Connection settings saved")

    def _forget(self) -> None:
        settings = self._settings
        if settings.host and settings.username != "anonymous":
            self._credential_manager.delete_password(settings.host, settings.username)
        self._settings_manager.reset()
        self._logger.info("Saved settings removed")

    def _dispatch(self, client: FtpClient, out) -> None:
        args = self._args
        command = args.command

        if command == "ls":
            for entry in client.list_directory(args.path):
                print(format_entry(entry), file=out)
        elif command == "tree":
            for path, entry in sorted(client.recursively_list_files_in_directory(args.path).items()):
                size = "" if entry.size is None else entry.size
                print(f"{size:>12} {path}", file=out)
        elif command == "get":
            mode = TransferMode.ASCII if args.ascii else TransferMode.BINARY
            count = client.download(args.local, args.remote, mode, args.resume)
            print(f"{count} bytes received", file=out)
        elif command == "put":
            mode = TransferMode.ASCII if args.ascii else TransferMode.BINARY
            count = client.upload(args.local, args.remote, mode, args.offset)
            print(f"{count} bytes sent", file=out)
        elif command == "rm":
            client.delete(args.path)
        elif command == "rmdir":
            client.remove_directory(args.path)
        elif command == "mv":
            client.rename(args.old, args.new)
        elif command == "size":
            print(client.get_size(args.path), file=out)
        elif command == "pwd":
            print(client.get_working_directory(), file=out)
        elif command == "raw":
            for line in client.send_raw_command(" ".join(args.words)):
                print(line, file=out)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Application entry point.

    Returns:
        Exit code (0 for success)
    """
    args = build_parser().parse_args(argv)
    settings_manager = SettingsManager()
    settings = settings_manager.load()
    if args.verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)
    setup_logging(level=level, log_file=get_log_file_path(), console=args.verbose)

    try:
        return Application(args, settings_manager).run()
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
