"""FTP client facade for the ftpclient package.

FtpClient is the public operation surface. It composes the control
channel, data channel negotiator, transfer engine and directory
lister, and guards every operation with the connection state.
"""

import logging
import ssl
from typing import Dict, List, Optional

from ftpclient.ftp.control import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    ConnectionState,
    ControlChannel,
)
from ftpclient.ftp.data import DataChannelNegotiator
from ftpclient.ftp.exceptions import (
    FTPAuthenticationError,
    FTPCommandError,
    FTPError,
    FTPProtocolError,
)
from ftpclient.ftp.listing import DirectoryLister
from ftpclient.ftp.replies import FtpFileInfo, Reply, parse_pwd_reply
from ftpclient.ftp.transfer import (
    LocalFile,
    ProgressCallback,
    TransferEngine,
    TransferMode,
)

logger = logging.getLogger("ftpclient.client")


class FtpClient:
    """
    FTP client.

    Usage:
        with FtpClient() as ftp:
            ftp.connect("ftp.example.com")
            ftp.login("user", "secret")
            for entry in ftp.list_directory("/pub"):
                print(entry.name, entry.size)
    """

    def __init__(self):
        """Initialize a disconnected client."""
        self._control = ControlChannel()
        self._negotiator = DataChannelNegotiator(self._control)
        self._transfers = TransferEngine(self._control, self._negotiator)
        self._lister = DirectoryLister(self._control, self._negotiator)

    @property
    def state(self) -> ConnectionState:
        """Current session state."""
        return self._control.state

    @property
    def is_connected(self) -> bool:
        """True if a connection is open (logged in or not)."""
        return self._control.is_connected

    @property
    def is_authenticated(self) -> bool:
        """True after a successful login."""
        return self._control.state == ConnectionState.AUTHENTICATED

    @property
    def passive(self) -> bool:
        """True if data connections use passive mode."""
        return self._negotiator.passive

    @property
    def welcome(self) -> Optional[str]:
        """Server greeting message."""
        reply = self._control.welcome
        return reply.message if reply is not None else None

    def connect(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        use_tls: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        implicit_tls: bool = False,
        ssl_context: Optional[ssl.SSLContext] = None
    ) -> None:
        """
        Open an FTP connection.

        Args:
            host: The host to connect to
            port: The port to connect to
            use_tls: Whether to use an explicit TLS (AUTH TLS) connection
            timeout: Timeout in seconds for connect and every read/write
            implicit_tls: Whether to use implicit TLS (usually port 990)
            ssl_context: Optional SSL context for TLS connections

        Raises:
            FTPAlreadyConnectedError: If a connection is already open
            FTPConnectionError: If unable to connect to the server
        """
        self._control.connect(
            host,
            port,
            use_tls=use_tls,
            timeout=timeout,
            implicit_tls=implicit_tls,
            ssl_context=ssl_context
        )
        # Every new session starts passive
        self._negotiator.passive = True

    def close(self) -> None:
        """
        Close the FTP connection.

        Raises:
            FTPNotConnectedError: If no connection is currently open
        """
        self._control.close()

    def login(self, username: str, password: str) -> None:
        """
        Log in to the FTP server.

        On a TLS session the data channel is protected too (PBSZ 0, PROT P).

        Raises:
            FTPNotConnectedError: If not connected
            FTPAuthenticationError: If credentials are rejected or login fails
        """
        self._control.require_connected("Login")
        try:
            reply = self._control.send_command(f"USER {username}")
            if reply.code == "331":
                reply = self._control.send_command(f"PASS {password}")
            if not reply.is_success:
                raise FTPAuthenticationError(username, reply=reply)

            if self._control.is_tls:
                for command in ("PBSZ 0", "PROT P"):
                    reply = self._control.send_command(command)
                    if not reply.is_success:
                        raise FTPAuthenticationError(username, reply=reply)
                self._control.data_protected = True
        except FTPAuthenticationError:
            raise
        except FTPError as e:
            raise FTPAuthenticationError(username, original_error=e)

        self._control.mark_authenticated()
        logger.info(f"Logged in as {username}")

    def set_passive(self, passive: bool) -> None:
        """
        Turn passive mode on or off.

        In passive mode data connections are opened by the client, which
        is usually needed behind a firewall or NAT. With passive mode off
        the server connects back to the client (PORT).

        Raises:
            FTPNotConnectedError: If not connected
        """
        self._control.require_connected("Set passive mode")
        self._negotiator.passive = passive

    def get_working_directory(self) -> str:
        """
        Return the current directory name.

        Raises:
            FTPNotConnectedError: If not connected
            FTPCommandError: If the server does not report it
        """
        reply = self._command("PWD", "Get working directory")
        try:
            return parse_pwd_reply(reply)
        except FTPProtocolError as e:
            raise FTPCommandError("PWD", reply=reply, original_error=e)

    def set_working_directory(self, directory: str) -> None:
        """
        Change the current directory.

        Raises:
            FTPNotConnectedError: If not connected
            FTPCommandError: If the directory cannot be entered
        """
        self._command(f"CWD {directory}", "Change working directory", path=directory)

    def list_directory(self, directory: str = "") -> List[FtpFileInfo]:
        """
        Return the files in the given directory.

        If the server supports MLSD each entry carries additional facts,
        otherwise only the name. "." and ".." are ignored.

        Raises:
            FTPNotConnectedError: If not connected
            FTPListingError: If listing fails
        """
        return self._lister.list_directory(directory)

    def recursively_list_files_in_directory(self, directory: str) -> Dict[str, FtpFileInfo]:
        """
        List all files in the given directory and its subdirectories.

        Keys are paths relative to directory ('c/foo.txt', 'c/d/bar.txt').
        Entries of unknown type are left out, so the result is always
        empty on a server without MLSD.

        Raises:
            FTPNotConnectedError: If not connected
            FTPListingError: If any listing fails
        """
        self._control.require_connected("List directory tree")
        return self._lister.list_tree(directory)

    list_tree = recursively_list_files_in_directory

    def rename(self, old_name: str, new_name: str) -> None:
        """
        Rename a file or directory.

        Raises:
            FTPNotConnectedError: If not connected
            FTPCommandError: If renaming fails
        """
        reply = self._control_reply(f"RNFR {old_name}", "Rename")
        if reply.code != "350":
            raise FTPCommandError("RNFR", old_name, reply=reply)
        self._command(f"RNTO {new_name}", "Rename", path=new_name)
        logger.info(f"Renamed {old_name} to {new_name}")

    def delete(self, path: str) -> None:
        """
        Delete a file.

        Raises:
            FTPNotConnectedError: If not connected
            FTPCommandError: If deleting fails
        """
        self._command(f"DELE {path}", "Delete", path=path)
        logger.info(f"Deleted {path}")

    def remove_directory(self, path: str) -> None:
        """
        Remove a directory.

        Raises:
            FTPNotConnectedError: If not connected
            FTPCommandError: If removal fails
        """
        self._command(f"RMD {path}", "Remove directory", path=path)
        logger.info(f"Removed directory {path}")

    def get_size(self, path: str) -> int:
        """
        Return the size of the given file in bytes.

        Raises:
            FTPNotConnectedError: If not connected
            FTPSizeUnavailableError: If the size cannot be determined
        """
        return self._transfers.get_size(path)

    def download(
        self,
        local_file: LocalFile,
        remote_file: str,
        mode: TransferMode = TransferMode.BINARY,
        resume_pos: int = 0,
        callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        Download a file.

        Args:
            local_file: Local path (overwritten if it exists, appended
                to when resume_pos > 0) or an open binary file object
            remote_file: Remote file path
            mode: TransferMode.BINARY (default) or TransferMode.ASCII
            resume_pos: Position in the remote file to start downloading from
            callback: Optional progress callback

        Returns:
            Number of bytes downloaded

        Raises:
            FTPNotConnectedError: If not connected
            FTPTransferError: If the download fails
        """
        return self._transfers.download(local_file, remote_file, mode, resume_pos, callback)

    def upload(
        self,
        local_file: LocalFile,
        remote_file: str,
        mode: TransferMode = TransferMode.BINARY,
        start_pos: int = 0,
        callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        Upload a file.

        Args:
            local_file: Local path or an open binary file object
            remote_file: Remote file path
            mode: TransferMode.BINARY (default) or TransferMode.ASCII
            start_pos: Position in the remote file to start uploading to
            callback: Optional progress callback

        Returns:
            Number of bytes uploaded

        Raises:
            FTPNotConnectedError: If not connected
            FTPTransferError: If the upload fails
        """
        return self._transfers.upload(local_file, remote_file, mode, start_pos, callback)

    def send_raw_command(self, command: str) -> List[str]:
        """
        Send an arbitrary command and return the reply lines verbatim.

        The reply is not interpreted: a failing command does not raise.

        Raises:
            FTPNotConnectedError: If not connected
            FTPConnectionError: If the connection fails
            FTPProtocolError: If the reply is malformed
        """
        self._control.require_connected("Raw command")
        return list(self._control.send_command(command).raw_lines)

    def _control_reply(self, command: str, operation: str) -> Reply:
        self._control.require_connected(operation)
        try:
            return self._control.send_command(command)
        except FTPError as e:
            raise FTPCommandError(command.split(" ", 1)[0], original_error=e)

    def _command(self, command: str, operation: str, path: Optional[str] = None) -> Reply:
        """Send a command that must succeed with a 2xx reply."""
        reply = self._control_reply(command, operation)
        if not reply.is_success:
            raise FTPCommandError(command.split(" ", 1)[0], path, reply=reply)
        return reply

    def __enter__(self) -> "FtpClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit, closes the connection if still open."""
        if self.is_connected:
            self.close()
