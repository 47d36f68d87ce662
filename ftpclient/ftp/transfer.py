"""Transfer engine for the ftpclient package.

Orchestrates uploads and downloads: TYPE, data connection, optional
REST, RETR/STOR, streaming, and confirmation of the final reply. Each
transfer either completes or fails once; nothing is retried.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Union

from ftpclient.ftp.control import ControlChannel
from ftpclient.ftp.data import DataChannelNegotiator, DataConnection
from ftpclient.ftp.exceptions import (
    FTPError,
    FTPProtocolError,
    FTPSizeUnavailableError,
    FTPTransferError,
)
from ftpclient.ftp.replies import Reply, parse_size_reply

logger = logging.getLogger("ftpclient.transfer")

# A local file path, or an already open binary file object
LocalFile = Union[str, Path, BinaryIO]

# Type alias for progress callback, called with the running byte count
ProgressCallback = Callable[[int], None]


class TransferMode(Enum):
    """Representation type sent with TYPE."""
    BINARY = "I"
    ASCII = "A"


class TransferState(Enum):
    """Lifecycle of a single transfer."""
    IDLE = "idle"
    DATA_CONN_OPEN = "data_conn_open"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@contextmanager
def _open_local(local_file: LocalFile, mode: str, offset: int = 0) -> Iterator[BinaryIO]:
    """Open a path (closed afterwards) or pass an open file object through untouched."""
    if isinstance(local_file, (str, Path)):
        with open(local_file, mode) as f:
            if offset and "r" in mode:
                f.seek(offset)
            yield f
    else:
        _check_local(local_file, "read" if "r" in mode else "write")
        yield local_file


def _check_local(local_file: LocalFile, method: str) -> None:
    """
    Raises:
        TypeError: If local_file is neither a path nor a file object with method
    """
    if not isinstance(local_file, (str, Path)) and not hasattr(local_file, method):
        raise TypeError(
            f"local file must be a path or a binary file object, got {type(local_file).__name__}"
        )


class TransferEngine:
    """Runs uploads and downloads over a control channel."""

    # Block size for data connection reads/writes (8KB)
    BLOCK_SIZE = 8192

    def __init__(self, control: ControlChannel, negotiator: DataChannelNegotiator):
        """
        Args:
            control: Control channel
            negotiator: Opens data connections
        """
        self._control = control
        self._negotiator = negotiator
        self._state = TransferState.IDLE
        self._bytes_transferred = 0

    @property
    def state(self) -> TransferState:
        """State of the current (or last) transfer."""
        return self._state

    @property
    def bytes_transferred(self) -> int:
        """Bytes moved by the current (or last) transfer."""
        return self._bytes_transferred

    def download(
        self,
        destination: LocalFile,
        remote_path: str,
        mode: TransferMode = TransferMode.BINARY,
        resume_offset: int = 0,
        callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        Download a remote file.

        Args:
            destination: Local path (overwritten, or appended to when
                resuming, once the server starts sending) or a writable
                binary file object
            remote_path: Remote file path
            mode: BINARY (default) or ASCII
            resume_offset: Position in the remote file to start from
            callback: Optional progress callback

        Returns:
            Number of bytes received

        Raises:
            FTPNotConnectedError: If not connected
            FTPTransferError: If any step of the transfer fails
        """
        self._control.require_connected("Download")
        if resume_offset < 0:
            raise ValueError(f"resume_offset must be >= 0, got {resume_offset}")

        _check_local(destination, "write")
        file_mode = "ab" if resume_offset > 0 else "wb"

        def stream(data: DataConnection) -> None:
            # Opened only after the 1xx, a refused RETR leaves an existing file as it was
            with _open_local(destination, file_mode) as sink:
                self._receive(data, sink, callback)

        return self._run(
            "download", f"RETR {remote_path}", remote_path, mode, resume_offset, stream
        )

    def upload(
        self,
        source: LocalFile,
        remote_path: str,
        mode: TransferMode = TransferMode.BINARY,
        start_offset: int = 0,
        callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        Upload a local file.

        Args:
            source: Local path (read from start_offset) or a readable
                binary file object (read from its current position)
            remote_path: Remote file path
            mode: BINARY (default) or ASCII
            start_offset: Position in the remote file to start writing at
            callback: Optional progress callback

        Returns:
            Number of bytes sent

        Raises:
            FTPNotConnectedError: If not connected
            FTPTransferError: If any step of the transfer fails
        """
        self._control.require_connected("Upload")
        if start_offset < 0:
            raise ValueError(f"start_offset must be >= 0, got {start_offset}")

        try:
            with _open_local(source, "rb", start_offset) as stream:
                return self._run(
                    "upload", f"STOR {remote_path}", remote_path, mode, start_offset,
                    lambda data: self._send(data, stream, callback)
                )
        except OSError as e:
            raise FTPTransferError("upload", remote_path, e)

    def get_size(self, path: str) -> int:
        """
        Get the size of a remote file in bytes.

        TYPE I is sent first since many servers refuse SIZE in ASCII mode.

        Raises:
            FTPNotConnectedError: If not connected
            FTPSizeUnavailableError: If the server cannot report a size
        """
        self._control.require_connected("Get size")
        reply = self._control.send_command(f"TYPE {TransferMode.BINARY.value}")
        if not reply.is_success:
            raise FTPSizeUnavailableError(path, reply=reply)

        reply = self._control.send_command(f"SIZE {path}")
        if not reply.is_success:
            raise FTPSizeUnavailableError(path, reply=reply)
        try:
            size = parse_size_reply(reply)
        except FTPProtocolError as e:
            raise FTPSizeUnavailableError(path, e, reply)
        if size < 0:
            raise FTPSizeUnavailableError(path, reply=reply)
        return size

    def _run(self, direction, command, remote_path, mode, offset, stream) -> int:
        """
        Drive one transfer through its states.

        stream(data) moves the bytes, counting them in bytes_transferred.
        """
        self._state = TransferState.IDLE
        self._bytes_transferred = 0
        data: Optional[DataConnection] = None
        # True between the 1xx and the read of the final reply
        awaiting_final = False

        try:
            self._expect_success(f"TYPE {mode.value}", direction, remote_path)

            data = self._negotiator.open()
            self._state = TransferState.DATA_CONN_OPEN

            if offset > 0:
                reply = self._control.send_command(f"REST {offset}")
                if not reply.is_intermediate:
                    raise FTPTransferError(direction, remote_path, reply=reply)

            reply = self._control.send_command(command)
            if reply.is_success:
                # Some servers send a stray 2xx before the 1xx; skip it
                reply = self._control.read_reply()
            if not reply.is_preliminary:
                raise FTPTransferError(direction, remote_path, reply=reply)
            awaiting_final = True

            data.establish()
            self._state = TransferState.STREAMING
            stream(data)
            if direction == "upload":
                # Closing the data connection signals end of file
                data.finish()
            else:
                data.close()

            awaiting_final = False
            reply = self._control.read_reply()
            if not reply.is_success:
                raise FTPTransferError(direction, remote_path, reply=reply)

        except FTPTransferError as e:
            self._fail(data)
            e.bytes_transferred = self._bytes_transferred
            raise
        except (FTPError, OSError) as e:
            self._fail(data)
            raise FTPTransferError(direction, remote_path, e, bytes_transferred=self._bytes_transferred)
        finally:
            if awaiting_final:
                # Also covers errors raised by the progress callback
                self._fail(data)
                self._control.drain_reply()

        self._state = TransferState.COMPLETED
        logger.info(f"{direction.capitalize()} of {remote_path} complete: {self._bytes_transferred} bytes")
        return self._bytes_transferred

    def _fail(self, data: Optional[DataConnection]) -> None:
        self._state = TransferState.FAILED
        if data is not None:
            data.close()

    def _expect_success(self, command: str, direction: str, remote_path: str) -> Reply:
        reply = self._control.send_command(command)
        if not reply.is_success:
            raise FTPTransferError(direction, remote_path, reply=reply)
        return reply

    def _receive(self, data: DataConnection, sink: BinaryIO, callback) -> None:
        while True:
            block = data.read(self.BLOCK_SIZE)
            if not block:
                break
            sink.write(block)
            self._bytes_transferred += len(block)
            if callback:
                callback(self._bytes_transferred)

    def _send(self, data: DataConnection, source: BinaryIO, callback) -> None:
        while True:
            block = source.read(self.BLOCK_SIZE)
            if not block:
                break
            data.write(block)
            self._bytes_transferred += len(block)
            if callback:
                callback(self._bytes_transferred)
