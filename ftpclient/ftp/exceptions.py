"""FTP-specific exceptions for the ftpclient package.

Custom exception hierarchy for FTP operations. Every public client
operation either returns its documented value or raises exactly one
of these.
"""


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None, reply=None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.reply = reply

    @property
    def code(self):
        """Reply code that caused the error, if any."""
        if self.reply is not None:
            return self.reply.code
        return None

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        if self.reply is not None:
            return f"{self.message}: {self.reply.code} {self.reply.message}"
        return self.message


class FTPAlreadyConnectedError(FTPError):
    """connect() called while a connection is already open."""

    def __init__(self):
        super().__init__("A connection is already open, close() it before connect()")


class FTPNotConnectedError(FTPError):
    """Operation attempted without active FTP connection."""

    def __init__(self, operation: str = "Operation"):
        self.operation = operation
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)


class FTPConnectionError(FTPError):
    """Failed to establish (or keep) the control connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None, reply=None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error, reply)


class FTPTimeoutError(FTPConnectionError):
    """Connection establishment timed out."""

    def __init__(self, host: str, port: int, timeout: float):
        self.timeout = timeout
        super().__init__(host, port)
        self.message = f"Connection to {host}:{port} timed out after {timeout} seconds"


class FTPAuthenticationError(FTPError):
    """FTP authentication (login) failed."""

    def __init__(self, username: str, reply=None, original_error: Exception = None):
        self.username = username
        message = f"Authentication failed for user '{username}'"
        super().__init__(message, original_error, reply)


class FTPProtocolError(FTPError):
    """Server sent a malformed, truncated or unexpected reply."""


class FTPDataConnectionError(FTPError):
    """Data connection could not be negotiated or opened."""

    def __init__(self, address=None, original_error: Exception = None, reply=None):
        self.address = address
        if address:
            message = f"Failed to open data connection to {address[0]}:{address[1]}"
        else:
            message = "Failed to open data connection"
        super().__init__(message, original_error, reply)


class FTPTransferError(FTPError):
    """Upload or download failed, possibly after a partial transfer."""

    def __init__(
        self,
        direction: str,
        remote_path: str,
        original_error: Exception = None,
        reply=None,
        bytes_transferred: int = 0
    ):
        self.direction = direction
        self.remote_path = remote_path
        self.bytes_transferred = bytes_transferred
        message = f"Failed to {direction} '{remote_path}'"
        super().__init__(message, original_error, reply)


class FTPListingError(FTPError):
    """Directory listing failed."""

    def __init__(self, path: str, original_error: Exception = None, reply=None):
        self.path = path
        message = f"Failed to list directory '{path}'"
        super().__init__(message, original_error, reply)


class FTPSizeUnavailableError(FTPError):
    """Server could not (or would not) report a file size."""

    def __init__(self, path: str, original_error: Exception = None, reply=None):
        self.path = path
        message = f"Unable to get size of file '{path}'"
        super().__init__(message, original_error, reply)


class FTPCommandError(FTPError):
    """Generic command failure (rename, delete, rmdir, cwd, pwd)."""

    def __init__(self, command: str, path: str = None, reply=None, original_error: Exception = None):
        self.command = command
        self.path = path
        if path is not None:
            message = f"{command} failed for '{path}'"
        else:
            message = f"{command} failed"
        super().__init__(message, original_error, reply)
