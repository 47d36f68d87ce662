"""Byte-stream transport for the ftpclient package.

Thin wrapper over a TCP socket with optional TLS. The same timeout
bounds connection establishment and every subsequent read or write.
Errors surface as OSError (socket.timeout, ssl.SSLError included);
the protocol layers translate them into FTPError subclasses.
"""

import socket
import ssl
from typing import Optional, Tuple

# Longest control line we accept, matches ftplib
MAXLINE = 8192

CRLF = b"\r\n"


class LineTooLongError(OSError):
    """Server sent a line longer than MAXLINE."""


class Transport:
    """One open TCP (optionally TLS) stream."""

    def __init__(self, sock: socket.socket):
        """
        Wrap an already connected socket.

        Args:
            sock: Connected socket (plain or SSL)
        """
        self._sock = sock
        self._file = sock.makefile("rb")

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        server_hostname: Optional[str] = None,
        session: Optional[ssl.SSLSession] = None
    ) -> "Transport":
        """
        Open a connection, TLS-wrapped immediately if ssl_context is given.

        Raises:
            OSError: If the connection (or TLS handshake) fails
        """
        sock = socket.create_connection((host, port), timeout=timeout)
        if ssl_context is not None:
            try:
                sock = ssl_context.wrap_socket(
                    sock,
                    server_hostname=server_hostname or host,
                    session=session
                )
            except Exception:
                sock.close()
                raise
        return cls(sock)

    @classmethod
    def accept(
        cls,
        listener: socket.socket,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        server_hostname: Optional[str] = None,
        session: Optional[ssl.SSLSession] = None
    ) -> "Transport":
        """Accept one inbound connection (active mode), TLS-wrapped as the client side."""
        sock, _ = listener.accept()
        sock.settimeout(timeout)
        if ssl_context is not None:
            try:
                sock = ssl_context.wrap_socket(
                    sock,
                    server_hostname=server_hostname,
                    session=session
                )
            except Exception:
                sock.close()
                raise
        return cls(sock)

    @property
    def is_tls(self) -> bool:
        """True if the stream is TLS protected."""
        return isinstance(self._sock, ssl.SSLSocket)

    @property
    def session(self) -> Optional[ssl.SSLSession]:
        """TLS session, for reuse by data connections."""
        if self.is_tls:
            return self._sock.session
        return None

    @property
    def local_address(self) -> Tuple[str, int]:
        """(host, port) of our end of the connection."""
        return self._sock.getsockname()[:2]

    def start_tls(self, context: ssl.SSLContext, server_hostname: str) -> None:
        """Upgrade the plain connection to TLS in place (explicit FTPS)."""
        self._file.close()
        self._sock = context.wrap_socket(self._sock, server_hostname=server_hostname)
        self._file = self._sock.makefile("rb")

    def readline(self) -> bytes:
        """
        Read one line, terminator included.

        Returns:
            The line, or b"" at end of stream

        Raises:
            LineTooLongError: If the line exceeds MAXLINE
        """
        line = self._file.readline(MAXLINE + 1)
        if len(line) > MAXLINE:
            raise LineTooLongError(f"got more than {MAXLINE} bytes in one line")
        return line

    def read(self, max_bytes: int) -> bytes:
        """Read up to max_bytes, b"" at end of stream."""
        return self._file.read1(max_bytes)

    def write(self, data: bytes) -> None:
        """Write all of data."""
        self._sock.sendall(data)

    def shutdown_tls(self) -> None:
        """Send TLS close_notify before closing, needed by some servers after STOR."""
        if self.is_tls:
            self._sock = self._sock.unwrap()

    def close(self) -> None:
        """Release the stream."""
        try:
            self._file.close()
        finally:
            self._sock.close()
