"""Data channel negotiation for the ftpclient package.

Opens the short-lived second connection that carries file or listing
bytes. Passive mode (PASV, client connects out) is the default; active
mode (PORT, server connects back) is available when passive is turned
off.
"""

import logging
import socket
from typing import Iterator, Optional, Tuple

from ftpclient.ftp.control import ENCODING, ControlChannel
from ftpclient.ftp.exceptions import FTPDataConnectionError
from ftpclient.ftp.replies import format_port_argument, parse_pasv_reply
from ftpclient.ftp.transport import CRLF, Transport

logger = logging.getLogger("ftpclient.data")


class DataConnection:
    """
    A single-use data connection.

    Owned by exactly one transfer or listing, which closes it once the
    bytes are exhausted. In active mode the server connects back to us,
    so the socket only exists after establish() has accepted it.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        listener: Optional[socket.socket] = None,
        timeout: Optional[float] = None,
        tls_options: Optional[dict] = None
    ):
        """
        Args:
            transport: Already connected transport (passive mode)
            listener: Listening socket awaiting the server (active mode)
            timeout: Timeout for accept and subsequent reads/writes
            tls_options: ssl_context/server_hostname/session for wrapping an accepted socket
        """
        self._transport = transport
        self._listener = listener
        self._timeout = timeout
        self._tls_options = tls_options or {}
        self._closed = False

    @property
    def is_established(self) -> bool:
        """True once a connected transport is available."""
        return self._transport is not None

    @property
    def closed(self) -> bool:
        """True after close()."""
        return self._closed

    def establish(self) -> None:
        """
        Make sure the connection is up, accepting the server's connection in active mode.

        Raises:
            FTPDataConnectionError: If the server never connects
        """
        if self._transport is not None:
            return
        if self._listener is None or self._closed:
            raise FTPDataConnectionError()
        try:
            self._transport = Transport.accept(
                self._listener, self._timeout, **self._tls_options
            )
        except OSError as e:
            raise FTPDataConnectionError(original_error=e)
        finally:
            self._listener.close()
            self._listener = None

    def read(self, max_bytes: int) -> bytes:
        """Read up to max_bytes, b"" at end of stream."""
        self.establish()
        return self._transport.read(max_bytes)

    def write(self, data: bytes) -> None:
        """Write all of data."""
        self.establish()
        self._transport.write(data)

    def iter_lines(self) -> Iterator[str]:
        """Yield decoded lines (terminators stripped) until end of stream."""
        self.establish()
        while True:
            raw = self._transport.readline()
            if not raw:
                return
            yield raw.rstrip(CRLF).decode(ENCODING, "surrogateescape")

    def finish(self) -> None:
        """Close after a successful upload, sending TLS close_notify first."""
        if self._transport is not None:
            self._transport.shutdown_tls()
        self.close()

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        if self._transport is not None:
            try:
                self._transport.close()
            except OSError as e:
                logger.debug(f"Error closing data connection: {e}")
            self._transport = None

    def __enter__(self) -> "DataConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class DataChannelNegotiator:
    """Negotiates data connections over a control channel."""

    def __init__(self, control: ControlChannel, passive: bool = True):
        """
        Args:
            control: Control channel to negotiate on
            passive: Use PASV (True) or PORT (False)
        """
        self._control = control
        self.passive = passive

    def open(self) -> DataConnection:
        """Open a data connection using the configured mode."""
        if self.passive:
            return self.open_passive()
        return self.open_active()

    def _tls_options(self) -> dict:
        if not self._control.data_protected:
            return {}
        return {
            "ssl_context": self._control.tls_context,
            "server_hostname": self._control.host,
            "session": self._control.transport.session,
        }

    def open_passive(self) -> DataConnection:
        """
        Send PASV and connect to the advertised address.

        Raises:
            FTPProtocolError: If the PASV reply is not a parseable 227
            FTPDataConnectionError: If the connection cannot be opened
        """
        reply = self._control.send_command("PASV")
        host, port = parse_pasv_reply(reply)
        logger.debug(f"Opening passive data connection to {host}:{port}")

        try:
            transport = Transport.open(
                host,
                port,
                timeout=self._control.timeout,
                **self._tls_options()
            )
        except OSError as e:
            raise FTPDataConnectionError((host, port), e)
        return DataConnection(transport=transport, timeout=self._control.timeout)

    def open_active(self) -> DataConnection:
        """
        Listen locally and announce the address with PORT.

        The server connects when the transfer command starts, so the
        returned connection is established lazily.

        Raises:
            FTPDataConnectionError: If listening fails or PORT is refused
        """
        local_host = self._control.transport.local_address[0]
        try:
            listener = socket.create_server(("", 0), family=socket.AF_INET, backlog=1)
            listener.settimeout(self._control.timeout)
        except OSError as e:
            raise FTPDataConnectionError(original_error=e)

        address: Tuple[str, int] = (local_host, listener.getsockname()[1])
        logger.debug(f"Listening for active data connection on {address[0]}:{address[1]}")
        try:
            reply = self._control.send_command("PORT " + format_port_argument(*address))
        except Exception:
            listener.close()
            raise
        if not reply.is_success:
            listener.close()
            raise FTPDataConnectionError(address, reply=reply)

        return DataConnection(
            listener=listener,
            timeout=self._control.timeout,
            tls_options=self._tls_options()
        )
