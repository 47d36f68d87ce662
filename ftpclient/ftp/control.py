"""Control channel for the ftpclient package.

Provides the ConnectionState enum and the ControlChannel class that
owns the single persistent command connection: it sends one command
line at a time and reads back one complete (possibly multi-line)
reply.
"""

import logging
import re
import socket
import ssl
from enum import Enum
from typing import Optional

from ftpclient.ftp.exceptions import (
    FTPAlreadyConnectedError,
    FTPConnectionError,
    FTPError,
    FTPNotConnectedError,
    FTPProtocolError,
    FTPTimeoutError,
)
from ftpclient.ftp.replies import Reply, ReplyReader
from ftpclient.ftp.transport import CRLF, Transport

logger = logging.getLogger("ftpclient.control")

DEFAULT_PORT = 21
DEFAULT_TIMEOUT = 90
ENCODING = "utf-8"

# Password never reaches the debug log
_PASS_PATTERN = re.compile(r"^(PASS\s+).*$", re.IGNORECASE)


class ConnectionState(Enum):
    """FTP session state."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"


def _mask(command: str) -> str:
    return _PASS_PATTERN.sub(r"\1****", command)


class ControlChannel:
    """Owns the command connection and its state."""

    def __init__(self):
        """Initialize a disconnected channel."""
        self._transport: Optional[Transport] = None
        self._state = ConnectionState.DISCONNECTED
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._timeout: Optional[float] = None
        self._tls_context: Optional[ssl.SSLContext] = None
        self._data_protected = False
        self._welcome: Optional[Reply] = None

    @property
    def state(self) -> ConnectionState:
        """Current session state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True if the control connection is open."""
        return self._state != ConnectionState.DISCONNECTED

    @property
    def host(self) -> Optional[str]:
        """Host of the open connection."""
        return self._host

    @property
    def port(self) -> Optional[int]:
        """Port of the open connection."""
        return self._port

    @property
    def timeout(self) -> Optional[float]:
        """Timeout applied to connect and every read/write."""
        return self._timeout

    @property
    def welcome(self) -> Optional[Reply]:
        """Greeting sent by the server on connect."""
        return self._welcome

    @property
    def tls_context(self) -> Optional[ssl.SSLContext]:
        """SSL context of a TLS session, None for plain FTP."""
        return self._tls_context

    @property
    def is_tls(self) -> bool:
        """True if the control connection is TLS protected."""
        return self._transport is not None and self._transport.is_tls

    @property
    def data_protected(self) -> bool:
        """True once PROT P has been accepted: data connections use TLS too."""
        return self._data_protected

    @data_protected.setter
    def data_protected(self, value: bool) -> None:
        self._data_protected = value

    @property
    def transport(self) -> Transport:
        """
        Get the underlying transport.

        Raises:
            FTPNotConnectedError: If not connected
        """
        if self._transport is None:
            raise FTPNotConnectedError("Control channel access")
        return self._transport

    def require_connected(self, operation: str = "Operation") -> None:
        """
        Raises:
            FTPNotConnectedError: If no connection is open
        """
        if self._transport is None:
            raise FTPNotConnectedError(operation)

    def mark_authenticated(self) -> None:
        """Record a successful login."""
        self.require_connected("Login")
        self._state = ConnectionState.AUTHENTICATED

    def connect(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        use_tls: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        implicit_tls: bool = False,
        ssl_context: Optional[ssl.SSLContext] = None
    ) -> Reply:
        """
        Open the control connection and read the server greeting.

        Args:
            host: Server host
            port: Server port
            use_tls: Negotiate explicit TLS (AUTH TLS) after the greeting
            timeout: Seconds allowed for connect and each read/write
            implicit_tls: Wrap the socket in TLS before the greeting (FTPS, port 990)
            ssl_context: Custom SSL context, defaults to ssl.create_default_context()

        Returns:
            The greeting reply

        Raises:
            FTPAlreadyConnectedError: If a connection is already open
            FTPConnectionError: If the connection or TLS negotiation fails
            FTPTimeoutError: If establishing the connection times out
        """
        if self._transport is not None:
            raise FTPAlreadyConnectedError()

        context = None
        if use_tls or implicit_tls:
            context = ssl_context or ssl.create_default_context()

        logger.info(f"Connecting to {host}:{port}")
        try:
            transport = Transport.open(
                host,
                port,
                timeout=timeout,
                ssl_context=context if implicit_tls else None,
                server_hostname=host
            )
        except socket.timeout:
            raise FTPTimeoutError(host, port, timeout)
        except OSError as e:
            raise FTPConnectionError(host, port, e)

        self._transport = transport
        self._host = host
        self._port = port
        self._timeout = timeout

        try:
            welcome = self.read_reply()
            # 120: service ready in nnn minutes, the real greeting follows
            while welcome.is_preliminary:
                welcome = self.read_reply()
            if not welcome.is_success:
                raise FTPConnectionError(host, port, reply=welcome)

            if use_tls and not implicit_tls:
                reply = self.send_command("AUTH TLS")
                if reply.code != "234":
                    raise FTPConnectionError(host, port, reply=reply)
                transport.start_tls(context, host)
                logger.debug("Control connection upgraded to TLS")
        except FTPConnectionError as e:
            self._release()
            if isinstance(e.original_error, socket.timeout):
                raise FTPTimeoutError(host, port, timeout)
            raise
        except FTPProtocolError as e:
            self._release()
            raise FTPConnectionError(host, port, e)
        except socket.timeout:
            # TLS handshake after AUTH TLS
            self._release()
            raise FTPTimeoutError(host, port, timeout)
        except OSError as e:
            self._release()
            raise FTPConnectionError(host, port, e)

        self._tls_context = context
        self._welcome = welcome
        self._state = ConnectionState.CONNECTED
        logger.info(f"Connected to {host}:{port}")
        return welcome

    def send_command(self, text: str) -> Reply:
        """
        Send one command line and read its complete reply.

        Reply codes are not interpreted: 4xx/5xx come back as a Reply.

        Raises:
            ValueError: If text contains a CR or LF
            FTPNotConnectedError: If not connected
            FTPConnectionError: If the socket fails
            FTPProtocolError: If the reply is malformed or truncated
        """
        if "\r" in text or "\n" in text:
            raise ValueError("an illegal newline character should not be contained")
        transport = self.transport

        logger.debug(f"> {_mask(text)}")
        try:
            transport.write(text.encode(ENCODING, "surrogateescape") + CRLF)
        except OSError as e:
            raise FTPConnectionError(self._host, self._port, e)
        return self.read_reply()

    def read_reply(self) -> Reply:
        """
        Read one complete reply without sending anything.

        Used for the greeting and the final reply of a transfer.

        Raises:
            FTPNotConnectedError: If not connected
            FTPConnectionError: If the socket fails
            FTPProtocolError: If the reply is malformed or truncated
        """
        transport = self.transport
        reader = ReplyReader()
        while True:
            try:
                raw = transport.readline()
            except OSError as e:
                raise FTPConnectionError(self._host, self._port, e)
            if not raw:
                if reader.in_progress:
                    raise FTPProtocolError("Connection closed in the middle of a reply")
                raise FTPProtocolError("Connection closed by server")

            line = raw.rstrip(CRLF).decode(ENCODING, "surrogateescape")
            logger.debug(f"< {line}")
            reply = reader.feed(line)
            if reply is not None:
                return reply

    def drain_reply(self) -> Optional[Reply]:
        """
        Read and discard the final reply of an aborted transfer, best effort.

        A transfer that fails after its 1xx still has a 226/426 pending;
        reading it keeps the next command paired with its own reply.

        Returns:
            The discarded reply, or None if none could be read
        """
        try:
            reply = self.read_reply()
        except (FTPError, OSError) as e:
            logger.debug(f"No final reply after aborted transfer: {e}")
            return None
        logger.debug(f"Discarded final reply after aborted transfer: {reply.code}")
        return reply

    def close(self) -> None:
        """
        Send QUIT (best effort) and release the connection.

        Raises:
            FTPNotConnectedError: If no connection is open
        """
        self.require_connected("Close")
        try:
            self.send_command("QUIT")
        except (FTPError, OSError) as e:
            # Best effort, the socket is released either way
            logger.warning(f"QUIT failed while closing: {e}")
        finally:
            self._release()
        logger.info(f"Disconnected from {self._host}:{self._port}")

    def _release(self) -> None:
        """Close the transport and reset state."""
        if self._transport is not None:
            try:
                self._transport.close()
            except OSError as e:
                logger.debug(f"Error closing control socket: {e}")
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        self._tls_context = None
        self._data_protected = False
        self._welcome = None
