"""Unit tests for ControlChannel.

Tests connection lifecycle, state transitions, reply reading and
error handling.
"""

import socket
import pytest
from unittest.mock import patch

from ftpclient.ftp.control import ConnectionState, ControlChannel
from ftpclient.ftp.exceptions import (
    FTPAlreadyConnectedError,
    FTPConnectionError,
    FTPNotConnectedError,
    FTPProtocolError,
    FTPTimeoutError,
)
from ftpclient.ftp.transport import Transport

from tests.conftest import GREETING


class TestControlChannelConnect:
    """Tests for connect()."""

    def test_initial_state_is_disconnected(self):
        """Test that initial state is DISCONNECTED."""
        channel = ControlChannel()
        assert channel.state == ConnectionState.DISCONNECTED
        assert channel.is_connected is False

    def test_connect_reads_greeting(self, network):
        """Test successful connection."""
        network.script(GREETING)
        channel = ControlChannel()

        welcome = channel.connect("ftp.example.com", 2121, timeout=30)

        assert welcome.code == "220"
        assert channel.state == ConnectionState.CONNECTED
        assert channel.welcome is welcome
        assert channel.timeout == 30
        assert network.opened == [("ftp.example.com", 2121)]

    def test_connect_skips_service_delay_reply(self, network):
        """A 120 reply is followed by the real greeting."""
        network.script("120 Ready in 1 minute", GREETING)
        channel = ControlChannel()

        assert channel.connect("ftp.example.com").code == "220"

    def test_connect_twice_raises(self, network):
        """Test connecting an open channel raises."""
        network.script(GREETING)
        channel = ControlChannel()
        channel.connect("ftp.example.com")

        with pytest.raises(FTPAlreadyConnectedError):
            channel.connect("ftp.example.com")

    def test_connect_socket_error(self):
        """Test connection failure due to socket error."""
        channel = ControlChannel()
        with patch.object(Transport, "open", side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(FTPConnectionError) as exc_info:
                channel.connect("ftp.example.com")

        assert isinstance(exc_info.value.original_error, ConnectionRefusedError)
        assert channel.state == ConnectionState.DISCONNECTED

    def test_connect_timeout(self):
        """Test connection timeout."""
        channel = ControlChannel()
        with patch.object(Transport, "open", side_effect=socket.timeout("timed out")):
            with pytest.raises(FTPTimeoutError) as exc_info:
                channel.connect("ftp.example.com", timeout=5)

        assert exc_info.value.timeout == 5
        assert isinstance(exc_info.value, FTPConnectionError)

    def test_greeting_timeout(self, network):
        """A server that accepts but never greets is a timeout."""
        control = network.script()
        control.readline_error = socket.timeout("timed out")
        channel = ControlChannel()

        with pytest.raises(FTPTimeoutError) as exc_info:
            channel.connect("ftp.example.com", timeout=5)

        assert exc_info.value.timeout == 5
        assert control.closed is True
        assert channel.state == ConnectionState.DISCONNECTED

    def test_auth_tls_reply_timeout(self, network):
        """No answer to AUTH TLS is a timeout."""
        control = network.script(GREETING)
        control.readline_error = socket.timeout("timed out")
        channel = ControlChannel()

        with pytest.raises(FTPTimeoutError):
            channel.connect("ftp.example.com", use_tls=True, timeout=5)

        assert control.commands == ["AUTH TLS"]
        assert channel.is_connected is False

    def test_tls_handshake_timeout(self, network):
        """A stalled handshake after AUTH TLS is a timeout."""
        control = network.script(GREETING, "234 AUTH TLS OK.")
        channel = ControlChannel()

        with patch.object(control, "start_tls", side_effect=socket.timeout("handshake")):
            with pytest.raises(FTPTimeoutError):
                channel.connect("ftp.example.com", use_tls=True, timeout=5)

        assert control.closed is True

    def test_connect_rejected_greeting(self, network):
        """A 421 greeting is a connection failure and releases the socket."""
        control = network.script("421 Too many users")
        channel = ControlChannel()

        with pytest.raises(FTPConnectionError) as exc_info:
            channel.connect("ftp.example.com")

        assert exc_info.value.code == "421"
        assert control.closed is True
        assert channel.state == ConnectionState.DISCONNECTED

    def test_connect_garbage_greeting(self, network):
        """A malformed greeting is reported as a connection failure."""
        network.script("SSH-2.0-OpenSSH_9.0")
        channel = ControlChannel()

        with pytest.raises(FTPConnectionError):
            channel.connect("ftp.example.com")
        assert channel.is_connected is False

    def test_explicit_tls(self, network):
        """use_tls sends AUTH TLS and upgrades the socket."""
        control = network.script(GREETING, "234 AUTH TLS OK.")
        channel = ControlChannel()

        channel.connect("ftp.example.com", use_tls=True)

        assert control.commands == ["AUTH TLS"]
        assert control.tls is True
        assert channel.is_tls is True
        assert channel.tls_context is not None

    def test_explicit_tls_refused(self, network):
        """Servers without TLS fail the connect."""
        network.script(GREETING, "500 AUTH not understood")
        channel = ControlChannel()

        with pytest.raises(FTPConnectionError):
            channel.connect("ftp.example.com", use_tls=True)
        assert channel.state == ConnectionState.DISCONNECTED


class TestControlChannelCommands:
    """Tests for send_command() and read_reply()."""

    @pytest.fixture
    def channel(self, network):
        def factory(*replies):
            network.script(GREETING, *replies)
            channel = ControlChannel()
            channel.connect("ftp.example.com")
            return channel
        return factory

    def test_send_command_writes_crlf(self, channel, network):
        """Commands are terminated by CRLF."""
        ch = channel("200 NOOP ok")

        reply = ch.send_command("NOOP")

        assert bytes(network.control.written) == b"NOOP\r\n"
        assert reply.code == "200"

    def test_error_reply_is_returned_not_raised(self, channel):
        """4xx/5xx replies are data, not exceptions, at this level."""
        ch = channel("550 No such file")

        reply = ch.send_command("DELE missing.txt")

        assert reply.code == "550"
        assert reply.is_error is True

    def test_multi_line_reply(self, channel):
        """A multi-line reply is read completely."""
        ch = channel("211-Extensions", " AUTH TLS", " MLST type*;size*;", "211 End.")

        reply = ch.send_command("FEAT")

        assert reply.lines == ["Extensions", " AUTH TLS", " MLST type*;size*;", "End."]

    def test_newline_in_command_rejected(self, channel):
        """Embedded line breaks would inject a second command."""
        ch = channel()

        with pytest.raises(ValueError):
            ch.send_command("DELE a\r\nRMD /")

    def test_connection_closed_mid_reply(self, channel):
        """EOF inside a multi-line reply is a protocol error."""
        ch = channel("211-Extensions", " AUTH TLS")

        with pytest.raises(FTPProtocolError):
            ch.send_command("FEAT")

    def test_connection_closed_before_reply(self, channel):
        """EOF before any reply line is a protocol error."""
        ch = channel()

        with pytest.raises(FTPProtocolError):
            ch.send_command("NOOP")

    def test_password_not_logged(self, channel, caplog):
        """PASS arguments are masked in the debug log."""
        ch = channel("230 Logged in")

        with caplog.at_level("DEBUG", logger="ftpclient.control"):
            ch.send_command("PASS hunter2")

        assert "hunter2" not in caplog.text
        assert "PASS ****" in caplog.text

    def test_send_without_connection(self):
        """Test sending on a closed channel raises."""
        with pytest.raises(FTPNotConnectedError):
            ControlChannel().send_command("NOOP")


class TestControlChannelClose:
    """Tests for close()."""

    def test_close_sends_quit(self, network):
        """Test disconnection."""
        control = network.script(GREETING, "221 Goodbye")
        channel = ControlChannel()
        channel.connect("ftp.example.com")

        channel.close()

        assert control.commands == ["QUIT"]
        assert control.closed is True
        assert channel.state == ConnectionState.DISCONNECTED

    def test_close_twice_raises(self, network):
        """Closing an already closed channel is an error, not a no-op."""
        network.script(GREETING, "221 Goodbye")
        channel = ControlChannel()
        channel.connect("ftp.example.com")
        channel.close()

        with pytest.raises(FTPNotConnectedError):
            channel.close()

    def test_close_never_connected_raises(self):
        """Test close without connect raises."""
        with pytest.raises(FTPNotConnectedError):
            ControlChannel().close()

    def test_close_when_quit_fails(self, network):
        """QUIT is best effort, the channel is released anyway."""
        control = network.script(GREETING)
        channel = ControlChannel()
        channel.connect("ftp.example.com")

        channel.close()  # Server hangs up without answering QUIT

        assert control.closed is True
        assert channel.state == ConnectionState.DISCONNECTED

    def test_reconnect_after_close(self, network):
        """A closed channel can connect again."""
        network.script(GREETING, "221 Goodbye")
        channel = ControlChannel()
        channel.connect("ftp.example.com")
        channel.close()

        network.script(GREETING)
        channel.connect("ftp.example.com")

        assert channel.state == ConnectionState.CONNECTED
