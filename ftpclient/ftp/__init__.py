"""FTP protocol engine for ftpclient.

This module handles all FTP protocol functionality:
- FtpClient: Public operation surface and connection-state guard
- ControlChannel: Command connection and reply reading
- DataChannelNegotiator: Passive (PASV) and active (PORT) data connections
- TransferEngine: Uploads, downloads and size queries
- DirectoryLister: MLSD/NLST listings and tree walks
- Replies: Reply and MLSD fact parsing
- Exceptions: FTP-specific error types
"""

from .client import FtpClient
from .control import ConnectionState, ControlChannel
from .data import DataChannelNegotiator, DataConnection
from .exceptions import (
    FTPError,
    FTPAlreadyConnectedError,
    FTPNotConnectedError,
    FTPConnectionError,
    FTPTimeoutError,
    FTPAuthenticationError,
    FTPProtocolError,
    FTPDataConnectionError,
    FTPTransferError,
    FTPListingError,
    FTPSizeUnavailableError,
    FTPCommandError,
)
from .listing import DirectoryLister
from .replies import FtpFileInfo, Reply
from .transfer import TransferEngine, TransferMode, TransferState

__all__ = [
    # Facade
    "FtpClient",
    # Protocol engine
    "ConnectionState",
    "ControlChannel",
    "DataChannelNegotiator",
    "DataConnection",
    "DirectoryLister",
    "TransferEngine",
    "TransferMode",
    "TransferState",
    # Data model
    "FtpFileInfo",
    "Reply",
    # Exceptions
    "FTPError",
    "FTPAlreadyConnectedError",
    "FTPNotConnectedError",
    "FTPConnectionError",
    "FTPTimeoutError",
    "FTPAuthenticationError",
    "FTPProtocolError",
    "FTPDataConnectionError",
    "FTPTransferError",
    "FTPListingError",
    "FTPSizeUnavailableError",
    "FTPCommandError",
]
