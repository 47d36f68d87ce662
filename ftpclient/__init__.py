"""ftpclient - FTP client with MLSD listings, resumable transfers and FTPS.

Subpackages:
- ftp: Protocol engine and the FtpClient facade
- config: Settings persistence and keyring credentials
- utils: Logging and input validation
"""

__version__ = "1.0.0"

from ftpclient.ftp import FtpClient, FtpFileInfo, TransferMode

__all__ = ["FtpClient", "FtpFileInfo", "TransferMode", "__version__"]
