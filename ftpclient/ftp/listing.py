"""Directory listing for the ftpclient package.

Lists directories with MLSD, falling back to NLST on servers that do
not implement it, and walks directory trees.
"""

import logging
from typing import Dict, List, Optional

from ftpclient.ftp.control import ControlChannel
from ftpclient.ftp.data import DataChannelNegotiator, DataConnection
from ftpclient.ftp.exceptions import FTPError, FTPListingError
from ftpclient.ftp.replies import (
    SELF_OR_PARENT_NAMES,
    FtpFileInfo,
    facts_to_file_info,
    parse_mlsd_line,
)

logger = logging.getLogger("ftpclient.listing")

# Reply codes meaning "MLSD not understood / not implemented".
# Any other failure is a real error and is not retried with NLST.
MLSD_UNSUPPORTED_CODES = ("500", "502")


def join_path(directory: str, name: str) -> str:
    """Join a remote directory and an entry name with '/'."""
    if not directory:
        return name
    return f"{directory.rstrip('/')}/{name}"


class DirectoryLister:
    """Lists remote directories over data connections."""

    def __init__(self, control: ControlChannel, negotiator: DataChannelNegotiator):
        """
        Args:
            control: Control channel
            negotiator: Opens data connections
        """
        self._control = control
        self._negotiator = negotiator

    def list_directory(self, path: str = "") -> List[FtpFileInfo]:
        """
        List a directory.

        With MLSD every entry carries the facts the server reports. If
        the server does not implement MLSD, NLST is used and each entry
        only has a name. "." and ".." are never returned.

        Args:
            path: Directory path, empty for the working directory

        Returns:
            List of FtpFileInfo

        Raises:
            FTPNotConnectedError: If not connected
            FTPListingError: If listing fails
        """
        self._control.require_connected("List directory")

        lines = self._retrieve_lines("MLSD", path, fallback_codes=MLSD_UNSUPPORTED_CODES)
        if lines is None:
            logger.debug("MLSD not supported by server, falling back to NLST")
            return self._list_names(path)

        result = []
        for line in lines:
            try:
                file_info = facts_to_file_info(parse_mlsd_line(line))
            except FTPError as e:
                raise FTPListingError(path, e)
            if file_info is not None:
                result.append(file_info)
        return result

    def list_tree(self, root: str) -> Dict[str, FtpFileInfo]:
        """
        Recursively list all files below a directory.

        Entries whose type is unknown are skipped, so a server without
        MLSD always yields an empty result. Given /a/b/c/foo.txt and
        /a/b/c/d/bar.txt, list_tree("/a/b") returns keys "c/foo.txt" and
        "c/d/bar.txt".

        Args:
            root: Directory to walk

        Returns:
            Dictionary of path relative to root -> FtpFileInfo

        Raises:
            FTPNotConnectedError: If not connected
            FTPListingError: If any listing fails
        """
        result: Dict[str, FtpFileInfo] = {}
        self._walk(root, "", result)
        return result

    def _walk(self, directory: str, prefix: str, result: Dict[str, FtpFileInfo]) -> None:
        for entry in self.list_directory(directory):
            if entry.is_dir is None:
                continue
            relative_path = prefix + entry.name
            if entry.is_dir:
                self._walk(join_path(directory, entry.name), relative_path + "/", result)
            else:
                result[relative_path] = entry

    def _list_names(self, path: str) -> List[FtpFileInfo]:
        lines = self._retrieve_lines("NLST", path)
        return [
            FtpFileInfo(name=name)
            for name in lines
            if name not in SELF_OR_PARENT_NAMES
        ]

    def _retrieve_lines(self, command: str, path: str, fallback_codes=()) -> Optional[List[str]]:
        """
        Run a listing command and collect the non-empty lines it sends.

        Returns:
            The lines, or None if the command was refused with one of
            fallback_codes
        """
        data: Optional[DataConnection] = None
        awaiting_final = False
        try:
            data = self._negotiator.open()

            reply = self._control.send_command(f"{command} {path}" if path else command)
            if reply.is_success:
                # Stray 2xx before the 1xx, see TransferEngine
                reply = self._control.read_reply()
            if not reply.is_preliminary:
                if reply.code in fallback_codes:
                    return None
                raise FTPListingError(path, reply=reply)
            awaiting_final = True

            lines = [line for line in data.iter_lines() if line]
            data.close()

            awaiting_final = False
            reply = self._control.read_reply()
            if not reply.is_success:
                raise FTPListingError(path, reply=reply)
            return lines

        except FTPListingError:
            raise
        except (FTPError, OSError) as e:
            raise FTPListingError(path, e)
        finally:
            if data is not None:
                data.close()
            if awaiting_final:
                self._control.drain_reply()
