"""Reply parsing for the ftpclient package.

Decodes raw server text into structured replies (status code plus
message lines) and MLSD fact lines into FtpFileInfo records. Nothing
in here touches the network.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ftpclient.ftp.exceptions import FTPProtocolError


# First line of every reply: three digits then a space or a dash
REPLY_LINE_PATTERN = re.compile(r"^(\d{3})([ -])(.*)$", re.DOTALL)

# (h1,h2,h3,h4,p1,p2) inside a 227 reply
PASV_PATTERN = re.compile(r"\((\d+),(\d+),(\d+),(\d+),(\d+),(\d+)\)")

# MLSD entry types that describe the listed directory or one of its parents
SELF_OR_PARENT_TYPES = ("cdir", "pdir")
SELF_OR_PARENT_NAMES = (".", "..")


@dataclass(frozen=True)
class Reply:
    """One complete server reply."""
    code: str
    lines: List[str] = field(default_factory=list)
    raw_lines: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        """Message lines joined with newlines."""
        return "\n".join(self.lines)

    @property
    def is_preliminary(self) -> bool:
        """1xx: action started, expect another reply."""
        return self.code.startswith("1")

    @property
    def is_success(self) -> bool:
        """2xx: action completed."""
        return self.code.startswith("2")

    @property
    def is_intermediate(self) -> bool:
        """3xx: more information needed."""
        return self.code.startswith("3")

    @property
    def is_error(self) -> bool:
        """4xx or 5xx."""
        return self.code[:1] in ("4", "5")

    def __str__(self) -> str:
        return "\n".join(self.raw_lines) if self.raw_lines else f"{self.code} {self.message}"


@dataclass(frozen=True)
class FtpFileInfo:
    """
    A remote file or directory.

    Only the name is always known. Every other field is None when the
    server did not report it (NLST listings, missing MLSD facts).
    Timestamps are kept as the server sent them: YYYYMMDDHHMMSS[.sss].
    """
    name: str
    is_dir: Optional[bool] = None
    size: Optional[int] = None
    creation_time: Optional[str] = None
    last_modification_time: Optional[str] = None
    unique_id: Optional[str] = None


class ReplyReader:
    """
    Incrementally assembles one reply from lines.

    Usage:
        reader = ReplyReader()
        for line in lines:
            reply = reader.feed(line)
            if reply is not None:
                break
    """

    def __init__(self):
        self._code: Optional[str] = None
        self._lines: List[str] = []
        self._raw: List[str] = []

    @property
    def in_progress(self) -> bool:
        """True once the first line of a reply has been fed."""
        return self._code is not None

    def feed(self, line: str) -> Optional[Reply]:
        """
        Feed one line (without its terminator).

        Returns:
            The completed Reply, or None if more lines are needed

        Raises:
            FTPProtocolError: If the first line is not a valid reply line
        """
        if self._code is None:
            match = REPLY_LINE_PATTERN.match(line)
            if not match:
                raise FTPProtocolError(f"Malformed reply line: {line!r}")
            code, separator, text = match.groups()
            self._code = code
            self._raw = [line]
            self._lines = [text]
            if separator == " ":
                return self._finish()
            return None

        self._raw.append(line)
        if line[:3] == self._code and line[3:4] == " ":
            self._lines.append(line[4:])
            return self._finish()
        if line[:3] == self._code and line[3:4] == "-":
            self._lines.append(line[4:])
        else:
            self._lines.append(line)
        return None

    def _finish(self) -> Reply:
        reply = Reply(code=self._code, lines=self._lines, raw_lines=self._raw)
        self._code = None
        self._lines = []
        self._raw = []
        return reply


def parse_reply(lines: Iterable[str]) -> Reply:
    """
    Parse a complete reply from its text lines.

    Args:
        lines: Reply lines with line terminators stripped

    Returns:
        Parsed Reply

    Raises:
        FTPProtocolError: If the reply is malformed or truncated
    """
    reader = ReplyReader()
    for line in lines:
        reply = reader.feed(line)
        if reply is not None:
            return reply
    raise FTPProtocolError("Truncated reply: missing final line")


def parse_pasv_reply(reply: Reply) -> Tuple[str, int]:
    """
    Parse the '227 Entering Passive Mode (h1,h2,h3,h4,p1,p2)' reply.

    Returns:
        (host, port) tuple

    Raises:
        FTPProtocolError: If the reply is not a well-formed 227
    """
    if reply.code != "227":
        raise FTPProtocolError("Unexpected PASV reply", reply=reply)

    match = PASV_PATTERN.search(reply.message)
    if not match:
        raise FTPProtocolError("Unparseable PASV reply", reply=reply)

    numbers = [int(n) for n in match.groups()]
    if any(n > 255 for n in numbers):
        raise FTPProtocolError("PASV reply value out of range", reply=reply)

    host = "%d.%d.%d.%d" % tuple(numbers[:4])
    port = (numbers[4] << 8) + numbers[5]
    return host, port


def format_port_argument(host: str, port: int) -> str:
    """Format an IPv4 address and port as the h1,h2,h3,h4,p1,p2 PORT argument."""
    parts = host.split(".")
    if len(parts) != 4:
        raise FTPProtocolError(f"PORT requires an IPv4 address, got {host!r}")
    return ",".join(parts + [str(port >> 8), str(port & 0xFF)])


def parse_pwd_reply(reply: Reply) -> str:
    """
    Extract the directory name from a '257 "<dir>" ...' reply.

    Doubled quotes inside the name are unescaped.
    """
    if reply.code != "257":
        raise FTPProtocolError("Unexpected PWD reply", reply=reply)

    text = reply.lines[0] if reply.lines else ""
    if not text.startswith('"'):
        # Some servers omit the quotes
        return text.split(" ", 1)[0]

    name = []
    i = 1
    while i < len(text):
        char = text[i]
        i += 1
        if char == '"':
            if i < len(text) and text[i] == '"':
                name.append('"')
                i += 1
                continue
            return "".join(name)
        name.append(char)
    raise FTPProtocolError("Unterminated directory name in PWD reply", reply=reply)


def parse_size_reply(reply: Reply) -> int:
    """Parse a '213 <size>' reply."""
    if reply.code != "213":
        raise FTPProtocolError("Unexpected SIZE reply", reply=reply)
    try:
        return int(reply.message.strip())
    except ValueError as e:
        raise FTPProtocolError("Unparseable SIZE reply", e, reply)


def parse_mlsd_line(line: str) -> Dict[str, str]:
    """
    Parse one MLSD fact line: 'fact1=value1;fact2=value2; name'.

    Fact names are lowercased, values and the name are kept verbatim.
    The file name is stored under the "name" key.

    Raises:
        FTPProtocolError: If the line is empty or malformed
    """
    if not line:
        raise FTPProtocolError("Empty MLSD line")

    if line.startswith(" "):
        # No facts at all, just ' name'
        return {"name": line[1:]}

    facts_part, separator, name = line.partition("; ")
    if not separator or not name:
        raise FTPProtocolError(f"Malformed MLSD line: {line!r}")

    facts = {}
    for fact in facts_part.split(";"):
        if not fact:
            continue
        key, equals, value = fact.partition("=")
        if not equals:
            raise FTPProtocolError(f"Malformed MLSD fact {fact!r} in line {line!r}")
        facts[key.lower()] = value
    facts["name"] = name
    return facts


def facts_to_file_info(facts: Dict[str, str]) -> Optional[FtpFileInfo]:
    """
    Convert MLSD facts to an FtpFileInfo.

    Returns:
        FtpFileInfo, or None if the entry is the listed directory itself
        or one of its parents

    Raises:
        FTPProtocolError: If the size fact is not an integer
    """
    name = facts["name"]
    if name in SELF_OR_PARENT_NAMES:
        return None

    is_dir = None
    entry_type = facts.get("type")
    if entry_type is not None:
        entry_type = entry_type.lower()
        if entry_type in SELF_OR_PARENT_TYPES:
            return None
        if entry_type == "file":
            is_dir = False
        elif entry_type == "dir":
            is_dir = True

    size = None
    if "size" in facts:
        try:
            size = int(facts["size"])
        except ValueError as e:
            raise FTPProtocolError(f"Invalid size fact for {name!r}", e)

    return FtpFileInfo(
        name=name,
        is_dir=is_dir,
        size=size,
        creation_time=facts.get("create"),
        last_modification_time=facts.get("modify"),
        unique_id=facts.get("unique"),
    )
