"""Utility functions for promptvault."""

import os
import re
import stat
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

# Cache layout constants
INDEX_FILE = "index.json"
CACHE_INFO_FILE = "cache_info.json"
PROMPTS_DIR = "prompts"
CONTENT_SUFFIX = ".yaml"

# Zero value for "never updated" timestamps
ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)

DIR_MODE = 0o700
FILE_MODE = 0o600

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 / RFC 3339 timestamp.

    Accepts a trailing ``Z`` and fractional seconds longer than microseconds
    (extra digits are truncated). Naive values are taken as UTC.

    Args:
        value: Timestamp string

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the string is not a valid timestamp

    Examples:
        >>> parse_timestamp('2024-01-02T03:04:05.123456789Z')
        datetime.datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=datetime.timezone.utc)
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339, using ``Z`` for UTC.

    Examples:
        >>> format_timestamp(datetime(2024, 1, 2, tzinfo=timezone.utc))
        '2024-01-02T00:00:00Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def extract_gist_id(gist_url: str) -> str:
    """Extract the gist id from a gist URL without validating it.

    Args:
        gist_url: URL such as 'https://gist.github.com/user/abc123'

    Returns:
        Last path segment with any '.git' suffix removed, or '' if none

    Examples:
        >>> extract_gist_id('https://gist.github.com/user/abc123.git')
        'abc123'
    """
    parts = gist_url.rstrip("/").split("/")
    if len(parts) < 2:
        return ""
    gist_id = parts[-1]
    if gist_id.endswith(".git"):
        gist_id = gist_id[: -len(".git")]
    return gist_id


def atomic_write(path: Union[str, Path], data: bytes, mode: int = FILE_MODE) -> None:
    """Write bytes to a file by writing a temp file and renaming it into place.

    The temp file lives in the target directory so the final ``os.replace``
    is a same-filesystem rename. On any failure the temp file is removed and
    an existing file at ``path`` is left untouched.

    Args:
        path: Destination file
        data: Bytes to write verbatim
        mode: Permission bits applied to the new file

    Raises:
        OSError: If the file cannot be written or moved into place
    """
    path = Path(path)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if sys.platform != "win32":
            os.chmod(temp_name, mode)
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


def directory_size(path: Union[str, Path]) -> int:
    """Total size in bytes of regular files under ``path``.

    Entries that cannot be read are skipped. A missing directory has size 0.
    """
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                st = os.lstat(os.path.join(root, name))
            except OSError:
                continue
            if stat.S_ISREG(st.st_mode):
                total += st.st_size
    return total
