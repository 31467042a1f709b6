"""Cache manager for the on-disk prompt index and prompt bodies."""

import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Union

import orjson

from promptvault.errors import ContentNotCachedError, IndexNotFoundError, StorageError
from promptvault.model import CacheInfo, Index
from promptvault.utils import (
    CACHE_INFO_FILE,
    CONTENT_SUFFIX,
    DIR_MODE,
    INDEX_FILE,
    PROMPTS_DIR,
    atomic_write,
    directory_size,
)

logger = logging.getLogger(__name__)


class CacheManager:
    """Manages the local cache directory.

    Layout::

        <cache_dir>/index.json          serialized Index
        <cache_dir>/cache_info.json     optional statistics snapshot
        <cache_dir>/prompts/<id>.yaml   raw prompt bodies

    All writes go through a temp file and an atomic rename, so a failed or
    interrupted write leaves the previous file intact. There is no locking
    between processes; the last writer wins.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        """Initialize cache manager.

        Args:
            cache_dir: Root directory of the cache (created lazily)
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.prompts_dir = self.cache_dir / PROMPTS_DIR
        self.index_path = self.cache_dir / INDEX_FILE
        self.cache_info_path = self.cache_dir / CACHE_INFO_FILE

    def _content_path(self, gist_id: str) -> Path:
        """Get cache path for a prompt body.

        Raises:
            StorageError: If the id cannot be used as a file name
        """
        if not gist_id or gist_id in (".", "..") or "/" in gist_id or "\\" in gist_id:
            raise StorageError(f"Invalid cache key for prompt content: {gist_id!r}")
        return self.prompts_dir / f"{gist_id}{CONTENT_SUFFIX}"

    def ensure_cache_dir(self) -> None:
        """Create the cache root and prompts directory (owner-only).

        Directories that already exist keep their permissions.

        Raises:
            StorageError: If the directories cannot be created
        """
        try:
            for directory in (self.cache_dir, self.prompts_dir):
                if directory.is_dir():
                    continue
                directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                # mkdir mode is masked by the umask
                if sys.platform != "win32":
                    os.chmod(directory, DIR_MODE)
        except OSError as e:
            raise StorageError(
                f"Cannot create cache directory at {self.cache_dir}: {e}"
            ) from e

    # =========================================================================
    # Index
    # =========================================================================

    def load_index(self) -> Index:
        """Read the cached index.

        Returns:
            Index stored on disk

        Raises:
            IndexNotFoundError: If no index has been cached yet
            StorageError: If the index file cannot be read or parsed
        """
        try:
            raw = self.index_path.read_bytes()
        except FileNotFoundError as e:
            raise IndexNotFoundError("cache index not found") from e
        except OSError as e:
            raise StorageError(f"failed to read cache index: {e}") from e

        return self._parse_index(raw)

    @staticmethod
    def _parse_index(raw: bytes) -> Index:
        try:
            return Index.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            raise StorageError(f"failed to parse cache index: {e}") from e

    def save_index(self, index: Index) -> None:
        """Serialize and atomically replace the cached index.

        Args:
            index: Index to persist

        Raises:
            StorageError: If the index cannot be written
        """
        self.ensure_cache_dir()
        data = orjson.dumps(index.to_dict(), option=orjson.OPT_INDENT_2)
        try:
            atomic_write(self.index_path, data)
        except OSError as e:
            raise StorageError(f"failed to save cache index: {e}") from e

    def save_raw_index(self, raw: Union[str, bytes]) -> Index:
        """Store remote index JSON byte-for-byte after checking it parses.

        Args:
            raw: index.json content as fetched from the remote

        Returns:
            Parsed Index

        Raises:
            StorageError: If the content is not a valid index or cannot be written
        """
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        index = self._parse_index(raw)
        self.ensure_cache_dir()
        try:
            atomic_write(self.index_path, raw)
        except OSError as e:
            raise StorageError(f"failed to save raw index to cache: {e}") from e
        return index

    # =========================================================================
    # Content
    # =========================================================================

    def load_content(self, gist_id: str) -> str:
        """Read a cached prompt body exactly as it was stored.

        Raises:
            ContentNotCachedError: If the body is not cached
            StorageError: If the file cannot be read
        """
        path = self._content_path(gist_id)
        try:
            return path.read_bytes().decode("utf-8")
        except FileNotFoundError as e:
            raise ContentNotCachedError(f"cached content not found for {gist_id}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"failed to read cached content for {gist_id}: {e}") from e

    def save_content(self, gist_id: str, content: str) -> None:
        """Write a prompt body verbatim, replacing any cached copy.

        Raises:
            StorageError: If the body cannot be written
        """
        path = self._content_path(gist_id)
        self.ensure_cache_dir()
        try:
            atomic_write(path, content.encode("utf-8"))
        except OSError as e:
            raise StorageError(f"failed to save cached content for {gist_id}: {e}") from e

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_cache_info(self) -> CacheInfo:
        """Compute cache statistics from the index and a directory scan.

        A missing or unreadable index yields zero values rather than an error.

        Returns:
            CacheInfo snapshot
        """
        info = CacheInfo()
        try:
            index = self.load_index()
        except StorageError as e:
            logger.debug(f"No usable cache index for statistics: {e}")
        else:
            info.last_updated = index.last_updated
            info.total_prompts = len(index.prompts)

        info.cache_size_bytes = directory_size(self.cache_dir)
        return info

    def save_cache_info(self, info: CacheInfo) -> None:
        """Write a statistics snapshot to cache_info.json.

        Raises:
            StorageError: If the snapshot cannot be written
        """
        self.ensure_cache_dir()
        data = orjson.dumps(info.to_dict(), option=orjson.OPT_INDENT_2)
        try:
            atomic_write(self.cache_info_path, data)
        except OSError as e:
            raise StorageError(f"failed to save cache info: {e}") from e

    def clear(self) -> None:
        """Remove the entire cache directory."""
        if self.cache_dir.exists():
            try:
                shutil.rmtree(self.cache_dir)
            except OSError as e:
                raise StorageError(f"failed to clear cache at {self.cache_dir}: {e}") from e
