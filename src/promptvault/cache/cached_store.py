"""Caching decorator around a remote Store.

Reads are remote-first: the remote is always asked first and the local
cache is consulted only when the remote fails. Successful remote reads
refresh the cache (the index on ``list``, the body on ``get_content``).
Writes go straight to the remote and never touch the cache, so the cache
can lag behind the remote but never get ahead of it.
"""

import logging
from enum import Enum
from typing import List, Optional

from promptvault.cache.manager import CacheManager
from promptvault.config import VaultConfig
from promptvault.errors import (
    CacheUnavailableError,
    EmptyIndexError,
    IndexNotFoundError,
    StorageError,
)
from promptvault.model import Index, IndexedPrompt, Prompt
from promptvault.store.base import GistInfo, Store

logger = logging.getLogger(__name__)


class ReadSource(Enum):
    """Where the answer to the most recent list/content read came from."""

    REMOTE = "remote"
    CACHE = "cache"


class CachedStore(Store):
    """Store decorator adding a local read-through/write-through cache.

    Examples:
        >>> remote = GistStore(config)
        >>> store = CachedStore(remote, CacheManager(config.cache_dir), config)
        >>> prompts = store.list()  # remote, or the cached index if offline
        >>> store.last_source
        <ReadSource.REMOTE: 'remote'>
    """

    def __init__(
        self,
        remote: Store,
        cache_manager: CacheManager,
        config: Optional[VaultConfig] = None,
        force_remote: bool = False,
    ):
        """Initialize the decorator.

        Args:
            remote: Authoritative store to wrap
            cache_manager: Local cache
            config: User configuration
            force_remote: Never fall back to the cache on reads
        """
        self.remote = remote
        self.cache = cache_manager
        self.config = config
        self.force_remote = force_remote
        self.last_source: Optional[ReadSource] = None

    # =========================================================================
    # Cached reads
    # =========================================================================

    def list(self) -> List[Prompt]:
        """List prompts, falling back to the cached index when the remote fails.

        Returns:
            Prompts from the remote, or from the cached index with empty content

        Raises:
            IndexNotFoundError, EmptyIndexError: Remote answered with no prompts
            CacheUnavailableError: Remote failed and no cached index exists
            PromptVaultError: Remote failed and force_remote is set
        """
        try:
            prompts = self.remote.list()
        except (IndexNotFoundError, EmptyIndexError):
            # An answer from the remote, not a failure to reach it
            raise
        except Exception as remote_error:
            if self.force_remote:
                raise
            return self._list_from_cache(remote_error)

        self.last_source = ReadSource.REMOTE
        self._refresh_index(prompts)
        return prompts

    def _list_from_cache(self, remote_error: Exception) -> List[Prompt]:
        logger.info(f"Remote list failed, falling back to cache: {remote_error}")
        try:
            index = self.cache.load_index()
        except StorageError as cache_error:
            raise CacheUnavailableError(remote_error, cache_error) from remote_error

        self.last_source = ReadSource.CACHE
        return index.to_prompts()

    def _refresh_index(self, prompts: List[Prompt]) -> None:
        """Best-effort rebuild of the cached index from a remote listing."""
        try:
            try:
                previous = self.cache.load_index()
            except StorageError:
                previous = None
            self.cache.save_index(Index.from_prompts(prompts, previous))
        except StorageError as e:
            logger.warning(f"Failed to update cache index: {e}")

    def get_content(self, gist_id: str) -> str:
        """Fetch a prompt body, writing it through to the cache.

        Raises:
            ContentNotCachedError: Remote failed and the body was never cached;
                the message names both errors and it is chained to the remote one
            PromptVaultError: Remote failed and force_remote is set
        """
        try:
            content = self.remote.get_content(gist_id)
        except Exception as remote_error:
            if self.force_remote:
                raise
            logger.info(
                f"Remote fetch of {gist_id} failed, falling back to cache: {remote_error}"
            )
            try:
                content = self.cache.load_content(gist_id)
            except StorageError as cache_error:
                raise type(cache_error)(
                    f"remote error: {remote_error}, cache error: {cache_error}"
                ) from remote_error
            self.last_source = ReadSource.CACHE
            return content

        self.last_source = ReadSource.REMOTE
        try:
            self.cache.save_content(gist_id, content)
        except StorageError as e:
            logger.warning(f"Failed to cache content for {gist_id}: {e}")
        return content

    def sync_index(self) -> Index:
        """Replace the cached index with the remote index.json, byte for byte.

        Returns:
            The parsed index

        Raises:
            PromptVaultError: If the remote cannot be read or the cache written
        """
        raw = self.remote.get_raw_index()
        return self.cache.save_raw_index(raw)

    # =========================================================================
    # Pass-through operations
    # =========================================================================

    def get(self, keyword: str) -> List[Prompt]:
        return self.remote.get(keyword)

    def add(self, prompt: Prompt) -> None:
        self.remote.add(prompt)

    def update(self, prompt: Prompt) -> None:
        self.remote.update(prompt)

    def delete(self, keyword: str) -> None:
        self.remote.delete(keyword)

    def create_public_gist(self, prompt: Prompt) -> str:
        return self.remote.create_public_gist(prompt)

    def update_gist(self, gist_url: str, prompt: Prompt) -> None:
        self.remote.update_gist(gist_url, prompt)

    def get_gist_info(self, gist_url: str) -> GistInfo:
        return self.remote.get_gist_info(gist_url)

    def add_export(self, prompt: IndexedPrompt) -> None:
        self.remote.add_export(prompt)

    def update_export(self, prompt: IndexedPrompt) -> None:
        self.remote.update_export(prompt)

    def get_exports(self) -> List[IndexedPrompt]:
        return self.remote.get_exports()

    def find_existing_prompt_by_url(self, gist_url: str) -> Optional[Prompt]:
        return self.remote.find_existing_prompt_by_url(gist_url)

    def get_index(self) -> Index:
        return self.remote.get_index()

    def get_raw_index(self) -> str:
        return self.remote.get_raw_index()
