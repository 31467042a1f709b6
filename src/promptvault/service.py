"""Prompt service used by the command layer."""

import logging
from typing import List

from promptvault.errors import StorageError
from promptvault.model import Index, IndexedPrompt, Prompt
from promptvault.store.base import Store

logger = logging.getLogger(__name__)


class PromptService:
    """Use-case level operations on top of a Store."""

    def __init__(self, store: Store):
        self.store = store

    def list_prompts(self) -> List[Prompt]:
        return self.store.list()

    def filter_prompts(self, keyword: str) -> List[Prompt]:
        return self.store.get(keyword)

    def get_prompt_content(self, prompt: Prompt) -> str:
        """Fetch the body of ``prompt``.

        Args:
            prompt: Prompt whose id, or gist URL, identifies the gist

        Returns:
            Raw prompt content

        Raises:
            StorageError: If the prompt has no usable gist id
        """
        gist_id = prompt.gist_id()
        if not gist_id:
            raise StorageError(f"prompt {prompt.name!r} has no gist id")
        return self.store.get_content(gist_id)

    def get_exports(self) -> List[IndexedPrompt]:
        return self.store.get_exports()

    def sync_index(self) -> Index:
        """Refresh the locally cached index from the remote.

        Raises:
            StorageError: If the store has no local cache to refresh
            PromptVaultError: If the refresh itself fails
        """
        sync = getattr(self.store, "sync_index", None)
        if sync is None:
            raise StorageError(
                f"{type(self.store).__name__} does not keep a local cache to sync"
            )
        index = sync()
        logger.debug(
            f"Synced index: {len(index.prompts)} prompts, {len(index.exports)} exports"
        )
        return index
