"""Store interface for prompt repositories.

A Store is the authoritative repository of prompts. Implementations are
composed by constructor injection: the GitHub gist client talks to the
remote, and the caching decorator wraps any other Store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from promptvault.model import Index, IndexedPrompt, Prompt


@dataclass
class GistInfo:
    """Basic facts about a gist and the caller's access to it."""

    id: str
    url: str
    is_public: bool = False
    has_access: bool = False
    description: str = ""
    owner: str = ""


class Store(ABC):
    """Abstract prompt store.

    Errors are raised as promptvault.errors types so callers can classify
    them as auth, network, storage or validation failures.
    """

    @abstractmethod
    def list(self) -> List[Prompt]:
        """Return every prompt in the collection (content left empty).

        Raises:
            IndexNotFoundError: If the collection has no index yet
            EmptyIndexError: If the index holds no prompts
        """
        pass

    @abstractmethod
    def get(self, keyword: str) -> List[Prompt]:
        """Return prompts whose name, author or id contain ``keyword``."""
        pass

    @abstractmethod
    def get_content(self, gist_id: str) -> str:
        """Return the raw body of the prompt stored in ``gist_id``."""
        pass

    @abstractmethod
    def add(self, prompt: Prompt) -> None:
        pass

    @abstractmethod
    def update(self, prompt: Prompt) -> None:
        pass

    @abstractmethod
    def delete(self, keyword: str) -> None:
        pass

    @abstractmethod
    def create_public_gist(self, prompt: Prompt) -> str:
        """Publish ``prompt`` as a new public gist and return its URL."""
        pass

    @abstractmethod
    def update_gist(self, gist_url: str, prompt: Prompt) -> None:
        pass

    @abstractmethod
    def get_gist_info(self, gist_url: str) -> GistInfo:
        pass

    @abstractmethod
    def add_export(self, prompt: IndexedPrompt) -> None:
        pass

    @abstractmethod
    def update_export(self, prompt: IndexedPrompt) -> None:
        """Replace the export with the same gist_url, adding it if absent."""
        pass

    @abstractmethod
    def get_exports(self) -> List[IndexedPrompt]:
        pass

    @abstractmethod
    def find_existing_prompt_by_url(self, gist_url: str) -> Optional[Prompt]:
        pass

    @abstractmethod
    def get_index(self) -> Index:
        """Return the remote index."""
        pass

    @abstractmethod
    def get_raw_index(self) -> str:
        """Return the remote index.json exactly as stored."""
        pass


def matches_keyword(prompt: Prompt, keyword: str) -> bool:
    """Case-insensitive substring match on name, author or gist id."""
    needle = keyword.lower()
    return any(
        needle in value.lower() for value in (prompt.name, prompt.author, prompt.gist_id())
    )
