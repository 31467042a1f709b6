"""Data model for prompts, the prompt index and cache statistics.

The JSON layout produced by ``to_dict`` matches the index file shared with
the remote index gist, so a cached ``index.json`` and the remote one are
interchangeable.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from promptvault.utils import (
    CONTENT_SUFFIX,
    ZERO_TIME,
    extract_gist_id,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class Prompt:
    """A prompt stored in its own gist.

    Attributes:
        id: Gist id of the prompt
        name: Prompt name
        author: Author recorded in the prompt front matter
        gist_url: URL of the gist, the prompt's identity key
        description: Free-form description
        tags: Tags from the front matter
        version: Version string from the front matter
        content: Raw body of the prompt file (empty when listed from the index)
        parent: Gist URL of the private original if this is a public re-share
    """

    id: str = ""
    name: str = ""
    author: str = ""
    gist_url: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)
    version: str = ""
    content: str = ""
    parent: Optional[str] = None

    def gist_id(self) -> str:
        """Gist id, derived from the URL when ``id`` is unset."""
        return self.id or extract_gist_id(self.gist_url)


def _str_field(data: Dict[str, Any], key: str, default: Optional[str] = "") -> Optional[str]:
    """Read an optional string field, rejecting any other JSON type."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"index field {key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass
class IndexedPrompt:
    """Metadata-only index record for a prompt."""

    gist_url: str
    file_path: str = ""
    author: str = ""
    name: str = ""
    last_updated: datetime = ZERO_TIME
    parent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "gist_url": self.gist_url,
            "file_path": self.file_path,
            "author": self.author,
            "name": self.name,
            "last_updated": format_timestamp(self.last_updated),
        }
        if self.parent is not None:
            data["parent"] = self.parent
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexedPrompt":
        """Build an entry from parsed JSON.

        Raises:
            ValueError: If the entry is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"index entry must be a JSON object, got {type(data).__name__}")
        last_updated = _str_field(data, "last_updated")
        return cls(
            gist_url=_str_field(data, "gist_url"),
            file_path=_str_field(data, "file_path"),
            author=_str_field(data, "author"),
            name=_str_field(data, "name"),
            last_updated=parse_timestamp(last_updated) if last_updated else ZERO_TIME,
            parent=_str_field(data, "parent", default=None),
        )

    @classmethod
    def from_prompt(
        cls, prompt: Prompt, last_updated: Optional[datetime] = None
    ) -> "IndexedPrompt":
        return cls(
            gist_url=prompt.gist_url,
            file_path=f"{prompt.name}{CONTENT_SUFFIX}",
            author=prompt.author,
            name=prompt.name,
            last_updated=last_updated or utc_now(),
            parent=prompt.parent,
        )

    def to_prompt(self) -> Prompt:
        """Convert to a Prompt with no content (the index carries no bodies)."""
        return Prompt(
            id=extract_gist_id(self.gist_url),
            name=self.name,
            author=self.author,
            gist_url=self.gist_url,
            parent=self.parent,
        )


def _unique_by_url(entries: Iterable[IndexedPrompt]) -> List[IndexedPrompt]:
    """Drop entries whose gist_url was already seen, keeping the first."""
    seen = set()
    unique = []
    for entry in entries:
        if entry.gist_url in seen:
            logger.debug(f"Dropping duplicate index entry for {entry.gist_url}")
            continue
        seen.add(entry.gist_url)
        unique.append(entry)
    return unique


@dataclass
class Index:
    """Local summary of known prompts and their public re-shares.

    ``exports`` mirrors ``prompts`` for public re-shares, each linked to its
    private original through ``parent``.
    """

    prompts: List[IndexedPrompt] = field(default_factory=list)
    exports: List[IndexedPrompt] = field(default_factory=list)
    last_updated: datetime = ZERO_TIME

    def __post_init__(self):
        self.prompts = _unique_by_url(self.prompts)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "prompts": [p.to_dict() for p in self.prompts],
            "last_updated": format_timestamp(self.last_updated),
        }
        if self.exports:
            data["exports"] = [e.to_dict() for e in self.exports]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Index":
        """Build an Index from parsed JSON.

        Raises:
            ValueError: If the structure or a timestamp is invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"index must be a JSON object, got {type(data).__name__}")
        for key in ("prompts", "exports"):
            if not isinstance(data.get(key) or [], list):
                raise ValueError(f"index field {key!r} must be a list")
        last_updated = _str_field(data, "last_updated")
        return cls(
            prompts=[IndexedPrompt.from_dict(p) for p in data.get("prompts") or []],
            exports=[IndexedPrompt.from_dict(e) for e in data.get("exports") or []],
            last_updated=parse_timestamp(last_updated) if last_updated else ZERO_TIME,
        )

    @classmethod
    def from_prompts(
        cls, prompts: Iterable[Prompt], previous: Optional["Index"] = None
    ) -> "Index":
        """Rebuild an index from a full prompt listing.

        Per-entry timestamps and the exports list of ``previous`` are kept,
        and the index timestamp only moves when the set of prompts changed.

        Args:
            prompts: Complete listing from the remote
            previous: Index currently on disk, if any

        Returns:
            New Index
        """
        now = utc_now()
        known = {}
        if previous is not None:
            known = {p.gist_url: p.last_updated for p in previous.prompts}

        entries = _unique_by_url(
            IndexedPrompt.from_prompt(p, known.get(p.gist_url, now)) for p in prompts
        )

        last_updated = now
        if previous is not None:
            unchanged = len(entries) == len(previous.prompts) and all(
                e.gist_url in known for e in entries
            )
            if unchanged:
                last_updated = previous.last_updated

        return cls(
            prompts=entries,
            exports=list(previous.exports) if previous is not None else [],
            last_updated=last_updated,
        )

    def to_prompts(self) -> List[Prompt]:
        return [entry.to_prompt() for entry in self.prompts]


@dataclass
class CacheInfo:
    """Statistics about the local cache, recomputed on demand."""

    last_updated: datetime = ZERO_TIME
    total_prompts: int = 0
    cache_size_bytes: int = 0

    @property
    def never_synced(self) -> bool:
        return self.last_updated == ZERO_TIME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_updated": format_timestamp(self.last_updated),
            "total_prompts": self.total_prompts,
            "cache_size_bytes": self.cache_size_bytes,
        }
