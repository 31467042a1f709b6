"""In-memory Store implementation."""

import uuid
from typing import Dict, List, Optional

import orjson

from promptvault.errors import EmptyIndexError, StorageError
from promptvault.model import Index, IndexedPrompt, Prompt
from promptvault.store.base import GistInfo, Store, matches_keyword
from promptvault.utils import extract_gist_id, utc_now


class MemoryStore(Store):
    """Store that keeps the index and gist bodies in process memory.

    Mirrors the behaviour of the gist-backed store closely enough to stand
    in for it in tests and offline experiments.

    Examples:
        >>> store = MemoryStore(base_url="https://gist.example/u")
        >>> store.add(Prompt(name="greet", author="me", content="hi"))
        >>> [p.name for p in store.list()]
        ['greet']
    """

    def __init__(self, base_url: str = "https://gist.github.com/memory"):
        self.base_url = base_url.rstrip("/")
        self.index = Index(last_updated=utc_now())
        self.contents: Dict[str, str] = {}
        self.public: Dict[str, bool] = {}

    def _new_url(self) -> str:
        return f"{self.base_url}/{uuid.uuid4().hex}"

    def _find(self, keyword: str) -> Optional[IndexedPrompt]:
        for entry in self.index.prompts:
            if keyword in (extract_gist_id(entry.gist_url), entry.file_path, entry.name):
                return entry
        return None

    def list(self) -> List[Prompt]:
        if not self.index.prompts:
            raise EmptyIndexError("no prompts found in your collection")
        return self.index.to_prompts()

    def get(self, keyword: str) -> List[Prompt]:
        return [p for p in self.index.to_prompts() if matches_keyword(p, keyword)]

    def get_content(self, gist_id: str) -> str:
        try:
            return self.contents[gist_id]
        except KeyError:
            raise StorageError(f"no such gist: {gist_id}") from None

    def add(self, prompt: Prompt) -> None:
        url = prompt.gist_url or self._new_url()
        gist_id = extract_gist_id(url)
        self.contents[gist_id] = prompt.content
        self.public[gist_id] = False
        prompt.gist_url = url
        prompt.id = gist_id
        self.index.prompts.append(IndexedPrompt.from_prompt(prompt))
        self.index.last_updated = utc_now()

    def update(self, prompt: Prompt) -> None:
        gist_id = prompt.gist_id()
        if gist_id not in self.contents:
            raise StorageError(f"no such gist: {gist_id}")
        self.contents[gist_id] = prompt.content
        for i, entry in enumerate(self.index.prompts):
            if extract_gist_id(entry.gist_url) == gist_id:
                self.index.prompts[i] = IndexedPrompt.from_prompt(
                    Prompt(
                        name=prompt.name,
                        author=prompt.author,
                        gist_url=entry.gist_url,
                        parent=entry.parent,
                    )
                )
        self.index.last_updated = utc_now()

    def delete(self, keyword: str) -> None:
        entry = self._find(keyword)
        if entry is None:
            raise StorageError(f"no prompt matches {keyword!r}")
        gist_id = extract_gist_id(entry.gist_url)
        self.contents.pop(gist_id, None)
        self.index.prompts = [p for p in self.index.prompts if p is not entry]
        self.index.last_updated = utc_now()

    def create_public_gist(self, prompt: Prompt) -> str:
        url = self._new_url()
        gist_id = extract_gist_id(url)
        self.contents[gist_id] = prompt.content
        self.public[gist_id] = True
        return url

    def update_gist(self, gist_url: str, prompt: Prompt) -> None:
        gist_id = extract_gist_id(gist_url)
        if gist_id not in self.contents:
            raise StorageError(f"no such gist: {gist_id}")
        self.contents[gist_id] = prompt.content

    def get_gist_info(self, gist_url: str) -> GistInfo:
        gist_id = extract_gist_id(gist_url)
        if gist_id not in self.contents:
            return GistInfo(id=gist_id, url=gist_url)
        return GistInfo(
            id=gist_id,
            url=gist_url,
            is_public=self.public.get(gist_id, False),
            has_access=True,
        )

    def add_export(self, prompt: IndexedPrompt) -> None:
        self.index.exports.append(prompt)
        self.index.last_updated = utc_now()

    def update_export(self, prompt: IndexedPrompt) -> None:
        for i, export in enumerate(self.index.exports):
            if export.gist_url == prompt.gist_url:
                self.index.exports[i] = prompt
                break
        else:
            self.index.exports.append(prompt)
        self.index.last_updated = utc_now()

    def get_exports(self) -> List[IndexedPrompt]:
        return list(self.index.exports)

    def find_existing_prompt_by_url(self, gist_url: str) -> Optional[Prompt]:
        for entry in self.index.prompts:
            if entry.gist_url == gist_url:
                return entry.to_prompt()
        return None

    def get_index(self) -> Index:
        return Index.from_dict(self.index.to_dict())

    def get_raw_index(self) -> str:
        return orjson.dumps(self.index.to_dict(), option=orjson.OPT_INDENT_2).decode()
