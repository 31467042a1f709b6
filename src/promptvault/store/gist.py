"""GitHub Gist backed Store.

Each prompt lives in its own secret gist as a single ``<name>.yaml`` file.
A separate secret gist, identified by its description, holds ``index.json``
listing every prompt and every public re-share (export).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
import orjson

from promptvault.config import VaultConfig
from promptvault.errors import (
    AuthError,
    EmptyIndexError,
    IndexNotFoundError,
    NetworkError,
    NotFoundError,
    StorageError,
)
from promptvault.model import Index, IndexedPrompt, Prompt
from promptvault.store.base import GistInfo, Store, matches_keyword
from promptvault.utils import CONTENT_SUFFIX, INDEX_FILE, extract_gist_id, utc_now

logger = logging.getLogger(__name__)

INDEX_GIST_DESCRIPTION = "pv-prompts-index"
GITHUB_API_VERSION = "2022-11-28"
GISTS_PER_PAGE = 100


class GistStore(Store):
    """Thin GitHub Gist REST client implementing the Store interface.

    Failures are mapped onto the promptvault error taxonomy:
    transport errors become NetworkError, 401/403 become AuthError and any
    other HTTP failure becomes StorageError.
    """

    def __init__(self, config: VaultConfig, client: Optional[httpx.Client] = None):
        """Initialize the store.

        Args:
            config: User configuration (token, API URL, index gist id)
            client: Pre-built HTTP client; built lazily from config if None
        """
        self.config = config
        self._client = client
        self._index_gist_id = config.index_gist_id

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            if not self.config.github_token:
                raise AuthError("GitHub token is not configured")
            self._client = httpx.Client(
                base_url=self.config.api_url,
                headers={
                    "Authorization": f"Bearer {self.config.github_token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=30.0,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client if one was opened."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GistStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"cannot reach GitHub: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"GitHub rejected the request ({response.status_code}) for {url}"
            )
        if response.status_code == 404:
            raise NotFoundError(f"GitHub has no resource at {url}")
        if response.is_error:
            raise StorageError(
                f"GitHub request {method} {url} failed with status {response.status_code}"
            )
        return response

    def _get_gist(self, gist_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/gists/{gist_id}").json()

    def _file_content(self, gist_file: Dict[str, Any]) -> str:
        # Large files are truncated in the gist payload and must be fetched raw
        if gist_file.get("truncated") and gist_file.get("raw_url"):
            return self._request("GET", gist_file["raw_url"]).text
        return gist_file.get("content") or ""

    # =========================================================================
    # Index gist
    # =========================================================================

    def _index_id(self) -> str:
        """Find the index gist, creating an empty one on first use."""
        if self._index_gist_id:
            return self._index_gist_id

        page = 1
        while True:
            gists = self._request(
                "GET", "/gists", params={"per_page": GISTS_PER_PAGE, "page": page}
            ).json()
            for gist in gists:
                if gist.get("description") == INDEX_GIST_DESCRIPTION:
                    self._index_gist_id = gist["id"]
                    return self._index_gist_id
            if len(gists) < GISTS_PER_PAGE:
                break
            page += 1

        logger.info("No index gist found, creating one")
        empty = Index(last_updated=utc_now())
        created = self._request(
            "POST",
            "/gists",
            json={
                "description": INDEX_GIST_DESCRIPTION,
                "public": False,
                "files": {INDEX_FILE: {"content": self._dump_index(empty)}},
            },
        ).json()
        self._index_gist_id = created["id"]
        return self._index_gist_id

    @staticmethod
    def _dump_index(index: Index) -> str:
        return orjson.dumps(index.to_dict(), option=orjson.OPT_INDENT_2).decode()

    def get_raw_index(self) -> str:
        gist = self._get_gist(self._index_id())
        index_file = (gist.get("files") or {}).get(INDEX_FILE)
        if index_file is None:
            raise IndexNotFoundError(
                "no prompt index found - this appears to be your first time using pv"
            )
        return self._file_content(index_file)

    def get_index(self) -> Index:
        raw = self.get_raw_index()
        try:
            return Index.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            raise StorageError(f"invalid index JSON from GitHub: {e}") from e

    def _save_index(self, index: Index) -> None:
        index.last_updated = utc_now()
        self._request(
            "PATCH",
            f"/gists/{self._index_id()}",
            json={"files": {INDEX_FILE: {"content": self._dump_index(index)}}},
        )

    # =========================================================================
    # Prompts
    # =========================================================================

    def list(self) -> List[Prompt]:
        index = self.get_index()
        if not index.prompts:
            raise EmptyIndexError("no prompts found in your collection")
        return index.to_prompts()

    def get(self, keyword: str) -> List[Prompt]:
        return [p for p in self.list() if matches_keyword(p, keyword)]

    def get_content(self, gist_id: str) -> str:
        gist = self._get_gist(gist_id)
        for filename, gist_file in (gist.get("files") or {}).items():
            if filename.endswith(CONTENT_SUFFIX):
                return self._file_content(gist_file)
        raise StorageError(f"no {CONTENT_SUFFIX} file found in gist {gist_id}")

    def add(self, prompt: Prompt) -> None:
        created = self._request(
            "POST",
            "/gists",
            json={
                "description": prompt.description,
                "public": False,
                "files": {f"{prompt.name}{CONTENT_SUFFIX}": {"content": prompt.content}},
            },
        ).json()
        prompt.id = created["id"]
        prompt.gist_url = created["html_url"]

        index = self.get_index()
        index.prompts.append(IndexedPrompt.from_prompt(prompt))
        self._save_index(index)

    def update(self, prompt: Prompt) -> None:
        gist_id = prompt.gist_id()
        self._request(
            "PATCH",
            f"/gists/{gist_id}",
            json={
                "description": prompt.description,
                "files": {f"{prompt.name}{CONTENT_SUFFIX}": {"content": prompt.content}},
            },
        )

        index = self.get_index()
        for entry in index.prompts:
            if extract_gist_id(entry.gist_url) == gist_id:
                entry.author = prompt.author
                entry.name = prompt.name
                entry.file_path = f"{prompt.name}{CONTENT_SUFFIX}"
                entry.last_updated = utc_now()
                break
        self._save_index(index)

    def delete(self, keyword: str) -> None:
        index = self.get_index()
        for entry in index.prompts:
            gist_id = extract_gist_id(entry.gist_url)
            if keyword in (gist_id, entry.file_path, entry.name):
                break
        else:
            raise StorageError(f"no prompt matches {keyword!r}")

        self._request("DELETE", f"/gists/{gist_id}")
        index.prompts = [p for p in index.prompts if p is not entry]
        self._save_index(index)

    def find_existing_prompt_by_url(self, gist_url: str) -> Optional[Prompt]:
        for entry in self.get_index().prompts:
            if entry.gist_url == gist_url:
                return entry.to_prompt()
        return None

    # =========================================================================
    # Public re-shares
    # =========================================================================

    def create_public_gist(self, prompt: Prompt) -> str:
        created = self._request(
            "POST",
            "/gists",
            json={
                "description": prompt.description,
                "public": True,
                "files": {f"{prompt.name}{CONTENT_SUFFIX}": {"content": prompt.content}},
            },
        ).json()
        return created["html_url"]

    def update_gist(self, gist_url: str, prompt: Prompt) -> None:
        self._request(
            "PATCH",
            f"/gists/{extract_gist_id(gist_url)}",
            json={
                "description": prompt.description,
                "files": {f"{prompt.name}{CONTENT_SUFFIX}": {"content": prompt.content}},
            },
        )

    def get_gist_info(self, gist_url: str) -> GistInfo:
        gist_id = extract_gist_id(gist_url)
        try:
            gist = self._get_gist(gist_id)
        except NotFoundError:
            # Missing or not visible to this token
            return GistInfo(id=gist_id, url=gist_url)

        return GistInfo(
            id=gist_id,
            url=gist_url,
            is_public=bool(gist.get("public")),
            has_access=True,
            description=gist.get("description") or "",
            owner=(gist.get("owner") or {}).get("login", ""),
        )

    def add_export(self, prompt: IndexedPrompt) -> None:
        index = self.get_index()
        index.exports.append(prompt)
        self._save_index(index)

    def update_export(self, prompt: IndexedPrompt) -> None:
        index = self.get_index()
        for i, export in enumerate(index.exports):
            if export.gist_url == prompt.gist_url:
                index.exports[i] = prompt
                break
        else:
            index.exports.append(prompt)
        self._save_index(index)

    def get_exports(self) -> List[IndexedPrompt]:
        return self.get_index().exports
