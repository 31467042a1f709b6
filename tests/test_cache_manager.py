"""Unit tests for cache manager."""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import orjson
import pytest

from promptvault.cache.manager import CacheManager
from promptvault.errors import ContentNotCachedError, IndexNotFoundError, StorageError
from promptvault.model import CacheInfo, Index, IndexedPrompt
from promptvault.utils import ZERO_TIME


@pytest.fixture
def temp_cache_dir():
    """Create temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "pv"


@pytest.fixture
def cache_manager(temp_cache_dir):
    """Create test cache manager."""
    return CacheManager(temp_cache_dir)


@pytest.fixture
def sample_index():
    """Create an index with one prompt and one export."""
    return Index(
        prompts=[
            IndexedPrompt(
                gist_url="https://gist.github.com/me/abc123",
                file_path="greet.yaml",
                author="me",
                name="greet",
                last_updated=datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc),
            )
        ],
        exports=[
            IndexedPrompt(
                gist_url="https://gist.github.com/me/pub999",
                file_path="greet.yaml",
                author="me",
                name="greet",
                last_updated=datetime(2024, 5, 2, tzinfo=timezone.utc),
                parent="https://gist.github.com/me/abc123",
            )
        ],
        last_updated=datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc),
    )


class TestCacheDirectory:
    """Test cache directory creation."""

    def test_directories_created_lazily(self, cache_manager):
        """Test that constructing a manager does not touch the disk."""
        assert not cache_manager.cache_dir.exists()

    def test_ensure_cache_dir_is_idempotent(self, cache_manager):
        """Test that ensure_cache_dir can be called repeatedly."""
        cache_manager.ensure_cache_dir()
        cache_manager.ensure_cache_dir()

        assert cache_manager.cache_dir.is_dir()
        assert cache_manager.prompts_dir.is_dir()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_directories_are_owner_only(self, cache_manager):
        """Test cache directories get 0700 permissions."""
        cache_manager.ensure_cache_dir()

        assert cache_manager.cache_dir.stat().st_mode & 0o777 == 0o700
        assert cache_manager.prompts_dir.stat().st_mode & 0o777 == 0o700

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_existing_directory_keeps_permissions(self, temp_cache_dir):
        """Test that a pre-existing cache root is not chmodded."""
        temp_cache_dir.mkdir(mode=0o755)
        os.chmod(temp_cache_dir, 0o755)

        CacheManager(temp_cache_dir).ensure_cache_dir()

        assert temp_cache_dir.stat().st_mode & 0o777 == 0o755
        assert (temp_cache_dir / "prompts").stat().st_mode & 0o777 == 0o700

    def test_unwritable_location_raises_storage_error(self, tmp_path):
        """Test that a file in place of the cache root is a storage error."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        manager = CacheManager(blocker / "pv")

        with pytest.raises(StorageError):
            manager.ensure_cache_dir()


class TestIndex:
    """Test index persistence."""

    def test_load_missing_index(self, cache_manager):
        """Test that a missing index is reported as IndexNotFoundError."""
        with pytest.raises(IndexNotFoundError):
            cache_manager.load_index()

    def test_save_then_load_returns_equal_index(self, cache_manager, sample_index):
        """Test save/load idempotence."""
        cache_manager.save_index(sample_index)

        assert cache_manager.load_index() == sample_index

    def test_index_survives_restart(self, temp_cache_dir):
        """Test that a new manager over the same directory sees the saved index."""
        t1 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        CacheManager(temp_cache_dir).save_index(
            Index(prompts=[IndexedPrompt(gist_url="https://x/1", name="A")], last_updated=t1)
        )

        loaded = CacheManager(temp_cache_dir).load_index()

        assert len(loaded.prompts) == 1
        assert loaded.prompts[0].name == "A"
        assert loaded.last_updated == t1

    def test_corrupt_index_is_storage_error_not_missing(self, cache_manager):
        """Test that a corrupt index is distinguishable from a missing one."""
        cache_manager.ensure_cache_dir()
        cache_manager.index_path.write_text("{not json")

        with pytest.raises(StorageError) as exc_info:
            cache_manager.load_index()

        assert not isinstance(exc_info.value, IndexNotFoundError)

    def test_wrong_typed_entry_is_storage_error(self, cache_manager):
        """Test that an entry with a non-string field is a storage error."""
        cache_manager.ensure_cache_dir()
        cache_manager.index_path.write_text('{"prompts": [{"gist_url": 5, "name": "A"}]}')

        with pytest.raises(StorageError) as exc_info:
            cache_manager.load_index()

        assert not isinstance(exc_info.value, IndexNotFoundError)

    def test_index_file_format(self, cache_manager, sample_index):
        """Test the on-disk JSON keys and timestamp format."""
        cache_manager.save_index(sample_index)

        data = orjson.loads(cache_manager.index_path.read_bytes())

        assert data["last_updated"] == "2024-05-02T08:00:00Z"
        assert data["prompts"][0]["gist_url"] == "https://gist.github.com/me/abc123"
        assert data["prompts"][0]["last_updated"] == "2024-05-01T12:30:15.250000Z"
        assert "parent" not in data["prompts"][0]
        assert data["exports"][0]["parent"] == "https://gist.github.com/me/abc123"

    def test_failed_save_keeps_previous_index(self, cache_manager, sample_index):
        """Test that a failed write leaves the existing index intact."""
        cache_manager.save_index(sample_index)
        before = cache_manager.index_path.read_bytes()

        with patch("promptvault.utils.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                cache_manager.save_index(Index())

        assert cache_manager.index_path.read_bytes() == before
        assert cache_manager.load_index() == sample_index
        leftovers = [p.name for p in cache_manager.cache_dir.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_save_raw_index_keeps_bytes(self, cache_manager):
        """Test that the raw remote index is stored byte for byte."""
        raw = (
            '{\n  "prompts": [\n    {"gist_url": "https://gist.github.com/u/1",'
            ' "file_path": "a.yaml", "author": "u", "name": "a",'
            ' "last_updated": "2024-01-01T10:00:00.123456789+08:00"}\n  ],\n'
            '  "last_updated": "2024-01-01T10:00:00.123456789+08:00"\n}'
        )

        index = cache_manager.save_raw_index(raw)

        assert cache_manager.index_path.read_text() == raw
        assert index.prompts[0].name == "a"
        assert index.last_updated.utcoffset().total_seconds() == 8 * 3600

    def test_save_raw_index_rejects_invalid_json(self, cache_manager, sample_index):
        """Test that invalid remote JSON does not replace a valid index."""
        cache_manager.save_index(sample_index)

        with pytest.raises(StorageError):
            cache_manager.save_raw_index("<html>rate limited</html>")

        assert cache_manager.load_index() == sample_index


class TestContent:
    """Test prompt body persistence."""

    def test_load_missing_content(self, cache_manager):
        """Test that a miss is reported as ContentNotCachedError."""
        with pytest.raises(ContentNotCachedError):
            cache_manager.load_content("abc123")

    def test_content_is_byte_identical(self, cache_manager):
        """Test that content with separators and CRLF survives unchanged."""
        raw = "---\nname: greet\nauthor: me\n---\r\nHello {{name}}\n---\n\ttrailing  \n"

        cache_manager.save_content("abc123", raw)

        assert cache_manager.load_content("abc123") == raw
        path = cache_manager.prompts_dir / "abc123.yaml"
        assert path.read_bytes() == raw.encode("utf-8")

    def test_save_content_overwrites(self, cache_manager):
        """Test unconditional overwrite."""
        cache_manager.save_content("abc123", "old")
        cache_manager.save_content("abc123", "new")

        assert cache_manager.load_content("abc123") == "new"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_content_file_is_owner_only(self, cache_manager):
        """Test content files get 0600 permissions."""
        cache_manager.save_content("abc123", "body")

        mode = os.stat(cache_manager.prompts_dir / "abc123.yaml").st_mode
        assert mode & 0o777 == 0o600

    def test_failed_save_keeps_previous_content(self, cache_manager):
        """Test that a failed write leaves the cached body intact."""
        cache_manager.save_content("abc123", "original")

        with patch("promptvault.utils.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                cache_manager.save_content("abc123", "replacement")

        assert cache_manager.load_content("abc123") == "original"

    @pytest.mark.parametrize("bad_id", ["", "..", "a/b", "..\\evil"])
    def test_rejects_unsafe_ids(self, cache_manager, bad_id):
        """Test that ids which are not plain file names are refused."""
        with pytest.raises(StorageError):
            cache_manager.save_content(bad_id, "x")


class TestCacheInfo:
    """Test cache statistics."""

    def test_never_synced_cache(self, cache_manager):
        """Test that an empty cache reports zero values, not an error."""
        info = cache_manager.get_cache_info()

        assert info.last_updated == ZERO_TIME
        assert info.never_synced
        assert info.total_prompts == 0
        assert info.cache_size_bytes == 0

    def test_info_reflects_index_and_files(self, cache_manager, sample_index):
        """Test that counts come from the index and size from the directory."""
        cache_manager.save_index(sample_index)
        cache_manager.save_content("abc123", "x" * 100)

        info = cache_manager.get_cache_info()

        assert info.last_updated == sample_index.last_updated
        assert info.total_prompts == 1
        assert info.cache_size_bytes == (
            cache_manager.index_path.stat().st_size + 100
        )

    def test_corrupt_index_gives_zero_counts(self, cache_manager):
        """Test that a corrupt index does not break statistics."""
        cache_manager.ensure_cache_dir()
        cache_manager.index_path.write_text("garbage")

        info = cache_manager.get_cache_info()

        assert info.never_synced
        assert info.cache_size_bytes == len("garbage")

    def test_save_cache_info(self, cache_manager):
        """Test the optional statistics snapshot."""
        cache_manager.save_cache_info(
            CacheInfo(last_updated=ZERO_TIME, total_prompts=2, cache_size_bytes=10)
        )

        data = orjson.loads(cache_manager.cache_info_path.read_bytes())
        assert data == {
            "last_updated": "0001-01-01T00:00:00Z",
            "total_prompts": 2,
            "cache_size_bytes": 10,
        }


class TestClear:
    """Test clearing the cache."""

    def test_clear_removes_everything(self, cache_manager, sample_index):
        """Test that clear deletes the whole cache."""
        cache_manager.save_index(sample_index)
        cache_manager.save_content("abc123", "body")

        cache_manager.clear()

        assert not cache_manager.cache_dir.exists()
        with pytest.raises(IndexNotFoundError):
            cache_manager.load_index()

    def test_clear_missing_cache_is_noop(self, cache_manager):
        """Test that clearing a missing cache does nothing."""
        cache_manager.clear()
        assert not cache_manager.cache_dir.exists()
