"""Tests for the pv command line.

These tests verify:
- list/get read from the remote and fall back to the cache
- First-run and empty-collection messages
- sync exit codes and output
- cache info/clear
"""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from promptvault.cache import CacheManager
from promptvault.cli import main as cli_main
from promptvault.cli.main import cli
from promptvault.config import VaultConfig
from promptvault.errors import AuthError, IndexNotFoundError, NetworkError
from promptvault.model import Prompt
from promptvault.store import MemoryStore


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Render Rich output without wrapping or colour."""
    monkeypatch.setattr(cli_main, "console", Console(width=200, color_system=None))


@pytest.fixture
def remote():
    """In-memory remote with two prompts."""
    store = MemoryStore(base_url="https://gist.github.com/me")
    store.add(Prompt(name="greeting", author="me", content="Hello {{name}}\n"))
    store.add(Prompt(name="summary", author="you", content="Summarize this.\n"))
    return store


@pytest.fixture
def config(tmp_path):
    """Config pointing at a temp cache."""
    return VaultConfig(cache_dir=tmp_path / "cache")


@pytest.fixture
def invoke(remote, config):
    """Invoke the CLI against the in-memory remote."""
    runner = CliRunner()

    def run(*args, store=None, **kwargs):
        obj = {"remote": store if store is not None else remote, "config": config}
        return runner.invoke(cli, list(args), obj=obj, **kwargs)

    return run


class TestList:
    """Test pv list."""

    def test_lists_remote_prompts(self, invoke, config):
        """Test listing prompts from the remote."""
        result = invoke("list")

        assert result.exit_code == 0
        assert "Found 2 prompt(s)" in result.output
        assert "greeting" in result.output
        assert "summary" in result.output
        assert CacheManager(config.cache_dir).index_path.exists()

    def test_offline_uses_cache(self, invoke, remote):
        """Test that list falls back to the cached index offline."""
        assert invoke("list").exit_code == 0

        with patch.object(remote, "list", side_effect=NetworkError("offline")):
            result = invoke("list")

        assert result.exit_code == 0
        assert "greeting" in result.output
        assert "showing cached prompts" in result.output

    def test_offline_without_cache_fails(self, invoke, remote):
        """Test that list fails when offline with no cache."""
        with patch.object(remote, "list", side_effect=NetworkError("offline")):
            result = invoke("list")

        assert result.exit_code == 1
        assert "no local cache is available" in result.output
        assert "offline" in result.output

    def test_remote_flag_disables_fallback(self, invoke, remote):
        """Test that --remote never reads the cache."""
        assert invoke("list").exit_code == 0

        with patch.object(remote, "list", side_effect=AuthError("bad token")):
            result = invoke("list", "--remote")

        assert result.exit_code == 1
        assert "bad token" in result.output

    def test_first_run(self, invoke):
        """Test the first-run message when no index exists."""
        store = MagicMock()
        store.list.side_effect = IndexNotFoundError("no index")

        result = invoke("list", store=store)

        assert result.exit_code == 0
        assert "Welcome to Prompt Vault!" in result.output

    def test_empty_collection(self, invoke):
        """Test the empty-collection message."""
        result = invoke("list", store=MemoryStore())

        assert result.exit_code == 0
        assert "Your prompt collection is currently empty." in result.output


class TestGet:
    """Test pv get."""

    def test_prints_content_verbatim(self, invoke):
        """Test that get prints the body unchanged."""
        result = invoke("get", "greet")

        assert result.exit_code == 0
        assert result.output == "Hello {{name}}\n"

    def test_no_match(self, invoke):
        """Test that an unmatched keyword exits 1."""
        result = invoke("get", "nothing-like-this")

        assert result.exit_code == 1
        assert "No prompt matches" in result.output

    def test_ambiguous_keyword(self, invoke, remote):
        """Test that several matches are listed and exit 1."""
        remote.add(Prompt(name="greeting-formal", author="me", content="Good day"))

        result = invoke("get", "greet")

        assert result.exit_code == 1
        assert "2 prompts match" in result.output

    def test_offline_after_sync(self, invoke, remote):
        """Test that synced prompts are readable offline."""
        assert invoke("sync").exit_code == 0

        with patch.object(remote, "list", side_effect=NetworkError("offline")):
            with patch.object(remote, "get_content", side_effect=NetworkError("offline")):
                result = invoke("get", "summar")

        assert result.exit_code == 0
        assert result.output == "Summarize this.\n"

    def test_offline_content_not_cached(self, invoke, remote):
        """Test that an uncached body offline reports both errors."""
        assert invoke("list").exit_code == 0

        with patch.object(remote, "list", side_effect=NetworkError("offline")):
            with patch.object(remote, "get_content", side_effect=NetworkError("offline")):
                result = invoke("get", "summar")

        assert result.exit_code == 1
        assert "Prompt is not available" in result.output
        assert "remote error: offline" in result.output
        assert "cache error: cached content not found" in result.output


class TestSync:
    """Test pv sync."""

    def test_sync_all(self, invoke, config):
        """Test a fully successful sync."""
        result = invoke("sync")

        assert result.exit_code == 0
        assert "All 2 prompts synced and cached successfully." in result.output
        manager = CacheManager(config.cache_dir)
        assert manager.get_cache_info().total_prompts == 2

    def test_partial_failure_exits_zero(self, invoke, remote):
        """Test that a partial sync still exits 0."""
        failing = remote.list()[0].id
        original = remote.get_content

        def get_content(gist_id):
            if gist_id == failing:
                raise NetworkError("timeout")
            return original(gist_id)

        with patch.object(remote, "get_content", side_effect=get_content):
            result = invoke("sync")

        assert result.exit_code == 0
        assert "1 of 2 prompts synced and cached, 1 failed." in result.output

    def test_all_failures_exit_one(self, invoke, remote):
        """Test that a sync with no successes exits 1."""
        with patch.object(remote, "get_content", side_effect=NetworkError("timeout")):
            result = invoke("sync", "--verbose")

        assert result.exit_code == 1
        assert "Sync failed" in result.output
        assert "timeout" in result.output

    @pytest.mark.parametrize(
        "error,message",
        [
            (AuthError("bad token"), "Authentication error"),
            (NetworkError("offline"), "Network error"),
        ],
    )
    def test_index_failure(self, invoke, remote, error, message):
        """Test that index failures are reported by kind."""
        with patch.object(remote, "get_raw_index", side_effect=error):
            result = invoke("sync")

        assert result.exit_code == 1
        assert message in result.output


class TestCacheCommands:
    """Test pv cache info and clear."""

    def test_info_never_synced(self, invoke, config):
        """Test cache info before any sync."""
        result = invoke("cache", "info")

        assert result.exit_code == 0
        assert "never" in result.output
        assert str(config.cache_dir) in result.output

    def test_info_after_sync(self, invoke):
        """Test cache info after a sync."""
        invoke("sync")

        result = invoke("cache", "info")

        assert result.exit_code == 0
        assert "never" not in result.output

    def test_clear_with_yes(self, invoke, config):
        """Test clearing the cache without confirmation."""
        invoke("sync")

        result = invoke("cache", "clear", "--yes")

        assert result.exit_code == 0
        assert "Cache cleared" in result.output
        assert not config.cache_dir.exists()

    def test_clear_cancelled(self, invoke, config):
        """Test that declining the prompt keeps the cache."""
        invoke("sync")

        result = invoke("cache", "clear", input="n\n")

        assert "Cancelled" in result.output
        assert config.cache_dir.exists()


class TestRemoteLifetime:
    """Test that the command closes the GitHub client it builds."""

    def test_gist_store_closed_after_command(self, config):
        """Test that a GistStore built by the command is closed on exit."""
        runner = CliRunner()
        with patch.object(cli_main, "GistStore") as gist_store:
            gist_store.return_value.list.side_effect = IndexNotFoundError("no index")

            result = runner.invoke(cli, ["list"], obj={"config": config})

        assert result.exit_code == 0
        gist_store.assert_called_once_with(config)
        gist_store.return_value.close.assert_called_once_with()

    def test_gist_store_closed_after_failure(self, config):
        """Test that the client is closed when the command exits 1."""
        runner = CliRunner()
        with patch.object(cli_main, "GistStore") as gist_store:
            gist_store.return_value.list.side_effect = AuthError("bad token")

            result = runner.invoke(cli, ["list", "--remote"], obj={"config": config})

        assert result.exit_code == 1
        gist_store.return_value.close.assert_called_once_with()
