"""Full cache refresh: the index first, then every prompt body.

The index refresh is all-or-nothing and aborts the run on failure. Prompt
bodies are then fetched one at a time through the regular write-through
read path; a failed prompt is recorded and the run moves on to the next.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from promptvault.cache.manager import CacheManager
from promptvault.errors import (
    EmptyIndexError,
    ErrorType,
    IndexNotFoundError,
    IndexSyncError,
    StorageError,
    classify_error,
)
from promptvault.model import Prompt
from promptvault.service import PromptService

logger = logging.getLogger(__name__)


class SyncOutcome(Enum):
    """Classification of a finished sync run."""

    NOTHING_TO_DO = "nothing_to_do"
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class SyncStats:
    """Counters and failure messages collected during a sync run.

    Attributes:
        total: Number of prompts attempted
        succeeded: Prompts downloaded and cached
        failed: Prompts whose download failed
        skipped: Reserved, always 0
        errors: One human-readable message per failure
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> SyncOutcome:
        if self.total == 0:
            return SyncOutcome.NOTHING_TO_DO
        if self.succeeded == self.total:
            return SyncOutcome.COMPLETE
        if self.succeeded == 0:
            return SyncOutcome.FAILED
        return SyncOutcome.PARTIAL

    def summary(self) -> str:
        """One-line description of the outcome.

        Examples:
            >>> SyncStats(total=3, succeeded=2, failed=1).summary()
            '2 of 3 prompts synced and cached, 1 failed.'
        """
        outcome = self.outcome
        if outcome is SyncOutcome.NOTHING_TO_DO:
            return "No prompts found to sync."
        if outcome is SyncOutcome.COMPLETE:
            return f"All {self.total} prompts synced and cached successfully."
        if outcome is SyncOutcome.FAILED:
            return "Sync failed: no prompts were downloaded and cached."
        return (
            f"{self.succeeded} of {self.total} prompts synced and cached, "
            f"{self.failed} failed."
        )


class SyncOrchestrator:
    """Drives one explicit sync pass and reports progress to a console."""

    def __init__(
        self,
        service: PromptService,
        cache_manager: Optional[CacheManager] = None,
        console: Optional[Console] = None,
        verbose: bool = False,
    ):
        """Initialize the orchestrator.

        Args:
            service: Prompt service backed by a CachedStore
            cache_manager: Cache to snapshot statistics into after the run
            console: Output console (a default rich Console if None)
            verbose: Print per-item failure details
        """
        self.service = service
        self.cache_manager = cache_manager
        self.console = console or Console()
        self.verbose = verbose

    def run(self) -> SyncStats:
        """Run the sync.

        Returns:
            Statistics for the run

        Raises:
            IndexSyncError: If the index could not be refreshed
            PromptVaultError: If the prompt list could not be obtained
        """
        self.console.print("Syncing prompts...")
        self._sync_index()

        prompts = self._list_prompts()
        stats = SyncStats(total=len(prompts))
        if not prompts:
            self.console.print("No prompts found to sync.")
            self.console.print("Add one with 'pv add <file>' or create it in GitHub Gists.")
            return stats

        self.console.print(f"Found {stats.total} prompts to sync")
        for position, prompt in enumerate(prompts, start=1):
            self._sync_prompt(position, prompt, stats)

        self.report(stats)
        if stats.succeeded:
            self._snapshot_cache_info()
        return stats

    def _sync_index(self) -> None:
        self.console.print("Syncing index...")
        try:
            self.service.sync_index()
        except Exception as e:
            kind = classify_error(e)
            if kind not in (ErrorType.AUTH, ErrorType.NETWORK):
                kind = ErrorType.UNKNOWN
            logger.error(f"Index sync failed ({kind.value}): {e}")
            raise IndexSyncError(f"index sync failed: {e}", kind) from e
        self.console.print("  [green]✓[/green] Index synced")

    def _list_prompts(self) -> List[Prompt]:
        try:
            return self.service.list_prompts()
        except (IndexNotFoundError, EmptyIndexError):
            return []

    def _sync_prompt(self, position: int, prompt: Prompt, stats: SyncStats) -> None:
        line = f"Downloading {position}/{stats.total}: {escape(prompt.name)}"
        if self.verbose:
            line += f" ({escape(prompt.gist_id())})"
        self.console.print(line)

        try:
            self.service.get_prompt_content(prompt)
        except Exception as e:
            stats.failed += 1
            message = f"Failed to download '{prompt.name}': {e}"
            stats.errors.append(message)
            logger.debug(message)
            if self.verbose:
                self.console.print(f"  [red]✗[/red] {escape(message)}")
            else:
                self.console.print("  [red]✗[/red] failed")
            return

        stats.succeeded += 1
        if self.verbose:
            self.console.print("  [green]✓[/green] cached")

    def report(self, stats: SyncStats) -> None:
        """Print the final counts and, in verbose mode, every failure."""
        self.console.print()
        self.console.print("Sync summary:")
        self.console.print(f"  Total:     {stats.total}")
        self.console.print(f"  Succeeded: {stats.succeeded}")
        self.console.print(f"  Failed:    {stats.failed}")
        self.console.print(f"  Skipped:   {stats.skipped}")
        self.console.print()

        style = {
            SyncOutcome.COMPLETE: "green",
            SyncOutcome.PARTIAL: "yellow",
            SyncOutcome.FAILED: "red",
        }.get(stats.outcome, "default")
        self.console.print(f"[{style}]{escape(stats.summary())}[/{style}]")

        if stats.errors:
            self.console.print()
            if self.verbose:
                self.console.print("Error details:")
                for message in stats.errors:
                    self.console.print(f"  • {escape(message)}")
            else:
                self.console.print("Run 'pv sync --verbose' to see error details.")

        if stats.succeeded:
            self.console.print()
            self.console.print("Prompts are cached locally and available offline.")

    def _snapshot_cache_info(self) -> None:
        if self.cache_manager is None:
            return
        try:
            self.cache_manager.save_cache_info(self.cache_manager.get_cache_info())
        except StorageError as e:
            logger.warning(f"Failed to write cache statistics: {e}")
