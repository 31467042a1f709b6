"""promptvault: Personal prompt manager backed by GitHub Gists with a local cache."""

__version__ = "0.1.0"

from promptvault.model import CacheInfo, Index, IndexedPrompt, Prompt

__all__ = ["Prompt", "IndexedPrompt", "Index", "CacheInfo", "__version__"]
