"""Prompt stores.

This module provides the Store interface and its implementations backed
by GitHub Gists or by process memory.
"""

from promptvault.store.base import GistInfo, Store
from promptvault.store.gist import GistStore
from promptvault.store.memory import MemoryStore

__all__ = [
    "Store",
    "GistInfo",
    "GistStore",
    "MemoryStore",
]
