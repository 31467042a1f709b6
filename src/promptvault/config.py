"""Configuration management."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import orjson

from promptvault.utils import atomic_write

DEFAULT_API_URL = "https://api.github.com"
APP_DIR_NAME = "pv"


def default_cache_dir() -> Path:
    """Resolve the cache root for the current platform.

    Priority:
    1. PV_CACHE_DIR environment variable
    2. %LOCALAPPDATA%\\pv on Windows
    3. $XDG_CACHE_HOME/pv, falling back to ~/.cache/pv

    Returns:
        Cache root path (not created)
    """
    override = os.getenv("PV_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32":
        local_app_data = os.getenv("LOCALAPPDATA")
        if not local_app_data:
            raise RuntimeError("LOCALAPPDATA environment variable not set")
        return Path(local_app_data) / APP_DIR_NAME

    cache_home = os.getenv("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / APP_DIR_NAME
    return Path.home() / ".cache" / APP_DIR_NAME


def default_config_path() -> Path:
    """Location of config.json ($PV_CONFIG_DIR or ~/.config/pv)."""
    config_dir = os.getenv("PV_CONFIG_DIR")
    if config_dir:
        return Path(config_dir).expanduser() / "config.json"
    return Path.home() / ".config" / APP_DIR_NAME / "config.json"


@dataclass
class VaultConfig:
    """User configuration for promptvault.

    Attributes:
        cache_dir: Root directory of the local cache
        github_token: Token used for the GitHub Gist API
        index_gist_id: Id of the gist holding index.json (discovered if None)
        api_url: Base URL of the GitHub API
    """

    cache_dir: Path = field(default_factory=default_cache_dir)
    github_token: Optional[str] = None
    index_gist_id: Optional[str] = None
    api_url: str = DEFAULT_API_URL

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        self.cache_dir = Path(self.cache_dir).expanduser()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "VaultConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            VaultConfig instance (defaults when the file does not exist)
        """
        if config_path is None:
            config_path = default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, "rb") as f:
            data = orjson.loads(f.read())

        known = {"cache_dir", "github_token", "index_gist_id", "api_url"}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file with owner-only permissions.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = default_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "github_token": self.github_token,
            "index_gist_id": self.index_gist_id,
            "api_url": self.api_url,
        }
        atomic_write(config_path, orjson.dumps(data, option=orjson.OPT_INDENT_2))

    def apply_env(self) -> "VaultConfig":
        """Override fields from environment variables.

        Environment variables:
            PV_CACHE_DIR: Cache directory path
            PV_GITHUB_TOKEN / GITHUB_TOKEN: GitHub token
            PV_INDEX_GIST_ID: Index gist id
            PV_GITHUB_API_URL: GitHub API base URL

        Returns:
            self, for chaining
        """
        if os.getenv("PV_CACHE_DIR"):
            self.cache_dir = Path(os.getenv("PV_CACHE_DIR")).expanduser()

        token = os.getenv("PV_GITHUB_TOKEN") or os.getenv("GITHUB_TOKEN")
        if token:
            self.github_token = token

        if os.getenv("PV_INDEX_GIST_ID"):
            self.index_gist_id = os.getenv("PV_INDEX_GIST_ID")

        if os.getenv("PV_GITHUB_API_URL"):
            self.api_url = os.getenv("PV_GITHUB_API_URL")

        return self

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create configuration from defaults plus environment variables."""
        return cls().apply_env()

    @classmethod
    def resolve(cls, config_path: Optional[Path] = None) -> "VaultConfig":
        """Load the config file, then apply environment overrides."""
        return cls.load(config_path).apply_env()
