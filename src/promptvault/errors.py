"""Error taxonomy for promptvault.

Every error raised by the stores, the cache and the sync layer derives from
PromptVaultError and carries an ErrorType so callers can branch on the kind
of failure instead of matching message strings.
"""

from enum import Enum
from typing import Optional


class ErrorType(Enum):
    """Coarse classification of a failure."""

    UNKNOWN = "unknown"
    AUTH = "auth"
    STORAGE = "storage"
    NETWORK = "network"
    VALIDATION = "validation"


class PromptVaultError(Exception):
    """Base exception for promptvault errors."""

    error_type = ErrorType.UNKNOWN

    def __init__(self, message: str, error_type: Optional[ErrorType] = None):
        super().__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type


class AuthError(PromptVaultError):
    """Raised when the remote rejects or lacks credentials."""

    error_type = ErrorType.AUTH


class NetworkError(PromptVaultError):
    """Raised when the remote cannot be reached."""

    error_type = ErrorType.NETWORK


class StorageError(PromptVaultError):
    """Raised for cache I/O failures and remote storage failures."""

    error_type = ErrorType.STORAGE


class ValidationError(PromptVaultError):
    """Raised for malformed inputs."""

    error_type = ErrorType.VALIDATION


class IndexNotFoundError(StorageError):
    """Raised when no index exists yet (first run)."""

    pass


class EmptyIndexError(StorageError):
    """Raised when an index exists but holds no prompts."""

    pass


class NotFoundError(StorageError):
    """Raised when the remote has no such item."""

    pass


class ContentNotCachedError(StorageError):
    """Raised when a prompt body is not present in the local cache."""

    pass


class CacheUnavailableError(StorageError):
    """Raised when the remote failed and the cache could not stand in.

    Both causes are kept so the caller can report them separately.
    """

    def __init__(self, remote_error: Exception, cache_error: Exception):
        super().__init__(
            f"remote failed and no cache available: "
            f"remote error: {remote_error}, cache error: {cache_error}"
        )
        self.remote_error = remote_error
        self.cache_error = cache_error


class IndexSyncError(PromptVaultError):
    """Raised when the index refresh step of a sync fails.

    Attributes:
        kind: ErrorType.AUTH, ErrorType.NETWORK or ErrorType.UNKNOWN
    """

    def __init__(self, message: str, kind: ErrorType):
        super().__init__(message)
        self.kind = kind


def classify_error(exc: BaseException) -> ErrorType:
    """Map an exception to its ErrorType.

    Walks the ``__cause__`` chain so wrapped remote errors keep their kind.

    Args:
        exc: Exception to classify

    Returns:
        ErrorType of the first PromptVaultError in the chain, else UNKNOWN
    """
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, PromptVaultError):
            return current.error_type
        current = current.__cause__
    return ErrorType.UNKNOWN
