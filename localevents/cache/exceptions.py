"""Exception hierarchy for the cache tiers.

Reads (``RecordCache.get``, ``ImageCache.lookup``) never raise these: they
degrade to a miss. Explicit maintenance actions and writes propagate them.
"""

from typing import Optional


class CacheError(Exception):
    """Base exception for all cache errors."""


class StorageError(CacheError):
    """The key-value store or the file system failed.

    Raised when:
    - The SQLite database cannot be opened, read or written
    - A file or directory operation fails with an OS error
    """


class TransferError(CacheError):
    """An image download did not succeed.

    Raised when:
    - The server answers with a status other than 200
    - The connection fails or times out
    - The body exceeds the configured maximum image size
    """

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.url = url
        self.status_code = status_code


class CacheValidationError(CacheError):
    """A persisted blob is corrupt or was written by another schema version.

    Handled internally by discarding the offending entry.
    """


class CacheNotFoundError(CacheError):
    """No usable entry exists for a key."""
