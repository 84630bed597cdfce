"""Core storage - message archive."""

from core.storage.archive import (
    ArchiveError,
    ArchiveStore,
    MessageArchive,
    blob_prefix,
    blob_tags,
)

__all__ = [
    "ArchiveError",
    "ArchiveStore",
    "MessageArchive",
    "blob_prefix",
    "blob_tags",
]
