"""Data models for sync operations."""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")

# Spotify track URI. Opaque: only compared and kept in order.
Identifier = str


class PartialWriteError(Exception):
    """Raised when an append fails after the playlist was already overwritten.

    The playlist holds the first ``items_written`` identifiers. Re-running the
    full sync is safe since it starts with a replace.
    """

    def __init__(self, playlist_id: str, chunk_index: int, chunks_total: int,
                 items_written: int, cause: Exception):
        self.playlist_id = playlist_id
        self.chunk_index = chunk_index
        self.chunks_total = chunks_total
        self.items_written = items_written
        super().__init__(
            f"Write to playlist {playlist_id} failed at chunk "
            f"{chunk_index + 1}/{chunks_total} ({items_written} items written): {cause}"
        )


@dataclass
class Page(Generic[T]):
    """One page of an offset-paginated listing."""
    items: List[T]
    limit: int
    offset: int
    total: int

    @property
    def next_offset(self) -> int:
        return self.offset + self.limit


@dataclass
class LikedItem:
    """A saved track. identifier is None for unavailable tracks."""
    identifier: Optional[Identifier]


@dataclass
class Playlist:
    """A playlist owned by the current user."""
    id: str
    name: str


@dataclass
class SyncSummary:
    """Outcome of a successful mirror run."""
    collection_id: str
    collection_name: str
    item_count: int


@dataclass
class SyncResult:
    """Result of an entry-point run, written to the status file."""
    success: bool
    collection_id: Optional[str] = None
    collection_name: Optional[str] = None
    item_count: int = 0
    errors: List[str] = field(default_factory=list)
    failed_chunk: Optional[int] = None
    duration: float = 0.0

    @classmethod
    def failure(cls, error: str, failed_chunk: Optional[int] = None,
                duration: float = 0.0) -> "SyncResult":
        """Create a failure result with single error."""
        return cls(success=False, errors=[error], failed_chunk=failed_chunk,
                   duration=duration)

    @classmethod
    def from_summary(cls, summary: SyncSummary, duration: float) -> "SyncResult":
        return cls(
            success=True,
            collection_id=summary.collection_id,
            collection_name=summary.collection_name,
            item_count=summary.item_count,
            duration=duration,
        )
