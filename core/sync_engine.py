"""
Sync Engine

Mirrors the user's liked tracks into a single named Spotify playlist.

Every run recomputes the full desired state and overwrites the playlist:

1. Drain the liked-tracks listing into an ordered list of track URIs
2. Find the destination playlist by exact name, creating it on a miss
3. Replace the playlist contents with the first chunk of 100, then
   append the remaining chunks in order

Because step 3 always starts from a replace, a failed run can be
re-run from scratch. Nothing is retried here.
"""

import logging
from typing import Iterator, Protocol, Sequence

from clients.spotify import SpotifyAPIError, SpotifyAuthError, SpotifySchemaError
from core.models import (
    Identifier, LikedItem, Page, PartialWriteError, Playlist, SyncSummary,
)
from core.pagination import iter_pages

logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_NAME = "Liked Mirror"
DEFAULT_DESCRIPTION = "Mirror of liked tracks"
CHUNK_SIZE = 100


class SpotifyClientProtocol(Protocol):
    def get_liked_tracks(self, limit: int, offset: int) -> Page[LikedItem]: ...
    def get_my_playlists(self, limit: int, offset: int) -> Page[Playlist]: ...
    def create_playlist(self, name: str, description: str = "",
                        public: bool = False, collaborative: bool = False) -> Playlist: ...
    def replace_playlist_items(self, playlist_id: str, uris: list[str]) -> None: ...
    def add_playlist_items(self, playlist_id: str, uris: list[str]) -> None: ...


def chunked(seq: Sequence[Identifier], size: int = CHUNK_SIZE) -> Iterator[list[Identifier]]:
    """Yield consecutive chunks of at most size items."""
    for i in range(0, len(seq), size):
        yield list(seq[i:i + size])


def fetch_all_liked_identifiers(client: SpotifyClientProtocol) -> list[Identifier]:
    """Return every liked track URI in listing order, skipping unavailable tracks."""
    uris = []
    skipped = 0
    for page in iter_pages(client.get_liked_tracks):
        for item in page.items:
            if item.identifier:
                uris.append(item.identifier)
            else:
                skipped += 1

    if skipped:
        logger.info(f"Skipped {skipped} unavailable liked tracks")
    logger.info(f"Liked: {len(uris)} tracks")
    return uris


def find_playlist_by_name(client: SpotifyClientProtocol, name: str) -> Playlist | None:
    """Return the first of the user's playlists named exactly name, or None."""
    for page in iter_pages(client.get_my_playlists):
        for playlist in page.items:
            if playlist.name == name:
                return playlist
    return None


def resolve_playlist(client: SpotifyClientProtocol, name: str,
                     description: str = DEFAULT_DESCRIPTION) -> Playlist:
    """Find the destination playlist, creating a private one if absent."""
    playlist = find_playlist_by_name(client, name)
    if playlist:
        logger.info(f"Found playlist '{playlist.name}' ({playlist.id})")
        return playlist

    logger.info(f"No playlist named '{name}', creating it")
    return client.create_playlist(name, description, public=False, collaborative=False)


def replace_all_items(client: SpotifyClientProtocol, playlist_id: str,
                      uris: Sequence[Identifier]) -> None:
    """
    Overwrite the playlist so it holds exactly uris, in order.

    The first chunk goes through replace, the rest through append. An empty
    list is a single replace that clears the playlist. If an append fails,
    PartialWriteError reports which chunk; the playlist keeps what was
    already written.
    """
    chunks = list(chunked(uris))
    if not chunks:
        client.replace_playlist_items(playlist_id, [])
        logger.info(f"Cleared playlist {playlist_id}")
        return

    client.replace_playlist_items(playlist_id, chunks[0])
    written = len(chunks[0])

    for index in range(1, len(chunks)):
        logger.debug(f"Appending chunk {index + 1}/{len(chunks)}")
        try:
            client.add_playlist_items(playlist_id, chunks[index])
        except SpotifyAuthError:
            _log_partial(playlist_id, written, len(uris), index, len(chunks))
            raise
        except (SpotifyAPIError, SpotifySchemaError) as e:
            _log_partial(playlist_id, written, len(uris), index, len(chunks))
            raise PartialWriteError(playlist_id, index, len(chunks), written, e) from e
        written += len(chunks[index])

    logger.info(f"Wrote {written} items to playlist {playlist_id} in {len(chunks)} calls")


def _log_partial(playlist_id: str, written: int, total: int, index: int, chunks: int) -> None:
    logger.error(f"Playlist {playlist_id} left partially written: "
                 f"{written}/{total} items, chunk {index + 1}/{chunks} failed")


class SyncEngine:
    """Orchestrates the liked-tracks mirror."""

    def __init__(self, client: SpotifyClientProtocol):
        self._client = client

    def sync(self, destination_name: str = DEFAULT_PLAYLIST_NAME,
             playlist_id: str | None = None) -> SyncSummary:
        """Perform a full mirror. Errors propagate; the run is safe to repeat."""
        logger.info("=" * 50)
        logger.info(f"Starting mirror into '{destination_name}'")

        uris = fetch_all_liked_identifiers(self._client)

        if playlist_id:
            # Caller supplied the destination, skip name lookup
            target = Playlist(id=playlist_id, name=destination_name)
        else:
            target = resolve_playlist(self._client, destination_name)

        replace_all_items(self._client, target.id, uris)

        logger.info(f"Mirrored {len(uris)} tracks into '{target.name}' ({target.id})")
        logger.info("=" * 50)
        return SyncSummary(
            collection_id=target.id,
            collection_name=target.name,
            item_count=len(uris),
        )
