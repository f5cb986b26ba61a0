from typing import Optional

import pytest

from clients.spotify import SpotifyAPIError
from core.models import LikedItem, Page, Playlist


class FakeSpotifyClient:
    """In-memory Spotify that records every call.

    ``page_limit`` overrides the requested limit, like a server that caps
    page sizes on its own.
    """

    def __init__(self, liked: list[Optional[str]] | None = None,
                 playlists: list[Playlist] | None = None,
                 page_limit: int | None = None):
        self.liked = list(liked or [])
        self.playlists = list(playlists or [])
        self.page_limit = page_limit
        self.contents: dict[str, list[str]] = {}
        self.calls: list[tuple] = []
        self.fail_append_at: int | None = None
        self.append_error: Exception = SpotifyAPIError("API error 502", status=502)
        self._appends = 0
        self._created = 0

    def _page(self, data: list, limit: int, offset: int) -> Page:
        limit = self.page_limit or limit
        return Page(items=data[offset:offset + limit], limit=limit, offset=offset, total=len(data))

    def get_liked_tracks(self, limit: int, offset: int) -> Page[LikedItem]:
        self.calls.append(("liked", limit, offset))
        return self._page([LikedItem(uri) for uri in self.liked], limit, offset)

    def get_my_playlists(self, limit: int, offset: int) -> Page[Playlist]:
        self.calls.append(("playlists", limit, offset))
        return self._page(self.playlists, limit, offset)

    def create_playlist(self, name: str, description: str = "",
                        public: bool = False, collaborative: bool = False) -> Playlist:
        self._created += 1
        self.calls.append(("create", name, description, public, collaborative))
        playlist = Playlist(id=f"created-{self._created}", name=name)
        self.playlists.append(playlist)
        return playlist

    def replace_playlist_items(self, playlist_id: str, uris: list[str]) -> None:
        self.calls.append(("replace", playlist_id, list(uris)))
        self.contents[playlist_id] = list(uris)

    def add_playlist_items(self, playlist_id: str, uris: list[str]) -> None:
        index = self._appends
        self._appends += 1
        if self.fail_append_at == index:
            raise self.append_error
        self.calls.append(("append", playlist_id, list(uris)))
        self.contents.setdefault(playlist_id, []).extend(uris)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("replace", "append")]

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)


def make_uris(n: int) -> list[str]:
    return [f"spotify:track:{i:05d}" for i in range(n)]


@pytest.fixture
def fake_client_factory():
    return FakeSpotifyClient


@pytest.fixture
def uris_factory():
    return make_uris
