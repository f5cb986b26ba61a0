"""Spotify Web API Client - bearer token auth over requests"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

import requests

from core.models import LikedItem, Page, Playlist

logger = logging.getLogger(__name__)

API_URL = "https://api.spotify.com/v1"
MAX_ITEMS_PER_WRITE = 100
DEFAULT_TIMEOUT = 30.0
PAGE_FIELDS = ("items", "limit", "offset", "total")


class SpotifyAuthError(Exception):
    pass


class SpotifyAPIError(Exception):
    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class SpotifyNetworkError(SpotifyAPIError):
    pass


class SpotifySchemaError(Exception):
    pass


def load_cached_token(token_file: Path) -> str | None:
    """Read a cached access token. Raises SpotifyAuthError if it has expired."""
    if not token_file.exists():
        return None
    try:
        data = json.loads(token_file.read_text())
        token = data["access_token"]
        expires = data.get("expires_at", 0)
    except (ValueError, KeyError) as e:
        logger.warning(f"Ignoring unreadable token cache: {e}")
        return None

    if expires and time.time() * 1000 >= expires:
        raise SpotifyAuthError(f"Cached token in {token_file} has expired")
    logger.debug("Loaded cached Spotify token")
    return token


class SpotifyClient:
    def __init__(self, token: str, base_url: str = API_URL,
                 on_unauthorized: Callable[[], None] | None = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: requests.Session | None = None):
        if not token:
            raise SpotifyAuthError("No Spotify access token")

        self._base_url = base_url.rstrip("/")
        self._on_unauthorized = on_unauthorized
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "authorization": f"Bearer {token}",
            "content-type": "application/json",
        })
        logger.info("Spotify client initialized")

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise SpotifyNetworkError(f"Network error on {method} {path}: {e}") from e

        if response.status_code == 401:
            logger.error(f"Spotify rejected credentials on {method} {path}")
            if self._on_unauthorized:
                self._on_unauthorized()
            raise SpotifyAuthError(f"Unauthorized on {method} {path}")

        if response.status_code >= 400:
            logger.error(f"API error {response.status_code}: {response.text[:200]}")
            raise SpotifyAPIError(
                f"API error {response.status_code} on {method} {path}",
                status=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SpotifySchemaError(f"Non-JSON response from {method} {path}") from e

    def _validate_page(self, data: Any, path: str) -> None:
        if not isinstance(data, dict):
            raise SpotifySchemaError(f"Response from {path} is not a paging object")
        for key in PAGE_FIELDS:
            if key not in data:
                raise SpotifySchemaError(f"Response from {path} missing '{key}'")
        for key in ("offset", "total"):
            if not isinstance(data[key], int) or data[key] < 0:
                raise SpotifySchemaError(f"Response from {path} has invalid {key} {data[key]!r}")
        if not isinstance(data["limit"], int) or data["limit"] <= 0:
            raise SpotifySchemaError(f"Response from {path} has invalid limit {data['limit']!r}")
        if data["items"] is not None and not isinstance(data["items"], list):
            raise SpotifySchemaError(f"Response from {path} has non-list items")

    def _get_page(self, path: str, limit: int, offset: int) -> dict:
        data = self._request("GET", path, params={"limit": limit, "offset": offset})
        self._validate_page(data, path)
        return data

    def get_liked_tracks(self, limit: int, offset: int) -> Page[LikedItem]:
        data = self._get_page("me/tracks", limit, offset)
        items = [LikedItem(identifier=self._extract_uri(item)) for item in data["items"] or []]
        return Page(items=items, limit=data["limit"], offset=data["offset"], total=data["total"])

    def get_my_playlists(self, limit: int, offset: int) -> Page[Playlist]:
        data = self._get_page("me/playlists", limit, offset)
        items = []
        for item in data["items"] or []:
            # Spotify pads this listing with nulls for removed playlists
            if item and item.get("id"):
                items.append(self._to_playlist(item, "me/playlists"))
        return Page(items=items, limit=data["limit"], offset=data["offset"], total=data["total"])

    def create_playlist(self, name: str, description: str = "",
                        public: bool = False, collaborative: bool = False) -> Playlist:
        data = self._request("POST", "me/playlists", json={
            "name": name,
            "description": description,
            "public": public,
            "collaborative": collaborative,
        })
        playlist = self._to_playlist(data, "me/playlists")
        logger.info(f"Created playlist '{playlist.name}' ({playlist.id})")
        return playlist

    def replace_playlist_items(self, playlist_id: str, uris: list[str]) -> None:
        """Discard the playlist's contents and set them to uris."""
        self._check_batch(uris)
        self._request("PUT", f"playlists/{playlist_id}/tracks", json={"uris": list(uris)})

    def add_playlist_items(self, playlist_id: str, uris: list[str]) -> None:
        """Append uris to the end of the playlist."""
        self._check_batch(uris)
        self._request("POST", f"playlists/{playlist_id}/tracks", json={"uris": list(uris)})

    def _check_batch(self, uris: list[str]) -> None:
        if len(uris) > MAX_ITEMS_PER_WRITE:
            raise ValueError(f"At most {MAX_ITEMS_PER_WRITE} items per write, got {len(uris)}")

    def _to_playlist(self, data: Any, path: str) -> Playlist:
        if not isinstance(data, dict) or not data.get("id") or "name" not in data:
            raise SpotifySchemaError(f"Response from {path} is not a playlist")
        return Playlist(id=data["id"], name=data["name"])

    def _extract_uri(self, item: dict | None) -> str | None:
        track = (item or {}).get("track")
        if not track:
            return None
        return track.get("uri") or None
