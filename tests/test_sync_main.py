import json

import pytest

import sync
from clients.spotify import SpotifyAuthError, SpotifyNetworkError
from core.models import PartialWriteError, SyncSummary


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(sync, "DATA_DIR", tmp_path)
    monkeypatch.setattr(sync, "LOCK_FILE", tmp_path / ".sync.lock")
    monkeypatch.setattr(sync, "LOG_FILE", tmp_path / "liked_mirror.log")
    monkeypatch.setattr(sync, "STATUS_FILE", tmp_path / "sync_status.json")
    monkeypatch.setattr(sync, "TOKEN_FILE", tmp_path / ".spotify_token.json")
    monkeypatch.setattr(sync, "setup_logging", lambda: None)
    for var in ("SPOTIFY_ACCESS_TOKEN", "SPOTIFY_API_URL", "PLAYLIST_NAME", "PLAYLIST_ID", "SPOTIFY_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class StubEngine:
    outcome = None

    def __init__(self, client):
        self.client = client

    def sync(self, destination_name, playlist_id=None):
        if isinstance(StubEngine.outcome, Exception):
            raise StubEngine.outcome
        return StubEngine.outcome


@pytest.fixture
def stub_engine(monkeypatch):
    monkeypatch.setattr(sync, "SyncEngine", StubEngine)
    StubEngine.outcome = None
    return StubEngine


def status(data_dir) -> dict:
    return json.loads((data_dir / "sync_status.json").read_text())


class TestLoadConfig:

    def test_defaults(self, data_dir, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        config = sync.load_config()
        assert config == {
            "token": "tok",
            "api_url": "https://api.spotify.com/v1",
            "playlist_name": "Liked Mirror",
            "playlist_id": None,
            "timeout": 30.0,
        }

    def test_token_from_cache_file(self, data_dir):
        (data_dir / ".spotify_token.json").write_text(json.dumps({"access_token": "cached"}))
        assert sync.load_config()["token"] == "cached"

    def test_missing_token(self, data_dir):
        with pytest.raises(sync.ConfigError):
            sync.load_config()

    def test_bad_timeout(self, data_dir, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        monkeypatch.setenv("SPOTIFY_TIMEOUT", "soon")
        with pytest.raises(sync.ConfigError) as excinfo:
            sync.load_config()
        assert isinstance(excinfo.value.__cause__, ValueError)


class TestMain:

    def test_success(self, data_dir, stub_engine, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        stub_engine.outcome = SyncSummary("pl-1", "Liked Mirror", 12)

        assert sync.main() == 0
        data = status(data_dir)
        assert data["status"] == "success"
        assert data["track_count"] == 12
        assert not (data_dir / ".sync.lock").exists()

    def test_missing_config_fails(self, data_dir, stub_engine):
        assert sync.main() == 1
        assert "SPOTIFY_ACCESS_TOKEN" in status(data_dir)["last_error"]

    @pytest.mark.parametrize("error, message", [
        (SpotifyAuthError("Unauthorized on GET me/tracks"), "Spotify auth failed"),
        (SpotifyNetworkError("timed out"), "Network error"),
    ])
    def test_spotify_errors_fail(self, data_dir, stub_engine, monkeypatch, error, message):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        stub_engine.outcome = error
        assert sync.main() == 1
        assert status(data_dir)["last_error"].startswith(message)

    def test_partial_write_records_chunk(self, data_dir, stub_engine, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        stub_engine.outcome = PartialWriteError("pl-1", 2, 3, 200, RuntimeError("boom"))
        assert sync.main() == 1
        assert status(data_dir)["failed_chunk"] == 2

    def test_unexpected_error(self, data_dir, stub_engine, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        stub_engine.outcome = RuntimeError("boom")
        assert sync.main() == 1
        assert status(data_dir)["last_error"] == "Unexpected error: boom"

    def test_skips_when_locked(self, data_dir, stub_engine, monkeypatch):
        monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "tok")
        held = sync.acquire_lock()
        try:
            assert sync.acquire_lock() is None
            assert sync.main() == 0
            assert not (data_dir / "sync_status.json").exists()
        finally:
            sync.release_lock(held)
