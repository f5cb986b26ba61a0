#!/usr/bin/env python3
"""Liked Mirror - Add-on Entry Point"""

import fcntl
import logging
import os
import sys
import time
from pathlib import Path

from clients.spotify import (
    API_URL, DEFAULT_TIMEOUT, SpotifyAPIError, SpotifyAuthError, SpotifyClient,
    SpotifyNetworkError, SpotifySchemaError, load_cached_token,
)
from core.models import PartialWriteError, SyncResult
from core.status import write_status, write_running_status
from core.sync_engine import DEFAULT_PLAYLIST_NAME, SyncEngine

DATA_DIR = Path(os.environ.get("LIKED_MIRROR_DATA_DIR", "/config/liked_mirror"))
LOCK_FILE = DATA_DIR / ".sync.lock"
LOG_FILE = DATA_DIR / "liked_mirror.log"
STATUS_FILE = DATA_DIR / "sync_status.json"
TOKEN_FILE = DATA_DIR / ".spotify_token.json"
STALE_LOCK_SECONDS = 1800

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    pass


def setup_logging() -> None:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )


def acquire_lock() -> int | None:
    try:
        # Check for stale lock (older than 30 min = likely orphaned)
        if LOCK_FILE.exists():
            age = time.time() - LOCK_FILE.stat().st_mtime
            if age > STALE_LOCK_SECONDS:
                logger.warning(f"Removing stale lock file (age: {age:.0f}s)")
                LOCK_FILE.unlink(missing_ok=True)

        fd = os.open(str(LOCK_FILE), os.O_CREAT | os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            return None
        os.write(fd, f"{os.getpid()}\n".encode())
        return fd
    except OSError as e:
        logger.warning(f"Could not take lock {LOCK_FILE}: {e}")
        return None


def release_lock(fd: int) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        LOCK_FILE.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to release lock: {e}")


def load_config() -> dict:
    """Read settings from the environment. Raises ConfigError if incomplete."""
    token = os.environ.get("SPOTIFY_ACCESS_TOKEN") or load_cached_token(TOKEN_FILE)
    if not token:
        raise ConfigError(f"Missing config: SPOTIFY_ACCESS_TOKEN (or a token in {TOKEN_FILE})")

    raw_timeout = os.environ.get("SPOTIFY_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(raw_timeout)
    except ValueError as e:
        raise ConfigError(f"SPOTIFY_TIMEOUT must be a number, got {raw_timeout!r}") from e

    return {
        "token": token,
        "api_url": os.environ.get("SPOTIFY_API_URL", API_URL),
        "playlist_name": os.environ.get("PLAYLIST_NAME") or DEFAULT_PLAYLIST_NAME,
        "playlist_id": os.environ.get("PLAYLIST_ID") or None,
        "timeout": timeout,
    }


def _on_unauthorized() -> None:
    logger.error("Spotify token rejected - refresh SPOTIFY_ACCESS_TOKEN and re-run")


def run() -> SyncResult:
    """Run one mirror and describe the outcome. Never raises for sync errors."""
    start = time.time()
    try:
        config = load_config()
        logger.info("Initializing Spotify client...")
        spotify = SpotifyClient(
            config["token"],
            base_url=config["api_url"],
            on_unauthorized=_on_unauthorized,
            timeout=config["timeout"],
        )
        engine = SyncEngine(spotify)
        summary = engine.sync(config["playlist_name"], playlist_id=config["playlist_id"])
        return SyncResult.from_summary(summary, time.time() - start)

    except ConfigError as e:
        logger.error(str(e))
        return SyncResult.failure(str(e))
    except SpotifyAuthError as e:
        logger.error(f"Spotify auth failed: {e}")
        return SyncResult.failure(f"Spotify auth failed: {e}", duration=time.time() - start)
    except PartialWriteError as e:
        logger.error(f"Partial write: {e} - re-run to restore a full mirror")
        return SyncResult.failure(str(e), failed_chunk=e.chunk_index,
                                  duration=time.time() - start)
    except SpotifyNetworkError as e:
        logger.error(f"Network error: {e}")
        return SyncResult.failure(f"Network error: {e}", duration=time.time() - start)
    except SpotifyAPIError as e:
        logger.error(f"Spotify API error: {e}")
        return SyncResult.failure(f"Spotify API error: {e}", duration=time.time() - start)
    except SpotifySchemaError as e:
        logger.error(f"Spotify schema error: {e}")
        return SyncResult.failure(f"Spotify schema error: {e}", duration=time.time() - start)


def main() -> int:
    setup_logging()

    lock_fd = acquire_lock()
    if lock_fd is None:
        logger.warning("Another sync running, exiting")
        return 0

    try:
        write_running_status(STATUS_FILE)
        logger.info("Starting sync...")
        result = run()
        write_status(result, STATUS_FILE)

        if result.success:
            logger.info(f"Sync completed: {result.item_count} tracks in '{result.collection_name}' "
                        f"({result.duration:.1f}s)")
            return 0
        logger.warning(f"Sync errors: {result.errors}")
        return 1

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        write_status(SyncResult.failure(f"Unexpected error: {e}"), STATUS_FILE)
        return 1
    finally:
        release_lock(lock_fd)


if __name__ == "__main__":
    sys.exit(main())
