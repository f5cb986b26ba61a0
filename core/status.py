"""Status file writer for Home Assistant integration"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from core.models import SyncResult

logger = logging.getLogger(__name__)


def write_status(result: SyncResult, status_file: Path) -> bool:
    data = {
        "status": "success" if result.success else "failed",
        "last_sync_time": datetime.now(timezone.utc).isoformat(),
        "playlist_id": result.collection_id,
        "playlist_name": result.collection_name,
        "track_count": result.item_count,
        "last_error": result.errors[-1] if result.errors else None,
        "failed_chunk": result.failed_chunk,
        "duration": round(result.duration, 2),
    }
    return _atomic_write(status_file, data)


def write_running_status(status_file: Path) -> bool:
    data = {
        "status": "running",
        "last_sync_time": datetime.now(timezone.utc).isoformat(),
        "playlist_id": None,
        "playlist_name": None,
        "track_count": 0,
        "last_error": None,
        "failed_chunk": None,
        "duration": 0.0,
    }
    return _atomic_write(status_file, data)


def _atomic_write(path: Path, data: dict) -> bool:
    """Write data next to path, then swap it in so readers never see a partial file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    except OSError as e:
        logger.warning(f"Cannot write status to {path}: {e}")
        return False

    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.warning(f"Status update of {path.name} failed: {e}")
        return False
    return True
