from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from . import config
from .errors import ValidationError
from .models import now_ms

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media/"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"}


def media_root() -> Path:
    return Path(config.MEDIA_DIR)


def safe_filename(filename: str) -> str:
    name = Path(filename or "").name
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "photo"


def check_photo_name(filename: str) -> str:
    name = safe_filename(filename)
    if Path(name).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"Unsupported photo type: {filename}")
    return name


def save_beer_photo(event_id: str, beer_id: str, filename: str, data: bytes) -> Optional[str]:
    """Store an uploaded photo and return its public URL (None for an empty upload)."""
    if not data:
        return None
    name = check_photo_name(filename)

    rel = Path("events") / event_id / "beers" / beer_id / f"{now_ms()}-{name}"
    path = media_root() / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return MEDIA_URL_PREFIX + rel.as_posix()


def path_for_url(url: str) -> Optional[Path]:
    if not url or not url.startswith(MEDIA_URL_PREFIX):
        return None
    root = media_root().resolve()
    path = (root / url[len(MEDIA_URL_PREFIX):]).resolve()
    if root not in path.parents:
        return None
    return path


def delete_photo(url: Optional[str]) -> bool:
    """Remove a stored photo. Returns False when it could not be deleted."""
    path = path_for_url(url or "")
    if path is None:
        logger.warning("Not a stored photo url: %s", url)
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.warning("Failed to delete photo %s: %s", url, e)
        return False
    return True


def delete_event_media(event_id: str) -> None:
    shutil.rmtree(media_root() / "events" / event_id, ignore_errors=True)
