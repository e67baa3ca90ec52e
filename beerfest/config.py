import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent

# Persisted file next to the package unless overridden
DB_PATH = os.getenv("BEERFEST_DB_PATH", str(PACKAGE_DIR / "beerfest.sqlite"))
MEDIA_DIR = os.getenv("BEERFEST_MEDIA_DIR", str(PACKAGE_DIR / "media"))

# cleanup
RETENTION_DAYS = int(os.getenv("BEERFEST_RETENTION_DAYS", "7"))
CLEANUP_HOUR_UTC = int(os.getenv("BEERFEST_CLEANUP_HOUR_UTC", "2"))
CLEANUP_ENABLED = os.getenv("BEERFEST_CLEANUP_ENABLED", "True").lower() == "true"
ADMIN_TOKEN = os.getenv("BEERFEST_ADMIN_TOKEN")

# results: 1 lets a single scored beer win "most consistent"
MIN_CONSISTENCY_SCORES = int(os.getenv("BEERFEST_MIN_CONSISTENCY_SCORES", "1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
