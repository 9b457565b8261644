import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return now_utc().isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def get_date_suffix_for_filename() -> str:
    """Returns the current date as a YYYY-MM-DD string for filenames."""
    return datetime.now().strftime("%Y-%m-%d")


def read_text_file(file_path: Path) -> Optional[str]:
    """
    Reads a feed file with a multi-stage encoding fallback:
    1. UTF-8 with BOM support ('utf-8-sig').
    2. Latin-1, which decodes any byte sequence.
    Returns None when the file does not exist.
    """
    try:
        return file_path.read_text(encoding="utf-8-sig")

    except UnicodeDecodeError:
        logger.info(f"UTF-8 decoding failed for {file_path.name}. Retrying with 'latin-1'.")
        return file_path.read_text(encoding="latin-1")

    except FileNotFoundError:
        logger.warning(f"Feed not found at {file_path}, skipping.")
        return None
