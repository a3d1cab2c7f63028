"""
JSON Document Persistence

Whole-document read and atomic whole-document write for the engine's
data files. Readers treat a missing or corrupt file as empty; writers
go through a temp file and os.replace so a crash never leaves a torn file.
"""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger


def load_json_document(path: Path, default: Any) -> Any:
    """
    Load JSON from path, returning default when missing or corrupt.

    Args:
        path: Document location
        default: Value returned when the file cannot be used

    Returns:
        Decoded document or default
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        logger.debug(f"No document at {path}, starting empty")
        return default
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Corrupt JSON document at {path}, starting empty: {e}")
        return default
    except OSError as e:
        logger.warning(f"Could not read {path}, starting empty: {e}")
        return default


def save_json_document(path: Path, data: Any) -> None:
    """
    Atomic JSON write: write to a sibling temp file then os.replace().

    Raises:
        OSError: If the directory or file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, ensure_ascii=False)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp_path, path)


__all__ = ["load_json_document", "save_json_document"]
