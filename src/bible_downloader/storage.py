"""Local library of downloaded versions, one JSON file per version."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from .models import Document


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

DATA_DIR = os.environ.get("BIBLE_DOWNLOADER_DATA", "bibles")


def document_path(abbreviation: str, data_dir: Union[str, Path] = DATA_DIR) -> Path:
    return Path(data_dir) / f"{abbreviation}.json"


def save_document(document: Document, data_dir: Union[str, Path] = DATA_DIR) -> Path:
    """Write the document to `<data_dir>/<abbreviation>.json`, replacing any copy."""
    path = document_path(document.version.abbreviation, data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info("Saved %s to %s", document.version.abbreviation, path)
    return path


def load_document(path: Union[str, Path]) -> Document:
    with open(path, "r", encoding="utf-8") as f:
        return Document.from_dict(json.load(f))


def list_documents(data_dir: Union[str, Path] = DATA_DIR) -> list[dict]:
    """Summaries of every readable document in the library."""
    directory = Path(data_dir)
    if not directory.exists():
        return []

    summaries = []
    for path in sorted(directory.glob("*.json")):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            version = data["version"]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Skipping unreadable library file %s: %s", path, e)
            continue

        summaries.append({
            "id": version.get("id"),
            "abbreviation": version.get("abbreviation", ""),
            "title": version.get("title", ""),
            "local_title": version.get("local_title", ""),
            "language": version.get("language"),
            "books_count": len(data.get("books", [])),
            "path": str(path),
        })
    return summaries


def is_downloaded(abbreviation: str, data_dir: Union[str, Path] = DATA_DIR) -> bool:
    return document_path(abbreviation, data_dir).exists()


def delete_document(abbreviation: str, data_dir: Union[str, Path] = DATA_DIR) -> Optional[Path]:
    """Remove a saved version. Returns the removed path, or None if absent."""
    path = document_path(abbreviation, data_dir)
    if not path.exists():
        return None
    path.unlink()
    logger.info("Deleted %s", path)
    return path
