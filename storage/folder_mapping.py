"""Persistence for the slug -> folder mapping."""
import json
import logging
from pathlib import Path
from typing import Dict, Mapping

from processor.folder_allocator import is_valid_bucket

logger = logging.getLogger(__name__)


def load_folder_mapping(path) -> Dict[str, str]:
    """
    Load a persisted slug -> bucket mapping.

    A missing or malformed file yields an empty mapping; the mapping only
    biases bucket choice, so passes still run without it.

    Args:
        path: JSON file written by a previous mapping pass

    Returns:
        Dictionary mapping slug to bucket name
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No folder mapping at {path}, using default buckets")
        return {}

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable folder mapping {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring folder mapping {path}: expected a JSON object")
        return {}

    mapping = {
        slug: bucket for slug, bucket in data.items()
        if is_valid_bucket(bucket)
    }
    skipped = len(data) - len(mapping)
    if skipped:
        logger.warning(f"Skipped {skipped} folder mapping entries without a valid bucket name")
    logger.info(f"Loaded folder mapping for {len(mapping)} slugs from {path}")
    return mapping


def save_folder_mapping(path, mapping: Mapping[str, str]) -> None:
    """Write a slug -> bucket mapping as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(mapping), indent=2, ensure_ascii=False), encoding='utf-8')
    logger.info(f"Folder mapping for {len(mapping)} slugs written to {path}")
