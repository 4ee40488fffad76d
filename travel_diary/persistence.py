from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from travel_diary.comments import CommentStore
from travel_diary.store import AccessStore

logger = logging.getLogger(__name__)


def load_snapshot(path: str) -> dict:
    """Read a JSON object from path. Missing or malformed files yield {}."""
    p = Path(path)
    if not p.exists():
        logger.info("No snapshot at %s, starting empty", path)
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read snapshot %s (%s), starting empty", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Snapshot %s is not a JSON object, starting empty", path)
        return {}
    return data


def save_snapshot(path: str, data: dict) -> bool:
    """Overwrite path with data as pretty-printed JSON. Returns False on failure."""
    p = Path(path)
    try:
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        logger.exception("Failed to serialize snapshot for %s", path)
        return False
    tmp = p.with_name(p.name + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, p)
    except OSError:
        logger.exception("Failed to write snapshot to %s", path)
        return False
    return True


def load_all(records: AccessStore, comments: CommentStore, records_path: str, comments_path: str) -> None:
    """Seed both stores from their snapshots. Called once at startup.

    A snapshot with any undecodable entry is discarded as a whole.
    """
    data = load_snapshot(records_path)
    try:
        n = records.load_dict(data)
        logger.info("Loaded %d access records from %s", n, records_path)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Discarding access records in %s (%s), starting empty", records_path, exc)
        records.load_dict({})

    data = load_snapshot(comments_path)
    try:
        n = comments.load_dict(data)
        logger.info("Loaded comments for %d cities from %s", n, comments_path)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Discarding comments in %s (%s), starting empty", comments_path, exc)
        comments.load_dict({})


def save_all(records: AccessStore, comments: CommentStore, records_path: str, comments_path: str) -> bool:
    """Snapshot both stores. Each file is attempted even if the other fails."""
    ok_records = save_snapshot(records_path, records.to_dict())
    if ok_records:
        logger.info("Saved %d access records to %s", records.count, records_path)
    ok_comments = save_snapshot(comments_path, comments.to_dict())
    if ok_comments:
        logger.info("Saved comments for %d cities to %s", comments.count, comments_path)
    return ok_records and ok_comments
