from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from travel_diary.models import Comment

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommentStore:
    """Append-only comment lists, one per city slug."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._lock = threading.Lock()
        self._comments: dict[str, list[Comment]] = {}
        self._clock = clock

    @property
    def count(self) -> int:
        """Number of cities with at least one comment."""
        with self._lock:
            return len(self._comments)

    def list(self, city: str) -> list[Comment]:
        with self._lock:
            return list(self._comments.get(city, []))

    def add(self, city: str, nick: str, text: str) -> Comment:
        """Append a comment to city and return it.

        Raises ValueError if city, nick or text is empty. Ids run 1, 2, 3...
        per city, independently of other cities.
        """
        if not city:
            raise ValueError("city must not be empty")
        if not nick or not text:
            raise ValueError("nick and text must not be empty")

        with self._lock:
            thread = self._comments.setdefault(city, [])
            new_id = max((c.id for c in thread), default=0) + 1
            comment = Comment(id=new_id, nick=nick, text=text, date=self._clock())
            thread.append(comment)
        logger.info("Comment %d added for %s by %s", comment.id, city, nick)
        return comment

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            return {
                city: [c.to_dict() for c in thread]
                for city, thread in self._comments.items()
            }

    def load_dict(self, data: dict) -> int:
        """Replace all comments with those decoded from data.

        Decoding errors propagate and leave the store untouched.
        """
        comments = {
            str(city): [Comment.from_dict(d) for d in thread]
            for city, thread in data.items()
        }
        with self._lock:
            self._comments = comments
        return len(comments)
