from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


def _ts(value: datetime) -> str:
    return value.isoformat()


def _parse_ts(value: str) -> datetime:
    # Older snapshots may carry a trailing "Z" instead of an offset
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass(slots=True)
class GeoLocation:
    """Where a visitor's IP resolves to."""

    country: str
    region: str
    city: str
    isp: str

    @classmethod
    def local(cls) -> "GeoLocation":
        return cls(country="Local", region="Local", city="Local", isp="Local Network")

    @classmethod
    def unknown(cls) -> "GeoLocation":
        return cls(country="Unknown", region="Unknown", city="Unknown", isp="Unknown")


@dataclass(slots=True)
class AccessRecord:
    """Everything known about one visitor, keyed by client IP."""

    ip: str
    user_agent: str
    first_visit: datetime
    last_visit: datetime
    visit_count: int = 1
    country: str = ""
    region: str = ""
    city: str = ""
    isp: str = ""
    pages_visited: list[str] = field(default_factory=list)
    blocked: bool = False
    block_reason: str = ""

    def add_page(self, path: str) -> bool:
        """Append path unless it was already visited. Returns True if added."""
        for page in self.pages_visited:
            if page == path:
                return False
        self.pages_visited.append(path)
        return True

    def to_dict(self) -> dict:
        """Serialize for snapshots and the admin endpoints.

        Timestamps are ISO-8601 with offset; block_reason is left out
        entirely while the visitor has never been blocked.
        """
        d: dict = {
            "ip":            self.ip,
            "user_agent":    self.user_agent,
            "first_visit":   _ts(self.first_visit),
            "last_visit":    _ts(self.last_visit),
            "visit_count":   self.visit_count,
            "country":       self.country,
            "region":        self.region,
            "city":          self.city,
            "isp":           self.isp,
            "pages_visited": list(self.pages_visited),
            "blocked":       self.blocked,
        }
        if self.block_reason:
            d["block_reason"] = self.block_reason
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "AccessRecord":
        """Decode a snapshot entry.

        Raises ValueError for a visit_count below 1. Duplicate pages are
        collapsed, keeping first-visit order.
        """
        visit_count = int(d.get("visit_count", 1))
        if visit_count < 1:
            raise ValueError(f"visit_count must be >= 1, got {visit_count}")
        return cls(
            ip=str(d["ip"]),
            user_agent=str(d.get("user_agent", "")),
            first_visit=_parse_ts(d["first_visit"]),
            last_visit=_parse_ts(d["last_visit"]),
            visit_count=visit_count,
            country=str(d.get("country", "")),
            region=str(d.get("region", "")),
            city=str(d.get("city", "")),
            isp=str(d.get("isp", "")),
            pages_visited=list(dict.fromkeys(str(p) for p in d.get("pages_visited", []))),
            blocked=bool(d.get("blocked", False)),
            block_reason=str(d.get("block_reason", "")),
        )


@dataclass(slots=True)
class Comment:
    id: int
    nick: str
    text: str
    date: datetime

    def to_dict(self) -> dict:
        return {
            "id":   self.id,
            "nick": self.nick,
            "text": self.text,
            "date": _ts(self.date),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Comment":
        return cls(
            id=int(d["id"]),
            nick=str(d["nick"]),
            text=str(d["text"]),
            date=_parse_ts(d["date"]),
        )
