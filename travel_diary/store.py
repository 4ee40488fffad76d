from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Protocol

from travel_diary.access_log import AccessLog, format_line
from travel_diary.models import AccessRecord, GeoLocation

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    def resolve(self, ip: str) -> GeoLocation: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessStore:
    """Thread-safe in-memory visitor profiles, keyed by client IP.

    A single lock covers every update, including the geolocation lookup on
    first contact, so recording is serialized across all IPs.
    Records are never removed.
    """

    def __init__(
        self,
        resolver: Resolver,
        access_log: AccessLog | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, AccessRecord] = {}
        self.resolver = resolver
        self.access_log = access_log
        self._clock = clock

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def record(self, ip: str, user_agent: str, path: str) -> None:
        """Register one visit from ip to path."""
        with self._lock:
            now = self._clock()
            rec = self._records.get(ip)
            if rec is None:
                geo = self.resolver.resolve(ip)
                rec = AccessRecord(
                    ip=ip,
                    user_agent=user_agent,
                    first_visit=now,
                    last_visit=now,
                    visit_count=1,
                    country=geo.country,
                    region=geo.region,
                    city=geo.city,
                    isp=geo.isp,
                    pages_visited=[path],
                )
                self._records[ip] = rec
                logger.info(
                    "New visitor %s: %s %s %s, ISP %s",
                    ip, geo.country, geo.region, geo.city, geo.isp,
                )
            else:
                rec.user_agent = user_agent
                rec.last_visit = now
                rec.visit_count += 1
                rec.add_page(path)

            if self.access_log is not None:
                self.access_log.write(format_line(
                    now, ip, path, user_agent, rec.visit_count,
                    rec.country, rec.region, rec.city,
                ))

    def mark_blocked(self, ip: str, reason: str) -> bool:
        """Flag an existing record as blocked. No-op for unseen IPs."""
        with self._lock:
            rec = self._records.get(ip)
            if rec is None:
                return False
            rec.blocked = True
            rec.block_reason = reason
            return True

    def get(self, ip: str) -> AccessRecord | None:
        with self._lock:
            rec = self._records.get(ip)
            if rec is None:
                return None
            return dataclasses.replace(rec, pages_visited=list(rec.pages_visited))

    def snapshot(self) -> dict[str, AccessRecord]:
        """Return a copy of every record, safe to read without the lock."""
        with self._lock:
            return {
                ip: dataclasses.replace(rec, pages_visited=list(rec.pages_visited))
                for ip, rec in self._records.items()
            }

    def to_dict(self) -> dict[str, dict]:
        with self._lock:
            return {ip: rec.to_dict() for ip, rec in self._records.items()}

    def load_dict(self, data: dict) -> int:
        """Replace all records with those decoded from data.

        Decoding errors propagate and leave the store untouched.
        """
        records = {str(ip): AccessRecord.from_dict(d) for ip, d in data.items()}
        with self._lock:
            self._records = records
        return len(records)
