from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class AccessLog:
    """Append-only, human-readable log with one line per recorded visit."""

    def __init__(self, fh: TextIO, path: str) -> None:
        self._fh = fh
        self.path = path

    @classmethod
    def open(cls, path: str) -> "AccessLog":
        """Open path for appending and write a startup marker.

        If the file cannot be opened, lines are discarded into os.devnull
        so recording keeps working.
        """
        p = Path(path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            fh = p.open("a", encoding="utf-8")
            logger.info("Access log opened at %s", path)
        except OSError:
            logger.exception("Cannot open access log %s, discarding access lines", path)
            fh = open(os.devnull, "w", encoding="utf-8")
            path = os.devnull
        log = cls(fh, path)
        log.write(f"\n=== server start [{datetime.now().strftime(TIME_FORMAT)}] ===\n")
        return log

    def write(self, line: str) -> None:
        """Append line and push it to disk before returning."""
        try:
            self._fh.write(line)
            self._fh.flush()
            os.fsync(self._fh.fileno())
        except (OSError, ValueError):
            logger.exception("Failed to write access log line to %s", self.path)

    def close(self) -> None:
        self._fh.close()


def format_line(
    when: datetime,
    ip: str,
    path: str,
    user_agent: str,
    visits: int,
    country: str,
    region: str,
    city: str,
) -> str:
    return (
        f"[{when.strftime(TIME_FORMAT)}] IP: {ip} | Path: {path} | Agent: {user_agent} "
        f"| Visits: {visits} | Location: {country} {region} {city}\n"
    )
