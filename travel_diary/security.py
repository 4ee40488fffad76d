from __future__ import annotations

import logging
from typing import Iterable

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

SUSPICIOUS_AGENTS = ("bot", "crawler", "spider", "scraper")
SUSPICIOUS_PATH_PARTS = ("../", "..\\", "<script", "<?php", "eval(")

POLICY_MONITOR = "monitor"
POLICY_BLOCK = "block"


class SecurityPolicy:
    """Pre-flight checks applied to every page request.

    Bot-like user agents are only logged under the "monitor" policy and
    rejected under "block". Blacklisted IPs and suspicious paths are always
    rejected.
    """

    def __init__(self, blacklist: Iterable[str] = (), agent_policy: str = POLICY_MONITOR) -> None:
        if agent_policy not in (POLICY_MONITOR, POLICY_BLOCK):
            raise ValueError(f"unknown suspicious agent policy: {agent_policy!r}")
        self.blacklist = frozenset(blacklist)
        self.agent_policy = agent_policy

    def check(self, ip: str, path: str, user_agent: str) -> str | None:
        """Return a rejection reason, or None if the request may proceed."""
        if ip in self.blacklist:
            return "BLACKLISTED"

        ua = user_agent.lower()
        if any(s in ua for s in SUSPICIOUS_AGENTS):
            logger.warning("Suspicious user agent from %s: %s", ip, user_agent)
            if self.agent_policy == POLICY_BLOCK:
                return "SUSPICIOUS_AGENT"

        if any(s in path for s in SUSPICIOUS_PATH_PARTS):
            logger.warning("Suspicious path %s from %s", path, ip)
            return "SUSPICIOUS_PATH"

        return None
