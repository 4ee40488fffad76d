from __future__ import annotations

import os

SERVICE_NAME = "MyTravelDiary"

STATIC_DIR = os.getenv("STATIC_DIR", "./MyTravelDiary")
HOMEPAGE = "/homepage.html"

# Pages and asset folders the site is expected to ship; missing ones are
# only reported at startup.
CRITICAL_PAGES = (
    "homepage.html",
    "nj.html",
    "sz.html",
    "jj.html",
    "nc.html",
    "xjp.html",
    "mlxy.html",
    "zjj.html",
    "gz.html",
    "szc.html",
)
RESOURCE_DIRS = ("images", "bgm", "imagesxjp", "imgszc")

ACCESS_RECORDS_FILE = os.getenv("ACCESS_RECORDS_FILE", "access_records.json")
COMMENTS_FILE = os.getenv("COMMENTS_FILE", "comments.json")
ACCESS_LOG_FILE = os.getenv("ACCESS_LOG_FILE", "access.log")

PERSIST_INTERVAL_SECONDS = int(os.getenv("PERSIST_INTERVAL_SECONDS", str(5 * 60)))

RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "60"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

RECORD_QUEUE_SIZE = int(os.getenv("RECORD_QUEUE_SIZE", "1000"))

GEO_LOOKUP_URL = os.getenv("GEO_LOOKUP_URL", "http://ip-api.com/json/{ip}")
GEO_LOOKUP_FIELDS = (
    "status,message,country,countryCode,region,regionName,city,zip,"
    "lat,lon,timezone,isp,org,as,query"
)

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

BLACKLISTED_IPS = frozenset(
    ip.strip() for ip in os.getenv("BLACKLISTED_IPS", "").split(",") if ip.strip()
)
# "monitor" only logs bot-like user agents, "block" rejects them with 403
SUSPICIOUS_AGENT_POLICY = os.getenv("SUSPICIOUS_AGENT_POLICY", "monitor").strip().lower()

COMMENTS_ALLOWED_ORIGIN = os.getenv("COMMENTS_ALLOWED_ORIGIN", "*")

SERVER_HOST = "0.0.0.0"
SERVER_PORT = int(os.getenv("PORT", "9099"))
