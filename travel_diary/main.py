from __future__ import annotations

import asyncio
import json
import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response

from travel_diary import persistence
from travel_diary.access_log import AccessLog
from travel_diary.comments import CommentStore
from travel_diary.config import (
    ACCESS_LOG_FILE,
    ACCESS_RECORDS_FILE,
    ADMIN_TOKEN,
    BLACKLISTED_IPS,
    COMMENTS_ALLOWED_ORIGIN,
    COMMENTS_FILE,
    CRITICAL_PAGES,
    HOMEPAGE,
    PERSIST_INTERVAL_SECONDS,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    RECORD_QUEUE_SIZE,
    RESOURCE_DIRS,
    SERVICE_NAME,
    STATIC_DIR,
    SUSPICIOUS_AGENT_POLICY,
)
from travel_diary.geo import GeoResolver
from travel_diary.rate_limit import RateLimiter
from travel_diary.recorder import AccessRecorder
from travel_diary.security import SECURITY_HEADERS, SecurityPolicy
from travel_diary.site import (
    cache_control_for,
    check_static_dir,
    content_type_for,
    render_not_found,
    resolve_static,
)
from travel_diary.store import AccessStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

geo = GeoResolver()
records = AccessStore(geo)
comments = CommentStore()
limiter = RateLimiter(RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW_SECONDS)
security = SecurityPolicy(BLACKLISTED_IPS, SUSPICIOUS_AGENT_POLICY)
recorder = AccessRecorder(records, maxsize=RECORD_QUEUE_SIZE)


def _save_snapshots() -> None:
    persistence.save_all(records, comments, ACCESS_RECORDS_FILE, COMMENTS_FILE)


async def _persist_loop() -> None:
    """Snapshot both stores every PERSIST_INTERVAL_SECONDS."""
    while True:
        await asyncio.sleep(PERSIST_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(_save_snapshots)
        except Exception:
            logger.exception("Periodic snapshot failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Aborts startup when the site directory is missing
    check_static_dir(STATIC_DIR, CRITICAL_PAGES, RESOURCE_DIRS)

    persistence.load_all(records, comments, ACCESS_RECORDS_FILE, COMMENTS_FILE)

    access_log = AccessLog.open(ACCESS_LOG_FILE)
    records.access_log = access_log
    recorder.start()

    task = asyncio.create_task(_persist_loop())
    logger.info("%s serving %s (snapshots every %ds)", SERVICE_NAME, STATIC_DIR, PERSIST_INTERVAL_SECONDS)
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await asyncio.to_thread(recorder.stop)
        await asyncio.to_thread(_save_snapshots)
        records.access_log = None
        access_log.close()
        geo.close()


app = FastAPI(title="MyTravelDiary Server", lifespan=lifespan)


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if xff:
        return xff
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _security_event(ip: str, request: Request, user_agent: str, event: str, reason: str) -> None:
    """Log a rejected request and flag the visitor's record with event."""
    logger.warning(
        "Security event [%s] %s: IP %s | Path: %s | Agent: %s",
        event, reason, ip, request.url.path, user_agent,
    )
    records.mark_blocked(ip, event)


def _admit_visitor(request: Request) -> None:
    """Security check and rate limit for page requests, then record the visit.

    Runs in the threadpool: the store lock can be held across a slow
    geolocation lookup.
    """
    ip = _client_ip(request)
    path = request.url.path
    user_agent = request.headers.get("user-agent", "")

    reason = security.check(ip, path, user_agent)
    if reason:
        _security_event(ip, request, user_agent, "BLOCKED", reason)
        raise HTTPException(status_code=403, detail="Access Denied")

    if not limiter.allow(ip):
        _security_event(ip, request, user_agent, "RATE_LIMITED", "rate limit exceeded")
        raise HTTPException(status_code=429, detail="Too Many Requests")

    recorder.submit(ip, user_agent, path)
    logger.info("Request %s %s from %s [%s]", request.method, path, ip, user_agent)


def _require_admin(x_admin_token: str | None = Header(None)) -> None:
    if not ADMIN_TOKEN:
        raise HTTPException(status_code=503, detail="Admin not configured: set ADMIN_TOKEN")
    if not x_admin_token or not secrets.compare_digest(x_admin_token.encode(), ADMIN_TOKEN.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "service": SERVICE_NAME})


@app.get("/admin/stats", dependencies=[Depends(_require_admin)])
def admin_stats():
    return JSONResponse(content=records.to_dict())


@app.get("/admin/export", dependencies=[Depends(_require_admin)])
def admin_export():
    data = json.dumps(records.to_dict(), indent=2, ensure_ascii=False)
    return Response(
        content=data.encode("utf-8"),
        media_type="application/octet-stream",
        headers={"Content-Disposition": "attachment; filename=access_records.json"},
    )


# Comment board: a separate app so CORS only applies under /comments
comments_app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
comments_app.add_middleware(
    CORSMiddleware,
    allow_origins=[COMMENTS_ALLOWED_ORIGIN],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@comments_app.api_route("/", methods=["GET", "POST"])
async def comments_without_city():
    return JSONResponse(status_code=400, content={"error": "invalid city"})


@comments_app.get("/{city:path}")
def list_comments(city: str):
    return JSONResponse(content=[c.to_dict() for c in comments.list(city)])


@comments_app.post("/{city:path}")
async def add_comment(city: str, request: Request):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "invalid request body"})

    nick = body.get("nick") if isinstance(body, dict) else None
    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(nick, str) or not isinstance(text, str):
        return JSONResponse(status_code=400, content={"error": "nick and text are required"})

    try:
        comment = comments.add(city, nick, text)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    return JSONResponse(content=comment.to_dict())


app.mount("/comments", comments_app)


@app.get("/", dependencies=[Depends(_admit_visitor)])
def index():
    return RedirectResponse(HOMEPAGE, status_code=302)


@app.get("/{file_path:path}", dependencies=[Depends(_admit_visitor)])
def static_page(file_path: str, request: Request):
    target = resolve_static(STATIC_DIR, file_path)
    if target is None:
        logger.info("Not found: %s from %s", request.url.path, _client_ip(request))
        return HTMLResponse(content=render_not_found(request.url.path, HOMEPAGE), status_code=404)

    headers = dict(SECURITY_HEADERS)
    headers["Cache-Control"] = cache_control_for(target.name)
    return FileResponse(target, media_type=content_type_for(target.name), headers=headers)
