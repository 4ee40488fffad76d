from __future__ import annotations

import html
import logging
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

CONTENT_TYPES: dict[str, str] = {
    ".html": "text/html; charset=utf-8",
    ".css":  "text/css; charset=utf-8",
    ".js":   "application/javascript; charset=utf-8",
    ".mp3":  "audio/mpeg",
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".gif":  "image/gif",
    ".svg":  "image/svg+xml",
    ".ico":  "image/x-icon",
}


def content_type_for(path: str) -> str | None:
    """Content-Type for a known extension, None to let the server guess."""
    return CONTENT_TYPES.get(Path(path).suffix.lower())


def cache_control_for(path: str) -> str:
    if path.endswith(".html"):
        return "no-cache, no-store, must-revalidate"
    return "public, max-age=3600"


def resolve_static(static_dir: str, url_path: str) -> Path | None:
    """Map a URL path onto a file under static_dir.

    Directories resolve to their index.html. Returns None when nothing is
    there or the path would leave static_dir.
    """
    try:
        root = Path(static_dir).resolve()
        target = (root / url_path.lstrip("/")).resolve()
        if not target.is_relative_to(root):
            return None
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            return None
    except (OSError, ValueError):
        # e.g. an embedded NUL byte in the path
        return None
    return target


def check_static_dir(static_dir: str, pages: Iterable[str], resource_dirs: Iterable[str]) -> list[str]:
    """Verify the site directory at startup.

    Raises RuntimeError if static_dir does not exist. Missing pages and
    resource directories are only logged. Returns the missing page names.
    """
    root = Path(static_dir)
    if not root.is_dir():
        raise RuntimeError(f"Static directory does not exist: {static_dir}")

    missing = [p for p in pages if not (root / p).is_file()]
    for page in missing:
        logger.warning("Page missing from %s: %s", static_dir, page)
    if not missing:
        logger.info("All key pages present in %s", static_dir)

    for d in resource_dirs:
        if not (root / d).is_dir():
            logger.warning("Resource directory missing from %s: %s", static_dir, d)
    return missing


_NOT_FOUND_PAGE = """\
<!DOCTYPE html>
<html lang="zh-CN">
<head>
<meta charset="UTF-8">
<title>Page not found - MyTravelDiary</title>
<style>
body{{font-family:Arial,sans-serif;text-align:center;margin-top:100px;background:#f5f5f5}}
.box{{background:#fff;padding:40px;border-radius:8px;box-shadow:0 2px 10px rgba(0,0,0,.1);
      max-width:500px;margin:0 auto}}
h1{{color:#e74c3c}}
p{{color:#666;line-height:1.6}}
a{{background:#3498db;color:#fff;padding:10px 20px;text-decoration:none;border-radius:4px;
   display:inline-block;margin-top:20px}}
a:hover{{background:#2980b9}}
</style>
</head>
<body>
<div class="box">
  <h1>Page not found</h1>
  <p>Sorry, the page <strong>{path}</strong> does not exist.</p>
  <p>It may still be under construction, or the link is wrong.</p>
  <a href="{home}">Back to homepage</a>
</div>
</body>
</html>
"""


def render_not_found(path: str, home: str = "/homepage.html") -> str:
    return _NOT_FOUND_PAGE.format(path=html.escape(path), home=html.escape(home, quote=True))
