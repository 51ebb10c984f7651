"""Session-bound CSRF tokens for cookie-authenticated admin writes.

The token is an HMAC of the admin session token, so it dies with the session on logout
and cannot be planted by a sibling subdomain the way a free-standing cookie can.
Bearer-authenticated calls are not exposed to cross-site form posts and skip the check.
"""

from __future__ import annotations

import hashlib
import hmac
from urllib.parse import urlparse

from fastapi import HTTPException, Request, status
from warden.config import get_settings

from api.dependencies import ADMIN_AUTH_COOKIE_NAME, extract_bearer_token

CSRF_HEADER_NAME = "x-csrf-token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def csrf_token_for(session_token: str) -> str:
    key = get_settings().secret_key.encode()
    digest = hashlib.sha256(session_token.encode()).hexdigest()
    return hmac.new(key, f"csrf:{digest}".encode(), hashlib.sha256).hexdigest()


def _origin(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def _origin_allowed(request: Request) -> bool:
    headers = request.headers
    claimed = headers.get("origin", "").strip() or headers.get("referer", "").strip()
    if not claimed:
        return True
    settings = get_settings()
    return _origin(claimed) in {_origin(settings.admin_url), _origin(settings.site_url)}


async def require_csrf(request: Request) -> None:
    if request.method.upper() in SAFE_METHODS or extract_bearer_token(request):
        return
    session_token = request.cookies.get(ADMIN_AUTH_COOKIE_NAME, "").strip()
    if not session_token:
        # Nothing ambient to ride on; authentication rejects the request.
        return

    if not _origin_allowed(request):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cross-site request origin is not allowed",
        )

    presented = request.headers.get(CSRF_HEADER_NAME, "").strip()
    if not presented or not hmac.compare_digest(presented, csrf_token_for(session_token)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing or invalid CSRF token",
        )
