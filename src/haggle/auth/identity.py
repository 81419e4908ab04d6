"""Resolve the calling user from a bearer token.

Identity is owned by the external OAuth provider; this service only stores
each user's latest access token and its expiry.  A request is authenticated
when it carries a token that matches a stored, unexpired one.
"""

from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from haggle.domain.models import User
from haggle.ledger.market import MarketStore

logger = structlog.get_logger()

TOKEN_COOKIE = "token"


def extract_token(request: Request) -> str | None:
    """Return the access token from the ``token`` cookie or the bearer header."""
    cookie_token = request.cookies.get(TOKEN_COOKIE)
    if cookie_token:
        return cookie_token
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_user(request: Request) -> User:
    """FastAPI dependency returning the authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, unknown, or expired.
    """
    token = extract_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    store: MarketStore = request.app.state.services["market_store"]
    user = store.get_user_by_token(token)
    if user is None:
        logger.info("auth_rejected", path=request.url.path)
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user
