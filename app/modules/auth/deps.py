from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, status

from app.config import settings

AUTHOR_TOKEN_HEADER = "X-Author-Token"


def author_token_required() -> bool:
    return bool(str(settings.author_api_token or "").strip())


def require_author_token(
    x_author_token: str | None = Header(default=None, alias=AUTHOR_TOKEN_HEADER),
) -> str | None:
    """Guard for routes that change the manuscript; a blank setting turns it off."""
    if not author_token_required():
        return None

    expected = settings.author_api_token.strip().encode("utf-8")
    provided = str(x_author_token or "").strip().encode("utf-8")
    if not hmac.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTHOR_TOKEN_INVALID", "message": f"missing or wrong {AUTHOR_TOKEN_HEADER} header"},
        )
    return provided.decode("utf-8")
