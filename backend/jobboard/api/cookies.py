"""Refresh token cookie handling"""

from fastapi import Request, Response

from jobboard.config import settings


def set_refresh_cookie(response: Response, refresh_secret: str, ttl_ms: int) -> None:
    """HttpOnly cookie scoped to the whole site, expiring with the ledger record."""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_secret,
        max_age=ttl_ms // 1000,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def read_refresh_cookie(request: Request):
    return request.cookies.get(settings.REFRESH_COOKIE_NAME)
