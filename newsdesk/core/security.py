from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, status

from newsdesk.core.config import settings


def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    if not settings.admin_token or not x_admin_token or not secrets.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    # Public routes stay open unless API_KEY is configured
    if not settings.api_key:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
