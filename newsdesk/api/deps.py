from __future__ import annotations

from fastapi import Request

from newsdesk.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def client_context(request: Request) -> str:
    # Cached pages are keyed per caller: API key when present, else client address
    key = request.headers.get("X-API-Key")
    if key:
        return f"key:{key}"
    return request.client.host if request.client else "anonymous"
