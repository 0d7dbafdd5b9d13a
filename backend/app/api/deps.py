import httpx
from fastapi import Request

from app.registry import Caches


def get_caches(request: Request) -> Caches:
    """Caches built by the app factory."""
    return request.app.state.caches


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client, opened and closed with the app lifespan."""
    return request.app.state.http_client
