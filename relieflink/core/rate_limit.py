"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. Only the routes that write to the
upstream pin store opt in; reads are served from local snapshots.

Usage in routes:
    from fastapi import Request
    from relieflink.core.rate_limit import limiter

    @router.post("")
    @limiter.limit(settings.create_rate_limit)
    async def create_pin(request: Request, payload: PinDraft):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
