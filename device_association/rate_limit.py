"""Rate limiting global / Global rate limiter.

Limite par utilisateur authentifie, sinon par IP.
Limits per authenticated user, falling back to the client IP.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from device_association.config import settings


def user_or_remote_address(request: Request) -> str:
    user_id = request.headers.get("user-id")
    if user_id and user_id.strip():
        return f"user:{user_id.strip()}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
