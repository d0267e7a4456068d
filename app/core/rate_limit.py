"""SlowAPI limiter shared by the auth routes, keyed on the caller's IP."""
from fastapi import Request

from slowapi import Limiter
from slowapi.util import get_remote_address


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return get_remote_address(request)


def per_minute(count: int) -> str:
    return f"{max(count, 1)}/minute"


limiter = Limiter(key_func=client_ip)
