"""Per-client throttling of the public shipping endpoints."""

import time
from collections import defaultdict
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


class RateLimiter:
    """Token bucket: `burst` requests at once, refilled at requests_per_minute."""

    def __init__(self, requests_per_minute: int = 30, burst: int = 10):
        self.rate = requests_per_minute / 60.0
        self.burst = burst
        self._buckets: dict[str, dict] = defaultdict(
            lambda: {"tokens": float(burst), "last": time.monotonic()}
        )

    def _refill(self, key: str) -> dict:
        bucket = self._buckets[key]
        now = time.monotonic()
        bucket["tokens"] = min(self.burst, bucket["tokens"] + (now - bucket["last"]) * self.rate)
        bucket["last"] = now
        return bucket

    def allow(self, key: str) -> bool:
        bucket = self._refill(key)
        if bucket["tokens"] >= 1:
            bucket["tokens"] -= 1
            return True
        return False

    def remaining(self, key: str) -> int:
        return max(0, int(self._refill(key)["tokens"]))

    def retry_after(self, key: str) -> int:
        """Seconds until the next token is available."""
        missing = 1 - self._refill(key)["tokens"]
        if missing <= 0 or self.rate <= 0:
            return 0
        return max(1, int(missing / self.rate + 0.999))

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttles requests whose path starts with one of `paths`, keyed by client IP."""

    def __init__(
        self,
        app,
        requests_per_minute: int = 30,
        burst: int = 10,
        paths: tuple[str, ...] = ("/api/shipping",),
        key_func=None,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter(requests_per_minute, burst)
        self.paths = paths
        self.key_func = key_func or client_ip

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.paths):
            return await call_next(request)

        key = f"shipping:{self.key_func(request)}"
        if not self.limiter.allow(key):
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Try again shortly."},
                headers={"Retry-After": str(self.limiter.retry_after(key) or 1)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(self.limiter.remaining(key))
        return response
