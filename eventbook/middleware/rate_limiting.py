"""
Rate Limiting Middleware
Fixed-window request limits kept in Redis, with tighter limits for
authentication and booking creation.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Request, status
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from eventbook.core.security import decode_access_token
from eventbook.core.settings import get_settings
from eventbook.utils.cache import get_redis

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration"""
    name: str
    requests: int  # Number of requests allowed
    window: int    # Time window in seconds
    path_prefix: str = ""
    methods: Optional[Tuple[str, ...]] = None

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        return path.rstrip("/").startswith(self.path_prefix.rstrip("/"))


class RateLimiter:
    """Fixed window counter per client and limit"""

    def __init__(self, config: RateLimitConfig):
        self.config = config

    async def is_allowed(self, identifier: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Count this request against the current window.

        Returns:
            Tuple of (is_allowed, rate_limit_info)
        """
        current_time = int(time.time())
        window_start = current_time - (current_time % self.config.window)
        reset = window_start + self.config.window
        rate_limit_key = (
            f"{settings.scalability.CACHE_KEY_PREFIX}rate_limit:"
            f"{self.config.name}:{identifier}:{window_start}"
        )

        redis_client = get_redis()
        pipe = redis_client.pipeline()
        pipe.incr(rate_limit_key)
        pipe.expire(rate_limit_key, self.config.window)
        current_requests, _ = await pipe.execute()

        if current_requests > self.config.requests:
            return False, {
                "limit": self.config.requests,
                "remaining": 0,
                "reset": reset,
                "retry_after": max(1, reset - current_time),
            }

        return True, {
            "limit": self.config.requests,
            "remaining": max(0, self.config.requests - current_requests),
            "reset": reset,
            "retry_after": 0,
        }


def default_rate_limit_configs(api_prefix: str) -> List[RateLimitConfig]:
    """Limits checked in order; the last entry is the catch-all."""
    scalability = settings.scalability
    return [
        RateLimitConfig(
            name="auth",
            requests=scalability.AUTH_RATE_LIMIT_REQUESTS,
            window=scalability.AUTH_RATE_LIMIT_WINDOW,
            path_prefix=f"{api_prefix}/auth",
            methods=("POST", "PATCH"),
        ),
        RateLimitConfig(
            name="booking",
            requests=scalability.BOOKING_RATE_LIMIT_REQUESTS,
            window=scalability.BOOKING_RATE_LIMIT_WINDOW,
            path_prefix=f"{api_prefix}/bookings",
            methods=("POST",),
        ),
        RateLimitConfig(
            name="api",
            requests=scalability.RATE_LIMIT_REQUESTS,
            window=scalability.RATE_LIMIT_WINDOW,
            path_prefix=api_prefix,
        ),
    ]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies the first matching limit to each request under the API prefix.
    Clients are identified by the user id in their bearer token, or by IP.
    """

    def __init__(
        self,
        app: Any,
        configs: Optional[List[RateLimitConfig]] = None,
        whitelist: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.configs = configs or default_rate_limit_configs(settings.API_V1_PREFIX)
        self.whitelist = set(
            whitelist if whitelist is not None else settings.scalability.RATE_LIMIT_WHITELIST
        )
        self._rate_limiters = {config.name: RateLimiter(config) for config in self.configs}

    def _get_client_identifier(self, request: Request) -> str:
        authorization = request.headers.get("Authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            try:
                subject = decode_access_token(token).get("sub")
            except JWTError:
                subject = None
            if subject:
                return f"user:{subject}"

        return f"ip:{self._get_client_ip(request)}"

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"

    def _get_rate_limit_config(self, request: Request) -> Optional[RateLimitConfig]:
        for config in self.configs:
            if config.matches(request.method, request.url.path):
                return config
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.scalability.RATE_LIMIT_ENABLED:
            return await call_next(request)

        config = self._get_rate_limit_config(request)
        if config is None or self._get_client_ip(request) in self.whitelist:
            return await call_next(request)

        client_identifier = self._get_client_identifier(request)
        try:
            is_allowed, rate_info = await self._rate_limiters[config.name].is_allowed(
                client_identifier
            )
        except Exception as e:
            logger.error(f"Rate limiting error: {e}")
            return await call_next(request)

        if not is_allowed:
            logger.warning(
                f"Rate limit '{config.name}' exceeded for {client_identifier} "
                f"on {request.method} {request.url.path}"
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests, please try again later."},
                headers=self._get_rate_limit_headers(rate_info),
            )

        response = await call_next(request)
        response.headers.update(self._get_rate_limit_headers(rate_info))
        return response

    def _get_rate_limit_headers(self, rate_info: Dict[str, Any]) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(rate_info["limit"]),
            "X-RateLimit-Remaining": str(rate_info["remaining"]),
            "X-RateLimit-Reset": str(rate_info["reset"]),
        }
        if rate_info["retry_after"] > 0:
            headers["Retry-After"] = str(rate_info["retry_after"])
        return headers
