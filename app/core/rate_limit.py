"""
Rate limiting middleware using in-memory storage.

Counters are per process; with several uvicorn workers each worker keeps its
own window.
"""
import hashlib
import time
import logging
from typing import Dict, List

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response, JSONResponse

logger = logging.getLogger(__name__)

# POST paths under /api/v1 that make the identity provider send a code
OTP_SENDING_SUFFIXES = ("/otp", "/otp/resend", "/signup/password")


def is_otp_sending_request(method: str, path: str) -> bool:
    if method != "POST":
        return False
    return path.rstrip("/").endswith(OTP_SENDING_SUFFIXES)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware with a general limit for every request and a
    stricter one for requests that send an OTP.

    Uses a sliding window algorithm to track request counts per client.
    """

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        otp_per_minute: int = 5
    ):
        """
        Initialize rate limiter.

        Args:
            app: FastAPI application
            requests_per_minute: General rate limit for all requests
            otp_per_minute: Limit for OTP send and resend requests
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.otp_per_minute = otp_per_minute
        self._request_counts: Dict[str, List[float]] = {}
        self._otp_counts: Dict[str, List[float]] = {}
        self._last_prune = time.time()

    def _get_client_id(self, request: Request) -> str:
        """
        Get client identifier from auth token or IP address.

        Signup happens before the user has a token, so most OTP traffic is
        keyed by IP.
        """
        auth_header = request.headers.get("authorization", "")
        if auth_header:
            digest = hashlib.sha256(auth_header.encode("utf-8")).hexdigest()[:16]
            return f"auth:{digest}"

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

        client_host = request.client.host if request.client else "unknown"
        return f"ip:{client_host}"

    def _prune(self, now: float, window: int = 60) -> None:
        """Forget clients with no request inside the window, at most once per window"""
        if now - self._last_prune < window:
            return
        self._last_prune = now
        for buckets in (self._request_counts, self._otp_counts):
            idle = [client_id for client_id, counts in buckets.items() if not counts or now - counts[-1] >= window]
            for client_id in idle:
                del buckets[client_id]

    def _is_rate_limited(
        self,
        buckets: Dict[str, List[float]],
        client_id: str,
        limit: int,
        window: int = 60
    ) -> bool:
        """
        Check if client has exceeded rate limit using sliding window.

        Args:
            buckets: Request timestamps per client for one limit
            client_id: Client being checked
            limit: Maximum requests allowed in window
            window: Time window in seconds

        Returns:
            True if rate limit exceeded, False otherwise
        """
        now = time.time()
        self._prune(now, window)

        counts = [t for t in buckets.get(client_id, ()) if now - t < window]
        buckets[client_id] = counts

        if len(counts) >= limit:
            return True

        counts.append(now)
        return False

    def _get_retry_after(self, counts: List[float], window: int = 60) -> int:
        """Seconds until the oldest request leaves the window"""
        if not counts:
            return 0
        oldest = min(counts)
        return max(1, int(window - (time.time() - oldest)))

    def _too_many(self, counts: List[float], detail: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": detail, "error_code": "rate_limited"},
            headers={"Retry-After": str(self._get_retry_after(counts))}
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        client_id = self._get_client_id(request)
        path = request.url.path

        if path == "/health":
            return await call_next(request)

        if is_otp_sending_request(request.method, path):
            if self._is_rate_limited(self._otp_counts, client_id, self.otp_per_minute):
                logger.warning(f"OTP rate limit exceeded for {client_id} on {path}")
                return self._too_many(
                    self._otp_counts[client_id],
                    "Too many verification code requests. Please wait before trying again."
                )

        if self._is_rate_limited(self._request_counts, client_id, self.requests_per_minute):
            logger.warning(f"Rate limit exceeded for {client_id}")
            return self._too_many(self._request_counts[client_id], "Rate limit exceeded. Please slow down.")

        return await call_next(request)
