"""Sliding-window rate limiting for the REST API.

Every rule whose path prefix (and method set) matches a request is applied;
the request is rejected as soon as one of them is exhausted. Windows live in
Redis sorted sets when ``REDIS_URL`` is configured and in process memory
otherwise.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, ClassVar

import redis
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import settings
from app.logging import get_logger

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "omnidesk:rate:"


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int
    path_prefix: str
    methods: frozenset[str] | None = None
    # Only responses with status >= 400 use up the window
    count_failures_only: bool = False

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        base = self.path_prefix.rstrip("/")
        return path == base or path.startswith(base + "/")


DEFAULT_RULES: tuple[RateLimitRule, ...] = (
    RateLimitRule("api", limit=100, window_seconds=15 * 60, path_prefix="/api/"),
    RateLimitRule("auth", limit=5, window_seconds=15 * 60, path_prefix="/api/auth/", count_failures_only=True),
    RateLimitRule("messages", limit=30, window_seconds=60, path_prefix="/api/messages", methods=frozenset({"POST"})),
    RateLimitRule("admin", limit=20, window_seconds=5 * 60, path_prefix="/api/admin/"),
)


@dataclass(frozen=True)
class Verdict:
    rule: RateLimitRule
    allowed: bool
    remaining: int
    reset_in: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.rule.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }


class MemoryWindow:
    """Per-process sliding windows, one timestamp list per key.

    Buckets whose window has emptied are dropped, so the store only holds
    clients seen within the longest window.
    """

    PRUNE_EVERY = 1000

    def __init__(self):
        self._hits: dict[str, list[float]] = {}
        self._lock = Lock()
        self._longest_window = 0
        self._calls = 0

    def _recent(self, bucket: str, cutoff: float) -> list[float]:
        recent = [stamp for stamp in self._hits.get(bucket, ()) if stamp > cutoff]
        if recent:
            self._hits[bucket] = recent
        else:
            self._hits.pop(bucket, None)
        return recent

    def _prune(self, now: float) -> None:
        cutoff = now - self._longest_window
        for bucket in [bucket for bucket, stamps in self._hits.items() if stamps[-1] <= cutoff]:
            del self._hits[bucket]

    def hit(self, rule: RateLimitRule, key: str, now: float, record: bool = True) -> Verdict:
        bucket = f"{rule.name}:{key}"
        with self._lock:
            self._longest_window = max(self._longest_window, rule.window_seconds)
            self._calls += 1
            if self._calls % self.PRUNE_EVERY == 0:
                self._prune(now)

            recent = self._recent(bucket, now - rule.window_seconds)
            if len(recent) >= rule.limit:
                return Verdict(rule, False, 0, int(recent[0] + rule.window_seconds - now) + 1)
            if record:
                recent.append(now)
                self._hits[bucket] = recent
            used = len(recent)
        return Verdict(rule, True, rule.limit - used, rule.window_seconds)

    def record(self, rule: RateLimitRule, key: str, now: float) -> None:
        with self._lock:
            self._hits.setdefault(f"{rule.name}:{key}", []).append(now)

    def __len__(self) -> int:
        return len(self._hits)


class RedisWindow:
    """Sliding windows shared by every worker through Redis sorted sets."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, rule: RateLimitRule, key: str, now: float, record: bool = True) -> Verdict:
        bucket = f"{REDIS_KEY_PREFIX}{rule.name}:{key}"
        member = f"{now:.6f}"
        pipe = self.client.pipeline()
        pipe.zremrangebyscore(bucket, 0, now - rule.window_seconds)
        pipe.zcard(bucket)
        if record:
            pipe.zadd(bucket, {member: now})
            pipe.expire(bucket, rule.window_seconds + 1)
        count = pipe.execute()[1]

        if count < rule.limit:
            used = count + 1 if record else count
            return Verdict(rule, True, max(0, rule.limit - used), rule.window_seconds)

        if record:
            self.client.zrem(bucket, member)
        oldest = self.client.zrange(bucket, 0, 0, withscores=True)
        reset_in = int(oldest[0][1] + rule.window_seconds - now) + 1 if oldest else rule.window_seconds
        return Verdict(rule, False, 0, reset_in)

    def record(self, rule: RateLimitRule, key: str, now: float) -> None:
        bucket = f"{REDIS_KEY_PREFIX}{rule.name}:{key}"
        pipe = self.client.pipeline()
        pipe.zadd(bucket, {f"{now:.6f}": now})
        pipe.expire(bucket, rule.window_seconds + 1)
        pipe.execute()


def client_key(request: Request) -> str:
    """Key requests by client address; the first ``X-Forwarded-For`` hop wins."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class APIRateLimitMiddleware:
    """
    Pure ASGI rate limiter.

    Allowed responses carry ``X-RateLimit-Limit``, ``X-RateLimit-Remaining``
    and ``X-RateLimit-Reset`` for the tightest matching rule. Rejections are
    429 with ``Retry-After``.
    """

    EXEMPT_PATHS: ClassVar[frozenset[str]] = frozenset({"/health", "/metrics", "/ws", "/favicon.ico"})
    EXEMPT_PREFIXES: ClassVar[tuple[str, ...]] = ("/docs", "/openapi", "/redoc")

    def __init__(
        self,
        app: ASGIApp,
        rules: Iterable[RateLimitRule] = DEFAULT_RULES,
        key_func: Callable[[Request], str] = client_key,
        redis_url: str | None = None,
        enabled: bool | None = None,
    ):
        self.app = app
        self.rules = tuple(rules)
        self.key_func = key_func
        self.enabled = settings.rate_limit_enabled if enabled is None else enabled
        self.redis_url = settings.redis_url if redis_url is None else redis_url
        self.memory = MemoryWindow()
        self._redis_window: RedisWindow | None = None
        self._redis_checked = not self.redis_url

    def _redis(self) -> RedisWindow | None:
        if self._redis_checked:
            return self._redis_window
        self._redis_checked = True
        try:
            client = redis.from_url(self.redis_url, decode_responses=True)
            client.ping()
        except redis.RedisError as exc:
            logger.warning("rate_limit_redis_unavailable error=%s using in-memory windows", exc)
            return None
        logger.info("rate_limit_redis_connected")
        self._redis_window = RedisWindow(client)
        return self._redis_window

    def _exempt(self, path: str) -> bool:
        return path in self.EXEMPT_PATHS or path.startswith(self.EXEMPT_PREFIXES)

    def _check(self, rule: RateLimitRule, key: str) -> Verdict:
        now = time.time()
        record = not rule.count_failures_only
        window = self._redis()
        if window is not None:
            try:
                return window.hit(rule, key, now, record=record)
            except redis.RedisError as exc:
                logger.warning("rate_limit_redis_error rule=%s key=%s error=%s", rule.name, key, exc)
                return Verdict(rule, True, rule.limit - 1, rule.window_seconds)
        return self.memory.hit(rule, key, now, record=record)

    def _record_failure(self, rule: RateLimitRule, key: str) -> None:
        now = time.time()
        window = self._redis()
        if window is not None:
            try:
                window.record(rule, key, now)
                return
            except redis.RedisError as exc:
                logger.warning("rate_limit_redis_error rule=%s key=%s error=%s", rule.name, key, exc)
                return
        self.memory.record(rule, key, now)

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or not self.enabled or self._exempt(scope["path"]):
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        matching = [rule for rule in self.rules if rule.matches(request.method, scope["path"])]
        if not matching:
            await self.app(scope, receive, send)
            return

        key = self.key_func(request)
        verdicts = [self._check(rule, key) for rule in matching]

        denied = next((verdict for verdict in verdicts if not verdict.allowed), None)
        if denied is not None:
            logger.info("rate_limited rule=%s key=%s path=%s", denied.rule.name, key, scope["path"])
            response = JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Please try again later.", "retry_after": denied.reset_in},
                headers={**denied.headers(), "Retry-After": str(denied.reset_in)},
            )
            await response(scope, receive, send)
            return

        extra = [(name.encode(), value.encode()) for name, value in min(verdicts, key=lambda v: v.remaining).headers().items()]
        failure_rules = [rule for rule in matching if rule.count_failures_only]
        status_code: int | None = None

        async def send_with_limits(message: Message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message = {**message, "headers": [*message.get("headers", []), *extra]}
            await send(message)

        try:
            await self.app(scope, receive, send_with_limits)
        finally:
            # No response start means the app raised, which also counts as a failure
            if failure_rules and (status_code is None or status_code >= 400):
                for rule in failure_rules:
                    self._record_failure(rule, key)
