# utrace/web/ratelimit.py
import logging
import time
from collections import deque
from typing import Callable, Iterable, Optional

from aiohttp import web

from utrace.netutil import clean_ip

_LOG = logging.getLogger(__name__)

RATE_LIMIT_MSG = "Too many requests from this IP, please try again after 5 minutes"


def client_ip(request: web.Request, trusted_hops: int = 0) -> Optional[str]:
    """
    Address of the client. With trusted_hops proxies in front of us, walk
    that many entries back from the right of X-Forwarded-For.
    """
    remote = request.remote
    if trusted_hops > 0:
        forwarded = request.headers.get("X-Forwarded-For", "")
        chain = [remote] + [p.strip() for p in reversed(forwarded.split(",")) if p.strip()]
        remote = chain[min(trusted_hops, len(chain) - 1)]
    return clean_ip(remote)


class SlidingWindowLimiter:
    """At most max_requests hits per key inside any window_s seconds."""

    def __init__(self, window_s: float, max_requests: int, clock: Callable[[], float] = time.monotonic,
                 max_keys: int = 10000):
        self.window_s = window_s
        self.max_requests = max_requests
        self.clock = clock
        self.max_keys = max_keys
        self._hits: dict[str, deque] = {}

    def hit(self, key: str) -> bool:
        now = self.clock()
        if key not in self._hits and len(self._hits) >= self.max_keys:
            self.prune()
        q = self._hits.setdefault(key, deque())
        while q and now - q[0] >= self.window_s:
            q.popleft()
        if len(q) >= self.max_requests:
            return False
        q.append(now)
        return True

    def remaining(self, key: str) -> int:
        q = self._hits.get(key, ())
        now = self.clock()
        live = sum(1 for t in q if now - t < self.window_s)
        return max(0, self.max_requests - live)

    def prune(self) -> None:
        now = self.clock()
        for key in [k for k, q in self._hits.items() if not q or now - q[-1] >= self.window_s]:
            del self._hits[key]


def rate_limit_middleware(limiter: SlidingWindowLimiter, paths: Iterable[str], trusted_hops: int = 0):
    limited = frozenset(paths)

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.path not in limited:
            return await handler(request)
        ip = client_ip(request, trusted_hops) or "unknown"
        if not limiter.hit(ip):
            _LOG.warning("Rate limit exceeded for %s on %s", ip, request.path)
            return web.json_response({"error": RATE_LIMIT_MSG}, status=429)
        return await handler(request)

    return middleware
