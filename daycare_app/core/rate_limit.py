# daycare_app/core/rate_limit.py
"""
클라이언트 주소 단위의 간단한 토큰 버킷 레이트 리미터.
엔진 밖(HTTP 계층)에서만 적용되며, app.services['rate_limiter']로 주입됩니다.
"""

import logging
import threading
import time
from functools import wraps
from typing import Callable, Dict, Optional

from flask import current_app, jsonify, request

logger = logging.getLogger(__name__)


class TokenBucket:
    def __init__(self, capacity: int, refill_rate_per_second: float, clock: Callable[[], float] = time.monotonic):
        self.capacity = capacity
        self.refill_rate_per_second = refill_rate_per_second
        self.tokens = float(capacity)
        self._clock = clock
        self.last_refill = clock()
        self.last_used = self.last_refill

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill
        if elapsed <= 0:
            return
        refill = elapsed * self.refill_rate_per_second
        if refill > 0:
            self.tokens = min(self.capacity, self.tokens + refill)
            self.last_refill = now

    def try_acquire(self, count: int = 1) -> bool:
        self._refill()
        self.last_used = self._clock()
        if self.tokens >= count:
            self.tokens -= count
            return True
        return False

    def get_stats(self) -> dict:
        self._refill()
        return {
            "capacity": self.capacity,
            "tokens": round(self.tokens, 2),
            "refill_per_second": self.refill_rate_per_second,
        }


class RateLimiter:
    """키(클라이언트 주소)별 TokenBucket. 기본값은 60초당 20회."""
    def __init__(self, points: int = 20, duration_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.points = max(1, int(points))
        self.duration_seconds = float(duration_seconds)
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def _bucket_for(self, key: str) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(self.points, self.points / self.duration_seconds, clock=self._clock)
            self._buckets[key] = bucket
        return bucket

    def _prune(self) -> None:
        # duration_seconds 동안 쓰이지 않은 버킷은 항상 가득 찬 상태
        now = self._clock()
        if now - self._last_prune < self.duration_seconds:
            return
        self._last_prune = now
        idle = [key for key, bucket in self._buckets.items() if now - bucket.last_used >= self.duration_seconds]
        for key in idle:
            del self._buckets[key]
        if idle:
            logger.debug(f"Rate limiter evicted {len(idle)} idle clients")

    def consume(self, key: str) -> bool:
        """토큰 하나를 소비합니다. 남은 토큰이 없으면 False."""
        with self._lock:
            self._prune()
            return self._bucket_for(key or "unknown").try_acquire()

    def get_stats(self, key: str) -> Optional[dict]:
        with self._lock:
            bucket = self._buckets.get(key)
            return bucket.get_stats() if bucket else None


def rate_limited(f):
    """
    app.services['rate_limiter']가 있으면 요청마다 토큰을 소비하고,
    소진되면 429를 반환합니다.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        limiter = current_app.services.get('rate_limiter')
        if limiter is not None:
            client_key = request.remote_addr or "unknown"
            if not limiter.consume(client_key):
                logger.warning(f"Rate limit exceeded for {client_key} on {request.path}")
                return jsonify({"error_code": "TOO_MANY_REQUESTS", "message": "요청이 너무 많습니다. 잠시 후 다시 시도해 주세요."}), 429
        return f(*args, **kwargs)
    return decorated_function
