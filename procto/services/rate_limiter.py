"""
Rate Limiter - Redis-based request throttling

Sliding-window limits per user (or client address) and action, used to
slow down credential guessing and runaway proctoring clients.
"""
import os
import time
import logging
from typing import Optional, Dict, Any
from functools import wraps

import redis
from flask import request, jsonify, g

logger = logging.getLogger(__name__)


# ============================================================================
# Rate Limit Configuration
# ============================================================================

RATE_LIMITS = {
    # Authentication
    "login_attempt": {"max_requests": 5, "window_seconds": 300},          # 5 per 5 min
    "register": {"max_requests": 10, "window_seconds": 3600},            # 10/hour

    # Exam room
    "proctor_event": {"max_requests": 120, "window_seconds": 60},        # 120/minute
    "exam_submit": {"max_requests": 10, "window_seconds": 60},           # 10/minute
}

DEFAULT_LIMIT = {"max_requests": 100, "window_seconds": 60}


# ============================================================================
# Rate Limiter Service
# ============================================================================

class RateLimiter:
    """
    Redis-based rate limiter with sliding window.

    Usage:
        limiter = RateLimiter()

        if not limiter.check_rate_limit(user_id, "login_attempt")["allowed"]:
            return "Rate limit exceeded", 429

        limiter.record_request(user_id, "login_attempt")
    """

    def __init__(self, redis_url: str = None):
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        self.redis_client = None
        self.enabled = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
        self._init_redis()

    def _init_redis(self):
        """Initialize Redis connection"""
        if not self.enabled:
            logger.info("[RateLimiter] Disabled via RATE_LIMIT_ENABLED=false")
            return

        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=5
            )
            self.redis_client.ping()
            logger.info("[RateLimiter] Redis connected")
        except redis.RedisError as e:
            logger.warning(f"[RateLimiter] Redis connection failed, limits not enforced: {e}")
            self.redis_client = None

    def _get_key(self, user_id: str, action: str) -> str:
        """Generate Redis key for rate limiting"""
        return f"procto:rate_limit:{user_id}:{action}"

    def _allow_all(self) -> Dict[str, Any]:
        return {"allowed": True, "remaining": 999, "reset_at": 0, "retry_after": 0}

    def check_rate_limit(
        self,
        user_id: str,
        action: str,
        max_requests: int = None,
        window_seconds: int = None
    ) -> Dict[str, Any]:
        """
        Check if user has exceeded rate limit.

        Returns:
            Dict with keys: allowed, remaining, reset_at, retry_after
        """
        if not self.enabled or not self.redis_client:
            return self._allow_all()

        config = RATE_LIMITS.get(action, DEFAULT_LIMIT)
        max_requests = max_requests or config["max_requests"]
        window_seconds = window_seconds or config["window_seconds"]

        key = self._get_key(user_id, action)
        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = self.redis_client.pipeline()

            # Remove old entries
            pipe.zremrangebyscore(key, 0, window_start)

            # Count current entries
            pipe.zcard(key)

            # Get oldest entry time
            pipe.zrange(key, 0, 0, withscores=True)

            results = pipe.execute()
            current_count = results[1]
            oldest_entry = results[2]

            if oldest_entry:
                reset_at = oldest_entry[0][1] + window_seconds
            else:
                reset_at = now + window_seconds

            remaining = max(0, max_requests - current_count)
            allowed = current_count < max_requests
            retry_after = 0 if allowed else int(reset_at - now)

            return {
                "allowed": allowed,
                "remaining": remaining,
                "reset_at": int(reset_at),
                "retry_after": retry_after,
                "limit": max_requests,
                "window": window_seconds
            }

        except redis.RedisError as e:
            logger.error(f"[RateLimiter] Check failed: {e}")
            return self._allow_all()

    def record_request(self, user_id: str, action: str) -> bool:
        """Record a request for rate limiting"""
        if not self.enabled or not self.redis_client:
            return True

        config = RATE_LIMITS.get(action, DEFAULT_LIMIT)
        key = self._get_key(user_id, action)
        now = time.time()

        try:
            pipe = self.redis_client.pipeline()
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, config["window_seconds"] + 60)  # Cleanup buffer
            pipe.execute()
            return True
        except redis.RedisError as e:
            logger.error(f"[RateLimiter] Record failed: {e}")
            return False


# ============================================================================
# Flask Decorator
# ============================================================================

def rate_limit(action: str, max_requests: int = None, window_seconds: int = None):
    """
    Flask decorator for rate limiting.

    Usage:
        @rate_limit("login_attempt")
        def login():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            limiter = get_rate_limiter()

            # Authenticated routes set g.user_id, anonymous ones fall back to the address
            user_id = getattr(g, 'user_id', None) or request.remote_addr

            result = limiter.check_rate_limit(user_id, action, max_requests, window_seconds)

            if not result["allowed"]:
                logger.warning(f"[RateLimiter] {action} limit hit by {user_id}")
                response = jsonify({
                    "error": "Rate limit exceeded",
                    "retry_after": result["retry_after"]
                })
                response.status_code = 429
                response.headers["Retry-After"] = str(result["retry_after"])
                response.headers["X-RateLimit-Limit"] = str(result.get("limit", 0))
                response.headers["X-RateLimit-Remaining"] = "0"
                response.headers["X-RateLimit-Reset"] = str(result["reset_at"])
                return response

            limiter.record_request(user_id, action)

            return f(*args, **kwargs)

        return decorated
    return decorator


# ============================================================================
# Singleton
# ============================================================================

_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create rate limiter singleton"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
