"""
Fixed-window rate limiting.

Counters live in process memory. When REDIS_URL is configured the counters are
also mirrored to Redis so that a restarted or additional worker picks up the
current window instead of starting from zero.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Request

from . import config
from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
# After a failed connect, count in memory only until this time
redis_retry_at = 0.0
REDIS_RETRY_INTERVAL = 60

# {key: {"count": int, "reset_time": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def get_redis_client() -> Optional[redis.Redis]:
    """Lazily connect to REDIS_URL; ``None`` means memory-only counting."""
    global redis_client, redis_retry_at

    if redis_client is None and config.REDIS_URL and time.time() >= redis_retry_at:
        try:
            client = redis.from_url(
                config.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            client.ping()
            redis_client = client
            logger.info("Redis connected for rate limiting")
        except redis.RedisError as e:
            redis_retry_at = time.time() + REDIS_RETRY_INTERVAL
            logger.warning(
                "Redis unavailable, rate limiting in memory only for %ss: %s", REDIS_RETRY_INTERVAL, e
            )
    return redis_client


def reset():
    """Forget every counter held in memory."""
    global last_cleanup_time, redis_client, redis_retry_at
    with cache_lock:
        memory_cache.clear()
    last_cleanup_time = 0
    redis_client = None
    redis_retry_at = 0.0


def cleanup_expired_cache():
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v["reset_time"]]
        for k in expired_keys:
            del memory_cache[k]
        if expired_keys:
            logger.debug("Cleaned up %d expired rate limit entries", len(expired_keys))

    last_cleanup_time = current_time


def _load_from_redis(client, key: str, current_time: int, window_seconds: int) -> dict:
    try:
        count = client.get(key)
        ttl = client.ttl(key)
        if count and ttl > 0:
            return {"count": int(count), "reset_time": current_time + ttl}
    except redis.RedisError as e:
        logger.warning("Failed to load %s from Redis, using memory only: %s", key, e)
    return {"count": 0, "reset_time": current_time + window_seconds}


def check_rate_limit(key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
    """Count one hit against ``key``.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(time.time())
    cleanup_expired_cache()
    client = get_redis_client()

    with cache_lock:
        entry = memory_cache.get(key)
        if entry is None:
            if client is not None:
                entry = _load_from_redis(client, key, current_time, window_seconds)
            else:
                entry = {"count": 0, "reset_time": current_time + window_seconds}
            memory_cache[key] = entry

        if current_time >= entry["reset_time"]:
            entry["count"] = 0
            entry["reset_time"] = current_time + window_seconds

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        ttl = max(0, entry["reset_time"] - current_time)
        if client is not None and is_allowed:
            try:
                client.set(key, entry["count"], ex=max(1, ttl))
            except redis.RedisError as e:
                logger.warning("Failed to sync %s to Redis: %s", key, e)

        return is_allowed, entry["count"], ttl


def client_ip(request: Request, trust_forwarded: bool = True) -> str:
    if trust_forwarded:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    message: Optional[str] = None,
    trust_forwarded: bool = False,
):
    """
    Create a per-IP rate limiter dependency.

    The client is keyed on the socket address unless ``trust_forwarded`` is set,
    in which case the first X-Forwarded-For hop is used.

    Example usage:
        login_rate_limit = create_rate_limiter(limit=10, window_seconds=900, key_prefix="login")

        @router.post("/login")
        def login(data: LoginRequest, _: None = Depends(login_rate_limit)):
            ...
    """

    # Plain def: FastAPI runs it in the threadpool, so Redis I/O never blocks the loop
    def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return
        key = f"{key_prefix}:{client_ip(request, trust_forwarded)}"
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds)
        if not is_allowed:
            logger.warning("Rate limit exceeded for %s - %s/%s requests used", key, current_count, limit)
            raise RateLimitError(message, headers={"Retry-After": str(ttl)})
        request.state.rate_limit_remaining = limit - current_count

    return rate_limiter


register_rate_limit = create_rate_limiter(
    limit=5,
    window_seconds=15 * 60,
    key_prefix="register",
    message="Too many registration attempts. Please try again in 15 minutes.",
    trust_forwarded=True,
)
login_rate_limit = create_rate_limiter(
    limit=10,
    window_seconds=15 * 60,
    key_prefix="login",
    message="Too many login attempts. Please try again in 15 minutes.",
    trust_forwarded=True,
)
api_rate_limit = create_rate_limiter(limit=100, window_seconds=60, key_prefix="api")
