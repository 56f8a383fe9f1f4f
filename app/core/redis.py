import json
import redis
from redis.exceptions import RedisError

from app.core import config
from app.core.logging_config import get_logger

logger = get_logger()

_redis_client = None


def get_redis_client():
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    if not config.REDIS_URL:
        return None

    try:
        client = redis.Redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.info("Redis connected")
        _redis_client = client
        return _redis_client
    except RedisError as e:
        logger.warning(f"Redis unavailable: {e}")
        return None


def get_cache(key: str):
    client = get_redis_client()
    if not client:
        return None
    try:
        data = client.get(key)
        return json.loads(data) if data else None
    except RedisError as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None


def set_cache(key: str, value, ttl: int = 60):
    client = get_redis_client()
    if not client:
        return
    try:
        client.setex(key, ttl, json.dumps(value))
    except RedisError as e:
        logger.warning(f"Cache write failed for {key}: {e}")


def delete_cache(key: str):
    client = get_redis_client()
    if not client:
        return
    try:
        client.delete(key)
    except RedisError as e:
        logger.warning(f"Cache delete failed for {key}: {e}")


def hit_rate_limit(key: str, limit: int, window_seconds: int):
    """Fixed-window counter.

    Returns ``(allowed, retry_after_seconds)``. Without Redis every request
    is allowed.
    """
    client = get_redis_client()
    if not client:
        return True, 0
    try:
        pipe = client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            client.expire(key, window_seconds)
            ttl = window_seconds
        return count <= limit, int(ttl)
    except RedisError as e:
        logger.warning(f"Rate limiter unavailable for {key}: {e}")
        return True, 0
