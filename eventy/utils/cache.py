import logging
from functools import wraps
from typing import Any, Callable, TypeVar

import redis
from pydantic import BaseModel
from sqlalchemy.orm import Session

from eventy.utils.config import settings

logger = logging.getLogger(__name__)

# Create Redis connection
redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=0,
    decode_responses=True
)

T = TypeVar('T')


def build_cache_key(key_prefix: str, args: tuple, kwargs: dict) -> str:
    key_parts = [key_prefix]
    for arg in args:
        if not isinstance(arg, Session):
            key_parts.append(str(arg))
    for k, v in sorted(kwargs.items()):
        if not isinstance(v, Session):
            key_parts.append(str(v))
    return ":".join(key_parts)


def cache_data(key_prefix: str, schema: type[BaseModel], expire_time: int | None = None):
    """
    Decorator for caching read models in Redis.

    The wrapped method must return an instance of `schema` (or None). The
    repository instance and any Session argument are left out of the key, so
    `get_detail(db, 12)` on the event repository caches under `event:12`.

    Args:
        key_prefix: First segment of the cache key
        schema: Pydantic model used to serialize and rebuild the cached value
        expire_time: Seconds before the entry expires, defaults to CACHE_EXPIRE_SECONDS
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            if not settings.CACHE_ENABLED:
                return func(self, *args, **kwargs)

            cache_key = build_cache_key(key_prefix, args, kwargs)
            try:
                cached = redis_client.get(cache_key)
            except redis.RedisError as e:
                logger.warning(f"Cache read failed for key {cache_key}: {e}")
                cached = None

            if cached:
                try:
                    logger.debug(f"Cache hit for key: {cache_key}")
                    return schema.model_validate_json(cached)
                except ValueError as e:
                    logger.error(f"Failed to decode cached data for {cache_key}: {e}")
                    invalidate_cache(cache_key)

            result = func(self, *args, **kwargs)
            if result is not None:
                update_cache(cache_key, result, expire_time=expire_time)
            return result

        return wrapper
    return decorator


def invalidate_cache(key_pattern: str):
    """Clear cache entries matching the given pattern"""
    if not settings.CACHE_ENABLED:
        return
    try:
        # Use SCAN instead of KEYS for better performance
        keys_to_delete = list(redis_client.scan_iter(match=key_pattern, count=100))
        if keys_to_delete:
            redis_client.delete(*keys_to_delete)
            logger.info(f"Invalidated {len(keys_to_delete)} cache entries for {key_pattern}")
    except redis.RedisError as e:
        logger.error(f"Failed to invalidate cache for {key_pattern}: {e}")


def update_cache(key: str, data: Any, expire_time: int | None = None):
    """Update cache with new data"""
    if not settings.CACHE_ENABLED:
        return
    try:
        if isinstance(data, BaseModel):
            serialized = data.model_dump_json()
        else:
            serialized = str(data)
        redis_client.setex(key, expire_time or settings.CACHE_EXPIRE_SECONDS, serialized)
        logger.debug(f"Updated cache for key: {key}")
    except redis.RedisError as e:
        logger.error(f"Failed to update cache for {key}: {e}")
