"""Redis cache utilities for the WingMatch engine."""

import json
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import redis
import sentry_sdk
from pydantic import BaseModel, TypeAdapter

from wingmatch.config import settings
from wingmatch.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class RedisClient:
    """
    Singleton class for Redis client.

    Caching is optional: without `REDIS_URL`, or after a failed connection,
    every cache call degrades to a no-op or a miss.
    """

    _instance: Optional[redis.Redis] = None
    _failed: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """
        Get or create a Redis client instance.

        Returns:
            Optional[redis.Redis]: Redis client instance or None if unavailable.
        """
        if cls._failed:
            return None

        if cls._instance is None:
            if not settings.REDIS_URL:
                logger.debug("No Redis configuration found, caching will be disabled")
                cls._failed = True
                return None
            try:
                pool = redis.ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=10,
                    decode_responses=True,
                )
                cls._instance = redis.Redis(connection_pool=pool)
                logger.info("Redis client initialized")
            except Exception as e:
                logger.warning("Failed to initialize Redis client, caching will be disabled", error=str(e))
                cls._failed = True
                return None
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the current client and any previous failure."""
        cls._instance = None
        cls._failed = False


def set_cache(key: str, value: Union[str, Dict[str, Any], BaseModel, List[Any]], expiration: int = 3600) -> None:
    """
    Set a value in the Redis cache.

    Pydantic models and lists of models are stored as JSON. Silently skips
    caching if Redis is not available.

    Args:
        key (str): Cache key.
        value: Value to cache.
        expiration (int): Cache expiration time in seconds (default: 3600).
    """
    with sentry_sdk.start_span(op="cache.set", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return

        try:
            if isinstance(value, BaseModel):
                cache_value = value.model_dump_json()
            elif isinstance(value, list):
                cache_value = json.dumps(
                    [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in value]
                )
            elif isinstance(value, dict):
                cache_value = json.dumps(value)
            else:
                cache_value = str(value)

            if expiration <= 0:
                logger.warning("Cache set without expiration, forcing default 1h", key=key)
                expiration = 3600

            client.set(key, cache_value, ex=expiration)
            logger.debug("Cache set", key=key, expiration=expiration)
            span.set_data("status", "success")
        except Exception as e:
            logger.warning("Failed to set cache, continuing without cache", key=key, error=str(e))
            span.set_status("internal_error")


def get_cache(key: str) -> Optional[str]:
    """Get a string value from the Redis cache, or None on miss or when disabled."""
    with sentry_sdk.start_span(op="cache.get", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return None

        try:
            value: Optional[str] = client.get(key)  # type: ignore
            span.set_data("status", "hit" if value else "miss")
            return value or None
        except Exception as e:
            logger.warning("Failed to get cache", key=key, error=str(e))
            span.set_status("internal_error")
            return None


def get_cache_models(key: str, model_class: Type[T]) -> Optional[List[T]]:
    """Get a list of Pydantic models from the Redis cache."""
    value = get_cache(key)
    if not value:
        return None
    try:
        return TypeAdapter(List[model_class]).validate_json(value)  # type: ignore[valid-type]
    except Exception as e:
        logger.error("Failed to parse cached model list", key=key, model=model_class.__name__, error=str(e))
        return None


def delete_cache(key: str) -> None:
    """Delete a value from the Redis cache. Silently skips if Redis is not available."""
    with sentry_sdk.start_span(op="cache.delete", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return

        try:
            client.delete(key)
            logger.debug("Cache deleted", key=key)
            span.set_data("status", "success")
        except Exception as e:
            logger.warning("Failed to delete cache, continuing without cache", key=key, error=str(e))
            span.set_status("internal_error")
