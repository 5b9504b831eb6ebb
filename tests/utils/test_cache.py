import json
from unittest.mock import MagicMock, patch

from pydantic import BaseModel

from wingmatch.utils import cache as cache_module


class CacheTestModel(BaseModel):
    id: int
    name: str


def test_get_client_success():
    with (
        patch.object(cache_module.redis, "Redis") as mock_redis_cls,
        patch.object(cache_module.redis, "ConnectionPool") as mock_pool,
        patch.object(cache_module, "settings") as mock_settings,
    ):
        mock_settings.REDIS_URL = "redis://localhost:6379/0"

        client = cache_module.RedisClient.get_client()

        assert client is not None
        mock_pool.from_url.assert_called_once()
        mock_redis_cls.assert_called_once()


def test_get_client_no_url():
    with patch.object(cache_module, "settings") as mock_settings:
        mock_settings.REDIS_URL = None

        client = cache_module.RedisClient.get_client()

        assert client is None
        assert cache_module.RedisClient._failed is True


def test_get_client_exception():
    with (
        patch.object(cache_module.redis, "ConnectionPool") as mock_pool,
        patch.object(cache_module, "settings") as mock_settings,
    ):
        mock_settings.REDIS_URL = "redis://localhost:6379/0"
        mock_pool.from_url.side_effect = Exception("Connection failed")

        client = cache_module.RedisClient.get_client()

        assert client is None
        assert cache_module.RedisClient._failed is True


def test_set_cache():
    with patch.object(cache_module.RedisClient, "get_client") as mock_get_client:
        mock_redis = MagicMock()
        mock_get_client.return_value = mock_redis

        cache_module.set_cache("key1", "value1")
        mock_redis.set.assert_called_with("key1", "value1", ex=3600)

        cache_module.set_cache("key2", {"a": 1}, expiration=60)
        mock_redis.set.assert_called_with("key2", '{"a": 1}', ex=60)

        model = CacheTestModel(id=1, name="test")
        cache_module.set_cache("key3", model)
        mock_redis.set.assert_called_with("key3", model.model_dump_json(), ex=3600)

        cache_module.set_cache("key4", [model])
        mock_redis.set.assert_called_with("key4", json.dumps([{"id": 1, "name": "test"}]), ex=3600)


def test_set_cache_no_client():
    with patch.object(cache_module.RedisClient, "get_client", return_value=None):
        # Should not raise
        cache_module.set_cache("key", "value")
        cache_module.delete_cache("key")
        assert cache_module.get_cache("key") is None


def test_set_cache_swallows_redis_errors():
    with patch.object(cache_module.RedisClient, "get_client") as mock_get_client:
        mock_redis = MagicMock()
        mock_redis.set.side_effect = Exception("down")
        mock_get_client.return_value = mock_redis

        cache_module.set_cache("key", "value")


def test_get_cache():
    with patch.object(cache_module.RedisClient, "get_client") as mock_get_client:
        mock_redis = MagicMock()
        mock_get_client.return_value = mock_redis

        mock_redis.get.return_value = None
        assert cache_module.get_cache("key") is None

        mock_redis.get.return_value = "value"
        assert cache_module.get_cache("key") == "value"

        mock_redis.get.side_effect = Exception("down")
        assert cache_module.get_cache("key") is None


def test_get_cache_models():
    with patch.object(cache_module.RedisClient, "get_client") as mock_get_client:
        mock_redis = MagicMock()
        mock_get_client.return_value = mock_redis

        mock_redis.get.return_value = json.dumps([{"id": 1, "name": "a"}, {"id": 2, "name": "b"}])
        models = cache_module.get_cache_models("key", CacheTestModel)
        assert [m.name for m in models] == ["a", "b"]

        mock_redis.get.return_value = "not json"
        assert cache_module.get_cache_models("key", CacheTestModel) is None


def test_delete_cache():
    with patch.object(cache_module.RedisClient, "get_client") as mock_get_client:
        mock_redis = MagicMock()
        mock_get_client.return_value = mock_redis

        cache_module.delete_cache("key")
        mock_redis.delete.assert_called_once_with("key")
