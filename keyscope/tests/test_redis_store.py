"""
Unit Tests: Redis Store Connection (mocked redis.asyncio client)

Tests:
    - Connect/verify/close lifecycle and failure cleanup
    - Reply mapping (TTL sentinels, EXISTS counts, SCAN replies)
    - Size lookup dispatch per kind
    - Error and timeout capture into Err
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from keyscope.core.types import KeyKind
from keyscope.storage.config import RedisConfig
from keyscope.storage.protocols import NOT_CONNECTED, StoreConnection
from keyscope.storage.redis_store import RedisConnector, RedisStoreConnection


@pytest.fixture
def client():
    client = AsyncMock()
    client.ping.return_value = True
    return client


@pytest.fixture
async def connection(client):
    with patch("redis.asyncio.Redis", MagicMock(return_value=client)):
        connection = RedisStoreConnection(RedisConfig(host="cache"))
        assert (await connection.connect()).is_ok()
    yield connection
    await connection.close()


class TestLifecycle:
    """Tests for connect and close."""

    async def test_connect_builds_client_from_config(self, client):
        factory = MagicMock(return_value=client)
        with patch("redis.asyncio.Redis", factory):
            connection = RedisStoreConnection(RedisConfig(host="cache", port=6380, password="pw"))
            result = await connection.connect()

        assert result.is_ok()
        kwargs = factory.call_args.kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["password"]) == ("cache", 6380, "pw")
        assert kwargs["decode_responses"] is True
        client.ping.assert_awaited_once()
        assert isinstance(connection, StoreConnection)

    async def test_connect_from_url(self, client):
        with patch("redis.asyncio.from_url", MagicMock(return_value=client)) as from_url:
            config = RedisConfig.from_connection_string("redis://cache:6390/1").unwrap()
            result = await RedisStoreConnection(config).connect()

        assert result.is_ok()
        assert from_url.call_args.args[0] == "redis://cache:6390/1"

    async def test_connect_failure_releases_client(self, client):
        client.ping.side_effect = RedisConnectionError("refused")
        with patch("redis.asyncio.Redis", MagicMock(return_value=client)):
            connection = RedisStoreConnection(RedisConfig())
            result = await connection.connect()

        assert result.is_err()
        assert "refused" in result.error
        client.aclose.assert_awaited_once()
        assert not connection.connected

    async def test_calls_after_close(self, connection, client):
        await connection.close()

        result = await connection.read_scalar("k")

        assert result.is_err()
        assert result.error == NOT_CONNECTED
        client.get.assert_not_awaited()


class TestReplies:
    """Tests for reply mapping."""

    @pytest.mark.parametrize("reply,expected", [(120, 120), (-1, None), (-2, None)])
    async def test_ttl(self, connection, client, reply, expected):
        client.ttl.return_value = reply

        assert (await connection.ttl_of("k")).unwrap() == expected

    async def test_exists(self, connection, client):
        client.exists.return_value = 0
        assert (await connection.exists("k")).unwrap() is False

        client.exists.return_value = 1
        assert (await connection.exists("k")).unwrap() is True

    async def test_scan(self, connection, client):
        client.scan.return_value = (17, ["a", "b"])

        result = await connection.scan(0, "user:*", 1000)

        assert result.unwrap() == (17, ["a", "b"])
        client.scan.assert_awaited_once_with(cursor=0, match="user:*", count=1000)
        assert connection.metrics.scan_count == 1

    async def test_read_list_range(self, connection, client):
        client.lrange.return_value = ["x", "y"]

        assert (await connection.read_list("l", 100)).unwrap() == ["x", "y"]
        client.lrange.assert_awaited_once_with("l", 0, 99)

    async def test_read_set(self, connection, client):
        client.smembers.return_value = {"a"}

        assert (await connection.read_set("s")).unwrap() == ["a"]

    async def test_write_scalar_with_ttl(self, connection, client):
        client.set.return_value = True

        assert (await connection.write_scalar("k", "v", 60)).unwrap() is True
        client.set.assert_awaited_once_with("k", "v", ex=60)

    async def test_write_hash(self, connection, client):
        client.hset.return_value = 2

        assert (await connection.write_hash("h", {"a": "1", "b": "2"})).unwrap() == 2
        client.hset.assert_awaited_once_with("h", mapping={"a": "1", "b": "2"})

    async def test_delete(self, connection, client):
        client.delete.return_value = 0

        assert (await connection.delete("k")).unwrap() is False


class TestSizeLookup:
    """Tests for size_of dispatch."""

    @pytest.mark.parametrize("kind,command", [
        (KeyKind.STRING, "strlen"),
        (KeyKind.HASH, "hlen"),
        (KeyKind.LIST, "llen"),
        (KeyKind.SET, "scard"),
        (KeyKind.SORTEDSET, "zcard"),
    ])
    async def test_command_per_kind(self, connection, client, kind, command):
        getattr(client, command).return_value = 7

        assert (await connection.size_of("k", kind)).unwrap() == 7
        getattr(client, command).assert_awaited_once_with("k")

    async def test_unsupported_kind(self, connection, client):
        assert (await connection.size_of("k", KeyKind.UNSUPPORTED)).unwrap() is None


class TestErrors:
    """Tests for error capture."""

    async def test_redis_error(self, connection, client):
        client.get.side_effect = RedisError("WRONGTYPE")

        result = await connection.read_scalar("k")

        assert result.is_err()
        assert "WRONGTYPE" in result.error
        assert connection.metrics.error_count == 1

    async def test_timeout(self, connection, client):
        client.type.side_effect = asyncio.TimeoutError()

        result = await connection.type_of("k")

        assert result.error == "Redis timeout"
        assert connection.metrics.timeout_count == 1

    async def test_undecodable_reply(self, connection, client):
        client.hgetall.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid")

        assert (await connection.read_hash("h")).is_err()


class TestConnector:
    """Tests for RedisConnector."""

    async def test_invalid_descriptor_does_not_connect(self):
        factory = MagicMock()
        with patch("redis.asyncio.Redis", factory):
            result = await RedisConnector().connect("host,unknown=1")

        assert result.is_err()
        factory.assert_not_called()

    def test_describe_redacts(self):
        connector = RedisConnector()

        assert connector.describe("cache:6380,password=hunter2") == "cache:6380/0"
        assert connector.describe("cache:bad") == "<invalid connection string>"

    async def test_connect(self, client):
        with patch("redis.asyncio.Redis", MagicMock(return_value=client)):
            result = await RedisConnector(RedisConfig(socket_timeout_ms=1000)).connect("cache")

        connection = result.unwrap()
        assert connection.config.socket_timeout_ms == 1000
        assert connection.supports_multiplexing is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
