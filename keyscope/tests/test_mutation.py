"""
Unit Tests: Mutation Pipeline

Tests:
    - String and hash writes round-trip through fetch
    - TTL set, replaced and cleared
    - Malformed hash payloads write nothing and leave existing keys intact
    - Empty hash payloads only update the expiry
    - Partial success when the expiry step fails
    - Delete semantics (deleted vs not found vs failure)
"""

import logging

import pytest

from keyscope.core.errors import ErrorCode
from keyscope.core.types import DeleteOutcome, KeyKind, KeyWriteSpec, WriteOutcome
from keyscope.keyspace.mutation import parse_hash_payload


class TestStringWrites:
    """Tests for scalar writes."""

    async def test_round_trip(self, service, session_id):
        spec = KeyWriteSpec(name="greeting", payload="hello")

        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "greeting")).unwrap()
        assert value.kind == KeyKind.STRING
        assert value.raw_scalar == "hello"
        assert value.ttl_seconds is None

    async def test_with_ttl(self, service, session_id):
        spec = KeyWriteSpec(name="token", payload="abc", ttl_seconds=120)

        outcome = await service.write_detailed(session_id, spec)

        assert outcome.unwrap() == WriteOutcome.WRITTEN
        value = (await service.fetch(session_id, "token")).unwrap()
        assert value.ttl_seconds == 120
        assert value.expire_in_days == 1

    async def test_rewrite_without_ttl_clears_expiry(self, service, session_id, keyspace):
        keyspace.set_string("token", "old", ttl_seconds=60)

        await service.write(session_id, KeyWriteSpec(name="token", payload="new"))

        value = (await service.fetch(session_id, "token")).unwrap()
        assert value.raw_scalar == "new"
        assert value.ttl_seconds is None

    async def test_unknown_kind_written_as_string(self, service, session_id):
        spec = KeyWriteSpec(name="odd", payload="a,b", kind="list")

        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "odd")).unwrap()
        assert value.kind == KeyKind.STRING
        assert value.raw_scalar == "a,b"

    async def test_store_failure(self, service, session_id):
        service.resolve(session_id).fail("write_scalar")
        spec = KeyWriteSpec(name="k", payload="v")

        assert await service.write(session_id, spec) is False
        result = await service.write_detailed(session_id, spec)
        assert result.error.code == ErrorCode.TRANSIENT_OP_FAILURE


class TestHashWrites:
    """Tests for hash writes."""

    async def test_round_trip_with_ttl(self, service, session_id):
        spec = KeyWriteSpec(
            name="user:1",
            payload='{"name": "ada", "role": "admin"}',
            kind="hash",
            ttl_seconds=3600,
        )

        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "user:1")).unwrap()
        assert value.kind == KeyKind.HASH
        assert value.value.fields == {"name": "ada", "role": "admin"}
        assert value.ttl_seconds == 3600

    async def test_kind_is_case_insensitive(self, service, session_id):
        spec = KeyWriteSpec(name="h", payload='{"a": "1"}', kind=" HASH ")

        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "h")).unwrap()
        assert value.kind == KeyKind.HASH

    async def test_without_ttl_persists(self, service, session_id, keyspace):
        keyspace.set_hash("h", {"a": "1"}, ttl_seconds=60)

        spec = KeyWriteSpec(name="h", payload='{"b": "2"}', kind="hash")
        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "h")).unwrap()
        assert value.ttl_seconds is None
        assert value.value.fields == {"a": "1", "b": "2"}

    @pytest.mark.parametrize("payload", [
        "not json",
        "[1, 2]",
        '"text"',
        '{"a": 1}',
        '{"a": {"nested": "x"}}',
    ])
    async def test_malformed_payload_writes_nothing(self, service, session_id, keyspace, payload):
        spec = KeyWriteSpec(name="h", payload=payload, kind="hash")

        assert await service.write(session_id, spec) is False

        result = await service.write_detailed(session_id, spec)
        assert result.error.code == ErrorCode.MALFORMED_PAYLOAD
        assert "h" not in keyspace

    async def test_malformed_payload_keeps_existing_hash(self, service, session_id, keyspace):
        keyspace.set_hash("k", {"x": "1"}, ttl_seconds=60)
        spec = KeyWriteSpec(name="k", payload="not-json", kind="hash", ttl_seconds=600)

        result = await service.write_detailed(session_id, spec)

        assert result.error.code == ErrorCode.MALFORMED_PAYLOAD
        value = (await service.fetch(session_id, "k")).unwrap()
        assert value.value.fields == {"x": "1"}
        assert value.ttl_seconds == 60

    async def test_empty_object_writes_no_fields(self, service, session_id, keyspace):
        spec = KeyWriteSpec(name="h", payload="{}", kind="hash", ttl_seconds=60)

        outcome = await service.write_detailed(session_id, spec)

        assert outcome.unwrap() == WriteOutcome.WRITTEN
        assert await service.write(session_id, spec) is True
        assert service.resolve(session_id).count_calls("write_hash") == 0
        assert "h" not in keyspace

    async def test_empty_object_updates_expiry_of_existing_hash(self, service, session_id, keyspace):
        keyspace.set_hash("h", {"a": "1"}, ttl_seconds=60)
        spec = KeyWriteSpec(name="h", payload="{}", kind="hash")

        assert await service.write(session_id, spec) is True

        value = (await service.fetch(session_id, "h")).unwrap()
        assert value.value.fields == {"a": "1"}
        assert value.ttl_seconds is None

    async def test_expiry_failure_is_partial_success(self, service, session_id, keyspace, caplog):
        service.resolve(session_id).fail("expire")
        spec = KeyWriteSpec(name="h", payload='{"a": "1"}', kind="hash", ttl_seconds=60)

        with caplog.at_level(logging.WARNING):
            outcome = await service.write_detailed(session_id, spec)

        assert outcome.unwrap() == WriteOutcome.WRITTEN_WITHOUT_EXPIRY
        assert await service.write(session_id, spec) is True
        assert "h" in keyspace
        assert "expiry" in caplog.text

    async def test_persist_failure_is_partial_success(self, service, session_id):
        service.resolve(session_id).fail("persist")
        spec = KeyWriteSpec(name="h", payload='{"a": "1"}', kind="hash")

        outcome = await service.write_detailed(session_id, spec)

        assert outcome.unwrap() == WriteOutcome.WRITTEN_WITHOUT_EXPIRY

    async def test_hset_failure(self, service, session_id, keyspace):
        connection = service.resolve(session_id)
        connection.fail("write_hash")
        spec = KeyWriteSpec(name="h", payload='{"a": "1"}', kind="hash", ttl_seconds=60)

        result = await service.write_detailed(session_id, spec)

        assert result.error.code == ErrorCode.TRANSIENT_OP_FAILURE
        assert connection.count_calls("expire") == 0

    async def test_hash_over_string_is_wrongtype(self, service, session_id, keyspace):
        keyspace.set_string("k", "scalar")
        spec = KeyWriteSpec(name="k", payload='{"a": "1"}', kind="hash")

        assert await service.write(session_id, spec) is False


class TestWriteValidation:
    """Tests for argument checks before any store call."""

    @pytest.mark.parametrize("name", ["", "   "])
    async def test_blank_name(self, service, session_id, name):
        result = await service.write_detailed(session_id, KeyWriteSpec(name=name, payload="v"))

        assert result.error.code == ErrorCode.INVALID_ARGUMENT
        assert service.resolve(session_id).calls == []

    @pytest.mark.parametrize("ttl", [0, -1, -60])
    async def test_non_positive_ttl(self, service, session_id, ttl):
        spec = KeyWriteSpec(name="k", payload="v", ttl_seconds=ttl)

        assert await service.write(session_id, spec) is False
        result = await service.write_detailed(session_id, spec)
        assert result.error.code == ErrorCode.INVALID_ARGUMENT

    async def test_unknown_session(self, service):
        spec = KeyWriteSpec(name="k", payload="v")

        assert await service.write("no-such-session", spec) is False
        result = await service.write_detailed("no-such-session", spec)
        assert result.error.code == ErrorCode.UNKNOWN_SESSION


class TestDelete:
    """Tests for delete semantics."""

    async def test_delete_existing(self, service, session_id, keyspace):
        keyspace.set_string("k", "v")

        assert await service.delete(session_id, "k") is True
        assert (await service.fetch(session_id, "k")).unwrap() is None

    async def test_delete_twice(self, service, session_id, keyspace):
        keyspace.set_string("k", "v")

        first = await service.delete_detailed(session_id, "k")
        second = await service.delete_detailed(session_id, "k")

        assert first.unwrap() == DeleteOutcome.DELETED
        assert second.unwrap() == DeleteOutcome.NOT_FOUND
        assert await service.delete(session_id, "k") is False

    async def test_delete_failure(self, service, session_id, keyspace):
        keyspace.set_string("k", "v")
        service.resolve(session_id).fail("delete")

        assert await service.delete(session_id, "k") is False
        result = await service.delete_detailed(session_id, "k")
        assert result.error.code == ErrorCode.TRANSIENT_OP_FAILURE
        assert "k" in keyspace

    async def test_unknown_session(self, service):
        assert await service.delete("no-such-session", "k") is False
        result = await service.delete_detailed("no-such-session", "k")
        assert result.error.code == ErrorCode.UNKNOWN_SESSION


class TestHashPayloadParsing:
    """Tests for parse_hash_payload."""

    def test_valid(self):
        result = parse_hash_payload("h", '{"a": "1", "b": ""}')

        assert result.unwrap() == {"a": "1", "b": ""}

    def test_empty_object(self):
        assert parse_hash_payload("h", "{}").unwrap() == {}

    def test_error_does_not_echo_payload(self):
        result = parse_hash_payload("h", '{"password": 12345}')

        assert result.is_err()
        assert "12345" not in result.error.message
        assert result.error.context == {"key": "h", "kind": "hash"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
