"""
Unit Tests: Core Types and Errors

Tests:
    - Result monad helpers
    - KeyKind mapping from store type names
    - Expiry day rounding
    - KeysPage invariants and serialization
    - Error serialization and redaction
"""

import pytest

from keyscope.core.errors import ErrorCode, KeyspaceError, SessionError
from keyscope.core.types import (
    Err,
    KeyInfo,
    KeyKind,
    KeysPage,
    KeyValue,
    KeyWriteSpec,
    Ok,
    Scalar,
    ServerInfo,
    expire_in_days,
)
from keyscope.keyspace.metadata import describe_size


class TestResult:
    """Tests for Ok/Err."""

    def test_ok_map_and_unwrap(self):
        assert Ok(2).map(lambda v: v * 3).unwrap() == 6
        assert Ok(1).flat_map(lambda v: Err("no")).is_err()

    def test_err_passthrough(self):
        err = Err("boom")

        assert err.map(lambda v: v + 1) is err
        assert err.unwrap_or(5) == 5
        with pytest.raises(RuntimeError):
            err.unwrap()


class TestKeyKind:
    """Tests for store type mapping."""

    @pytest.mark.parametrize("type_name,kind", [
        ("string", KeyKind.STRING),
        ("hash", KeyKind.HASH),
        ("list", KeyKind.LIST),
        ("set", KeyKind.SET),
        ("zset", KeyKind.SORTEDSET),
        ("ZSET", KeyKind.SORTEDSET),
        ("stream", KeyKind.UNSUPPORTED),
        ("ReJSON-RL", KeyKind.UNSUPPORTED),
    ])
    def test_from_store_type(self, type_name, kind):
        assert KeyKind.from_store_type(type_name) is kind

    def test_none_means_missing(self):
        assert KeyKind.from_store_type("none") is None


class TestExpiry:
    """Tests for expire_in_days rounding."""

    @pytest.mark.parametrize("ttl,days", [
        (None, None),
        (1, 1),
        (86_400, 1),
        (86_401, 2),
        (259_200, 3),
    ])
    def test_rounds_up(self, ttl, days):
        assert expire_in_days(ttl) == days

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            KeyInfo(name="k", kind=KeyKind.STRING, ttl_seconds=-1)


class TestSizeDescriptor:
    """Tests for describe_size."""

    def test_units(self):
        assert describe_size(KeyKind.STRING, 24) == "24 B"
        assert describe_size(KeyKind.HASH, 3) == "3 fields"
        assert describe_size(KeyKind.LIST, 0) == "0 items"
        assert describe_size(KeyKind.SORTEDSET, 9) == "9 members"

    def test_placeholder(self):
        assert describe_size(KeyKind.UNSUPPORTED, 4) == "—"
        assert describe_size(KeyKind.STRING, None) == "—"


class TestKeysPage:
    """Tests for page invariants."""

    def _items(self, count):
        return tuple(KeyInfo(name=f"k{i}", kind=KeyKind.STRING) for i in range(count))

    def test_to_dict(self):
        page = KeysPage(items=self._items(2), total_matches=12, page_index=1, page_size=5)

        data = page.to_dict()

        assert data["total"] == 12
        assert data["page"] == 1
        assert data["total_pages"] == 3
        assert [item["name"] for item in data["items"]] == ["k0", "k1"]

    def test_items_exceed_page_size(self):
        with pytest.raises(ValueError):
            KeysPage(items=self._items(3), total_matches=3, page_index=0, page_size=2)

    def test_total_below_items(self):
        with pytest.raises(ValueError):
            KeysPage(items=self._items(2), total_matches=1, page_index=0, page_size=5)


class TestModels:
    """Tests for value records."""

    def test_key_value_to_dict(self):
        info = KeyInfo(name="k", kind=KeyKind.STRING, ttl_seconds=90_000, size="1 B")
        value = KeyValue(info=info, value=Scalar("v"), raw_scalar="v")

        data = value.to_dict()

        assert data["value"] == "v"
        assert data["raw_scalar"] == "v"
        assert data["expire_in_days"] == 2
        assert data["kind"] == "string"

    def test_write_spec_kind(self):
        assert KeyWriteSpec(name="k", kind=" Hash ").normalized_kind == "hash"
        assert KeyWriteSpec(name="k", kind="").normalized_kind == "string"

    def test_server_info_from_info(self):
        info = ServerInfo.from_info({
            "redis_version": "7.2.4",
            "used_memory_human": "1.05M",
            "connected_clients": 3,
        })

        assert info == ServerInfo("7.2.4", "1.05M", "3")
        assert ServerInfo.from_info({}) == ServerInfo()


class TestErrors:
    """Tests for the error hierarchy."""

    def test_unknown_session_keeps_prefix_only(self):
        error = SessionError.unknown_session("0123456789abcdef0123456789abcdef")

        assert error.code == ErrorCode.UNKNOWN_SESSION
        assert error.context == {"session": "01234567"}
        assert "0123456789abcdef" not in error.message

    def test_to_dict(self):
        error = KeyspaceError.transient_failure("scan", "user:*", "timeout")

        data = error.to_dict()

        assert data["code"] == "TRANSIENT_OP_FAILURE"
        assert data["code_value"] == 2003
        assert data["context"] == {"operation": "scan", "key": "user:*"}
        assert str(error).startswith("[TRANSIENT_OP_FAILURE]")

    def test_errors_are_exceptions(self):
        with pytest.raises(KeyspaceError):
            raise KeyspaceError.not_found("k")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
