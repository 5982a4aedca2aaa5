"""
Tests for the ContentStore adapter
"""

import mongomock
import pytest
from unittest.mock import patch

from pymongo.errors import OperationFailure

from database import COLL_USERS, parse_object_id, serialize
from exceptions import DuplicateRecord, StoreError


class TestContentStore:

    def test_insert_stamps_timestamps(self, store):
        user_id = store.insert(COLL_USERS, {"name": "Alice"})

        doc = store.find_by_id(COLL_USERS, user_id)

        assert doc["created_at"] is not None
        assert doc["updated_at"] is not None

    def test_duplicate_key_becomes_duplicate_record(self, store):
        store.insert(COLL_USERS, {"_id": "fixed", "name": "First"})

        with pytest.raises(DuplicateRecord) as exc_info:
            store.insert(COLL_USERS, {"_id": "fixed", "name": "Second"})

        assert isinstance(exc_info.value, StoreError)
        assert exc_info.value.status_code == 500

    def test_driver_errors_become_store_errors(self, store):
        with patch.object(mongomock.Collection, "count_documents", side_effect=OperationFailure("boom")):
            with pytest.raises(StoreError) as exc_info:
                store.count(COLL_USERS)
        assert not isinstance(exc_info.value, DuplicateRecord)
        assert "boom" in exc_info.value.details

    def test_find_by_invalid_id(self, store):
        assert store.find_by_id(COLL_USERS, "not-an-id") is None


class TestHelpers:

    def test_parse_object_id(self):
        assert parse_object_id("0123456789abcdef01234567") is not None
        assert parse_object_id("nope") is None
        assert parse_object_id(None) is None

    def test_serialize_nested_ids(self):
        oid = parse_object_id("0123456789abcdef01234567")
        assert serialize({"a": oid, "b": [oid, {"c": oid}]}) == {
            "a": str(oid), "b": [str(oid), {"c": str(oid)}],
        }
