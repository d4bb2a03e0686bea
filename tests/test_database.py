"""
Unit tests for Supabase record store error classification and row mapping.
"""
import httpx
from postgrest.exceptions import APIError

from conftest import make_messages
from mailsync.models.schemas.sync import IngestedMessageRecord
from mailsync.services.sync.batch import is_recoverable_store_error
from mailsync.services.sync.database import _record_to_row, _wrap_store_error
from mailsync.services.sync.errors import RecordStoreError, TransientStoreError


class TestWrapStoreError:

    def test_serialization_failure_is_transient(self):
        error = _wrap_store_error(APIError({"code": "40001", "message": "could not serialize access"}), "upsert")

        assert isinstance(error, TransientStoreError)
        assert is_recoverable_store_error(error)

    def test_service_unavailable_is_transient(self):
        error = _wrap_store_error(APIError({"code": "503", "message": "upstream unavailable"}), "upsert")

        assert isinstance(error, TransientStoreError)
        assert error.status_code == 503

    def test_constraint_violation_is_permanent(self):
        error = _wrap_store_error(APIError({"code": "23502", "message": "null value in column"}), "upsert")

        assert type(error) is RecordStoreError
        assert not is_recoverable_store_error(error)

    def test_transport_error_is_transient(self):
        error = _wrap_store_error(httpx.ConnectError("connection refused"), "load_checkpoint")

        assert isinstance(error, TransientStoreError)
        assert "load_checkpoint" in str(error)


class TestRecordToRow:

    def test_maps_columns(self):
        message = make_messages(1)[0]
        record = IngestedMessageRecord(**message.model_dump(), account_id="acct-1", embedding=[0.1], is_reply=True)

        row = _record_to_row(record)

        assert row["account_id"] == "acct-1"
        assert row["id"] == message.id
        assert row["thread_id"] == message.conversation_id
        assert row["from_address"] == message.sender
        assert row["to_address"] == message.recipient
        assert row["date"] == message.date.isoformat()
        assert row["has_embedding"] is True
        assert row["is_sent"] is True
        assert row["is_reply"] is True

    def test_degraded_record(self):
        message = make_messages(1)[0].model_copy(update={"date": None, "conversation_id": ""})
        record = IngestedMessageRecord(**message.model_dump(), account_id="acct-1")

        row = _record_to_row(record)

        assert row["has_embedding"] is False
        assert row["date"] is None
        assert row["thread_id"] is None
