"""
Unit tests for body sanitization and the embed-and-store unit of work.
"""
import pytest

from conftest import ACCOUNT_ID, FakeEmbedder, FakeRecordStore, make_messages
from mailsync.services.sync.errors import EmbeddingError
from mailsync.services.sync.persistence import (
    create_email_context,
    embed_and_store,
    is_reply_subject,
    sanitize_email_body,
)


class TestSanitizeEmailBody:
    """Tests for sanitize_email_body."""

    def test_strips_tags_and_collapses_whitespace(self):
        html = "<div>Hi&nbsp;there,</div>\n\n<p>Thanks   again</p>"
        assert sanitize_email_body(html, 2000) == "Hi there, Thanks again"

    def test_drops_script_and_style_blocks(self):
        html = "<style>p { color: red }</style><p>Visible</p><script>alert('x')</script>"
        assert sanitize_email_body(html, 2000) == "Visible"

    def test_truncates(self):
        assert sanitize_email_body("a" * 50, 10) == "a" * 10

    def test_empty(self):
        assert sanitize_email_body("", 100) == ""
        assert sanitize_email_body(None, 100) == ""


class TestHelpers:

    @pytest.mark.parametrize("subject", ["Re: lunch", "RE:lunch", "Fwd: deck", "fw: notes"])
    def test_reply_subjects(self, subject):
        assert is_reply_subject(subject)

    @pytest.mark.parametrize("subject", ["Quarterly report", "Regarding the plan", ""])
    def test_non_reply_subjects(self, subject):
        assert not is_reply_subject(subject)

    def test_email_context(self):
        assert create_email_context("Hello", "Body") == "Hello\n\nBody"
        assert create_email_context("", "Body") == "Body"


class EmptyEmbedder(FakeEmbedder):
    async def embed(self, text):
        return []


@pytest.mark.asyncio
class TestEmbedAndStore:
    """Tests for embed_and_store."""

    async def test_stores_sanitized_record(self):
        store = FakeRecordStore()
        message = make_messages(1)[0].model_copy(update={"subject": "Re: Subject msg 0"})

        record = await embed_and_store(store, FakeEmbedder(), ACCOUNT_ID, message, max_body_chars=2000)

        assert store.records[message.id] == record
        assert record.body == "Body of message 0"
        assert record.account_id == ACCOUNT_ID
        assert record.is_sent is True
        assert record.is_reply is True
        assert len(record.embedding) == 3
        assert record.conversation_id == message.conversation_id

    async def test_embedding_failure_writes_nothing(self):
        store = FakeRecordStore()
        message = make_messages(1)[0]
        embedder = FakeEmbedder(failing_subjects={message.subject})

        with pytest.raises(EmbeddingError):
            await embed_and_store(store, embedder, ACCOUNT_ID, message)

        assert store.upsert_calls == 0
        assert store.records == {}

    async def test_empty_embedding_is_stored_degraded(self):
        store = FakeRecordStore()
        message = make_messages(1)[0]

        record = await embed_and_store(store, EmptyEmbedder(), ACCOUNT_ID, message)

        assert record.embedding == []
        assert message.id in store.records

    async def test_upsert_is_idempotent(self):
        store = FakeRecordStore()
        message = make_messages(1)[0]

        await embed_and_store(store, FakeEmbedder(), ACCOUNT_ID, message)
        await embed_and_store(store, FakeEmbedder(), ACCOUNT_ID, message)

        assert len(store.records) == 1
