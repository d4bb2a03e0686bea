"""
Unit tests for settings validation.
"""
import pytest

from mailsync.core.config import Settings


class TestSettings:

    def test_defaults(self):
        config = Settings()

        assert config.embedding_provider in ("local", "openai", "huggingface")
        assert config.sync_batch_size >= 1
        assert config.nango_provider_key_gmail

    def test_sync_tuning(self):
        config = Settings(sync_batch_size=10, sync_max_iterations=5, sync_resume_delay_ms=250)

        assert config.sync_batch_size == 10
        assert config.sync_max_iterations == 5
        assert config.sync_resume_delay_ms == 250

    @pytest.mark.parametrize("field", ["sync_batch_size", "sync_max_iterations", "sync_lease_ttl_seconds"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValueError):
            Settings(**{field: 0})

    def test_provider_is_case_insensitive(self):
        assert Settings(embedding_provider="OpenAI").embedding_provider == "openai"
