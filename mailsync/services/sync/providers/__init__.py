"""
Mail Providers
Normalization layer for external mail APIs (Gmail sent folder)
"""
from mailsync.services.sync.providers.gmail import (
    GmailSentMailProvider,
    normalize_gmail_message
)

__all__ = [
    "GmailSentMailProvider",
    "normalize_gmail_message",
]
