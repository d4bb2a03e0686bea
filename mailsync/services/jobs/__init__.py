"""
Background Job Queue
Dramatiq-based async task processing
"""
from mailsync.services.jobs.broker import broker
from mailsync.services.jobs.tasks import sync_sent_mail_task

__all__ = ["broker", "sync_sent_mail_task"]
