"""Notification delivery channels.

Each adapter reports the outcome of a send as a ChannelResult. Provider
failures are logged and returned as ``success=False``; they never raise
into queue processing.
"""

from app.worker.channels.base import ChannelResult, mock_message_id
from app.worker.channels.email import EmailChannel
from app.worker.channels.push import PushChannel
from app.worker.channels.sms import SmsChannel

__all__ = [
    "ChannelResult",
    "EmailChannel",
    "PushChannel",
    "SmsChannel",
    "mock_message_id",
]
