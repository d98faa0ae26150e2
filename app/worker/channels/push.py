"""Push channel.

No push provider is wired up; sends are logged and reported as delivered.
"""

import structlog

from app.worker.channels.base import ChannelResult, mock_message_id

logger = structlog.get_logger()


class PushChannel:
    """Delivers push notifications to a user's registered devices."""

    name = "push"

    def __init__(self, use_mock: bool = True) -> None:
        self.use_mock = use_mock

    async def send(self, user_id: str, title: str, body: str) -> ChannelResult:
        message_id = mock_message_id()
        logger.info(
            "Push notification sent",
            user_id=user_id,
            title=title,
            body=body,
            mock=self.use_mock,
            message_id=message_id,
        )
        return ChannelResult(self.name, True, message_id=message_id)
