import asyncio
import logging
from typing import List, Optional

from ..channels import NEW_MESSAGE_EVENT, channel_for
from ..errors import EmptyContentError, NotFriendsError
from ..metrics import EVENTS_PUBLISHED, MESSAGES_CREATED

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value is not None else None


def message_event(m) -> dict:
    """Wire payload of the new-message event"""
    return {
        'id': m.id,
        'senderId': m.sender_id,
        'receiverId': m.receiver_id,
        'username': m.username,
        'message': m.message,
        'fileUrl': m.file_url,
        'fileName': m.file_name,
        'fileType': m.file_type,
        'fileSize': m.file_size,
        'isPrivate': m.is_private,
        'createdAt': _iso(m.created_at),
    }


class MessageService:
    """Friendship-gated message creation and realtime fan-out"""

    def __init__(self, friends, messages, notifier, publish_timeout: float = 5.0):
        self.friends = friends
        self.messages = messages
        self.notifier = notifier
        self.publish_timeout = publish_timeout

    async def ensure_can_send(self, sender_id: int, receiver_id: Optional[int] = None) -> None:
        """Private messages may only go to confirmed friends"""
        if receiver_id is not None and not await self.friends.friendship_exists(sender_id, receiver_id):
            raise NotFriendsError()

    async def create_message(self, sender_id: int, display_name: str, body: Optional[str] = None,
                             attachment=None, receiver_id: Optional[int] = None):
        """
        Persist a public or private message and emit it to its channel.

        A private message (receiver_id set) requires an existing friendship.
        The stored message is returned even if the realtime emit fails.
        """
        is_private = receiver_id is not None
        await self.ensure_can_send(sender_id, receiver_id)

        text = body.strip() if body else None
        if not text:
            text = None
        if text is None and attachment is None:
            raise EmptyContentError()

        values = dict(
            sender_id=sender_id,
            receiver_id=receiver_id,
            username=display_name,
            message=text,
            is_private=is_private,
        )
        if attachment is not None:
            values.update(
                file_url=attachment.url,
                file_name=attachment.original_name,
                file_type=attachment.file_type,
                file_size=attachment.size_bytes,
            )
        m = await self.messages.create(**values)
        MESSAGES_CREATED.labels(private=str(is_private).lower()).inc()

        await self.emit(m)
        return m

    async def emit(self, m) -> bool:
        channel = channel_for(m.sender_id, m.receiver_id)
        try:
            await asyncio.wait_for(
                self.notifier.publish(channel, NEW_MESSAGE_EVENT, message_event(m)),
                timeout=self.publish_timeout,
            )
        except asyncio.TimeoutError:
            EVENTS_PUBLISHED.labels(outcome='timeout').inc()
            logger.error(f"Publishing message {m.id} to {channel} timed out after {self.publish_timeout}s")
            return False
        except Exception as e:
            # delivery is best-effort; the stored message is the durable record
            EVENTS_PUBLISHED.labels(outcome='failed').inc()
            logger.error(f"Publishing message {m.id} to {channel} failed: {e}")
            return False
        EVENTS_PUBLISHED.labels(outcome='ok').inc()
        return True

    async def list_public(self, limit: int = 100) -> List[object]:
        return await self.messages.list_public(limit=limit)

    async def list_private(self, user_id: int, friend_id: int, limit: int = 100) -> List[object]:
        if not await self.friends.friendship_exists(user_id, friend_id):
            raise NotFriendsError('Can only view messages with friends')
        return await self.messages.list_private(user_id, friend_id, limit=limit)

    async def list_by_username(self, username: str, limit: int = 50) -> List[object]:
        return await self.messages.list_by_username(username, limit=limit)
