"""
Realtime channel naming and subscription authorization.

Channel names are part of the client wire contract and must stay bit-exact:
    private conversation  -> "private-chat-{min_id}-{max_id}"
    public broadcast      -> "chat-channel"
"""
import logging
import re
from typing import Optional, Tuple

from .domain import canonical_pair
from .errors import ChannelAccessDenied

logger = logging.getLogger(__name__)

PUBLIC_CHANNEL = 'chat-channel'
NEW_MESSAGE_EVENT = 'new-message'
PRIVATE_CHANNEL_PREFIX = 'private-chat-'

_PRIVATE_CHANNEL_RE = re.compile(r'^private-chat-([1-9]\d*)-([1-9]\d*)$')


def private_channel_name(user_a: int, user_b: int) -> str:
    low, high = canonical_pair(user_a, user_b)
    return f'{PRIVATE_CHANNEL_PREFIX}{low}-{high}'


def channel_for(sender_id: int, receiver_id: Optional[int] = None) -> str:
    """Target channel for a message: the pair's private channel, else the broadcast channel"""
    if receiver_id is None:
        return PUBLIC_CHANNEL
    return private_channel_name(sender_id, receiver_id)


def parse_private_channel(channel_name: str) -> Optional[Tuple[int, int]]:
    if not channel_name:
        return None
    match = _PRIVATE_CHANNEL_RE.match(channel_name)
    if not match:
        return None
    low, high = int(match.group(1)), int(match.group(2))
    # only names private_channel_name can produce
    if low >= high:
        return None
    return low, high


def is_participant(user_id: int, channel_name: str) -> bool:
    ids = parse_private_channel(channel_name)
    return ids is not None and user_id in ids


def identity_payload(user_id: int, username: str) -> dict:
    """Public identity embedded in the signed channel authorization"""
    return {'user_id': str(user_id), 'user_info': {'username': username}}


async def authorize_subscription(notifier, user_id: int, username: str, channel_name: str, socket_id: str) -> dict:
    """
    Authorize a realtime client to subscribe to a private chat channel.
    Returns the emitter's signed authorization blob unchanged.
    """
    if not is_participant(user_id, channel_name):
        logger.warning(f"Channel access denied for user {user_id} on {channel_name!r}")
        raise ChannelAccessDenied()
    return await notifier.authorize_subscription(channel_name, socket_id, identity_payload(user_id, username))
