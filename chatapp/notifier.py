"""
Realtime notification emitter backed by Pusher Channels.

The pusher client is synchronous (HTTP via requests), so trigger calls run in
the default executor. Channel authorization is a local HMAC signature and does
not touch the network.
"""
import asyncio
import logging
import os
from functools import partial

import pusher

from .errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

PUSHER_APP_ID = os.getenv('PUSHER_APP_ID')
PUSHER_KEY = os.getenv('PUSHER_KEY')
PUSHER_SECRET = os.getenv('PUSHER_SECRET')
PUSHER_CLUSTER = os.getenv('PUSHER_CLUSTER', 'mt1')
PUSHER_TIMEOUT = float(os.getenv('PUSHER_TIMEOUT', '5'))


class PusherNotifier:

    def __init__(self, client: pusher.Pusher):
        self.client = client

    @classmethod
    def from_settings(cls, app_id: str, key: str, secret: str, cluster: str = PUSHER_CLUSTER,
                      timeout: float = PUSHER_TIMEOUT) -> 'PusherNotifier':
        client = pusher.Pusher(
            app_id=app_id,
            key=key,
            secret=secret,
            cluster=cluster,
            ssl=True,
            timeout=timeout,
        )
        return cls(client)

    async def publish(self, channel_name: str, event_name: str, payload: dict):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(self.client.trigger, channel_name, event_name, payload)
        )

    async def authorize_subscription(self, channel_name: str, socket_id: str, identity: dict) -> dict:
        try:
            return self.client.authenticate(channel=channel_name, socket_id=socket_id, custom_data=identity)
        except ValueError as e:
            raise ValidationError(f'Invalid channel authorization request: {e}')
        except Exception as e:
            logger.error(f"Pusher authorization for {channel_name} failed: {e}")
            raise DependencyError(f'pusher authorization failed: {e}') from e


class NullNotifier:
    """Used when no realtime transport is configured: events are dropped"""

    async def publish(self, channel_name: str, event_name: str, payload: dict):
        logger.debug(f"Realtime transport disabled, dropping {event_name} for {channel_name}")
        return None

    async def authorize_subscription(self, channel_name: str, socket_id: str, identity: dict) -> dict:
        logger.warning(f"Refusing authorization for {channel_name}, realtime transport is not configured")
        raise DependencyError('realtime transport is not configured')


def notifier_from_env():
    if not all([PUSHER_APP_ID, PUSHER_KEY, PUSHER_SECRET]):
        logger.warning("Pusher credentials missing, realtime events are disabled")
        return NullNotifier()
    return PusherNotifier.from_settings(PUSHER_APP_ID, PUSHER_KEY, PUSHER_SECRET)
