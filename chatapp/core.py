import os
import asyncio
import logging

import redis.asyncio as aioredis
from fastapi import Request

from .cache import RateLimiter
from .crud import UserRepository, FriendRepository, MessageRepository
from .file_storage import AttachmentStorage
from .models import make_engine, make_session_factory
from .notifier import notifier_from_env
from .services import UserService, FriendService, MessageService

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv('REDIS_URL')
METRICS_PORT = int(os.getenv('METRICS_PORT', '8001'))
ALLOW_REREQUEST_AFTER_REJECT = os.getenv('ALLOW_REREQUEST_AFTER_REJECT', 'true').lower() in ('1', 'true', 'yes')
MESSAGE_RATE_LIMIT = int(os.getenv('MESSAGE_RATE_LIMIT', '100'))


class Services:
    """
    Explicitly constructed collaborators shared by the request handlers.
    One instance per application; routes receive it through get_services.
    """

    def __init__(self, engine, notifier, storage: AttachmentStorage, rate_limiter: RateLimiter = None,
                 allow_rerequest_after_reject: bool = ALLOW_REREQUEST_AFTER_REJECT,
                 message_rate_limit: int = MESSAGE_RATE_LIMIT):
        self.engine = engine
        self.session_factory = make_session_factory(engine)
        self.notifier = notifier
        self.storage = storage
        self.rate_limiter = rate_limiter or RateLimiter()
        self.message_rate_limit = message_rate_limit

        user_repo = UserRepository(self.session_factory)
        friend_repo = FriendRepository(self.session_factory)
        message_repo = MessageRepository(self.session_factory)

        self.users = UserService(user_repo)
        self.friends = FriendService(user_repo, friend_repo, allow_rerequest_after_reject)
        self.messages = MessageService(friend_repo, message_repo, notifier)


def get_services(request: Request) -> Services:
    return request.app.state.services


def build_services(database_url: str = None) -> Services:
    """Wire services from environment configuration"""
    return Services(
        engine=make_engine(database_url),
        notifier=notifier_from_env(),
        storage=AttachmentStorage(),
    )


async def redis_startup(redis_url: str = REDIS_URL):
    """Connect to Redis with retries; returns None when unavailable"""
    if not redis_url:
        logger.info("REDIS_URL not set, rate limiting disabled")
        return None

    max_retries = 3
    retry_delay = 3  # seconds

    for attempt in range(max_retries):
        client = None
        try:
            logger.info(f"Attempting to connect to Redis: {redis_url} (attempt {attempt + 1}/{max_retries})")
            client = aioredis.from_url(
                redis_url,
                decode_responses=False,
                max_connections=20,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            await client.ping()
            logger.info("Redis connected successfully")
            return client
        except Exception as e:
            logger.warning(f'Redis startup attempt {attempt + 1} failed: {e}')
            if client is not None:
                await client.aclose()
            if attempt < max_retries - 1:
                logger.info(f"Retrying Redis connection in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)

    logger.error("Failed to connect to Redis after all retries")
    return None


async def shutdown_connections(services: Services):
    """Gracefully shutdown all connections"""
    logger.info("Shutting down connections...")

    redis = services.rate_limiter.redis
    if redis is not None:
        try:
            await redis.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")

    try:
        await services.engine.dispose()
        logger.info("Database engine disposed")
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}")
