"""
Per-user rate limiting backed by Redis.
Without a Redis connection every action is allowed.
"""
import logging
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RateLimiter:

    def __init__(self, redis=None, prefix: str = 'rate'):
        self.redis = redis
        self.prefix = prefix

    def _make_key(self, user_id: int, action: str) -> str:
        return f"{self.prefix}:rate_limit:{user_id}:{action}"

    async def check(self, user_id: int, action: str, limit: int = 100, window: int = 3600) -> bool:
        """Count one action and report whether the user is still within the limit"""
        if not self.redis:
            return True

        key = self._make_key(user_id, action)
        try:
            current = await self.redis.incr(key)
            if current == 1:
                await self.redis.expire(key, window)
            return current <= limit
        except RedisError as e:
            logger.error(f"Rate limit check failed for key {key}: {str(e)}")
            return True
