"""Redis client configuration and utilities."""

from typing import cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        client.ping()
        return True
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class RateLimiter:
    """Fixed-window request counter kept in Redis."""

    def __init__(self, redis_client: redis.Redis, prefix: str = "rate", window: int = 60):
        """
        Initialize rate limiter.

        Args:
            redis_client: Shared Redis client
            prefix: Key namespace, one per limited action
            window: Window length in seconds
        """
        self.redis = redis_client
        self.prefix = prefix
        self.window = window

    def key(self, subject: str) -> str:
        return f"{self.prefix}:{subject}"

    def hit(self, subject: str, limit: int) -> bool:
        """
        Count one request for ``subject``.

        Returns:
            False once more than ``limit`` requests fall in the current
            window. Redis errors allow the request.
        """
        key = self.key(subject)
        try:
            count = int(cast(int, self.redis.incr(key)))
            if count == 1:
                # First hit opens the window
                self.redis.expire(key, self.window)
        except Exception as e:
            logger.warning("rate_limit_check_failed", key=key, error=str(e))
            return True

        return count <= limit
