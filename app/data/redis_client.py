# app/data/redis_client.py
from typing import Any, Dict

import redis
from fastapi import Request
from redis.exceptions import RedisError

from app.domain.exceptions import StorageError
from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL, REDIS_SOCKET_TIMEOUT
from app.utils.logging import get_logger

logger = get_logger(__name__)


class RedisResource:
    """
    Process-wide owner of the Redis connection pool.
    -connect / disconnect at application startup and shutdown
    -acquire() hands the client to the repository, fails fast when not ready
    -is_healthy() / info() for the health endpoints
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None,
                 socket_timeout: float = REDIS_SOCKET_TIMEOUT):
        self.url = url or REDIS_URL
        self.socket_timeout = socket_timeout
        self._client = client
        self._ready = False

    def _build_client(self) -> redis.Redis:
        return redis.Redis.from_url(
            self.url,
            decode_responses=True,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
            health_check_interval=30,
        )

    @redis_retry()
    def _ping(self) -> bool:
        return self._client.ping()

    def connect(self) -> None:
        if self._client is None:
            self._client = self._build_client()

        try:
            self._ping()
        except RedisError as e:
            self._ready = False
            logger.error(f"Redis unreachable at startup: {e}")
            raise StorageError("Redis is unreachable", details={"originalError": str(e)}) from e

        self._ready = True
        logger.info("Redis connection ready")

    def acquire(self) -> redis.Redis:
        if not self._ready or self._client is None:
            raise StorageError("Redis connection is not ready")
        return self._client

    def release(self, client: redis.Redis) -> None:
        # connections go back to the pool after every command; nothing to hand back
        logger.debug("Redis client released")

    def is_healthy(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def info(self) -> Dict[str, Any]:
        """Summary of the server INFO reply for the health endpoints."""
        if self._client is None:
            return {"connected": False}
        try:
            raw = self._client.info()
        except RedisError as e:
            logger.warning(f"Redis INFO failed: {e}")
            return {"connected": False, "error": "Failed to get Redis info"}

        db0 = raw.get("db0") or {}
        return {
            "connected": True,
            "version": raw.get("redis_version"),
            "uptime": raw.get("uptime_in_seconds"),
            "memory": {
                "used": raw.get("used_memory_human"),
                "peak": raw.get("used_memory_peak_human"),
            },
            "clients": {
                "connected": raw.get("connected_clients"),
                "blocked": raw.get("blocked_clients"),
            },
            "keyspace": {"keys": db0.get("keys", 0)},
        }

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Redis connection closed")
        self._client = None
        self._ready = False


redis_resource = RedisResource()


def get_redis(request: Request):
    resource: RedisResource = request.app.state.redis
    client = resource.acquire()
    try:
        yield client
    finally:
        resource.release(client)
