# app/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import redis

from app.utils.settings import REDIS_CONNECT_RETRIES, REDIS_WATCH_RETRIES


def redis_retry(attempts: int = REDIS_CONNECT_RETRIES):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def watch_retry(attempts: int = REDIS_WATCH_RETRIES):
    # WATCH lost the race: rerun the whole read-check-write, no backoff
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(redis.WatchError),
    )
