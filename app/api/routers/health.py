# app/api/routers/health.py
import platform
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.data.redis_client import RedisResource
from app.utils.logging import get_logger
from app.utils.settings import APP_ENV, APP_VERSION

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

_STARTED_AT = time.monotonic()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_uptime(seconds: int) -> str:
    """90061 -> '1d 1h 1m 1s'; zero units are left out."""
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def _uptime() -> Dict[str, Any]:
    seconds = int(time.monotonic() - _STARTED_AT)
    return {"seconds": seconds, "human": format_uptime(seconds)}


def _memory() -> Dict[str, str]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is KiB on Linux, bytes on macOS
    per_mb = 1024 * 1024 if sys.platform == "darwin" else 1024
    return {"maxRss": f"{round(usage.ru_maxrss / per_mb)} MB"}


def _elapsed(started: float) -> str:
    return f"{round((time.perf_counter() - started) * 1000)}ms"


def _about() -> Dict[str, str]:
    return {
        "version": APP_VERSION,
        "pythonVersion": platform.python_version(),
        "environment": APP_ENV,
    }


@router.get("")
def health():
    started = time.perf_counter()
    return {
        "status": "healthy",
        "timestamp": _now(),
        "uptime": _uptime(),
        "memory": _memory(),
        "responseTime": _elapsed(started),
        **_about(),
    }


@router.get("/detailed")
def detailed_health(request: Request):
    """API and Redis status; 'degraded' with 503 when Redis is down."""
    started = time.perf_counter()
    store: RedisResource = request.app.state.redis

    healthy = store.is_healthy()
    redis_info = store.info() if healthy else None
    if not healthy:
        logger.warning("Detailed health check: Redis unavailable")

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "timestamp": _now(),
            "services": {
                "api": {
                    "status": "healthy",
                    "responseTime": _elapsed(started),
                    "uptime": _uptime(),
                    "memory": _memory(),
                },
                "redis": {
                    "status": "healthy" if healthy else "unhealthy",
                    "connected": healthy,
                    "info": redis_info,
                },
            },
            **_about(),
        },
    )


@router.get("/redis")
def redis_health(request: Request):
    started = time.perf_counter()
    store: RedisResource = request.app.state.redis

    if store.is_healthy():
        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "timestamp": _now(),
                "responseTime": _elapsed(started),
                "redis": store.info(),
            },
        )

    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "timestamp": _now(),
            "responseTime": _elapsed(started),
            "error": "Redis connection failed",
            "redis": {"connected": False},
        },
    )
