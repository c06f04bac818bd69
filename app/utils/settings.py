# app/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

# production unless told otherwise: error details stay server-side
APP_ENV = os.getenv("APP_ENV", "production")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 5))
REDIS_CONNECT_RETRIES = int(os.getenv("REDIS_CONNECT_RETRIES", 3))
REDIS_WATCH_RETRIES = int(os.getenv("REDIS_WATCH_RETRIES", 5))

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")
RECONCILE_INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", 10 * 60))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 10))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "false").lower() == "true"

IS_DEVELOPMENT = APP_ENV == "development"
