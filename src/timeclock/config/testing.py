from .base import *  # noqa: F401,F403

SECRET_KEY = "test-secret"

DEBUG = False
TESTING = True

STORAGE_BACKEND = "memory"
AUTO_INIT_DB = False

CRON_SECRET = "test-cron-secret"
OPENCAGE_API_KEY = ""
