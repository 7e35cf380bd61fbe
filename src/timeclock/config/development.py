from .base import *  # noqa: F401,F403

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))  # noqa: F405
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()  # noqa: F405
