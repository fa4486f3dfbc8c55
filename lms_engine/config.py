"""Runtime settings loaded from the environment (and an optional .env file)."""

import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("LMS_DATABASE_URL", "sqlite:///./lms.db")

# Set LMS_SQL_ECHO=1 to log every statement SQLAlchemy emits
SQL_ECHO = os.getenv("LMS_SQL_ECHO", "0").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LMS_LOG_LEVEL", "INFO").upper()

DEFAULT_PASSING_SCORE = 60
RATING_MIN = 1
RATING_MAX = 5

# Optimistic-lock retries for enrollment and course read-modify-write updates
WRITE_RETRIES = 5
