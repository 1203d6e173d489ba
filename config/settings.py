"""
Configuration constants and settings for spanner-pitr.

Centralizes all configuration including:
- Database identity
- Search defaults
- Retry/backoff parameters
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ═══ Database Identity ═══
SPANNER_PROJECT = os.getenv("SPANNER_PROJECT", "")
SPANNER_INSTANCE = os.getenv("SPANNER_INSTANCE", "")
SPANNER_DATABASE = os.getenv("SPANNER_DATABASE", "")

# ═══ Search Defaults ═══
DEFAULT_ACCURACY_MS = 10
DEFAULT_RETENTION_SECONDS = 3600  # Spanner default version_retention_period (1h)
HORIZON_MARGIN_SECONDS = 5  # stay inside the moving GC horizon

# ═══ Retry / Backoff ═══
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_DELAY = 0.1  # seconds
DEFAULT_RETRY_BACKOFF = 2.0
DEFAULT_RETRY_MAX_DELAY = 5.0  # seconds
DEFAULT_QUERY_TIMEOUT = 30.0  # seconds per evaluation

# ═══ Exit Codes ═══
EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_ALWAYS_FALSE = 3
EXIT_RANGE = 4
EXIT_QUERY = 5
EXIT_TRANSIENT = 6
EXIT_INTERRUPTED = 130
