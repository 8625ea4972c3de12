"""
General Application Configuration
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directory
# Resolve __file__ first to handle any .. components in the path
BASE_DIR = Path(__file__).resolve().parent.parent

# Assumption cache settings
# "memory" keeps suggestions for the lifetime of the process, "duckdb" persists them
ASSUMPTION_CACHE_BACKEND = os.getenv("ASSUMPTION_CACHE_BACKEND", "memory").lower()
default_cache_path = (BASE_DIR / "data" / "db" / "assumption_cache.duckdb").resolve()
ASSUMPTION_CACHE_DB_PATH = os.getenv("ASSUMPTION_CACHE_DB_PATH", str(default_cache_path))

# OpenAI settings
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# API Keys
FMP_API_KEY = os.getenv("FMP_API_KEY")

# Timeouts for single-shot upstream calls (seconds)
SUGGESTION_TIMEOUT_SECONDS = float(os.getenv("SUGGESTION_TIMEOUT_SECONDS", "30"))
REMOTE_CALCULATION_TIMEOUT_SECONDS = float(os.getenv("REMOTE_CALCULATION_TIMEOUT_SECONDS", "30"))
FMP_REQUEST_TIMEOUT_SECONDS = float(os.getenv("FMP_REQUEST_TIMEOUT_SECONDS", "10"))

# Delegate the custom/standard tiers to the FMP custom DCF endpoint instead of computing locally
USE_REMOTE_CALCULATION = os.getenv("USE_REMOTE_CALCULATION", "false").lower() == "true"

# Logging
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
