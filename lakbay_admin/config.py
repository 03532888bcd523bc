import os

LAKBAY_API_URL = os.environ.get("LAKBAY_API_URL", "https://api-lakbayan.onrender.com/api").rstrip("/")
LAKBAY_API_TOKEN = os.environ.get("LAKBAY_API_TOKEN", "")
TZ_NAME = os.environ.get("TZ", "UTC")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
FETCH_TIMEOUT_S = float(os.environ.get("FETCH_TIMEOUT_S", "10"))
SNAPSHOT_TTL_S = int(os.environ.get("SNAPSHOT_TTL_S", "300"))
LEADERBOARD_TOP_N = int(os.environ.get("LEADERBOARD_TOP_N", "5"))
DEFAULT_RANGE = "all"
DEFAULT_INTERVAL = "24h"
