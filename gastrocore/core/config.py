import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/gastrocore_db")

# Application Metadata
PROJECT_NAME = "GastroCore POS Services"
VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Per-business quotas applied when the business row leaves a limit unset
DEFAULT_LIMIT_PRODUCTS = int(os.getenv("DEFAULT_LIMIT_PRODUCTS", 100))
DEFAULT_LIMIT_ORDERS_DAY = int(os.getenv("DEFAULT_LIMIT_ORDERS_DAY", 200))
DEFAULT_LIMIT_USERS = int(os.getenv("DEFAULT_LIMIT_USERS", 3))

# "Today" for the daily order quota starts at midnight in this zone
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "UTC")

# Comma separated user ids flagged by moderation (ConfiguredAccountGate)
BLOCKED_USER_IDS = frozenset(
    uid.strip() for uid in os.getenv("BLOCKED_USER_IDS", "").split(",") if uid.strip()
)
