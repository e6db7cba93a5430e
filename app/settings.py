import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
notifications_ms_url = os.environ.get("NOTIFICATIONS_MS_URL", "http://localhost:8004")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
ROLE_CACHE_TTL = int(os.environ.get("ROLE_CACHE_TTL", "60"))
