import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinicjobs.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-this-secret-key-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ✅ Application lifecycle
LOCK_TIMEOUT_MS = int(os.getenv("LOCK_TIMEOUT_MS", "5000"))
BUSY_RETRY_ATTEMPTS = int(os.getenv("BUSY_RETRY_ATTEMPTS", "3"))
BUSY_RETRY_BACKOFF_SECONDS = float(os.getenv("BUSY_RETRY_BACKOFF_SECONDS", "0.1"))
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "50"))
APPLY_RATE_LIMIT_PER_MINUTE = int(os.getenv("APPLY_RATE_LIMIT_PER_MINUTE", "10"))

# ✅ Notifications
NOTIFICATIONS_ENABLED = os.getenv("NOTIFICATIONS_ENABLED", "1") == "1"

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
