# freshmart/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _default_database_url() -> str:
    return (
        f"postgresql+asyncpg://{os.getenv('FRESHMART_DB_USER')}:{os.getenv('FRESHMART_DB_PASSWORD')}"
        f"@{os.getenv('FRESHMART_DB_HOST')}:{os.getenv('FRESHMART_DB_PORT')}/{os.getenv('FRESHMART_DB_NAME')}"
    )


DATABASE_URL = os.getenv("DATABASE_URL") or _default_database_url()
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

SECRET_KEY = os.getenv("SECRET_KEY", "your_secret_key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5MB

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

RABBITMQ_URL = os.getenv("RABBITMQ_URL", "")
EVENTS_QUEUE = os.getenv("EVENTS_QUEUE", "freshmart_events")

LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", 10))
EXPIRING_WINDOW_DAYS = int(os.getenv("EXPIRING_WINDOW_DAYS", 7))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
