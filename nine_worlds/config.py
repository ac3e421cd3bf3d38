import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./nine_worlds.db")
# Postgres schema for every table; leave empty for sqlite
DB_SCHEMA = os.getenv("DB_SCHEMA") or None
SQL_ECHO = _flag("SQL_ECHO")

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days
AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "nine-worlds-auth")
COOKIE_SECURE = _flag("COOKIE_SECURE")

REQUIRE_APPROVAL = _flag("REQUIRE_APPROVAL")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
FROM_EMAIL = os.getenv("FROM_EMAIL")
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
CONTACT_EMAIL = os.getenv("CONTACT_EMAIL", "support@nine-worlds.example")

AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION")
AWS_BUCKET_NAME = os.getenv("AWS_BUCKET_NAME")

PROFANITY_EXTRA_WORDS = {
    w.strip().lower()
    for w in os.getenv("PROFANITY_EXTRA_WORDS", "").split(",")
    if w.strip()
}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
