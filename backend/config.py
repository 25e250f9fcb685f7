# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./bookstore.db"

    FRONTEND_URL: str = "http://localhost:5173"
    # Public backend URL the gateway redirects back to
    BACKEND_URL: str = "http://127.0.0.1:8000"

    # Registration may only request the admin role when this is enabled
    ALLOW_ADMIN_SIGNUP: bool = False
    LOG_LEVEL: str = "INFO"

    ESEWA_PAYMENT_URL: str = "https://rc-epay.esewa.com.np/api/epay/main/v2/form"
    ESEWA_STATUS_URL: str = "https://rc.esewa.com.np/api/epay/transaction/status/"
    ESEWA_MERCHANT_CODE: str = "EPAYTEST"
    # eSewa UAT secret; override in production
    ESEWA_SECRET_KEY: str = "8gBm/:&EnhH.1/q"
    ESEWA_REQUIRE_SIGNATURE: bool = False
    ESEWA_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
