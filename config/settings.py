import os
from dataclasses import dataclass
from typing import List


@dataclass
class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    DB_PATH: str = os.getenv("DB_PATH", "./app.db")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))
    MIN_PHONE_DIGITS: int = int(os.getenv("MIN_PHONE_DIGITS", "10"))

    # razorpay | stub
    GATEWAY_MODE: str = os.getenv("GATEWAY_MODE", "razorpay")
    GATEWAY_KEY_ID: str = os.getenv("GATEWAY_KEY_ID", "")
    GATEWAY_KEY_SECRET: str = os.getenv("GATEWAY_KEY_SECRET", "")
    GATEWAY_WEBHOOK_SECRET: str = os.getenv("GATEWAY_WEBHOOK_SECRET", "")
    GATEWAY_API_URL: str = os.getenv("GATEWAY_API_URL", "https://api.razorpay.com/v1")
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    APP_URL: str = os.getenv("APP_URL", "http://localhost:3000")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
