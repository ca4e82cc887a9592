"""
Конфигурация приложения.

Всё берется из переменных окружения и .env файла.
DATABASE_URL обязателен, остальные интеграции опциональны.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Pydantic Settings конфиг
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str

    # Redis (сессии и счётчики rate-limit). Без него - хранение в памяти
    REDIS_URL: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    TRUST_PROXY: bool = False
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # Пароли
    BCRYPT_ROUNDS: int = 12

    # Сессии
    SESSION_SECRET: str = "dev-session-secret-change-in-production"
    SESSION_COOKIE_NAME: str = "expatEatsSession"
    SESSION_MAX_AGE_MINUTES: int = 30
    REMEMBER_ME_DAYS: int = 30

    # RATE-LIMITS
    RATE_LIMIT_ENABLED: bool = True
    GENERAL_RATE_LIMIT: str = "100/15 minutes"
    AUTH_RATE_LIMIT: str = "5/15 minutes"
    LOGIN_RATE_LIMIT: str = "3/15 minutes"

    # Geoapify
    GEOAPIFY_API_KEY: Optional[str] = None
    GEOAPIFY_URL: str = "https://api.geoapify.com/v1/geocode/search"

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_CALLBACK_URL: str = "http://localhost:3001/api/auth/google/callback"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def trust_proxy(self) -> bool:
        return self.TRUST_PROXY or self.is_production


# Создаем глобальный объект settings
settings = Settings()
