"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # Base URL of this service, used by clients to reach the login endpoints
    APP_URL: str = "http://localhost:8000"

    # Telegram
    TELEGRAM_FUNCTION_URL: str = "https://jymlmpzzjlepgqbimzdf.functions.supabase.co/tg-login"
    TELEGRAM_BOT_TOKEN: str = ""

    # Environment / local development login
    ENVIRONMENT: str = "production"
    DEV_EMAIL: str = ""
    DEV_PASSWORD: str = ""

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    # Circuit breaker around auth calls
    BREAKER_MAX_FAILURES: int = 3
    BREAKER_COOLDOWN_SECONDS: float = 30.0
    BREAKER_ATTEMPT_TIMEOUT_SECONDS: float = 2.0

    # Client-side request deduplication and rate limiting
    CLIENT_RATE_LIMIT_REQUESTS: int = 10
    CLIENT_RATE_LIMIT_WINDOW_SECONDS: float = 1.0
    DEDUP_EVICTION_SECONDS: float = 5.0
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # Bot login
    LOGIN_TOKEN_TTL_MINUTES: int = 30
    RATE_LIMIT_LOGIN: int = 5

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def has_fake_login(self) -> bool:
        """Fake login is only ever honoured in development with both credentials set."""
        return self.is_development and bool(self.DEV_EMAIL and self.DEV_PASSWORD)

    @property
    def rest_url(self) -> str:
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.SUPABASE_URL.rstrip('/')}/auth/v1"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
