from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://fleethealth:fleethealth@db:5432/fleethealth"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://dashboard.example.com,https://ops.example.com"
    CORS_ORIGINS: str = "*"

    # Trailing analysis window used when a request omits `days`.
    DEFAULT_WINDOW_DAYS: int = 30
    MAX_WINDOW_DAYS: int = 365

    # Upload cap for POST /import/csv (bytes).
    IMPORT_MAX_BYTES: int = 50 * 1024 * 1024

    # OS family kept by the desktop/laptop-only classification view.
    DESKTOP_OS_FAMILY: str = "Windows"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
