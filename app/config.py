"""
app/config.py – application settings loaded from environment variables.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Gemini ────────────────────────────────────────────────────────────────
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_max_output_tokens: int = 1000
    gemini_temperature: float = 0.7

    # ── Retry ─────────────────────────────────────────────────────────────────
    gemini_retry_attempts: int = 4
    gemini_retry_min_wait: float = 1.0
    gemini_retry_max_wait: float = 30.0

    # ── JWT ───────────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me-access-secret"
    jwt_refresh_secret: str = "change-me-refresh-secret"
    jwt_algorithm: str = "HS256"
    jwt_access_expires_minutes: int = 60 * 24
    jwt_refresh_expires_minutes: int = 60 * 24 * 7

    # Demo account accepted by /api/auth/login (no user database).
    demo_user_email: str = "demo@example.com"
    demo_user_password: str = "password123"
    admin_emails: str = ""

    # ── Rate limiting ─────────────────────────────────────────────────────────
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 100
    ai_rate_limit_per_minute: int = 10
    auth_rate_limit_per_window: int = 5

    # ── CORS ──────────────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    cors_max_age: int = 86400

    # ── Uploads ───────────────────────────────────────────────────────────────
    upload_dir: str = "uploads"
    max_file_size: int = 50 * 1024 * 1024
    max_files_per_request: int = 5
    max_request_size: int = 60 * 1024 * 1024

    # ── Response cache ────────────────────────────────────────────────────────
    cache_ttl_seconds: int = 30
    cache_sweep_interval_seconds: float = 60.0
    cache_max_entries: int = 0  # 0 = unbounded
    cache_paths: str = "/api/health"

    # ── App ───────────────────────────────────────────────────────────────────
    app_name: str = "Creative Suite API"
    app_version: str = "1.0.0"
    api_version: str = "v1"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    slow_request_ms: float = 1000.0

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def cache_path_list(self) -> list[str]:
        return _split_csv(self.cache_paths)

    @property
    def admin_email_list(self) -> list[str]:
        return [email.lower() for email in _split_csv(self.admin_emails)]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
