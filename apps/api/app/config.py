from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskflow:taskflow@db:5432/taskflow"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2025-10-01"
  access_token_ttl_days: int = 7

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

  # Mail-sending service the dispatcher talks to (defaults to this API's own /mail/send).
  mail_endpoint_url: str = "http://localhost:8000/mail/send"
  mail_timeout_seconds: float = 15.0
  mail_provider: str = "local"  # local | smtp
  # When set, /mail/send requires a matching X-Mail-Secret header.
  mail_secret: str | None = None
  smtp_host: str | None = None
  smtp_port: int = 587
  smtp_username: str | None = None
  smtp_password: str | None = None
  smtp_from: str | None = None
  smtp_from_name: str = "TaskFlow"
  smtp_starttls: bool = True

  mail_locale: str = "en"  # en | he
  app_name: str = "TaskFlow"

  notify_self: bool = False
  dedupe_assignee_mention: bool = False

  digest_timezone: str = "UTC"
  digest_lock_enabled: bool = True
  cron_secret: str | None = None

  log_level: str = "INFO"
  notification_log_file: str | None = "data/logs/mention_notifications.log"
  digest_log_file: str | None = "data/logs/daily_digest.log"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
