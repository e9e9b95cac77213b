"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    secure: bool
    user: str | None
    password: str | None


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None
    host: str
    port: int
    log_level: str
    openai_api_key: str | None
    openai_model: str
    public_url: str
    smtp: SmtpSettings


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> BackendSettings:
    port_raw = os.getenv("SENTINELSIM_PORT", "8000")
    smtp_port_raw = os.getenv("SMTP_PORT", "587")
    return BackendSettings(
        database_url=os.getenv("SENTINELSIM_DATABASE_URL"),
        host=os.getenv("SENTINELSIM_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("SENTINELSIM_LOG_LEVEL", "INFO").upper(),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("SENTINELSIM_OPENAI_MODEL", "gpt-4o"),
        public_url=os.getenv("SENTINELSIM_PUBLIC_URL", "https://example.com").rstrip("/"),
        smtp=SmtpSettings(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(smtp_port_raw),
            secure=_env_flag("SMTP_SECURE"),
            user=os.getenv("SMTP_USER"),
            password=os.getenv("SMTP_PASSWORD"),
        ),
    )
