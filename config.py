"""
Environment configuration.

``load_settings()`` reads the process environment (after loading a
``.env`` file when present) into a ``Settings`` instance. The result is
built once at startup and handed to the app, the mailer and the CLI;
nothing else reads ``os.environ``.

Supported variables:

* ``DATABASE_URL`` – SQLAlchemy URL (default ``sqlite:///./orasystem.db``).
* ``DB_TIMEOUT_SECONDS`` – lock/busy wait before a storage call fails.
* ``SMTP_HOST``, ``SMTP_PORT``, ``SMTP_USER``, ``SMTP_PASSWORD``,
  ``SMTP_STARTTLS`` – outgoing mail server.
* ``MAIL_FROM``, ``MAIL_TO_COMERCIAL``, ``MAIL_TO_RRHH``,
  ``MAIL_CC_SEGURIDAD``, ``MAIL_CC_REPORTE`` – sender and inboxes.
* ``MAX_UPLOAD_BYTES`` – résumé and forum image size limit (5 MiB).
* ``REPORT_DAYS`` – window covered by the applications report.
* ``TIMEZONE`` – local zone for dates shown in mails and reports.
* ``LOG_LEVEL``, ``EXPOSE_ERROR_DETAIL``, ``CORS_ORIGINS``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

_TRUE = ("true", "1", "yes", "on")


@dataclass
class Settings:
    """Holds environment configuration for the application."""

    DATABASE_URL: str = "sqlite:///./orasystem.db"
    DB_TIMEOUT_SECONDS: int = 60
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = True
    MAIL_FROM: str = "servicio@orasystem.cl"
    MAIL_TO_COMERCIAL: str = "comercial@orasystem.cl"
    MAIL_TO_RRHH: str = "rrhh@orasystem.cl"
    MAIL_CC_SEGURIDAD: Optional[str] = "seguridad@orasystem.cl"
    MAIL_CC_REPORTE: Optional[str] = "comercial@orasystem.cl"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    REPORT_DAYS: int = 30
    TIMEZONE: str = "America/Santiago"
    LOG_LEVEL: str = "INFO"
    EXPOSE_ERROR_DETAIL: bool = True
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE


def _int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from None


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Load configuration from environment variables.

    Raises:
        ValueError: If a numeric variable cannot be parsed.
    """
    load_dotenv(dotenv_path)
    env = os.environ.get
    defaults = Settings()
    origins = env("CORS_ORIGINS")

    return Settings(
        DATABASE_URL=env("DATABASE_URL") or defaults.DATABASE_URL,
        DB_TIMEOUT_SECONDS=_int("DB_TIMEOUT_SECONDS", defaults.DB_TIMEOUT_SECONDS),
        SMTP_HOST=env("SMTP_HOST") or None,
        SMTP_PORT=_int("SMTP_PORT", defaults.SMTP_PORT),
        SMTP_USER=env("SMTP_USER") or None,
        SMTP_PASSWORD=env("SMTP_PASSWORD") or None,
        SMTP_STARTTLS=_bool(env("SMTP_STARTTLS"), defaults.SMTP_STARTTLS),
        MAIL_FROM=env("MAIL_FROM") or defaults.MAIL_FROM,
        MAIL_TO_COMERCIAL=env("MAIL_TO_COMERCIAL") or defaults.MAIL_TO_COMERCIAL,
        MAIL_TO_RRHH=env("MAIL_TO_RRHH") or defaults.MAIL_TO_RRHH,
        MAIL_CC_SEGURIDAD=env("MAIL_CC_SEGURIDAD", defaults.MAIL_CC_SEGURIDAD) or None,
        MAIL_CC_REPORTE=env("MAIL_CC_REPORTE", defaults.MAIL_CC_REPORTE) or None,
        MAX_UPLOAD_BYTES=_int("MAX_UPLOAD_BYTES", defaults.MAX_UPLOAD_BYTES),
        REPORT_DAYS=_int("REPORT_DAYS", defaults.REPORT_DAYS),
        TIMEZONE=env("TIMEZONE") or defaults.TIMEZONE,
        LOG_LEVEL=(env("LOG_LEVEL") or defaults.LOG_LEVEL).upper(),
        EXPOSE_ERROR_DETAIL=_bool(env("EXPOSE_ERROR_DETAIL"), defaults.EXPOSE_ERROR_DETAIL),
        CORS_ORIGINS=[o.strip() for o in origins.split(",") if o.strip()] if origins else defaults.CORS_ORIGINS,
    )
