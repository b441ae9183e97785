"""Service configuration loaded from environment variables."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_PRE_BLACKLIST: tuple[str, ...] = (
    "admin",
    "master",
    "info",
    "mail",
    "webadmin",
    "webmaster",
    "noreply",
    "system",
    "postmaster",
)


def parse_list(value: object) -> list[str]:
    """Split a comma-separated string into trimmed, lowercased, non-empty items."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [str(item).strip().lower() for item in items if str(item).strip()]


class Settings(BaseSettings):
    """Top-level settings for the shortmail service.

    All env vars are prefixed with ``SHORTMAIL_``.
    Example: ``SHORTMAIL_MAIL_DOMAIN=example.com``
    """

    model_config = SettingsConfigDict(env_prefix="SHORTMAIL_")

    # --- Mail policy --------------------------------------------------------
    mail_domain: str = Field(
        default="",
        description="Only accept mail for this recipient domain (empty accepts any)",
    )
    pre_blacklist: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_PRE_BLACKLIST),
        description="Comma-separated local parts that can never be used as mailboxes",
    )
    ban_send_from_domain: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated sender domains whose mail is refused",
    )

    # --- Database -----------------------------------------------------------
    database_url: str = Field(
        default="sqlite+aiosqlite:///./shortmail.db",
        description="Async SQLAlchemy URL for the mail store",
    )

    # --- Polling protocol ---------------------------------------------------
    ping_interval_ms: int = Field(default=25000, description="Advertised ping interval")
    ping_timeout_ms: int = Field(default=20000, description="Advertised ping timeout")
    session_idle_seconds: float = Field(
        default=3600.0,
        description="Polling sessions idle longer than this are reaped",
    )
    history_limit: int = Field(
        default=50,
        description="Stored mails replayed to a session when it binds a mailbox",
    )

    # --- Retention ----------------------------------------------------------
    retention_days: int = Field(default=7, description="Days a stored mail is kept")
    retention_interval_seconds: float = Field(
        default=3600.0,
        description="Seconds between retention sweeps (0 to disable)",
    )

    # --- SMTP ---------------------------------------------------------------
    smtp_host: str = Field(default="0.0.0.0", description="SMTP bind address")
    smtp_port: int = Field(default=2525, description="SMTP port (0 to disable)")
    smtp_hostname: str | None = Field(
        default=None,
        description="Hostname announced in the SMTP greeting",
    )

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )

    @field_validator("mail_domain", mode="before")
    @classmethod
    def _normalize_domain(cls, value: object) -> str:
        return str(value or "").strip().lower()

    @field_validator("pre_blacklist", mode="before")
    @classmethod
    def _parse_blacklist(cls, value: object) -> list[str]:
        # An unset or blank list falls back to the defaults
        return parse_list(value) or list(DEFAULT_PRE_BLACKLIST)

    @field_validator("ban_send_from_domain", mode="before")
    @classmethod
    def _parse_banned(cls, value: object) -> list[str]:
        return parse_list(value)
