from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .categories import KNOWN_CATEGORIES, is_known_category
from .portal.session import DEFAULT_USER_AGENT


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_EMAIL_SUBJECT = "Deine PDF-Rechnungen von Vodafone"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    # A bare `section:` in YAML parses as None; treat it as "use defaults".
    if override is None:
        return base
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _parse_categories_env(value: str) -> list[str]:
    items = re.split(r"[,\s]+", (value or "").strip())
    return [i.strip().lower() for i in items if i.strip()]


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; `config.yaml` remains an optional override.
    """
    return {
        "vodafone": {
            "user": os.getenv("VODAFONE_USER", ""),
            "pass": os.getenv("VODAFONE_PASS", ""),
        },
        "email": {
            "from": os.getenv("EMAIL_FROM", ""),
            "to": os.getenv("EMAIL_TO", ""),
            "subject": os.getenv("EMAIL_SUBJECT", ""),
        },
        "smtp": {
            "host": os.getenv("SMTP_HOST", ""),
            "port": os.getenv("SMTP_PORT", ""),
            "user": os.getenv("SMTP_USER", ""),
            "pass": os.getenv("SMTP_PASS", ""),
        },
        "browser": {
            "headless": _env_bool("BROWSER_HEADLESS", default=True),
        },
        "categories": _parse_categories_env(os.getenv("INVOICE_CATEGORIES", "")) or list(KNOWN_CATEGORIES.keys()),
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }


class VodafoneConfig(BaseModel):
    """
    MeinVodafone portal login.
    """

    model_config = ConfigDict(populate_by_name=True)

    user: str = ""
    password: str = Field(default="", alias="pass", repr=False)


class EmailConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(default="", alias="from")
    to: str = ""
    subject: str = ""

    @property
    def effective_subject(self) -> str:
        return self.subject or DEFAULT_EMAIL_SUBJECT

    @property
    def recipients(self) -> list[str]:
        return [r.strip() for r in self.to.split(",") if r.strip()]


class SmtpConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host: str = ""
    # Kept as text (YAML users write both `465` and "465"); validated when sending.
    port: str = ""
    user: str = ""
    password: str = Field(default="", alias="pass", repr=False)

    @field_validator("port", mode="before")
    @classmethod
    def _port_as_text(cls, v: object) -> object:
        if v is None:
            return ""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class BrowserConfig(BaseModel):
    headless: bool = True
    disable_gpu: bool = True
    no_sandbox: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    suppress_automation: bool = True

    # Whole run (login through last capture).
    overall_timeout_seconds: float = Field(default=300.0, gt=0)
    settle_seconds: float = Field(default=3.0, ge=0)
    login_settle_seconds: float = Field(default=5.0, ge=0)
    poll_cycles: int = Field(default=15, ge=1)
    poll_interval_seconds: float = Field(default=1.0, ge=0)
    capture_wait_seconds: float = Field(default=5.0, ge=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    vodafone: VodafoneConfig = VodafoneConfig()
    email: EmailConfig = EmailConfig()
    smtp: SmtpConfig = SmtpConfig()
    browser: BrowserConfig = BrowserConfig()
    categories: list[str] = Field(default_factory=lambda: list(KNOWN_CATEGORIES.keys()))
    logging: LoggingConfig = LoggingConfig()

    @field_validator("categories")
    @classmethod
    def _known_categories(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for raw in v:
            key = (raw or "").strip().lower()
            if not key or key in out:
                continue
            if not is_known_category(key):
                raise ValueError(f"unknown category {raw!r} (known: {', '.join(KNOWN_CATEGORIES)})")
            out.append(key)
        return out


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        loaded = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{p}: expected a YAML mapping at the top level")
        raw = _expand_env_vars(loaded)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
