"""Configuration management for the Magento Admin MCP server."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)
    instructions: str = Field(
        default=(
            "Adobe Commerce (Magento 2) administration tools. Call auth_login first. "
            "Bulk changes are two-phase: call a prepare_* tool, review the plan, then "
            "call the matching commit_* tool with confirm=true and a reason."
        )
    )
    transport_mode: Literal["stdio", "http"] = Field(default="stdio")
    default_environment: str = Field(default="staging")
    session_id: str = Field(
        default="default",
        description="Logical session used by single-user transports.",
    )
    http_allowed_origins: tuple[str, ...] = Field(default=())
    http_enable_cors: bool = Field(default=False)


class MagentoSettings(BaseModel):
    """Fallback connection details used by ``auth.login`` when params omit them."""

    base_url: str | None = Field(default=None)
    request_timeout_seconds: float = Field(default=30.0, ge=0.1, le=600)
    admin_username: str | None = Field(default=None)
    admin_password: SecretStr | None = Field(default=None)
    integration_token: SecretStr | None = Field(default=None)
    oauth_consumer_key: SecretStr | None = Field(default=None)
    oauth_consumer_secret: SecretStr | None = Field(default=None)
    oauth_token: SecretStr | None = Field(default=None)
    oauth_token_secret: SecretStr | None = Field(default=None)

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().rstrip("/") or None


class GuardrailSettings(BaseModel):
    max_records_per_bulk_commit: int = Field(default=500, ge=1)
    max_coupon_qty_per_generation: int = Field(default=1000, ge=1)
    price_change_threshold_percent: float = Field(default=50, ge=0)
    max_discount_percent: float = Field(default=50, ge=0, le=100)
    require_confirmation: bool = Field(
        default=True,
        description="Require confirm=true and a reason for risky and critical actions.",
    )


class PlanSettings(BaseModel):
    expiry_minutes: int = Field(default=30, ge=1, le=24 * 60)
    sample_diff_limit: int = Field(default=5, ge=0, le=100)
    large_bulk_warning_threshold: int = Field(default=100, ge=1)
    resolve_page_size: int = Field(default=2000, ge=1, le=10_000)


class StorageSettings(BaseModel):
    audit_log_path: str = Field(default="./data/audit.jsonl")
    idempotency_path: str = Field(default="./data/idempotency.json")


class PolicySettings(BaseModel):
    path: str = Field(default="./policy.yaml")


class CacheSettings(BaseModel):
    purge_rate_limit_per_minute: int = Field(default=10, ge=1)
    fastly_service_id: str | None = Field(default=None)
    fastly_api_token: SecretStr | None = Field(default=None)

    @property
    def fastly_configured(self) -> bool:
        return bool(self.fastly_service_id and self.fastly_api_token)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    magento: MagentoSettings = Field(default_factory=MagentoSettings)
    guardrails: GuardrailSettings = Field(default_factory=GuardrailSettings)
    plans: PlanSettings = Field(default_factory=PlanSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    policy: PolicySettings = Field(default_factory=PolicySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)


ENV_KEYS = {
    "host": "MCP_HOST",
    "port": "MCP_PORT",
    "instructions": "MCP_INSTRUCTIONS",
    "transport_mode": "TRANSPORT_MODE",
    "default_env": "MCP_DEFAULT_ENV",
    "http_allowed_origins": "HTTP_ALLOWED_ORIGINS",
    "http_enable_cors": "HTTP_ENABLE_CORS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "base_url": "MAGENTO_BASE_URL",
    "request_timeout": "MAGENTO_REQUEST_TIMEOUT_SECONDS",
    "admin_username": "MAGENTO_ADMIN_USERNAME",
    "admin_password": "MAGENTO_ADMIN_PASSWORD",
    "integration_token": "MAGENTO_INTEGRATION_TOKEN",
    "oauth_consumer_key": "MAGENTO_OAUTH_CONSUMER_KEY",
    "oauth_consumer_secret": "MAGENTO_OAUTH_CONSUMER_SECRET",
    "oauth_token": "MAGENTO_OAUTH_TOKEN",
    "oauth_token_secret": "MAGENTO_OAUTH_TOKEN_SECRET",
    "max_bulk": "MCP_MAX_SKUS_PER_BULK",
    "max_coupon_qty": "MCP_MAX_COUPON_QTY",
    "price_threshold": "MCP_PRICE_THRESHOLD_PCT",
    "max_discount": "MCP_MAX_DISCOUNT_PCT",
    "require_confirmation": "MCP_TIER2_CONFIRM",
    "plan_expiry": "MCP_PLAN_EXPIRY_MIN",
    "cache_rate_limit": "MCP_CACHE_RATE_LIMIT",
    "audit_log_path": "MCP_AUDIT_LOG_PATH",
    "idempotency_path": "MCP_IDEMPOTENCY_PATH",
    "policy_path": "POLICY_PATH",
    "fastly_service_id": "FASTLY_SERVICE_ID",
    "fastly_api_token": "FASTLY_API_TOKEN",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return value


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "instructions": os.getenv(ENV_KEYS["instructions"], ServerSettings().instructions),
            "transport_mode": os.getenv(
                ENV_KEYS["transport_mode"], ServerSettings().transport_mode
            ),
            "default_environment": os.getenv(
                ENV_KEYS["default_env"], ServerSettings().default_environment
            ),
            "http_allowed_origins": tuple(_split_csv(os.getenv(ENV_KEYS["http_allowed_origins"]))),
            "http_enable_cors": _env_bool(ENV_KEYS["http_enable_cors"], False),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "magento": {
            "base_url": _env_str(ENV_KEYS["base_url"]),
            "request_timeout_seconds": _env_float(
                ENV_KEYS["request_timeout"],
                MagentoSettings().request_timeout_seconds,
            ),
            "admin_username": _env_str(ENV_KEYS["admin_username"]),
            "admin_password": _env_str(ENV_KEYS["admin_password"]),
            "integration_token": _env_str(ENV_KEYS["integration_token"]),
            "oauth_consumer_key": _env_str(ENV_KEYS["oauth_consumer_key"]),
            "oauth_consumer_secret": _env_str(ENV_KEYS["oauth_consumer_secret"]),
            "oauth_token": _env_str(ENV_KEYS["oauth_token"]),
            "oauth_token_secret": _env_str(ENV_KEYS["oauth_token_secret"]),
        },
        "guardrails": {
            "max_records_per_bulk_commit": _env_int(
                ENV_KEYS["max_bulk"],
                GuardrailSettings().max_records_per_bulk_commit,
            ),
            "max_coupon_qty_per_generation": _env_int(
                ENV_KEYS["max_coupon_qty"],
                GuardrailSettings().max_coupon_qty_per_generation,
            ),
            "price_change_threshold_percent": _env_float(
                ENV_KEYS["price_threshold"],
                GuardrailSettings().price_change_threshold_percent,
            ),
            "max_discount_percent": _env_float(
                ENV_KEYS["max_discount"],
                GuardrailSettings().max_discount_percent,
            ),
            "require_confirmation": _env_bool(
                ENV_KEYS["require_confirmation"],
                GuardrailSettings().require_confirmation,
            ),
        },
        "plans": {
            "expiry_minutes": _env_int(
                ENV_KEYS["plan_expiry"],
                PlanSettings().expiry_minutes,
            ),
        },
        "storage": {
            "audit_log_path": _resolve_path(
                os.getenv(ENV_KEYS["audit_log_path"], StorageSettings().audit_log_path)
            ),
            "idempotency_path": _resolve_path(
                os.getenv(ENV_KEYS["idempotency_path"], StorageSettings().idempotency_path)
            ),
        },
        "policy": {
            "path": _resolve_path(os.getenv(ENV_KEYS["policy_path"], PolicySettings().path)),
        },
        "cache": {
            "purge_rate_limit_per_minute": _env_int(
                ENV_KEYS["cache_rate_limit"],
                CacheSettings().purge_rate_limit_per_minute,
            ),
            "fastly_service_id": _env_str(ENV_KEYS["fastly_service_id"]),
            "fastly_api_token": _env_str(ENV_KEYS["fastly_api_token"]),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    Path(settings.storage.audit_log_path).parent.mkdir(parents=True, exist_ok=True)
    Path(settings.storage.idempotency_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
