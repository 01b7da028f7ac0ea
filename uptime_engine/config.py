"""Configuration management with Pydantic settings."""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator
import yaml


class EngineConfig(BaseModel):
    """Probe, incident and scheduling settings."""
    default_timeout_ms: int = 30000
    consecutive_failures_threshold: int = 3
    max_response_body_bytes: int = 1024
    region: str = "us-east-1"
    reconcile_interval_seconds: int = 60
    group_stagger_seconds: float = 1.0
    max_concurrent_checks: int = 100
    shutdown_grace_seconds: float = 30.0

    @field_validator('default_timeout_ms')
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('default_timeout_ms must be at least 1')
        return v

    @field_validator('consecutive_failures_threshold')
    @classmethod
    def threshold_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('consecutive_failures_threshold must be at least 1')
        return v

    @field_validator('max_response_body_bytes')
    @classmethod
    def body_budget_must_be_non_negative(cls, v):
        if v < 0:
            raise ValueError('max_response_body_bytes must be non-negative')
        return v

    @field_validator('reconcile_interval_seconds', 'max_concurrent_checks')
    @classmethod
    def must_be_positive(cls, v, info):
        if v < 1:
            raise ValueError(f'{info.field_name} must be at least 1')
        return v

    @field_validator('group_stagger_seconds', 'shutdown_grace_seconds')
    @classmethod
    def must_be_non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f'{info.field_name} must be non-negative')
        return v


class AlertsConfig(BaseModel):
    """Global credentials and transport settings for alert channels."""
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Uptime Engine <alerts@uptime-engine.dev>"
    webhook_user_agent: str = "uptime-engine-webhook/1.0"
    channel_timeout_seconds: float = 10.0

    @field_validator('channel_timeout_seconds')
    @classmethod
    def channel_timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('channel_timeout_seconds must be positive')
        return v


class DatabaseConfig(BaseModel):
    """Database configuration."""
    type: str = "sqlite"
    url: str = "sqlite+aiosqlite:///./data/uptime_engine.db"
    create_tables: bool = True

    @field_validator('type')
    @classmethod
    def database_type_must_be_supported(cls, v):
        supported = ['sqlite', 'postgresql']
        if v not in supported:
            raise ValueError(f'database type must be one of {supported}')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = "logs/uptime_engine.log"
    console: bool = True

    @field_validator('level')
    @classmethod
    def log_level_must_be_valid(cls, v):
        if isinstance(v, str):
            v = v.upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v not in valid_levels:
            raise ValueError(f'log level must be one of {valid_levels}')
        return v


class PrometheusConfig(BaseModel):
    """Prometheus metrics configuration."""
    enabled: bool = True
    path: str = "/metrics"


class APIConfig(BaseModel):
    """Operational HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080

    @field_validator('port')
    @classmethod
    def port_must_be_valid(cls, v):
        if not (1 <= v <= 65535):
            raise ValueError('port must be between 1 and 65535')
        return v


class Config(BaseModel):
    """Main configuration class."""
    engine: EngineConfig = Field(default_factory=EngineConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    prometheus: PrometheusConfig = Field(default_factory=PrometheusConfig)
    api: APIConfig = Field(default_factory=APIConfig)


def _load_dotenv(path: str = ".env") -> None:
    """Copy KEY=VALUE lines from a .env file into the process environment."""
    if not os.path.exists(path):
        return
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ[key.strip()] = value.strip().strip('"').strip("'")


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


def load_config() -> Config:
    """
    Load configuration from YAML file and environment variables.

    Environment variables win over the YAML file. Credentials for the chat
    bot and the mail provider are normally supplied only through the
    environment.

    Returns:
        Config: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist outside development
        ValueError: If config file or resulting configuration is invalid
    """
    _load_dotenv()

    app_env = os.getenv("APP_ENV", "development")
    config_path = os.getenv("CONFIG_PATH", "config/config.yaml")

    # Load from YAML file
    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {config_path}: {e}")
    elif app_env != "development":
        raise FileNotFoundError(f"Config file not found: {config_path}")

    # Environment overrides are applied to the raw data so that validators
    # see the final values
    engine_data = config_data.setdefault("engine", {}) or {}
    config_data["engine"] = engine_data
    for env_name, key in (
        ("DEFAULT_TIMEOUT_MS", "default_timeout_ms"),
        ("CONSECUTIVE_FAILURES_THRESHOLD", "consecutive_failures_threshold"),
        ("MAX_RESPONSE_BODY_BYTES", "max_response_body_bytes"),
    ):
        value = _env_int(env_name)
        if value is not None:
            engine_data[key] = value

    region = os.getenv("DEFAULT_REGION")
    if region:
        engine_data["region"] = region

    alerts_data = config_data.setdefault("alerts", {}) or {}
    config_data["alerts"] = alerts_data
    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    if telegram_bot_token:
        alerts_data["telegram_bot_token"] = telegram_bot_token

    resend_api_key = os.getenv("RESEND_API_KEY")
    if resend_api_key:
        alerts_data["resend_api_key"] = resend_api_key

    try:
        config = Config(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        config.database.url = database_url
        config.database.type = "postgresql" if database_url.startswith("postgresql") else "sqlite"

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config
