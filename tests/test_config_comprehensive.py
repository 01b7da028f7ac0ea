"""Comprehensive tests for configuration loading."""

import pytest

from uptime_engine.config import Config, EngineConfig, AlertsConfig, load_config


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate configuration from the host environment."""
    for name in (
        "CONFIG_PATH", "APP_ENV", "DEFAULT_TIMEOUT_MS", "CONSECUTIVE_FAILURES_THRESHOLD",
        "MAX_RESPONSE_BODY_BYTES", "DEFAULT_REGION", "TELEGRAM_BOT_TOKEN",
        "RESEND_API_KEY", "DATABASE_URL", "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "config.yaml"))
    return tmp_path


def test_defaults():
    config = Config()

    assert config.engine.default_timeout_ms == 30000
    assert config.engine.consecutive_failures_threshold == 3
    assert config.engine.max_response_body_bytes == 1024
    assert config.engine.region == "us-east-1"
    assert config.engine.reconcile_interval_seconds == 60
    assert config.engine.shutdown_grace_seconds == 30.0
    assert config.alerts.channel_timeout_seconds == 10.0
    assert config.alerts.webhook_user_agent == "uptime-engine-webhook/1.0"


@pytest.mark.parametrize("field,value", [
    ("default_timeout_ms", 0),
    ("consecutive_failures_threshold", 0),
    ("max_response_body_bytes", -1),
    ("reconcile_interval_seconds", 0),
    ("group_stagger_seconds", -0.5),
    ("shutdown_grace_seconds", -1),
])
def test_engine_validation(field, value):
    with pytest.raises(ValueError):
        EngineConfig(**{field: value})


def test_channel_timeout_validation():
    with pytest.raises(ValueError):
        AlertsConfig(channel_timeout_seconds=0)


def test_missing_file_in_development(clean_env):
    config = load_config()

    assert config.engine.consecutive_failures_threshold == 3


def test_missing_file_outside_development(clean_env, monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")

    with pytest.raises(FileNotFoundError):
        load_config()


def test_yaml_values(clean_env):
    (clean_env / "config.yaml").write_text(
        "engine:\n"
        "  consecutive_failures_threshold: 5\n"
        "  region: ap-south-1\n"
        "alerts:\n"
        "  channel_timeout_seconds: 3\n"
    )

    config = load_config()

    assert config.engine.consecutive_failures_threshold == 5
    assert config.engine.region == "ap-south-1"
    assert config.alerts.channel_timeout_seconds == 3


def test_environment_overrides(clean_env, monkeypatch):
    (clean_env / "config.yaml").write_text("engine:\n  default_timeout_ms: 1000\n")
    monkeypatch.setenv("DEFAULT_TIMEOUT_MS", "2500")
    monkeypatch.setenv("CONSECUTIVE_FAILURES_THRESHOLD", "4")
    monkeypatch.setenv("MAX_RESPONSE_BODY_BYTES", "64")
    monkeypatch.setenv("DEFAULT_REGION", "eu-central-1")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "bot-token")
    monkeypatch.setenv("RESEND_API_KEY", "re_key")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config()

    assert config.engine.default_timeout_ms == 2500
    assert config.engine.consecutive_failures_threshold == 4
    assert config.engine.max_response_body_bytes == 64
    assert config.engine.region == "eu-central-1"
    assert config.alerts.telegram_bot_token == "bot-token"
    assert config.alerts.resend_api_key == "re_key"
    assert config.logging.level == "DEBUG"


def test_invalid_environment_value(clean_env, monkeypatch):
    monkeypatch.setenv("CONSECUTIVE_FAILURES_THRESHOLD", "three")

    with pytest.raises(ValueError, match="CONSECUTIVE_FAILURES_THRESHOLD"):
        load_config()


def test_environment_value_is_validated(clean_env, monkeypatch):
    monkeypatch.setenv("CONSECUTIVE_FAILURES_THRESHOLD", "0")

    with pytest.raises(ValueError, match="Configuration validation failed"):
        load_config()


def test_database_url_override(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/uptime")

    config = load_config()

    assert config.database.url == "postgresql+asyncpg://u:p@db/uptime"
    assert config.database.type == "postgresql"


def test_invalid_yaml(clean_env):
    (clean_env / "config.yaml").write_text("engine: [unclosed\n")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config()


def test_dotenv_loaded(clean_env, monkeypatch):
    monkeypatch.setenv("DEFAULT_REGION", "")
    (clean_env / ".env").write_text("DEFAULT_REGION=sa-east-1\n")

    config = load_config()

    assert config.engine.region == "sa-east-1"
