import shutil
from datetime import timedelta
from pathlib import Path

import pytest

from fluidwatch.config import ConfigLoadError, load_config
from fluidwatch.config.models import (
    AlertsConfig,
    LogLevel,
    NotifierConfig,
    NotifierKind,
    StorageBackend,
)

REPO_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

ENV_VARS = ["DATABASE_URL", "REDIS_URL", "STORAGE_BACKEND", "MAIL_API_KEY", "LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_dir(tmp_path):
    target = tmp_path / "config"
    shutil.copytree(REPO_CONFIG_DIR, target)
    return target


def test_loads_repository_config():
    config = load_config(REPO_CONFIG_DIR)

    assert config.measurements.rate_window == timedelta(minutes=10)
    assert config.measurements.series.max_records == 2500
    assert config.alerts.constant_flow_threshold == 5
    assert config.alerts.sweep_cooldown == timedelta(minutes=20)
    assert config.service.storage_backend == StorageBackend.POSTGRES
    assert config.service.notifier.kind == NotifierKind.CONSOLE
    assert config.log_level == LogLevel.INFO


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "Redis")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/fw")
    monkeypatch.setenv("MAIL_API_KEY", "xkeysib-123")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config(REPO_CONFIG_DIR)

    assert config.service.storage_backend == StorageBackend.REDIS
    assert config.redis.url == "redis://cache:6379"
    assert config.postgres.url == "postgresql://u:p@db/fw"
    assert config.service.notifier.mail.api_key == "xkeysib-123"
    assert config.log_level == LogLevel.DEBUG


def test_unknown_log_level_falls_back_to_file(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    assert load_config(REPO_CONFIG_DIR).log_level == LogLevel.INFO


def test_unknown_storage_backend(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")

    with pytest.raises(ConfigLoadError):
        load_config(REPO_CONFIG_DIR)


def test_missing_directory(tmp_path):
    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(tmp_path / "nowhere")

    assert exc_info.value.file_path == tmp_path / "nowhere"


def test_missing_file(config_dir):
    (config_dir / "alerts.yaml").unlink()

    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(config_dir)

    assert exc_info.value.file_path == config_dir / "alerts.yaml"


def test_invalid_yaml(config_dir):
    (config_dir / "measurements.yaml").write_text("series: [unclosed\n")

    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(config_dir)

    assert exc_info.value.cause is not None


def test_empty_file(config_dir):
    (config_dir / "service.yaml").write_text("")

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)


def test_lookback_page_must_hold_constant_flow_window(config_dir):
    (config_dir / "alerts.yaml").write_text(
        "detectors:\n  constant_flow_threshold: 8\n  lookback_page_size: 4\n"
    )

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)


def test_dedup_bucket_must_divide_an_hour(config_dir):
    text = (config_dir / "measurements.yaml").read_text()
    (config_dir / "measurements.yaml").write_text(
        text.replace("dedup_bucket_minutes: 2", "dedup_bucket_minutes: 7")
    )

    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(config_dir)

    assert exc_info.value.file_path == config_dir / "measurements.yaml"


def test_email_notifier_without_key(config_dir):
    text = (config_dir / "service.yaml").read_text()
    (config_dir / "service.yaml").write_text(text.replace("kind: console", "kind: email"))

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)


def test_email_notifier_with_key_from_env(config_dir, monkeypatch):
    text = (config_dir / "service.yaml").read_text()
    (config_dir / "service.yaml").write_text(text.replace("kind: console", "kind: email"))
    monkeypatch.setenv("MAIL_API_KEY", "xkeysib-123")

    config = load_config(config_dir)

    assert config.service.notifier.kind == NotifierKind.EMAIL


def test_model_defaults():
    assert AlertsConfig().lookback == timedelta(hours=2)
    assert NotifierConfig().kind == NotifierKind.CONSOLE
