import pytest
import yaml
from pydantic import ValidationError

from tenderwatch.core.config import (
    AppConfig,
    ConfigError,
    dump_default_config,
    load_app_config,
    validate_app_config_file,
)
from tenderwatch.core.config.models import EmailBackend, EmailConfig, LockBackend


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "FRONTEND_URL", "SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD", "EMAIL_FROM"):
        monkeypatch.delenv(name, raising=False)


def write(tmp_path, text):
    path = tmp_path / "app.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path):
    config = load_app_config(tmp_path / "absent.yaml")

    assert config.scheduler.interval_minutes == 120
    assert config.scheduler.lock_backend == LockBackend.MEMORY
    assert config.dispatch.batch_size == 200
    assert config.dispatch.display_limit == 10
    assert config.matcher.lookback_minutes == 150
    assert config.email.backend == EmailBackend.LOG


def test_yaml_values_and_env_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("ALERT_FROM", "tenders@acme.example")
    path = write(
        tmp_path,
        """
scheduler:
  interval_minutes: 30
  pages: 2
email:
  from_address: ${ALERT_FROM}
  smtp_host: ${RELAY_HOST:-mail.internal}
""",
    )

    config = load_app_config(path)

    assert config.scheduler.interval_minutes == 30
    assert config.scheduler.pages == 2
    assert config.email.from_address == "tenders@acme.example"
    assert config.email.smtp_host == "mail.internal"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", "https://tenders.acme.example/")
    monkeypatch.setenv("SMTP_PORT", "2525")
    path = write(tmp_path, "dispatch:\n  batch_size: 50\n")

    config = load_app_config(path)

    assert config.dispatch.frontend_url == "https://tenders.acme.example"
    assert config.dispatch.batch_size == 50
    assert config.email.smtp_port == 2525


def test_invalid_yaml_is_a_config_error(tmp_path):
    path = write(tmp_path, "scheduler: [unclosed\n")
    with pytest.raises(ConfigError):
        load_app_config(path)


def test_invalid_values_are_a_config_error(tmp_path):
    path = write(tmp_path, "scheduler:\n  interval_minutes: 0\n")
    with pytest.raises(ConfigError) as exc_info:
        load_app_config(path)
    assert "interval_minutes" in exc_info.value.details


def test_ssl_and_starttls_are_exclusive():
    with pytest.raises(ValidationError):
        EmailConfig(use_tls=True, use_ssl=True)
    assert EmailConfig(use_tls=False, use_ssl=True, smtp_port=465).use_ssl


def test_validate_app_config_file(tmp_path):
    assert validate_app_config_file(tmp_path / "absent.yaml") == [f"File not found: {tmp_path / 'absent.yaml'}"]

    bad = write(tmp_path, "logging:\n  level: CHATTY\n")
    errors = validate_app_config_file(bad)
    assert len(errors) == 1
    assert errors[0].startswith("logging.level")


def test_default_config_round_trips(tmp_path):
    text = dump_default_config()
    assert "${SMTP_PASSWORD:-}" in text

    data = yaml.safe_load(text)
    assert AppConfig.model_validate(data).scheduler.timezone == "Asia/Kolkata"

    path = write(tmp_path, text)
    assert validate_app_config_file(path) == []
