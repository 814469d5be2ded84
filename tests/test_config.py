"""Tests for the YAML configuration manager."""

import pytest

from config import PROJECT_ROOT, ConfigurationManager, get_config


@pytest.fixture
def fresh_config():
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


def test_default_settings_are_loaded(fresh_config):
    assert get_config("queue.max_attempts") == 3
    assert get_config("review.confidence_threshold") == 80
    assert get_config("classification.companies")[0]["company"] == "SOFIANE_TRANSPORT"


def test_missing_key_returns_default(fresh_config):
    assert get_config("queue.no_such_key", 7) == 7
    assert get_config("queue.max_attempts.deeper", "x") == "x"


def test_custom_file_and_relative_paths(fresh_config, tmp_path):
    settings = tmp_path / "settings.yaml"
    settings.write_text("paths:\n  upload_dir: uploads\nqueue:\n  max_attempts: 5\n  backoff_base:\n")

    ConfigurationManager(str(settings))

    assert get_config("queue.max_attempts") == 5
    assert get_config("queue.backoff_base", 2) == 2
    assert get_config("paths.upload_dir") == str(PROJECT_ROOT / "uploads")


def test_environment_overrides_file(fresh_config, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://intake@db/invoices")

    assert get_config("database.url") == "postgresql://intake@db/invoices"


def test_missing_file_raises(fresh_config, tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigurationManager(str(tmp_path / "absent.yaml"))
