import pytest

from linkguard.config import Config, load_config, validate_config
from linkguard.errors import ConfigurationError

ENV_VARS = (
    "CLASSIFIER_URL",
    "CLASSIFIER_TIMEOUT",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "RETRY_JITTER",
    "CACHE_TTL_SECONDS",
    "HOVER_RISK_THRESHOLD",
    "SKIP_WINDOW_SECONDS",
    "WARNING_PAGE_URL",
    "BRIDGE_HOST",
    "BRIDGE_PORT",
    "LOG_LEVEL",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    return config_dir


def test_defaults(env):
    config = load_config()

    assert config.classifier_url == "http://127.0.0.1:5030"
    assert config.cache_ttl_seconds == 600.0
    assert config.hover_risk_threshold == 0.9
    assert config.skip_window_seconds == 15.0
    assert config.retry_base_delay == 1.0
    assert config.retry_max_delay == 5.0
    assert config.bridge_port == 5031
    assert config.safe_domains == {"github.com", "google.com"}
    assert config.data_dir.exists()
    assert validate_config(config) == []


def test_environment_overrides(env, monkeypatch):
    monkeypatch.setenv("CLASSIFIER_URL", "https://classifier.internal")
    monkeypatch.setenv("HOVER_RISK_THRESHOLD", "0.75")
    monkeypatch.setenv("BRIDGE_PORT", "6000")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config()

    assert config.classifier_url == "https://classifier.internal"
    assert config.hover_risk_threshold == 0.75
    assert config.bridge_port == 6000
    assert config.log_level == "DEBUG"


def test_tuning_yaml_applies_unless_env_set(env, monkeypatch):
    (env / "tuning.yaml").write_text(
        "cache_ttl_seconds: 120\nskip_window_seconds: 30\nretry_max_delay: oops\n"
    )
    monkeypatch.setenv("SKIP_WINDOW_SECONDS", "10")

    config = load_config()

    assert config.cache_ttl_seconds == 120.0
    assert config.skip_window_seconds == 10.0
    assert config.retry_max_delay == 5.0


def test_safe_domains_file_extends_builtins(env):
    (env / "safe_domains.txt").write_text("# extra\nexample.org\n")

    config = load_config()

    assert config.safe_domains == {"github.com", "google.com", "example.org"}


def test_bad_number_raises(env, monkeypatch):
    monkeypatch.setenv("CACHE_TTL_SECONDS", "ten minutes")

    with pytest.raises(ConfigurationError):
        load_config()


def test_validate_config_reports_errors(tmp_path):
    config = Config(
        classifier_url="ftp://nope",
        hover_risk_threshold=1.5,
        cache_ttl_seconds=0,
        bridge_port=0,
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )

    errors = validate_config(config)

    assert "CLASSIFIER_URL must be an http(s) URL" in errors
    assert "HOVER_RISK_THRESHOLD must be between 0 and 1" in errors
    assert "CACHE_TTL_SECONDS must be positive" in errors
    assert "BRIDGE_PORT must be a valid TCP port" in errors
