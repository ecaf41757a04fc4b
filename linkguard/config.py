"""Configuration management for LinkGuard."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

import yaml
from dotenv import load_dotenv

from .allowlist import DEFAULT_SAFE_DOMAINS
from .errors import ConfigurationError
from .utils.allowlist import read_allowlist

logger = logging.getLogger(__name__)

# Config attributes that config/tuning.yaml may override
TUNING_KEYS: tuple[str, ...] = (
    "cache_ttl_seconds",
    "hover_risk_threshold",
    "skip_window_seconds",
    "retry_base_delay",
    "retry_max_delay",
    "retry_jitter",
    "classifier_timeout",
)


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Remote classifier
    classifier_url: str = "http://127.0.0.1:5030"
    classifier_timeout: float = 10.0  # per attempt; the check itself never gives up

    # Retry backoff (linear, capped)
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0
    retry_jitter: float = 0.0

    # Decision behaviour
    cache_ttl_seconds: float = 600.0
    hover_risk_threshold: float = 0.9
    skip_window_seconds: float = 15.0
    warning_page_url: str = "extension/warning.html"

    # Render-layer bridge
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 5031

    log_level: str = "INFO"

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Loaded lists
    safe_domains: Set[str] = field(default_factory=lambda: set(DEFAULT_SAFE_DOMAINS))

    def __post_init__(self):
        """Ensure paths exist and load lists."""
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._load_lists()

    def _load_lists(self):
        """Extend the built-in safe domains with config/safe_domains.txt."""
        safe_path = self.config_dir / "safe_domains.txt"
        if safe_path.exists():
            self.safe_domains = set(self.safe_domains) | read_allowlist(safe_path)

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"


def _load_tuning(config_dir: Path) -> dict:
    """Load numeric overrides from config/tuning.yaml (optional)."""
    path = Path(config_dir or ".") / "tuning.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse tuning.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring tuning.yaml: expected a mapping")
        return {}

    overrides: dict = {}
    for key in TUNING_KEYS:
        if key not in data:
            continue
        try:
            overrides[key] = float(data[key])
        except (TypeError, ValueError):
            logger.warning("Ignoring tuning.yaml %s=%r (not a number)", key, data[key])
    return overrides


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    tuning = _load_tuning(config_dir)

    values = dict(
        classifier_url=os.getenv("CLASSIFIER_URL", "http://127.0.0.1:5030"),
        classifier_timeout=_env_float("CLASSIFIER_TIMEOUT", 10.0),
        retry_base_delay=_env_float("RETRY_BASE_DELAY", 1.0),
        retry_max_delay=_env_float("RETRY_MAX_DELAY", 5.0),
        retry_jitter=_env_float("RETRY_JITTER", 0.0),
        cache_ttl_seconds=_env_float("CACHE_TTL_SECONDS", 600.0),
        hover_risk_threshold=_env_float("HOVER_RISK_THRESHOLD", 0.9),
        skip_window_seconds=_env_float("SKIP_WINDOW_SECONDS", 15.0),
    )
    # Environment wins over tuning.yaml only when explicitly set
    for attr, value in tuning.items():
        if os.getenv(attr.upper()) is None:
            values[attr] = value

    return Config(
        **values,
        warning_page_url=os.getenv("WARNING_PAGE_URL", "extension/warning.html"),
        bridge_host=os.getenv("BRIDGE_HOST", "127.0.0.1"),
        bridge_port=int(_env_float("BRIDGE_PORT", 5031)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if not (config.classifier_url or "").strip().lower().startswith(("http://", "https://")):
        errors.append("CLASSIFIER_URL must be an http(s) URL")
    if config.classifier_timeout <= 0:
        errors.append("CLASSIFIER_TIMEOUT must be positive")
    if config.retry_base_delay < 0 or config.retry_max_delay < 0 or config.retry_jitter < 0:
        errors.append("RETRY_* delays must be non-negative")
    if config.cache_ttl_seconds <= 0:
        errors.append("CACHE_TTL_SECONDS must be positive")
    if not 0.0 <= config.hover_risk_threshold <= 1.0:
        errors.append("HOVER_RISK_THRESHOLD must be between 0 and 1")
    if config.skip_window_seconds < 0:
        errors.append("SKIP_WINDOW_SECONDS must be non-negative")
    if not 0 < config.bridge_port < 65536:
        errors.append("BRIDGE_PORT must be a valid TCP port")
    if not (config.warning_page_url or "").strip():
        errors.append("WARNING_PAGE_URL is required")
    return errors
