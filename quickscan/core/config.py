"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ScanProfile(str, Enum):
    """Scan breadth selected by the caller."""
    QUICK = "quick"  # probe + heuristics only
    FULL = "full"    # every configured provider


class ProbeConfig(BaseModel):
    """Direct snapshot probe configuration."""
    timeout: float = 5.0
    max_redirects: int = 3
    verify_tls: bool = False
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Keep the probe timeout short enough to bound the fallback path."""
        if not 1.0 <= v <= 30.0:
            raise ValueError(f"Probe timeout must be between 1 and 30 seconds, got {v}")
        return v


class HeaderGradingConfig(BaseModel):
    """HTTP Observatory header grading configuration."""
    enabled: bool = True
    api_base: str = "https://observatory-api.mdn.mozilla.net/api/v2"
    timeout: float = 10.0


class TlsGradingConfig(BaseModel):
    """SSL Labs TLS grading configuration."""
    enabled: bool = True
    api_base: str = "https://api.ssllabs.com/api/v3"
    request_timeout: float = 30.0
    poll_interval: float = 15.0
    max_attempts: int = 12
    max_cache_age_hours: int = 24
    expiry_warning_days: int = 30
    max_total_seconds: float = 180.0

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """Validate the poll attempt budget."""
        if v < 1:
            raise ValueError(f"max_attempts must be at least 1, got {v}")
        return v

    @field_validator("max_total_seconds")
    @classmethod
    def validate_max_total_seconds(cls, v: float) -> float:
        """Validate the overall assessment budget."""
        if v <= 0:
            raise ValueError(f"max_total_seconds must be positive, got {v}")
        return v


class ExposureConfig(BaseModel):
    """Shodan exposure intelligence configuration."""
    enabled: bool = True
    api_base: str = "https://api.shodan.io"
    timeout: float = 10.0
    sensitive_ports: list[int] = Field(default_factory=lambda: [22, 3389])


class LLMConfig(BaseModel):
    """AI-assisted analyzer configuration."""
    enabled: bool = False
    api_base: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout: float = 30.0
    max_tokens: int = 800
    temperature: float = 0.2
    max_findings: int = 10


class APIKeysConfig(BaseModel):
    """API keys configuration for external services.

    Keys are loaded from (in order of priority):
    1. Environment variables (SHODAN_API_KEY, OPENAI_API_KEY)
    2. Config file (~/.quickscan/config.yaml)
    """
    # Use SecretStr to prevent accidental logging
    shodan: Optional[SecretStr] = Field(default=None, repr=False)
    openai: Optional[SecretStr] = Field(default=None, repr=False)

    def get_shodan(self) -> Optional[str]:
        """Get Shodan API key."""
        return self.shodan.get_secret_value() if self.shodan else None

    def get_openai(self) -> Optional[str]:
        """Get OpenAI API key."""
        return self.openai.get_secret_value() if self.openai else None


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="QUICKSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    # General settings
    app_name: str = "QuickScan"
    debug: bool = False
    log_level: LogLevel = LogLevel.WARNING
    log_json: bool = False

    # Scan defaults
    default_profile: ScanProfile = ScanProfile.QUICK
    scan_deadline: Optional[float] = None

    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    header_grading: HeaderGradingConfig = Field(default_factory=HeaderGradingConfig)
    tls_grading: TlsGradingConfig = Field(default_factory=TlsGradingConfig)
    exposure: ExposureConfig = Field(default_factory=ExposureConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    api_keys: APIKeysConfig = Field(default_factory=APIKeysConfig)

    @field_validator("scan_deadline")
    @classmethod
    def validate_scan_deadline(cls, v: Optional[float]) -> Optional[float]:
        """Validate the outer scan deadline."""
        if v is not None and v <= 0:
            raise ValueError(f"scan_deadline must be positive, got {v}")
        return v

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file."""
        import yaml

        if not path.exists():
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save settings to YAML file (API keys are never written)."""
        import yaml

        data = self.model_dump(mode="json", exclude={"api_keys"})

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from config file or environment, with API keys attached.

    Keys already present in the loaded settings win over the key store.
    """
    if config_path and config_path.exists():
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    stored = get_api_keys()
    merged = APIKeysConfig(
        shodan=settings.api_keys.shodan or stored.shodan,
        openai=settings.api_keys.openai or stored.openai,
    )
    return settings.model_copy(update={"api_keys": merged})


# API Key Management
CONFIG_DIR = Path.home() / ".quickscan"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

VALID_KEYS = {"shodan", "openai"}


def _read_config_file() -> dict[str, Any]:
    import yaml

    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}


def get_api_keys() -> APIKeysConfig:
    """
    Load API keys from environment variables and the config file.

    Priority (highest to lowest):
    1. Environment variables (SHODAN_API_KEY, OPENAI_API_KEY)
    2. Config file (~/.quickscan/config.yaml)
    """
    keys_data: dict[str, Any] = {}

    api_keys = _read_config_file().get("api_keys", {})
    if isinstance(api_keys, dict):
        keys_data.update({k: v for k, v in api_keys.items() if k in VALID_KEYS and v})

    env_mappings = {
        "SHODAN_API_KEY": "shodan",
        "OPENAI_API_KEY": "openai",
    }

    for env_var, key_name in env_mappings.items():
        value = os.environ.get(env_var)
        if value:
            keys_data[key_name] = value

    return APIKeysConfig(**keys_data)


def save_api_key(key_name: str, key_value: str) -> None:
    """
    Save an API key to the config file.

    Args:
        key_name: Key name (shodan, openai)
        key_value: The API key value
    """
    import yaml

    if key_name not in VALID_KEYS:
        raise ValueError(f"Invalid key name. Must be one of: {', '.join(sorted(VALID_KEYS))}")

    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    config = _read_config_file()
    config.setdefault("api_keys", {})[key_name] = key_value

    # Save config with restricted permissions
    CONFIG_FILE.touch(mode=0o600, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    CONFIG_FILE.chmod(0o600)


def delete_api_key(key_name: str) -> bool:
    """
    Delete an API key from the config file.

    Args:
        key_name: Key name to delete

    Returns:
        True if key was deleted, False if not found
    """
    import yaml

    config = _read_config_file()
    api_keys = config.get("api_keys", {})
    if key_name not in api_keys:
        return False

    del api_keys[key_name]
    config["api_keys"] = api_keys

    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    return True


def list_api_keys() -> dict[str, bool]:
    """
    List configured API keys (shows which are set, not the values).

    Returns:
        Dict mapping key names to whether they are configured
    """
    keys = get_api_keys()
    return {
        "shodan": keys.get_shodan() is not None,
        "openai": keys.get_openai() is not None,
    }
