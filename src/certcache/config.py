"""Configuration management for certcache.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/certcache/config.toml
- Linux: ~/.config/certcache/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\certcache\\config.toml

Credentials are never stored here; see ``get_secret``.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import tomllib
import tomli_w


@dataclass
class CacheConfig:
    """Configuration for the certificate cache.

    Attributes:
        bucket: Bucket holding the cache entries
        owner: Account ID the bucket must belong to ("" skips the check)
        endpoint_url: Endpoint for S3-compatible services ("" for AWS)
        region: Bucket region ("" for the boto3 default)
        max_attempts: Attempts per cache operation (1 disables retries)
        base_delay: Retry backoff base in seconds
        max_delay: Retry backoff cap in seconds
        log_dir: Directory for certcache.log
        log_level: Log level name
    """

    # Bucket
    bucket: str = "certcache"
    owner: str = ""

    # S3 endpoint
    endpoint_url: str = ""
    region: str = ""

    # Retry
    max_attempts: int = 1
    base_delay: float = 0.5
    max_delay: float = 5.0

    # Logging
    log_dir: Path = field(default_factory=lambda: get_default_log_dir())
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Optional[Path] = None, env: bool = True) -> "CacheConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)
            env: Apply CERTCACHE_* environment overrides on top of the file

        Returns:
            CacheConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file is not valid TOML or holds invalid values
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        if "bucket" in data:
            config.bucket = data["bucket"].get("name", config.bucket)
            config.owner = data["bucket"].get("owner", config.owner)

        if "s3" in data:
            config.endpoint_url = data["s3"].get("endpoint_url", config.endpoint_url)
            config.region = data["s3"].get("region", config.region)

        if "retry" in data:
            retry = data["retry"]
            config.max_attempts = int(retry.get("max_attempts", config.max_attempts))
            config.base_delay = float(retry.get("base_delay", config.base_delay))
            config.max_delay = float(retry.get("max_delay", config.max_delay))

        if "logging" in data:
            log_dir = data["logging"].get("dir")
            if log_dir:
                config.log_dir = Path(log_dir).expanduser()
            config.log_level = data["logging"].get("level", config.log_level)

        config.validate()
        if env:
            config.apply_env()
        return config

    def validate(self) -> None:
        """Check values that would otherwise fail later, at first use.

        Raises:
            ValueError: If a retry setting or the log level is invalid
        """
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must not be negative")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.log_level = str(self.log_level).upper()

    def apply_env(self) -> None:
        """Override values from CERTCACHE_* environment variables."""
        for name in ("bucket", "owner", "endpoint_url", "region"):
            value = os.environ.get(get_env_var_name(name))
            if value:
                setattr(self, name, value)

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "bucket": {"name": self.bucket, "owner": self.owner},
            "s3": {"endpoint_url": self.endpoint_url, "region": self.region},
            "retry": {
                "max_attempts": self.max_attempts,
                "base_delay": self.base_delay,
                "max_delay": self.max_delay,
            },
            "logging": {"dir": str(self.log_dir), "level": self.log_level},
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a configuration value by key.

        Args:
            key: Attribute name (e.g., "bucket")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if not hasattr(self, key):
            return default
        value = getattr(self, key)
        if isinstance(value, Path):
            return str(value)
        return value

    def set(self, key: str, value: str) -> None:
        """Set a configuration value by key, preserving the field's type.

        Raises:
            ValueError: If the key is unknown, the value doesn't convert,
                or the result fails validation
        """
        if not hasattr(self, key) or key.startswith("_"):
            raise ValueError(f"Invalid config key: {key}")

        current = getattr(self, key)
        if isinstance(current, bool):
            new_value = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            new_value = int(value)
        elif isinstance(current, float):
            new_value = float(value)
        elif isinstance(current, Path):
            new_value = Path(value).expanduser()
        elif isinstance(current, str):
            new_value = value
        else:
            raise ValueError(f"Invalid config key: {key}")

        setattr(self, key, new_value)
        try:
            self.validate()
        except ValueError:
            setattr(self, key, current)
            raise


def get_config_dir() -> Path:
    """Get the platform-specific config directory.

    Returns:
        Path to the config directory for certcache.
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "certcache"
        return Path.home() / "AppData" / "Roaming" / "certcache"

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "certcache"
    return Path.home() / ".config" / "certcache"


def get_config_path() -> Path:
    return get_config_dir() / "config.toml"


def get_default_log_dir() -> Path:
    return get_config_dir() / "logs"


def ensure_config_exists(env: bool = True) -> CacheConfig:
    """Ensure config file exists, creating default if needed.

    Args:
        env: Apply CERTCACHE_* environment overrides to the returned config

    Returns:
        CacheConfig instance
    """
    config_path = get_config_path()

    if config_path.exists():
        return CacheConfig.load(config_path, env=env)

    config = CacheConfig()
    config.save(config_path)
    if env:
        config.apply_env()
    return config


def get_env_var_name(key: str) -> str:
    """Get the environment variable name for a config key.

    Args:
        key: Configuration key (e.g., "endpoint_url")

    Returns:
        Environment variable name (e.g., "CERTCACHE_ENDPOINT_URL")
    """
    return f"CERTCACHE_{key.upper().replace('.', '_')}"


def get_secret(key: str) -> Optional[str]:
    """Get a secret value from environment variable.

    Args:
        key: Secret key (e.g., "access_key_id")

    Returns:
        Secret value or None
    """
    return os.environ.get(get_env_var_name(key))
