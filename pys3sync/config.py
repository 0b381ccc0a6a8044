"""Configuration management for pys3sync.

Settings are read from environment variables first and from
``~/.config/pys3sync/config.json`` second.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import S3SyncConfigError
from .models import UserRole
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_BYTES_PER_SECOND,
    DEFAULT_MAX_CONCURRENT_TRANSFERS,
)

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "pys3sync"
CONFIG_FILENAME = "config.json"

# key -> environment variables, first match wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "bucket": ("PYS3SYNC_BUCKET",),
    "region": ("AWS_REGION", "AWS_DEFAULT_REGION"),
    "endpoint_url": ("PYS3SYNC_ENDPOINT_URL",),
    "profile": ("AWS_PROFILE",),
    "access_key": ("AWS_ACCESS_KEY_ID",),
    "secret_key": ("AWS_SECRET_ACCESS_KEY",),
    "role": ("PYS3SYNC_ROLE",),
    "max_bytes_per_second": ("PYS3SYNC_MAX_BYTES_PER_SECOND",),
    "max_concurrent_transfers": ("PYS3SYNC_MAX_CONCURRENT_TRANSFERS",),
    "chunk_size": ("PYS3SYNC_CHUNK_SIZE",),
    "state_dir": ("PYS3SYNC_STATE_DIR",),
}


class Config:
    """Application configuration backed by the environment and a JSON file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding config.json. Defaults to
                       ~/.config/pys3sync/
        """
        self.config_dir = config_dir or CONFIG_DIR

    def get_config_path(self) -> Path:
        """Path of the JSON configuration file."""
        return self.config_dir / CONFIG_FILENAME

    def _load_file(self) -> dict[str, Any]:
        path = self.get_config_path()
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise S3SyncConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise S3SyncConfigError(f"Config file {path} must contain an object")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a setting from the environment, then the config file."""
        for env_var in ENV_VARS.get(key, ()):
            value = os.environ.get(env_var)
            if value:
                return value
        value = self._load_file().get(key)
        return default if value in (None, "") else value

    def _get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise S3SyncConfigError(f"{key} must be an integer, got {value!r}") from e

    def save(self, **values: Any) -> None:
        """Persist settings to the config file, merging with existing ones."""
        data = self._load_file()
        data.update({k: v for k, v in values.items() if v is not None})
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # The file may hold credentials
        path.chmod(0o600)
        logger.debug(f"Saved configuration to {path}")

    def is_configured(self) -> bool:
        return bool(self.bucket)

    @property
    def bucket(self) -> Optional[str]:
        return self.get("bucket")

    @property
    def region(self) -> Optional[str]:
        return self.get("region")

    @property
    def endpoint_url(self) -> Optional[str]:
        return self.get("endpoint_url")

    @property
    def profile(self) -> Optional[str]:
        return self.get("profile")

    @property
    def access_key(self) -> Optional[str]:
        return self.get("access_key")

    @property
    def secret_key(self) -> Optional[str]:
        return self.get("secret_key")

    @property
    def role(self) -> UserRole:
        value = self.get("role", UserRole.USER.value)
        try:
            return UserRole.parse(str(value))
        except ValueError as e:
            raise S3SyncConfigError(str(e)) from e

    @property
    def max_bytes_per_second(self) -> int:
        return self._get_int("max_bytes_per_second", DEFAULT_MAX_BYTES_PER_SECOND)

    @property
    def max_concurrent_transfers(self) -> int:
        return self._get_int(
            "max_concurrent_transfers", DEFAULT_MAX_CONCURRENT_TRANSFERS
        )

    @property
    def chunk_size(self) -> int:
        return self._get_int("chunk_size", DEFAULT_CHUNK_SIZE)

    @property
    def state_dir(self) -> Path:
        value = self.get("state_dir")
        if value:
            return Path(value).expanduser()
        return self.config_dir / "sync_state"


config = Config()
