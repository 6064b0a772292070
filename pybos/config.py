"""Configuration management for pybos."""

import os
from pathlib import Path
from typing import Optional

from .utils import DEFAULT_ENDPOINT, DEFAULT_SYNC_PROCESSING_NUM


class Config:
    """Configuration manager.

    Values come from the environment first, then from a ``key=value`` file
    at ``~/.config/pybos/config``.
    """

    ENV_ACCESS_KEY = "BCE_ACCESS_KEY_ID"
    ENV_SECRET_KEY = "BCE_SECRET_ACCESS_KEY"
    ENV_ENDPOINT = "BOS_ENDPOINT"
    ENV_SYNC_PROCESSING_NUM = "BOS_SYNC_PROCESSING_NUM"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or Path.home() / ".config" / "pybos"
        self.config_file = self.config_dir / "config"

    def _read_file(self) -> dict[str, str]:
        """Read the config file, returning an empty dict if it is absent."""
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values
        with open(self.config_file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip()
        return values

    def _get(self, env_name: str) -> Optional[str]:
        value = os.environ.get(env_name)
        if value:
            return value
        return self._read_file().get(env_name)

    @property
    def access_key_id(self) -> Optional[str]:
        return self._get(self.ENV_ACCESS_KEY)

    @property
    def secret_access_key(self) -> Optional[str]:
        return self._get(self.ENV_SECRET_KEY)

    @property
    def endpoint(self) -> str:
        return self._get(self.ENV_ENDPOINT) or DEFAULT_ENDPOINT

    @property
    def sync_processing_num(self) -> int:
        """Default sync concurrency, used when ``--concurrency`` is 0."""
        value = self._get(self.ENV_SYNC_PROCESSING_NUM)
        if value and value.isdigit() and int(value) > 0:
            return int(value)
        return DEFAULT_SYNC_PROCESSING_NUM

    def is_configured(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def save_credentials(
        self,
        access_key_id: str,
        secret_access_key: str,
        endpoint: Optional[str] = None,
    ) -> None:
        """Write credentials to the config file (mode 0600)."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        values = self._read_file()
        values[self.ENV_ACCESS_KEY] = access_key_id
        values[self.ENV_SECRET_KEY] = secret_access_key
        if endpoint:
            values[self.ENV_ENDPOINT] = endpoint

        with open(self.config_file, "w", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        self.config_file.chmod(0o600)

    def get_config_path(self) -> Path:
        return self.config_file


config = Config()
