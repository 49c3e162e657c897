# List groups server: configuration
# Override values via config.yaml, environment variables or CLI args.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the list groups server."""

    # Storage
    db_path: str = "~/.local/share/listgroups/listgroups.db"

    # HTTP
    host: str = "127.0.0.1"
    port: int = 3000

    # Name of the env var holding the API secret (empty secret = reads only)
    api_secret_env: str = "LISTGROUPS_API_SECRET"

    log_level: str = "INFO"

    @property
    def api_secret(self) -> str:
        return os.environ.get(self.api_secret_env, "")

    def resolve(self):
        """Apply environment overrides and expand ~."""
        env_db = os.environ.get("LISTGROUPS_DB")
        if env_db:
            self.db_path = env_db
        self.db_path = str(Path(self.db_path).expanduser())
        self.log_level = self.log_level.upper()

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            known = {f.name for f in fields(cls)}
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")
        else:
            cfg = cls()
        cfg.resolve()
        return cfg
