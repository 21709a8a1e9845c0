# Work tracker — configuration
# Defaults < tracker.yaml < environment (.env is loaded first).

import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_PATH = Path(__file__).parent.parent / "tracker.yaml"

# Environment variable → (config key, type)
ENV_OVERRIDES = {
    "GOOGLE_SPREADSHEET_ID": ("spreadsheet_id", str),
    "TRACKER_SHEET_NAME": ("sheet_name", str),
    "GOOGLE_CREDENTIALS_JSON": ("credentials_json", str),
    "GOOGLE_CREDENTIALS_PATH": ("credentials_path", str),
    "TRACKER_HOST": ("host", str),
    "PORT": ("port", int),
    "TRACKER_API_URL": ("api_url", str),
    "TRACKER_REFRESH_INTERVAL": ("refresh_interval", float),
    "TRACKER_REQUEST_TIMEOUT": ("request_timeout", float),
    "TRACKER_LOG_LEVEL": ("log_level", str),
}


@dataclass
class Config:
    """Runtime configuration for the tracker server and board client."""

    # Record store
    spreadsheet_id: str = ""
    sheet_name: str = "Sheet1"
    credentials_json: str = ""   # inline service account JSON, wins over the path
    credentials_path: str = ""

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 3000

    # Board client
    api_url: str = "http://localhost:3000"
    refresh_interval: float = 30.0
    request_timeout: float = 10.0

    log_level: str = "INFO"

    def apply_env(self, environ=None):
        """Override fields from environment variables that are set and non-empty."""
        environ = os.environ if environ is None else environ
        for env_name, (key, cast) in ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                setattr(self, key, cast(raw))
            except ValueError:
                raise ConfigError(f"{env_name}={raw!r} is not a valid {cast.__name__}")

    def require_store(self):
        """Fail fast when the server cannot reach the spreadsheet at all."""
        if not self.spreadsheet_id:
            raise ConfigError(
                "GOOGLE_SPREADSHEET_ID is not set.\n"
                "Set it in .env or tracker.yaml (spreadsheet_id)."
            )
        if not (self.credentials_json or self.credentials_path):
            raise ConfigError(
                "No Google credentials configured.\n"
                "Set GOOGLE_CREDENTIALS_JSON or GOOGLE_CREDENTIALS_PATH."
            )
        if self.credentials_path and not self.credentials_json:
            if not Path(self.credentials_path).expanduser().exists():
                raise ConfigError(f"Credentials file not found: {self.credentials_path}")

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML file and environment, falling back to defaults."""
        if environ is None:
            load_dotenv(override=False)
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid config file {cfg_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {cfg_path} must contain a mapping")
            known = {f.name for f in fields(cls)}
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        elif path:
            raise ConfigError(f"Config file not found: {path}")
        else:
            cfg = cls()
        cfg.apply_env(environ)
        return cfg


def configure_logging(level: str = "INFO", name: str = "worktrack"):
    """Console logging for the server and board entrypoints."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=f"%(asctime)s [{name}] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
