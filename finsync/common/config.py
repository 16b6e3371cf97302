"""
Configuration

Settings come from a YAML file (FINSYNC_CONFIG, default config/banking.yaml)
and a few environment overrides. A missing file yields the defaults with no
bank credentials configured.
"""
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from finsync.adapters.base import BankCredentials

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "banking.yaml"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173")


class CredentialConfig(BaseModel):
    cookie: str = Field(default="", repr=False)
    xsrf_token: Optional[str] = Field(default=None, repr=False)

    def to_credentials(self) -> BankCredentials:
        return BankCredentials(cookie=self.cookie, xsrf_token=self.xsrf_token)


class Settings(BaseModel):
    ledger_path: Path = Path("data") / "ledger.json"
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/finsync.log"
    banks: Dict[str, CredentialConfig] = Field(default_factory=dict)
    api_host: str = "127.0.0.1"
    api_port: int = 8010
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @field_validator('log_level')
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = str(value).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

    def credentials_for(self, institution_id: str) -> BankCredentials:
        """
        Raises KeyError if the institution has no credentials configured.
        """
        if institution_id not in self.banks:
            raise KeyError(f"No credentials configured for '{institution_id}'")
        return self.banks[institution_id].to_credentials()


def config_path() -> Path:
    return Path(os.environ.get("FINSYNC_CONFIG", DEFAULT_CONFIG_PATH))


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from YAML, then apply FINSYNC_* environment overrides."""
    path = Path(path) if path else config_path()

    data = {}
    if path.exists():
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid configuration file {path}: expected a mapping")

    overrides = {
        'ledger_path': os.environ.get("FINSYNC_LEDGER_PATH"),
        'log_level': os.environ.get("FINSYNC_LOG_LEVEL"),
        'log_file': os.environ.get("FINSYNC_LOG_FILE"),
    }
    data.update({k: v for k, v in overrides.items() if v is not None})

    return Settings.model_validate(data)
