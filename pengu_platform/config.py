"""Platform settings: YAML file, validated with jsonschema, then env overrides."""

import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".pengu" / "data"
CONFIG_FILENAME = "pengu.yaml"

SETTINGS_SCHEMA = {
    "type": "object",
    "properties": {
        "data_dir": {"type": "string"},
        "currency": {"type": "string", "minLength": 1},
        "commission_rate_percent": {"type": "integer", "minimum": 0, "maximum": 100},
        "quote_validity_days": {"type": "integer", "minimum": 1},
        "student_min_withdrawal_credits": {"type": "integer", "minimum": 1},
        "credits_per_unit": {"type": "integer", "minimum": 1},
        "taka_per_unit": {"type": "integer", "minimum": 1},
        "student_withdrawals_per_month": {"type": "integer", "minimum": 1},
        "revision_grace_days": {"type": "integer", "minimum": 0},
        "log_level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
    },
    "additionalProperties": False,
}

# Environment variable -> (setting, converter)
ENV_OVERRIDES = {
    "PENGU_DATA_DIR": ("data_dir", str),
    "PENGU_COMMISSION_RATE": ("commission_rate_percent", int),
    "PENGU_LOG_LEVEL": ("log_level", str.upper),
}


class ConfigError(Exception):
    """Raised when the settings file or an override is invalid."""


@dataclass
class Settings:
    """Tunable business rules and runtime options."""

    data_dir: str = str(DEFAULT_DATA_DIR)
    currency: str = "TK"

    # Money
    commission_rate_percent: int = 15
    credits_per_unit: int = 100  # 100 credits ...
    taka_per_unit: int = 120     # ... convert to 120 TK

    # Quotes
    quote_validity_days: int = 7

    # Student withdrawals
    student_min_withdrawal_credits: int = 500
    student_withdrawals_per_month: int = 1

    # QC: 0 keeps milestone due dates fixed when a deliverable is rejected
    revision_grace_days: int = 0

    log_level: str = "INFO"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    def credits_to_taka(self, credits: int) -> int:
        return credits * self.taka_per_unit // self.credits_per_unit

    def commission_for(self, amount: int) -> int:
        """Platform commission on an order amount, rounded half up."""
        return (amount * self.commission_rate_percent + 50) // 100

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        try:
            jsonschema.validate(data, SETTINGS_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Invalid settings: {e.message}") from e
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def load_settings(
    config_path: Optional[Path] = None,
    data_dir: Optional[Path] = None,
) -> Settings:
    """Load settings from YAML and apply environment overrides.

    The file is looked up at ``config_path``, then ``$PENGU_CONFIG``, then
    ``<data_dir>/pengu.yaml``. A missing file yields the defaults.
    """
    data: dict = {}
    if data_dir is not None:
        data["data_dir"] = str(data_dir)

    path = config_path or os.environ.get("PENGU_CONFIG")
    if path is None:
        base = Path(data.get("data_dir") or os.environ.get("PENGU_DATA_DIR") or DEFAULT_DATA_DIR)
        path = base.expanduser() / CONFIG_FILENAME
    path = Path(path)

    if path.exists():
        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must contain a mapping")
        logger.debug("Loaded settings from %s", path)
        data = {**loaded, **data}

    for env_var, (key, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw is None or (key == "data_dir" and data_dir is not None):
            continue
        try:
            data[key] = convert(raw)
        except ValueError as e:
            raise ConfigError(f"{env_var}={raw!r} is not valid") from e

    return Settings.from_dict(data)


def configure_logging(level: str = "INFO", rich_output: bool = False) -> None:
    """Install the root handler once; the CLI gets rich formatting."""
    handlers = None
    if rich_output:
        from rich.logging import RichHandler

        handlers = [RichHandler(rich_tracebacks=True, show_path=False)]
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s" if rich_output else "%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )
