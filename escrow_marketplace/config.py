"""Platform configuration loaded from YAML and environment variables."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

# Default data directory
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class PlatformConfig:
    """Runtime settings for the marketplace core."""

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    currency: str = "INR"
    platform_fee_percent: int = 10   # Deducted from escrow on release
    feature_days: int = 7            # Featured listing window
    log_level: str = "INFO"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if not 0 <= self.platform_fee_percent <= 100:
            raise ValueError(f"platform_fee_percent must be 0-100, got {self.platform_fee_percent}")
        if self.feature_days <= 0:
            raise ValueError(f"feature_days must be positive, got {self.feature_days}")

    def to_dict(self) -> dict:
        return {
            "data_dir": str(self.data_dir),
            "currency": self.currency,
            "platform_fee_percent": self.platform_fee_percent,
            "feature_days": self.feature_days,
            "log_level": self.log_level,
        }


def load_config(path: Optional[Path] = None) -> PlatformConfig:
    """
    Build a PlatformConfig.

    Values come from the optional YAML file first, then from the
    MARKET_* environment variables, which win.
    """
    values: dict = {}

    if path is not None:
        with open(path) as f:
            values.update(yaml.safe_load(f) or {})

    env_map = {
        "MARKET_DATA_DIR": ("data_dir", Path),
        "MARKET_CURRENCY": ("currency", str),
        "MARKET_FEE_PERCENT": ("platform_fee_percent", int),
        "MARKET_FEATURE_DAYS": ("feature_days", int),
        "MARKET_LOG_LEVEL": ("log_level", str),
    }
    for env_name, (key, cast) in env_map.items():
        raw = os.environ.get(env_name)
        if raw:
            values[key] = cast(raw)

    return PlatformConfig(**values)


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging for the CLI and the API server."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
