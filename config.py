"""
Configuration for the lunch order automation.

Values come from the environment, with a .env file loaded first.
Credentials for the ordering account are required for real runs; the
CLI fails fast with ConfigurationError when they are missing.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError

# Load .env early so environment variables are available to the Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the automation, CLI and Flask app."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # ==========================================================================
    # Run settings
    # ==========================================================================
    # ORDER_TIME: delivery time as HHMM on a 24h clock (1730 = 5:30pm)
    # DRY_RUN: when true, the order is filled in and a confirmation PDF is
    #   captured, but the final "place order" button is never clicked
    # PER_PERSON_CEILING: maximum allocation per participant, in dollars
    # MAX_ATTEMPTS_PER_BATCH: total attempts per restaurant (first + retries)
    # INTER_BATCH_PAUSE_MS: pause between restaurants, to avoid request bursts
    # ==========================================================================
    ORDER_TIME = int(os.environ.get("ORDER_TIME", "1730"))
    DRY_RUN = _env_bool("DRY_RUN", "1")
    PER_PERSON_CEILING = Decimal(os.environ.get("PER_PERSON_CEILING", "25"))
    MAX_ATTEMPTS_PER_BATCH = int(os.environ.get("MAX_ATTEMPTS_PER_BATCH", "3"))
    INTER_BATCH_PAUSE_MS = float(os.environ.get("INTER_BATCH_PAUSE_MS", "5000"))

    # Browser (SITE_PROFILE: "grubhub" or "seamless")
    SITE_PROFILE = os.environ.get("SITE_PROFILE", "grubhub")
    SURFACE_TIMEOUT_MS = float(os.environ.get("SURFACE_TIMEOUT_MS", "30000"))
    HEADLESS = _env_bool("HEADLESS", "1")

    # Ordering account
    ORDERING_USERNAME = os.environ.get("ORDERING_USERNAME", "")
    ORDERING_PASSWORD = os.environ.get("ORDERING_PASSWORD", "")
    # Display name of the account holder; the website does not offer it in the cost split
    ORDERING_ACCOUNT_NAME = os.environ.get("ORDERING_ACCOUNT_NAME", "")

    # Storage
    DATA_DIR = os.environ.get("DATA_DIR", str(BASE_DIR / "data"))
    CONFIRMATIONS_DIR = os.environ.get("CONFIRMATIONS_DIR", str(BASE_DIR / "confirmations"))
    CONFIRMATION_BASE_URL = os.environ.get("CONFIRMATION_BASE_URL", "http://localhost:5000")

    # Notification
    SLACK_WEBHOOK_URL = os.environ.get("SLACK_WEBHOOK_URL", "")
    SLACK_CHANNEL = os.environ.get("SLACK_CHANNEL", "#lunch")

    # Web API: finished runs kept in memory for polling
    MAX_STORED_RUNS = int(os.environ.get("MAX_STORED_RUNS", "50"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    INTER_BATCH_PAUSE_MS = 0


@dataclass(frozen=True)
class AutomationConfig:
    """
    Settings for one automation run.

    Frozen so a run thread can hold it without worrying about changes
    made by the web process while the run is in progress.
    """

    order_time: int = 1730
    dry_run: bool = True
    per_person_ceiling: Decimal = Decimal("25")
    max_attempts_per_batch: int = 3
    inter_batch_pause_ms: float = 5000
    confirmations_dir: Path = BASE_DIR / "confirmations"
    account_name: Optional[str] = None

    def __post_init__(self):
        if self.max_attempts_per_batch < 1:
            raise ValueError("max_attempts_per_batch must be at least 1")
        hours, minutes = divmod(self.order_time, 100)
        if not (0 <= hours < 24 and 0 <= minutes < 60):
            raise ValueError(f"order_time {self.order_time} is not a valid HHMM time")

    @classmethod
    def from_config(
        cls,
        config=Config,
        order_time: Optional[int] = None,
        dry_run: Optional[bool] = None,
    ) -> "AutomationConfig":
        """
        Build run settings from a Config class (or Flask ``app.config`` mapping).

        ``order_time`` and ``dry_run`` override the configured values, as the
        CLI flags do.
        """
        get = config.get if isinstance(config, dict) else (lambda key: getattr(config, key))
        return cls(
            order_time=order_time if order_time is not None else int(get("ORDER_TIME")),
            dry_run=dry_run if dry_run is not None else bool(get("DRY_RUN")),
            per_person_ceiling=Decimal(str(get("PER_PERSON_CEILING"))),
            max_attempts_per_batch=int(get("MAX_ATTEMPTS_PER_BATCH")),
            inter_batch_pause_ms=float(get("INTER_BATCH_PAUSE_MS")),
            confirmations_dir=Path(get("CONFIRMATIONS_DIR")),
            account_name=get("ORDERING_ACCOUNT_NAME") or None,
        )


def ordering_credentials(config=Config) -> Tuple[str, str]:
    """
    Username and password of the ordering account.

    Raises:
        ConfigurationError: If either one is not set
    """
    get = config.get if isinstance(config, dict) else (lambda key: getattr(config, key, ""))
    username, password = get("ORDERING_USERNAME") or "", get("ORDERING_PASSWORD") or ""
    if not username:
        raise ConfigurationError("ORDERING_USERNAME")
    if not password:
        raise ConfigurationError("ORDERING_PASSWORD")
    return username, password


def config_to_dict(config=Config) -> dict:
    """Upper-case settings of a Config class as a plain dict, like Flask's ``app.config``."""
    return {key: getattr(config, key) for key in dir(config) if key.isupper()}
