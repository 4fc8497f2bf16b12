import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = "sqlite:///./tangabiz.db"
    TEST_DATABASE_URL: Optional[str] = None
    DB_LOCK_TIMEOUT_SECONDS: float = 5.0  # lock wait / statement timeout

    # Auth
    JWT_SECRET: Optional[str] = None

    # Trial
    TRIAL_DURATION_DAYS: int = 3
    TRIAL_PLAN: str = "enterprise"  # limits granted while the trial window is open

    # Polar billing products (monthly + yearly per plan)
    POLAR_STARTER_PRODUCT_ID: str = ""
    POLAR_GROWTH_PRODUCT_ID: str = ""
    POLAR_ENTERPRISE_PRODUCT_ID: str = ""
    POLAR_STARTER_YEARLY_PRODUCT_ID: str = ""
    POLAR_GROWTH_YEARLY_PRODUCT_ID: str = ""
    POLAR_ENTERPRISE_YEARLY_PRODUCT_ID: str = ""

    # Polar API
    POLAR_ACCESS_TOKEN: Optional[str] = None
    POLAR_API_URL: str = "https://api.polar.sh"
    BILLING_TIMEOUT_SECONDS: float = 10.0

    # App URLs
    WEB_APP_URL: str = "http://localhost:3000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("tangabiz")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "JWT_SECRET",
        "POLAR_ACCESS_TOKEN",
        "POLAR_STARTER_PRODUCT_ID",
        "POLAR_GROWTH_PRODUCT_ID",
        "POLAR_ENTERPRISE_PRODUCT_ID",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if cfg.TRIAL_DURATION_DAYS < 0:
        missing.append("TRIAL_DURATION_DAYS (must be >= 0)")
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
