from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Database / auth
    DATABASE_URL: str = "postgresql://postgres@localhost:5432/alive_ping"
    JWT_SECRET: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # ESCALATION POLICY
    # =================================================================
    MAX_SMS_COUNT: int = 3
    SMS_INTERVAL_MINUTES: int = 30
    SMS_INTERVAL_ENABLED: bool = True
    LOCAL_DAY_UTC_OFFSET_HOURS: float = 8.0

    # Scheduler cadences
    SCHEDULER_ENABLED: bool = True
    ESCALATION_SWEEP_INTERVAL_MINUTES: float = 5.0
    REMINDER_SWEEP_INTERVAL_MINUTES: float = 10.0
    SCHEDULER_SHUTDOWN_TIMEOUT_SECONDS: float = 30.0

    # Notifier
    NOTIFIER_BACKEND: str = "log"  # "log" or "http"
    NOTIFIER_TIMEOUT_SECONDS: float = 10.0
    SMS_SIGN_NAME: str = "还在吗"
    SMS_GATEWAY_URL: str | None = None
    SMS_API_KEY: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": min(self.DB_POOL_MIN_SIZE, 2),
                    "max_size": min(self.DB_POOL_MAX_SIZE, 5),
                    "timeout": 15.0,
                }
            )

        return config

    def local_day_offset(self) -> timedelta:
        """Offset from UTC that defines the service's calendar day."""
        return timedelta(hours=self.LOCAL_DAY_UTC_OFFSET_HOURS)

    def sms_interval(self) -> timedelta | None:
        """Minimum gap between escalation rounds, or None when throttling is off."""
        if not self.SMS_INTERVAL_ENABLED:
            return None
        return timedelta(minutes=self.SMS_INTERVAL_MINUTES)


settings = Settings()
