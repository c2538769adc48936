# airodental/config.py
from datetime import time
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class CalendarPolicyName(str, Enum):
    open = "open"
    business_hours = "business_hours"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "airodental"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    # Practice-local timezone: business hours and every spoken time use it
    TIMEZONE: str = "America/Chicago"

    # ===== DB =====
    # Production points DATABASE_URL at Postgres; local runs fall back to SQLite.
    DATABASE_URL: str = "sqlite:///./airodental.db"

    DB_POOL_SIZE: int = 2
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min
    # SQLite busy timeout / Postgres statement_timeout
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # ===== Business calendar =====
    CALENDAR_POLICY: CalendarPolicyName = CalendarPolicyName.business_hours
    CLINIC_OPEN_TIME: time = time(9, 0)
    CLINIC_CLOSE_TIME: time = time(17, 0)
    # Tolerance for clock/processing skew when rejecting past instants
    PAST_GRACE_MINUTES: int = 15

    # ===== Booking =====
    # New patients created by the voice agent are owned by the first user with this role
    DEFAULT_OWNER_ROLE: str = "DENTIST"

    # ===== HTTP =====
    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    def model_post_init(self, __context) -> None:
        """
        Sanity checks that would otherwise surface as confusing errors per request.
        """
        if self.CLINIC_CLOSE_TIME < self.CLINIC_OPEN_TIME:
            raise ValueError("CLINIC_CLOSE_TIME must not be earlier than CLINIC_OPEN_TIME")
        for t in (self.CLINIC_OPEN_TIME, self.CLINIC_CLOSE_TIME):
            if t.minute % 30 or t.second or t.microsecond:
                raise ValueError("Clinic open/close times must fall on a half hour")
        if self.PAST_GRACE_MINUTES < 0:
            raise ValueError("PAST_GRACE_MINUTES must be >= 0")
        self.DEFAULT_OWNER_ROLE = self.DEFAULT_OWNER_ROLE.strip().upper()


settings = Settings()
