from pydantic_settings import BaseSettings
from decimal import Decimal

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./bus_reservations.db"

    # Security
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    PROJECT_NAME: str = "Bus Reservation & Pricing Engine"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "USD"

    # Cancellation windows (non-admins cannot cancel inside them)
    BOOKING_CANCELLATION_CUTOFF_HOURS: int = 24
    HIRING_CANCELLATION_CUTOFF_DAYS: int = 1

    # Hiring pricing
    STANDARD_HOURS_PER_DAY: int = 8
    ROUND_TRIP_HIRING_DISCOUNT: Decimal = Decimal("0.10")
    DEFAULT_DAILY_RATE: Decimal = Decimal("500")
    DEFAULT_PER_KILOMETER_RATE: Decimal = Decimal("5")

    # Passenger type derived from age when not given explicitly
    CHILD_MAX_AGE: int = 11
    SENIOR_MIN_AGE: int = 60

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
