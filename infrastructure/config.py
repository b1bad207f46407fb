from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Auth
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Booking defaults
    currency: str = "IDR"
    default_dp_percentage: Decimal = Decimal("30")
    max_stay_nights: int = 365
    availability_horizon_days: int = 90

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "BOOKING_",
        "extra": "ignore",
    }


settings = Settings()
