import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class ExchangeSettings:
    default_max_distance: int = 5000
    min_search_distance: int = 100
    max_search_distance: int = 50000
    default_search_limit: int = 50
    max_search_limit: int = 100
    default_expiry_minutes: int = 30
    min_expiry_minutes: int = 5
    max_expiry_minutes: int = 1440
    min_amount: int = 1
    max_amount: int = 100000
    platform_fee_percent: Decimal = Decimal("0")
    max_notes_length: int = 500
    purge_after_days: int = 30
    log_level: str = "INFO"

    def __post_init__(self):
        if not Decimal("0") <= self.platform_fee_percent < Decimal("100"):
            raise ValueError(
                f"PLATFORM_FEE_PERCENT must be at least 0 and below 100, got {self.platform_fee_percent}"
            )


def _env_int(name, default):
    value = os.getenv(name)
    return int(value) if value else default


def load_settings() -> ExchangeSettings:
    return ExchangeSettings(
        default_max_distance=_env_int("DEFAULT_MAX_DISTANCE", 5000),
        default_search_limit=_env_int("DEFAULT_SEARCH_LIMIT", 50),
        default_expiry_minutes=_env_int("DEFAULT_EXPIRY_MINUTES", 30),
        min_amount=_env_int("MIN_EXCHANGE_AMOUNT", 1),
        max_amount=_env_int("MAX_EXCHANGE_AMOUNT", 100000),
        platform_fee_percent=Decimal(os.getenv("PLATFORM_FEE_PERCENT") or "0"),
        purge_after_days=_env_int("PURGE_AFTER_DAYS", 30),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> ExchangeSettings:
    return load_settings()
