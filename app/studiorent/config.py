import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    late_fee_rate_per_day: Decimal
    points_divisor: int
    membership_term_years: int
    default_payment_method: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///studiorent.db"),
        late_fee_rate_per_day=Decimal(_getenv("LATE_FEE_RATE_PER_DAY", "10000")),
        points_divisor=int(_getenv("POINTS_DIVISOR", "10")),
        membership_term_years=int(_getenv("MEMBERSHIP_TERM_YEARS", "1")),
        default_payment_method=_getenv("DEFAULT_PAYMENT_METHOD", "Card"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LATE_FEE_RATE_PER_DAY": s.late_fee_rate_per_day,
        "POINTS_DIVISOR": s.points_divisor,
        "MEMBERSHIP_TERM_YEARS": s.membership_term_years,
        "DEFAULT_PAYMENT_METHOD": s.default_payment_method,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; nothing here accepts uploads
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
