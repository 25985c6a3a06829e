"""Configuration for the doctors portal service.

Environment-driven settings plus the default treatment catalog used to seed
a fresh database. Modify the catalog here without touching code.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv


DEFAULT_SLOTS = [
    "08.00 AM - 08.30 AM",
    "08.30 AM - 09.00 AM",
    "09.00 AM - 09.30 AM",
    "09.30 AM - 10.00 AM",
    "10.00 AM - 10.30 AM",
    "10.30 AM - 11.00 AM",
    "11.00 AM - 11.30 AM",
    "11.30 AM - 12.00 PM",
    "01.00 PM - 01.30 PM",
    "01.30 PM - 02.00 PM",
    "02.00 PM - 02.30 PM",
    "02.30 PM - 03.00 PM",
    "03.00 PM - 03.30 PM",
    "03.30 PM - 04.00 PM",
    "04.00 PM - 04.30 PM",
    "04.30 PM - 05.00 PM",
]

DEFAULT_CATALOG = [
    {"name": "Teeth Orthodontics", "price": 99.0, "slots": DEFAULT_SLOTS},
    {"name": "Cosmetic Dentistry", "price": 120.0, "slots": DEFAULT_SLOTS},
    {"name": "Teeth Cleaning", "price": 45.0, "slots": DEFAULT_SLOTS},
    {"name": "Cavity Protection", "price": 75.0, "slots": DEFAULT_SLOTS},
    {"name": "Pediatric Dental", "price": 60.0, "slots": DEFAULT_SLOTS},
    {"name": "Oral Surgery", "price": 250.0, "slots": DEFAULT_SLOTS},
]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///doctors_portal.db"
    # JWT signing secret
    access_token_secret: str = ""
    access_token_ttl_hours: int = 24

    stripe_secret_key: Optional[str] = None
    payment_currency: str = "usd"

    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("http://localhost:3000",))

    # Seconds to wait for a pooled connection before failing the request
    storage_timeout_seconds: int = 10


def parse_origins(raw: str) -> Tuple[str, ...]:
    parts = [p.strip() for p in raw.split(",")]
    return tuple(p for p in parts if p)


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """
    Build settings from the environment.

    Args:
        dotenv_path: Optional .env file (tests point this elsewhere)

    Returns:
        Settings instance

    Raises:
        RuntimeError: If ACCESS_TOKEN is missing
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)

    secret = os.getenv("ACCESS_TOKEN", "").strip()
    if not secret:
        raise RuntimeError(
            "ACCESS_TOKEN environment variable required (JWT signing secret)"
        )

    origins: List[str] = list(parse_origins(os.getenv("CORS_ORIGINS", "")))

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///doctors_portal.db"),
        access_token_secret=secret,
        access_token_ttl_hours=int(os.getenv("ACCESS_TOKEN_TTL_HOURS", "24")),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        payment_currency=os.getenv("PAYMENT_CURRENCY", "usd").lower(),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=tuple(origins) or ("http://localhost:3000",),
        storage_timeout_seconds=int(os.getenv("STORAGE_TIMEOUT_SECONDS", "10")),
    )
