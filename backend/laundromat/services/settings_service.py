# Overview: Service-layer operations for business settings; the configuration store read by pricing.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError, parse_decimal


TAX_RATE_KEY = "tax_rate"

# Seeded by `flask system seed`; only used when the table is empty.
DEFAULT_SETTINGS = {
    "business_name": "Kleen Panda Laundromat",
    "address": "113 E Tremont Ave",
    "city": "Bronx",
    "state": "NY",
    "zip": "10453",
    "phone": "(347) 230-8400",
    "email": "info@kleenpanda.com",
    "tax_rate": "8.875",
    "delivery_days": "Monday,Friday",
    "pickup_time_start": "17:00",
    "pickup_time_end": "21:00",
}

MAX_KEY_LENGTH = 100


def get_setting(key: str, default: str | None = None) -> str | None:
    row = db.session.get(Setting, key)
    if row is None or row.value is None:
        return default
    return row.value


def get_tax_rate() -> Decimal:
    """
    Current tax rate in percent (8.875 means 8.875%).

    Falls back to the DEFAULT_TAX_RATE config value when the setting is
    missing or blank.
    """
    raw = get_setting(TAX_RATE_KEY)
    if raw is None or not raw.strip():
        raw = current_app.config.get("DEFAULT_TAX_RATE", "8.875")
    rate = parse_decimal(raw, TAX_RATE_KEY)
    if rate < 0:
        raise ValidationError("tax_rate setting must be >= 0")
    return rate


def get_all_settings() -> dict[str, str | None]:
    rows = db.session.query(Setting).order_by(Setting.key).all()
    return {row.key: row.value for row in rows}


def update_settings(values: dict, *, user_id: int | None = None) -> dict[str, str | None]:
    """Upsert several settings in one transaction."""
    if not isinstance(values, dict) or not values:
        raise ValidationError("At least one setting is required")

    for key, value in values.items():
        if not isinstance(key, str) or not key.strip() or len(key) > MAX_KEY_LENGTH:
            raise ValidationError(f"Invalid setting key: {key!r}")
        if key == TAX_RATE_KEY:
            if parse_decimal(value, TAX_RATE_KEY) < 0:
                raise ValidationError("tax_rate must be >= 0")

    for key, value in values.items():
        row = db.session.get(Setting, key)
        text_value = None if value is None else str(value)
        if row is None:
            db.session.add(Setting(key=key, value=text_value, updated_by_user_id=user_id))
        else:
            row.value = text_value
            row.updated_by_user_id = user_id

    db.session.commit()
    return get_all_settings()


def seed_defaults() -> int:
    """Insert DEFAULT_SETTINGS keys that are missing. Returns count inserted."""
    created = 0
    for key, value in DEFAULT_SETTINGS.items():
        if db.session.get(Setting, key) is None:
            db.session.add(Setting(key=key, value=value))
            created += 1
    db.session.commit()
    return created
