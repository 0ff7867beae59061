# Overview: Service catalog (prices and units) read by order pricing.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Service
from ..models.catalog import UNIT_ITEM, UNIT_LB, VALID_UNITS
from ..validation import ValidationError, NotFoundError, parse_money


# (name, category, unit_price, unit, description, sort_order)
DEFAULT_SERVICES = (
    ("Wash & Fold - Regular", "Wash & Fold", "1.40", UNIT_LB, "Standard wash and fold", 1),
    ("Wash & Fold - RUSH", "Wash & Fold", "2.10", UNIT_LB, "Same-day rush service", 2),
    ("Blanket - Small", "Wash & Fold", "15.00", UNIT_ITEM, "Small blanket", 3),
    ("Blanket - Medium", "Wash & Fold", "20.00", UNIT_ITEM, "Medium blanket", 4),
    ("Blanket - Large", "Wash & Fold", "25.00", UNIT_ITEM, "Large blanket", 5),
    ("Comforter - Small", "Wash & Fold", "25.00", UNIT_ITEM, "Small comforter", 6),
    ("Comforter - Medium", "Wash & Fold", "30.00", UNIT_ITEM, "Medium comforter", 7),
    ("Comforter - Large", "Wash & Fold", "40.00", UNIT_ITEM, "Large comforter", 8),
    ("Pillow", "Wash & Fold", "10.00", UNIT_ITEM, "Pillow cleaning", 9),
    ("Rug - Small", "Wash & Fold", "25.00", UNIT_ITEM, "Small rug", 10),
    ("Rug - Medium", "Wash & Fold", "40.00", UNIT_ITEM, "Medium rug", 11),
    ("Rug - Large", "Wash & Fold", "60.00", UNIT_ITEM, "Large rug", 12),
    ("Mens Dress Shirt", "Dry Cleaning", "5.95", UNIT_ITEM, "Laundered & pressed", 20),
    ("Pants/Trousers", "Dry Cleaning", "10.50", UNIT_ITEM, "Dry cleaned", 21),
    ("Suit (2-piece)", "Dry Cleaning", "23.10", UNIT_ITEM, "Jacket and pants", 22),
    ("Suit (3-piece)", "Dry Cleaning", "30.80", UNIT_ITEM, "Jacket, pants, vest", 23),
    ("Dress", "Dry Cleaning", "19.60", UNIT_ITEM, "Regular dresses", 24),
    ("Sweater", "Dry Cleaning", "10.50", UNIT_ITEM, "Knit sweaters", 25),
    ("Coat/Jacket", "Dry Cleaning", "28.00", UNIT_ITEM, "Coats and jackets", 26),
    ("Blouse", "Dry Cleaning", "10.50", UNIT_ITEM, "Blouses", 27),
    ("Skirt", "Dry Cleaning", "10.50", UNIT_ITEM, "Skirts", 28),
    ("Shirt Press", "Press", "4.20", UNIT_ITEM, "Press only", 40),
    ("Pants Press", "Press", "7.00", UNIT_ITEM, "Press only", 41),
    ("Hem Pants", "Alterations", "14.00", UNIT_ITEM, "Hem adjustment", 50),
    ("Zipper Replace", "Alterations", "21.00", UNIT_ITEM, "Zipper replacement", 51),
    ("Button Replace", "Alterations", "3.50", UNIT_ITEM, "Button replacement", 52),
)


def list_services(*, active_only: bool = False) -> list[Service]:
    query = db.session.query(Service)
    if active_only:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.sort_order.asc(), Service.id.asc()).all()


def create_service(
    *,
    name: str,
    unit_price,
    unit: str = UNIT_ITEM,
    category: str | None = None,
    description: str | None = None,
    sort_order: int = 99,
) -> Service:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if unit not in VALID_UNITS:
        raise ValidationError(f"unit must be one of {', '.join(VALID_UNITS)}")
    service = Service(
        name=name,
        category=(category or "").strip() or None,
        description=(description or "").strip() or None,
        unit_price=parse_money(unit_price, "unit_price"),
        unit=unit,
        sort_order=sort_order,
    )
    db.session.add(service)
    db.session.commit()
    return service


def update_service(service_id: int, *, unit_price=None, is_active: bool | None = None) -> Service:
    """Price and active flag are the only mutable fields."""
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")
    if unit_price is None and is_active is None:
        raise ValidationError("Provide price or active")

    if unit_price is not None:
        service.unit_price = parse_money(unit_price, "price")
    if is_active is not None:
        if not isinstance(is_active, bool):
            raise ValidationError("active must be true or false")
        service.is_active = is_active

    db.session.commit()
    return service


def seed_services() -> int:
    """Insert the default catalog when the table is empty. Returns rows inserted."""
    if db.session.query(Service.id).first():
        return 0
    for name, category, price, unit, description, sort_order in DEFAULT_SERVICES:
        db.session.add(Service(
            name=name,
            category=category,
            unit_price=Decimal(price),
            unit=unit,
            description=description,
            is_active=True,
            sort_order=sort_order,
        ))
    db.session.commit()
    return len(DEFAULT_SERVICES)
