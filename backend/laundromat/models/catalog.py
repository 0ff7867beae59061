from __future__ import annotations

from ..extensions import db
from ..money import money_json


UNIT_ITEM = "item"
UNIT_LB = "lb"
VALID_UNITS = (UNIT_ITEM, UNIT_LB)


class Service(db.Model):
    """
    Priced catalog entry (e.g. "Wash & Fold - Regular", 1.40 per lb).

    Read-heavy; only price and active flag change after seeding. Orders
    copy the unit price into their line items, so a price change never
    reprices an existing order.
    """
    __tablename__ = "services"
    __table_args__ = (
        db.Index("ix_services_sort", "sort_order", "id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)

    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    # item | lb
    unit = db.Column(db.String(16), nullable=False, default=UNIT_ITEM)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=99)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "unit_price": money_json(self.unit_price),
            "unit": self.unit,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }
