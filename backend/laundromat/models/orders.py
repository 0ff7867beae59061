from __future__ import annotations

from ..extensions import db
from ..money import LineItem, money_json
from laundromat.time_utils import to_utc_z


STATUS_RECEIVED = "received"
STATUS_CLEANED = "cleaned"
STATUS_READY = "ready"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
VALID_STATUSES = (STATUS_RECEIVED, STATUS_CLEANED, STATUS_READY, STATUS_DELIVERED, STATUS_CANCELLED)

ORDER_TYPE_COUNTER = "counter"
ORDER_TYPE_PICKUP_DELIVERY = "pickup_delivery"
VALID_ORDER_TYPES = (ORDER_TYPE_COUNTER, ORDER_TYPE_PICKUP_DELIVERY)

PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"
VALID_PAYMENT_STATUSES = (PAYMENT_UNPAID, PAYMENT_PAID)

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
VALID_PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD, "check", "account", "other")


class OrderSequence(db.Model):
    """
    Monotonic order-number counter.

    WHY: Numbers come from this row, never from COUNT(*) over orders, so
    deleting orders cannot cause a number to be handed out twice.
    """
    __tablename__ = "order_sequences"

    name = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class Order(db.Model):
    """
    A customer's laundry order, tracked through the processing pipeline.

    LIFECYCLE:
    - received -> cleaned -> ready -> delivered
    - received -> cancelled
    - delivered and cancelled are terminal

    Each pipeline stage has its own actor/timestamp stamp. Money fields are
    always written together from one pricing computation.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_payment_created", "payment_method", "payment_status", "created_at"),
        db.Index("ix_orders_customer_phone_canonical", "customer_phone_canonical"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "KP00042")
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot taken at creation; independent of later customer edits
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(50), nullable=True)
    customer_phone_canonical = db.Column(db.String(10), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    order_type = db.Column(db.String(32), nullable=False, default=ORDER_TYPE_COUNTER)

    # List of LineItem.to_json() dicts
    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # Rate the order was priced with; reused on every recompute
    tax_rate = db.Column(db.Numeric(6, 3), nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    adjustment = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    weight = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_RECEIVED, index=True)

    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Gateway transaction id and masked card; card number/CVV are never stored
    payment_reference = db.Column(db.String(128), nullable=True)
    card_last_four = db.Column(db.String(4), nullable=True)
    # Set while a card charge is in flight; blocks a second charge on the same order
    charge_started_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    # Stage stamps
    received_by = db.Column(db.String(255), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pickup_by = db.Column(db.String(255), nullable=True)
    pickup_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cleaned_by = db.Column(db.String(255), nullable=True)
    cleaned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_by = db.Column(db.String(255), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_by = db.Column(db.String(255), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    delivery_photo = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True, passive_deletes=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def line_items(self) -> list[LineItem]:
        return [LineItem.from_json(i) for i in (self.items or [])]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "order_type": self.order_type,
            "items": [
                {
                    "service_id": item.service_id,
                    "description": item.description,
                    "unit_price": money_json(item.unit_price),
                    "quantity": float(item.quantity),
                    "line_total": money_json(item.line_total),
                }
                for item in self.line_items
            ],
            "subtotal": money_json(self.subtotal),
            "tax": money_json(self.tax),
            "tax_rate": float(self.tax_rate) if self.tax_rate is not None else None,
            "discount_percent": float(self.discount_percent or 0),
            "adjustment": money_json(self.adjustment),
            "total": money_json(self.total),
            "weight": float(self.weight or 0),
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "paid_at": to_utc_z(self.paid_at),
            "payment_reference": self.payment_reference,
            "card_last_four": self.card_last_four,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "received_by": self.received_by,
            "received_at": to_utc_z(self.received_at),
            "pickup_by": self.pickup_by,
            "pickup_at": to_utc_z(self.pickup_at),
            "cleaned_by": self.cleaned_by,
            "cleaned_at": to_utc_z(self.cleaned_at),
            "ready_by": self.ready_by,
            "ready_at": to_utc_z(self.ready_at),
            "delivered_by": self.delivered_by,
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "delivery_photo": self.delivery_photo,
            "version_id": self.version_id,
        }
