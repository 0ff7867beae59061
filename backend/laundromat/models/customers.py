from __future__ import annotations

from ..extensions import db
from ..money import money_json
from laundromat.time_utils import to_utc_z


NOTIFY_EMAIL = "email"
NOTIFY_SMS = "sms"
NOTIFY_NONE = "none"
VALID_NOTIFICATION_PREFERENCES = (NOTIFY_EMAIL, NOTIFY_SMS, NOTIFY_NONE)


class Customer(db.Model):
    """
    Customer master data.

    WHY: Phone is the self-service login key. phone_canonical holds the
    trailing 10 digits so "+1 (347) 230-8400" and "3472308400" match.

    Orders keep their own snapshot of name/phone/email/address, so edits
    here never rewrite past orders. Deleting a customer detaches orders
    (customer_id -> NULL) rather than cascading.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=True)
    phone_canonical = db.Column(db.String(10), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    address = db.Column(db.Text, nullable=True)

    # Bcrypt hash; NULL for customers created at the counter who never logged in
    password_hash = db.Column(db.String(255), nullable=True)

    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    subscription_plan = db.Column(db.String(64), nullable=True)

    # email | sms | none
    notification_preference = db.Column(db.String(16), nullable=False, default=NOTIFY_EMAIL)
    sms_consent = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "discount_percent": money_json(self.discount_percent),
            "subscription_plan": self.subscription_plan,
            "notification_preference": self.notification_preference,
            "sms_consent": self.sms_consent,
            "has_password": self.password_hash is not None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Feedback(db.Model):
    """Customer-submitted feedback, optionally about one of their orders."""
    __tablename__ = "feedback"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)

    rating = db.Column(db.Integer, nullable=True)
    message = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "rating": self.rating,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }
