# Overview: Order store; creates, edits, transitions, pays and deletes orders.

"""
Order Service

WHY: An order's money fields, status and stage stamps must always agree.
Every mutation here runs as one transaction that locks the order row,
validates, recomputes and commits, so no reader ever sees a total that
does not match the order's own items.

ORDER NUMBERS:
Allocated from the order_sequences counter with an atomic
UPDATE ... SET next_number = next_number + 1 inside the create
transaction. Numbers are never derived from COUNT(*) and are never
reused, even after deleteOrder/deleteAllOrders.

PRICING:
Tax rate is read from settings once, at creation, and stored on the
order. Later recomputes reuse the stored rate so a settings change does
not silently reprice open orders.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, ClassVar

from flask import current_app
from sqlalchemy import update, or_, and_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderSequence, Customer, Service, Feedback
from ..models.orders import (
    STATUS_RECEIVED,
    STATUS_READY,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    VALID_STATUSES,
    ORDER_TYPE_COUNTER,
    ORDER_TYPE_PICKUP_DELIVERY,
    VALID_ORDER_TYPES,
    PAYMENT_PAID,
    PAYMENT_UNPAID,
    PAYMENT_METHOD_CARD,
    VALID_PAYMENT_STATUSES,
    VALID_PAYMENT_METHODS,
)
from ..money import LineItem, compute
from ..validation import (
    ValidationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    canonical_phone,
    parse_decimal,
    parse_money,
    parse_percent,
)
from laundromat.time_utils import utcnow, business_day_bounds
from . import order_state
from . import notification_service
from .concurrency import lock_for_update, serialize_writes, run_with_retry
from .payment_gateway import CardDetails, ChargeResult, get_gateway
from .settings_service import get_tax_rate


ORDER_SEQUENCE_NAME = "order"
DEFAULT_LIST_LIMIT = 100

MAX_NOTES_LENGTH = 2000

# Extra seconds past the gateway timeout before a charge claim counts as abandoned
CHARGE_CLAIM_SLACK_SECONDS = 30

logger = logging.getLogger(__name__)


class OrderError(ValidationError):
    """Order-level input problem not covered by a more specific class."""
    pass


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class OrderUpdate:
    """
    Partial order update. Fields left as UNSET keep their current value.
    None clears a nullable field and keeps the current value of a
    non-nullable one (KEEP_ON_NONE).

    items is a list of raw item dicts (same shape as createOrder).
    """
    customer_name: Any = UNSET
    customer_phone: Any = UNSET
    customer_email: Any = UNSET
    customer_address: Any = UNSET
    order_type: Any = UNSET
    items: Any = UNSET
    weight: Any = UNSET
    adjustment: Any = UNSET
    discount_percent: Any = UNSET
    notes: Any = UNSET
    payment_method: Any = UNSET

    KEEP_ON_NONE: ClassVar[frozenset] = frozenset({
        "order_type", "items", "weight", "adjustment", "discount_percent",
    })

    @classmethod
    def from_payload(cls, payload: dict) -> "OrderUpdate":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        names = {f.name for f in fields(cls)}
        unknown = sorted(k for k in payload if k not in names)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
        return cls(**payload)

    def provided(self) -> set[str]:
        provided = set()
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET or (value is None and f.name in self.KEEP_ON_NONE):
                continue
            provided.add(f.name)
        return provided


# Fields a customer may change on their own order from the portal
CUSTOMER_EDITABLE_FIELDS = frozenset({
    "customer_phone",
    "customer_email",
    "customer_address",
    "items",
    "notes",
    "payment_method",
})


# =============================================================================
# NUMBERING
# =============================================================================

def format_order_number(number: int) -> str:
    prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "KP")
    pad = int(current_app.config.get("ORDER_NUMBER_PAD", 5))
    return f"{prefix}{number:0{pad}d}"


def next_order_number() -> str:
    """
    Allocate the next order number inside the caller's transaction.

    The UPDATE takes the counter row's write lock, so concurrent creates
    queue behind each other until commit. The first-ever allocation
    inserts the row in a savepoint; losing that race falls back to the
    UPDATE.
    """
    stmt = (
        update(OrderSequence)
        .where(OrderSequence.name == ORDER_SEQUENCE_NAME)
        .values(next_number=OrderSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(OrderSequence(name=ORDER_SEQUENCE_NAME, next_number=2))
            return format_order_number(1)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    db.session.flush()
    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(name=ORDER_SEQUENCE_NAME)
        .scalar()
    )
    return format_order_number(current - 1)


# =============================================================================
# INPUT PARSING
# =============================================================================

def build_line_items(raw_items: Any, *, catalog_prices_only: bool = False) -> list[LineItem]:
    """
    Turn request item dicts into LineItems.

    Each item: {service_id?, description?, unit_price?, quantity}.
    An item with a service_id and no unit_price takes the catalog price;
    catalog_prices_only ignores any submitted price (customer orders).
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    items: list[LineItem] = []
    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {idx} must be an object")

        service = None
        service_id = raw.get("service_id")
        if service_id is not None:
            if isinstance(service_id, bool) or not isinstance(service_id, int):
                raise ValidationError(f"Item {idx}: service_id must be an integer")
            service = db.session.get(Service, service_id)
            if not service:
                raise ValidationError(f"Item {idx}: service {service_id} not found")

        raw_price = raw.get("unit_price", raw.get("price"))
        if service is not None and (catalog_prices_only or raw_price is None):
            if catalog_prices_only and not service.is_active:
                raise ValidationError(f"Item {idx}: {service.name} is not currently offered")
            unit_price = Decimal(service.unit_price)
        elif raw_price is None:
            raise ValidationError(f"Item {idx}: unit_price is required")
        elif catalog_prices_only:
            raise ValidationError(f"Item {idx}: service_id is required")
        else:
            unit_price = parse_money(raw_price, f"Item {idx} unit_price")

        if raw.get("quantity") is None:
            raise ValidationError(f"Item {idx}: quantity is required")
        quantity = parse_decimal(raw.get("quantity"), f"Item {idx} quantity")
        if quantity < 0:
            raise ValidationError(f"Item {idx}: quantity cannot be negative")

        description = str(raw.get("description") or (service.name if service else "")).strip()
        if not description:
            raise ValidationError(f"Item {idx}: description is required")

        items.append(LineItem(
            service_id=service.id if service else None,
            description=description,
            unit_price=unit_price,
            quantity=quantity,
        ))
    return items


def _clean_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text_value = str(value).strip()
    if max_length and len(text_value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text_value or None


def _validate_order_type(order_type: str) -> str:
    if order_type not in VALID_ORDER_TYPES:
        raise ValidationError(f"order_type must be one of {', '.join(VALID_ORDER_TYPES)}")
    return order_type


def _validate_payment_method(method: str | None) -> str | None:
    if method is None:
        return None
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(VALID_PAYMENT_METHODS)}")
    return method


def _apply_pricing(order: Order, items: list[LineItem]) -> None:
    breakdown = compute(
        items,
        Decimal(order.discount_percent or 0),
        Decimal(order.adjustment or 0),
        Decimal(order.tax_rate),
    ).rounded()
    order.items = [item.to_json() for item in items]
    order.subtotal = breakdown.subtotal
    order.tax = breakdown.tax
    order.total = breakdown.total


# =============================================================================
# READS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    *,
    status: str | None = None,
    business_date: date | None = None,
    customer_id: int | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[Order]:
    """Most recent orders first."""
    query = db.session.query(Order)
    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(VALID_STATUSES)}")
        query = query.filter(Order.status == status)
    if business_date:
        start, end = business_day_bounds(business_date)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    if customer_id:
        query = query.filter(Order.customer_id == customer_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def _customer_match_clause(customer: Customer):
    if customer.phone_canonical:
        return or_(
            Order.customer_id == customer.id,
            Order.customer_phone_canonical == customer.phone_canonical,
        )
    return Order.customer_id == customer.id


def customer_owns(order: Order, customer: Customer) -> bool:
    """
    Orders belong to a customer by id, or by canonical phone for orders
    taken at the counter before the customer had an account.
    """
    if order.customer_id == customer.id:
        return True
    return bool(customer.phone_canonical) and order.customer_phone_canonical == customer.phone_canonical


def list_customer_orders(customer: Customer) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(_customer_match_clause(customer))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_customer_order(order_id: int, customer: Customer) -> Order:
    order = db.session.get(Order, order_id)
    # Same answer whether the order is missing or someone else's
    if not order or not customer_owns(order, customer):
        raise NotFoundError("Order not found")
    return order


def driver_queue() -> list[Order]:
    """Orders to deliver (ready) and pickup/delivery orders still to collect."""
    return (
        db.session.query(Order)
        .filter(or_(
            Order.status == STATUS_READY,
            and_(Order.status == STATUS_RECEIVED, Order.order_type == ORDER_TYPE_PICKUP_DELIVERY),
        ))
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


# =============================================================================
# CREATE
# =============================================================================

def create_order(
    *,
    items: Any,
    actor_name: str,
    created_by_user_id: int | None = None,
    customer_id: int | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    customer_address: str | None = None,
    order_type: str = ORDER_TYPE_COUNTER,
    payment_method: str | None = None,
    weight: Any = None,
    adjustment: Any = None,
    discount_percent: Any = None,
    notes: str | None = None,
    catalog_prices_only: bool = False,
) -> Order:
    """
    Create an order in status received, stamped to actor_name.

    Snapshot fields default from the customer record when customer_id is
    given; discount defaults to the customer's discount.

    Raises:
        ValidationError: bad items/amounts/enum values
        NotFoundError: customer_id does not exist
        ConflictError: order number could not be allocated after one retry
    """
    if customer_id is not None and (isinstance(customer_id, bool) or not isinstance(customer_id, int)):
        raise ValidationError("customer_id must be an integer")
    order_type = _validate_order_type(order_type or ORDER_TYPE_COUNTER)
    payment_method = _validate_payment_method(payment_method)
    weight_value = parse_decimal(weight, "weight") if weight is not None else Decimal("0")
    if weight_value < 0:
        raise ValidationError("weight cannot be negative")
    adjustment_value = (
        parse_money(adjustment, "adjustment", allow_negative=True) if adjustment is not None else Decimal("0")
    )
    discount_value = parse_percent(discount_percent, "discount_percent") if discount_percent is not None else None
    notes = _clean_text(notes, "notes", max_length=MAX_NOTES_LENGTH)

    def _op() -> Order:
        serialize_writes()

        line_items = build_line_items(items, catalog_prices_only=catalog_prices_only)

        customer = None
        if customer_id is not None:
            customer = db.session.get(Customer, customer_id)
            if not customer:
                raise NotFoundError("Customer not found")

        name = _clean_text(customer_name, "customer_name") or (customer.name if customer else None)
        phone = _clean_text(customer_phone, "customer_phone") or (customer.phone if customer else None)
        email = _clean_text(customer_email, "customer_email") or (customer.email if customer else None)
        address = _clean_text(customer_address, "customer_address") or (customer.address if customer else None)

        discount = discount_value
        if discount is None:
            discount = Decimal(customer.discount_percent or 0) if customer else Decimal("0")

        now = utcnow()
        order = Order(
            order_number=next_order_number(),
            customer_id=customer.id if customer else None,
            customer_name=name,
            customer_phone=phone,
            customer_phone_canonical=canonical_phone(phone),
            customer_email=email,
            customer_address=address,
            order_type=order_type,
            tax_rate=get_tax_rate(),
            discount_percent=discount,
            adjustment=adjustment_value,
            weight=weight_value,
            status=STATUS_RECEIVED,
            payment_method=payment_method,
            payment_status=PAYMENT_UNPAID,
            notes=notes,
            created_by_user_id=created_by_user_id,
            created_by_name=actor_name,
            created_at=now,
            updated_at=now,
        )
        _apply_pricing(order, line_items)
        order_state.stamp_stage(order, STATUS_RECEIVED, actor_name, now)

        db.session.add(order)
        db.session.flush()
        db.session.commit()
        return order

    order = None
    for attempt in range(2):
        try:
            order = run_with_retry(_op)
            break
        except IntegrityError:
            # run_with_retry already rolled back
            if attempt:
                raise ConflictError("Could not allocate an order number, please retry")

    notification_service.notify_order_event(order, notification_service.EVENT_ORDER_RECEIVED)
    return order


# =============================================================================
# UPDATE
# =============================================================================

def _load_locked(order_id: int) -> Order:
    serialize_writes()
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _apply_update(order: Order, changes: OrderUpdate, *, catalog_prices_only: bool) -> None:
    provided = changes.provided()

    if "customer_name" in provided:
        order.customer_name = _clean_text(changes.customer_name, "customer_name")
    if "customer_phone" in provided:
        order.customer_phone = _clean_text(changes.customer_phone, "customer_phone")
        order.customer_phone_canonical = canonical_phone(order.customer_phone)
    if "customer_email" in provided:
        order.customer_email = _clean_text(changes.customer_email, "customer_email")
    if "customer_address" in provided:
        order.customer_address = _clean_text(changes.customer_address, "customer_address")
    if "order_type" in provided:
        order.order_type = _validate_order_type(changes.order_type)
    if "payment_method" in provided:
        order.payment_method = _validate_payment_method(changes.payment_method)
    if "notes" in provided:
        order.notes = _clean_text(changes.notes, "notes", max_length=MAX_NOTES_LENGTH)
    if "weight" in provided:
        weight = parse_decimal(changes.weight, "weight")
        if weight < 0:
            raise ValidationError("weight cannot be negative")
        order.weight = weight
    if "adjustment" in provided:
        order.adjustment = parse_money(changes.adjustment, "adjustment", allow_negative=True)
    if "discount_percent" in provided:
        order.discount_percent = parse_percent(changes.discount_percent, "discount_percent")

    if "items" in provided:
        line_items = build_line_items(changes.items, catalog_prices_only=catalog_prices_only)
    else:
        line_items = order.line_items
    _apply_pricing(order, line_items)


def update_order(order_id: int, changes: OrderUpdate) -> Order:
    """
    Staff edit. Allowed in any non-terminal status; recomputes money
    fields in the same transaction.
    """
    def _op() -> Order:
        order = _load_locked(order_id)
        order_state.ensure_editable(order)
        _apply_update(order, changes, catalog_prices_only=False)
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_customer_order(order_id: int, customer: Customer, changes: OrderUpdate) -> Order:
    """
    Customer edit from the portal. Only while the order is received, only
    CUSTOMER_EDITABLE_FIELDS, and item prices always come from the catalog.

    Raises:
        NotFoundError: order missing or not the customer's
        ForbiddenError: order already in process, or a restricted field
    """
    restricted = sorted(changes.provided() - CUSTOMER_EDITABLE_FIELDS)
    if restricted:
        raise ForbiddenError(f"Customers cannot change: {', '.join(restricted)}")

    def _op() -> Order:
        order = _load_locked(order_id)
        if not customer_owns(order, customer):
            raise NotFoundError("Order not found")
        order_state.ensure_customer_editable(order)
        _apply_update(order, changes, catalog_prices_only=True)
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# STATUS
# =============================================================================

def set_status(order_id: int, status: str, actor_name: str) -> Order:
    def _op() -> tuple[Order, str]:
        order = _load_locked(order_id)
        previous = order.status
        order_state.apply_transition(order, status, actor_name)
        order.updated_at = utcnow()
        db.session.commit()
        return order, previous

    order, previous = run_with_retry(_op)
    if order.status != previous:
        if order.status == STATUS_READY:
            notification_service.notify_order_event(order, notification_service.EVENT_ORDER_READY)
        elif order.status == STATUS_DELIVERED:
            notification_service.notify_order_event(order, notification_service.EVENT_ORDER_DELIVERED)
    return order


def cancel_order(order_id: int, actor_name: str) -> Order:
    def _op() -> Order:
        order = _load_locked(order_id)
        order_state.cancel(order, actor_name)
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def cancel_customer_order(order_id: int, customer: Customer) -> Order:
    def _op() -> Order:
        order = _load_locked(order_id)
        if not customer_owns(order, customer):
            raise NotFoundError("Order not found")
        order_state.ensure_customer_editable(order)
        order_state.cancel(order, f"{customer.name} (online)")
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def deliver(order_id: int, photo_ref: str | None, actor_name: str) -> Order:
    """
    Mark delivered from any non-terminal status, attaching the delivery photo.

    This skips the cleaned/ready checks that set_status enforces, so the
    order may end up with no cleaned/ready stamps.
    """
    def _op() -> Order:
        order = _load_locked(order_id)
        order_state.mark_delivered(order, actor_name)
        if photo_ref is not None:
            order.delivery_photo = _clean_text(photo_ref, "photo")
        order.updated_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)
    notification_service.notify_order_event(order, notification_service.EVENT_ORDER_DELIVERED)
    return order


def record_pickup(order_id: int, actor_name: str) -> Order:
    """Driver collected a pickup/delivery order from the customer."""
    def _op() -> Order:
        order = _load_locked(order_id)
        if order.order_type != ORDER_TYPE_PICKUP_DELIVERY:
            raise OrderError("Only pickup/delivery orders can be picked up")
        if order.status != STATUS_RECEIVED:
            raise order_state.InvalidTransitionError("Only received orders can be picked up")
        now = utcnow()
        order.pickup_by = actor_name
        order.pickup_at = now
        order.updated_at = now
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# PAYMENT
# =============================================================================

def set_payment(order_id: int, payment_status: str, payment_method: str | None = None) -> Order:
    """Mark paid/unpaid. Independent of order status."""
    if payment_status not in VALID_PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of {', '.join(VALID_PAYMENT_STATUSES)}")
    payment_method = _validate_payment_method(payment_method)

    def _op() -> Order:
        order = _load_locked(order_id)
        if payment_method is not None:
            order.payment_method = payment_method
        order.payment_status = payment_status
        order.paid_at = utcnow() if payment_status == PAYMENT_PAID else None
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def _claim_charge(order_id: int, amount: Any) -> tuple[Decimal, str]:
    """
    Mark the order as charging under the row lock and commit.

    A second charge on the same order is refused while the claim is live.
    A claim older than the gateway timeout (plus slack) is treated as
    abandoned by a crashed worker.
    """
    def _op() -> tuple[Decimal, str]:
        order = _load_locked(order_id)
        if order.payment_status == PAYMENT_PAID:
            raise ConflictError("Order is already paid")
        if order.status == STATUS_CANCELLED:
            raise order_state.InvalidTransitionError("Cannot charge a cancelled order")
        now = utcnow()
        stale_after = timedelta(
            seconds=current_app.config["PAYMENT_GATEWAY_TIMEOUT_SECONDS"] + CHARGE_CLAIM_SLACK_SECONDS
        )
        if order.charge_started_at is not None and now - order.charge_started_at < stale_after:
            raise ConflictError("A card charge is already in progress for this order")

        charge_amount = parse_money(amount, "amount") if amount is not None else Decimal(order.total)
        if charge_amount <= 0:
            raise ValidationError("amount must be greater than 0")
        order.charge_started_at = now
        reference = order.order_number
        db.session.commit()
        return charge_amount, reference

    return run_with_retry(_op)


def _release_charge(order_id: int) -> Order:
    def _op() -> Order:
        order = _load_locked(order_id)
        order.charge_started_at = None
        db.session.commit()
        return order

    return run_with_retry(_op)


def charge_card(order_id: int, card: CardDetails, amount: Any = None) -> tuple[Order, ChargeResult]:
    """
    Charge a card through the payment gateway.

    Approved: payment_status=paid, payment_method=card, transaction id and
    last four stored, in one commit. Declined: no change. Gateway errors
    propagate (PaymentGatewayError / PaymentGatewayTimeout) with no change.

    The order is claimed (charge_started_at) before the gateway call and
    the lock is released while waiting on the network. If the order was
    marked paid some other way in the meantime, the approval is logged
    for refund and ConflictError is raised.
    """
    charge_amount, reference = _claim_charge(order_id, amount)

    try:
        result = get_gateway().charge(card, charge_amount, reference)
    except Exception:
        _release_charge(order_id)
        raise

    if not result.approved:
        return _release_charge(order_id), result

    def _op() -> Order | None:
        locked = _load_locked(order_id)
        locked.charge_started_at = None
        if locked.payment_status == PAYMENT_PAID:
            db.session.commit()
            return None
        now = utcnow()
        locked.payment_status = PAYMENT_PAID
        locked.payment_method = PAYMENT_METHOD_CARD
        locked.payment_reference = result.transaction_id
        locked.card_last_four = result.last_four
        locked.paid_at = now
        locked.updated_at = now
        db.session.commit()
        return locked

    order = run_with_retry(_op)
    if order is None:
        logger.error(
            "Order %s was already paid; card transaction %s needs a refund",
            reference, result.transaction_id,
        )
        raise ConflictError(
            f"Order is already paid; card transaction {result.transaction_id} must be refunded"
        )
    return order, result


# =============================================================================
# DELETE
# =============================================================================

def delete_order(order_id: int) -> None:
    """Admin hard delete. Customers and the number counter are untouched."""
    def _op() -> None:
        order = _load_locked(order_id)
        db.session.query(Feedback).filter(Feedback.order_id == order.id).update(
            {Feedback.order_id: None}, synchronize_session=False
        )
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


def delete_all_orders() -> int:
    def _op() -> int:
        serialize_writes()
        db.session.query(Feedback).filter(Feedback.order_id.isnot(None)).update(
            {Feedback.order_id: None}, synchronize_session=False
        )
        deleted = db.session.query(Order).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    return run_with_retry(_op)
