# Overview: Best-effort customer notifications (email/SMS) for order events.

"""
Notification Service

WHY: Customers get a message when an order is received, ready and
delivered. Delivery goes through HTTP relay endpoints (NOTIFY_EMAIL_URL,
NOTIFY_SMS_URL) and must never slow down or fail the order mutation that
triggered it.

- Password reset codes are sent through the same notifier.
- notify() returns "delivered", "skipped" or "failed"; it never raises.
- notify_order_event() runs after the order transaction commits and hands
  the send to a small thread pool unless NOTIFY_SYNC is set (tests, CLI).
- Customer preference (email | sms | none) and SMS consent are honoured.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import httpx
from flask import current_app

from ..extensions import db
from ..models import Customer, Order
from ..models.customers import NOTIFY_EMAIL, NOTIFY_SMS, NOTIFY_NONE
from ..money import money_json


logger = logging.getLogger(__name__)


CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"

RESULT_DELIVERED = "delivered"
RESULT_SKIPPED = "skipped"
RESULT_FAILED = "failed"

EVENT_ORDER_RECEIVED = "order_received"
EVENT_ORDER_READY = "order_ready"
EVENT_ORDER_DELIVERED = "order_delivered"
EVENT_PASSWORD_RESET = "password_reset"

# template -> (subject, body); body is str.format()-ed with the event data
TEMPLATES: dict[str, tuple[str, str]] = {
    EVENT_ORDER_RECEIVED: (
        "We received your order {order_number}",
        "Hi {customer_name}, we received order {order_number}. Total: ${total:.2f}.",
    ),
    EVENT_ORDER_READY: (
        "Order {order_number} is ready",
        "Hi {customer_name}, order {order_number} is ready for pickup.",
    ),
    EVENT_ORDER_DELIVERED: (
        "Order {order_number} delivered",
        "Hi {customer_name}, order {order_number} has been delivered. Thank you!",
    ),
    EVENT_PASSWORD_RESET: (
        "Your password reset code",
        "Hi {customer_name}, your reset code is {code}. It expires in {ttl_minutes} minutes.",
    ),
}

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="notify")


def render(template: str, data: dict) -> tuple[str, str]:
    subject, body = TEMPLATES[template]
    return subject.format(**data), body.format(**data)


@dataclass(frozen=True)
class HttpNotifier:
    email_url: str | None
    sms_url: str | None
    api_key: str | None = None
    timeout: float = 5.0

    @classmethod
    def from_config(cls, config) -> "HttpNotifier":
        return cls(
            email_url=config.get("NOTIFY_EMAIL_URL"),
            sms_url=config.get("NOTIFY_SMS_URL"),
            api_key=config.get("NOTIFY_API_KEY"),
            timeout=float(config.get("NOTIFY_TIMEOUT_SECONDS", 5)),
        )

    def notify(self, channel: str, recipient: str | None, template: str, data: dict) -> str:
        url = self.email_url if channel == CHANNEL_EMAIL else self.sms_url if channel == CHANNEL_SMS else None
        if not url or not recipient:
            return RESULT_SKIPPED

        try:
            subject, body = render(template, data)
        except (KeyError, ValueError):
            logger.warning("Notification template %s could not be rendered", template)
            return RESULT_FAILED

        payload = {"to": recipient, "template": template, "body": body}
        if channel == CHANNEL_EMAIL:
            payload["subject"] = subject
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            response = httpx.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to send %s %s to %s: %s", channel, template, recipient, exc)
            return RESULT_FAILED

        return RESULT_DELIVERED


def resolve_recipient(order: Order) -> tuple[str, str] | None:
    """
    (channel, recipient) for an order's customer, or None when the customer
    opted out, has no usable contact, or chose SMS without consent.
    """
    customer = db.session.get(Customer, order.customer_id) if order.customer_id else None
    if customer is None:
        return (CHANNEL_EMAIL, order.customer_email) if order.customer_email else None

    preference = customer.notification_preference or NOTIFY_EMAIL
    if preference == NOTIFY_NONE:
        return None
    if preference == NOTIFY_SMS:
        phone = customer.phone or order.customer_phone
        if customer.sms_consent and phone:
            return CHANNEL_SMS, phone
        return None

    email = customer.email or order.customer_email
    return (CHANNEL_EMAIL, email) if email else None


def _send(notifier, channel: str, recipient: str, template: str, data: dict) -> str:
    try:
        return notifier.notify(channel, recipient, template, data)
    except Exception:
        logger.exception("Notifier raised while sending %s", template)
        return RESULT_FAILED


def _dispatch(channel: str, recipient: str, template: str, data: dict) -> None:
    notifier = current_app.extensions.get("notifier")
    if notifier is None:
        return
    if current_app.config.get("NOTIFY_SYNC"):
        _send(notifier, channel, recipient, template, data)
    else:
        _executor.submit(_send, notifier, channel, recipient, template, data)


def notify_order_event(order: Order, event: str) -> None:
    """Queue the customer notification for an order event. Never raises."""
    try:
        target = resolve_recipient(order)
        if target is None:
            return
        channel, recipient = target
        data = {
            "order_number": order.order_number,
            "customer_name": order.customer_name or "there",
            "total": money_json(order.total) or 0.0,
            "status": order.status,
        }
        _dispatch(channel, recipient, event, data)
    except Exception:
        logger.exception("Failed to queue %s notification", event)


def send_reset_code(customer: Customer, code: str, ttl_minutes: int) -> None:
    """
    Reset codes go out even when marketing preference is "none": email
    first, SMS only with consent.
    """
    if customer.email:
        target = (CHANNEL_EMAIL, customer.email)
    elif customer.phone and customer.sms_consent:
        target = (CHANNEL_SMS, customer.phone)
    else:
        logger.warning("Customer %s has no channel for a reset code", customer.id)
        return
    try:
        _dispatch(*target, EVENT_PASSWORD_RESET, {
            "customer_name": customer.name,
            "code": code,
            "ttl_minutes": ttl_minutes,
        })
    except Exception:
        logger.exception("Failed to queue reset code notification")
