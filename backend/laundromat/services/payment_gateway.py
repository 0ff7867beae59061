# Overview: Card payment gateway client; the only place card data is handled.

"""
Card Payment Gateway

WHY: Card charges go to an external processor over HTTP. Card number and
CVV are passed through to the gateway and never persisted; only the
gateway transaction id and the last four digits are kept on the order.

The gateway used by the app is resolved from app.extensions["payment_gateway"]
(set in create_app, replaceable in tests).

GATEWAY CONTRACT:
    POST {PAYMENT_GATEWAY_URL}/charges
    {"card_number", "expiry", "cvv", "amount", "reference"}
    -> 200 {"status": "approved", "transaction_id": "..."}
    -> 200/402 {"status": "declined", "reason": "..."}
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

import httpx
from flask import current_app

from ..money import quantize_cents
from ..validation import ValidationError


class PaymentGatewayError(Exception):
    """Gateway unreachable, misconfigured, or returned an unusable response."""
    pass


class PaymentGatewayTimeout(PaymentGatewayError):
    """Gateway did not answer within PAYMENT_GATEWAY_TIMEOUT_SECONDS."""
    pass


_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/?(\d{2}|\d{4})$")


@dataclass(frozen=True)
class CardDetails:
    number: str
    expiry: str
    cvv: str

    def __repr__(self) -> str:
        return f"CardDetails(number='****{self.last_four}')"

    @property
    def last_four(self) -> str:
        return self.number[-4:]

    @classmethod
    def parse(cls, data: dict | None) -> "CardDetails":
        data = data or {}
        number = re.sub(r"[\s-]", "", str(data.get("number") or data.get("card_number") or ""))
        expiry = str(data.get("expiry") or "").strip()
        cvv = str(data.get("cvv") or "").strip()

        if not number.isdigit() or not 12 <= len(number) <= 19:
            raise ValidationError("Card number is invalid")
        if not _EXPIRY_RE.match(expiry):
            raise ValidationError("Card expiry must be MM/YY")
        if not cvv.isdigit() or len(cvv) not in (3, 4):
            raise ValidationError("Card CVV is invalid")
        return cls(number=number, expiry=expiry, cvv=cvv)


@dataclass(frozen=True)
class ChargeResult:
    approved: bool
    transaction_id: str | None = None
    last_four: str | None = None
    decline_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "approved": self.approved,
            "transaction_id": self.transaction_id,
            "last_four": self.last_four,
            "decline_reason": self.decline_reason,
        }


class HttpPaymentGateway:
    def __init__(self, base_url: str, api_key: str | None = None, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def charge(self, card: CardDetails, amount: Decimal, reference: str) -> ChargeResult:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "card_number": card.number,
            "expiry": card.expiry,
            "cvv": card.cvv,
            "amount": str(quantize_cents(amount)),
            "reference": reference,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(f"{self.base_url}/charges", json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise PaymentGatewayTimeout("Payment gateway timed out") from exc
        except httpx.HTTPError as exc:
            raise PaymentGatewayError("Payment gateway unreachable") from exc

        if response.status_code >= 500:
            raise PaymentGatewayError(f"Payment gateway error (HTTP {response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise PaymentGatewayError("Payment gateway returned an invalid response") from exc

        status = str(body.get("status") or "").lower()
        if status == "approved" and response.status_code < 300:
            return ChargeResult(
                approved=True,
                transaction_id=body.get("transaction_id"),
                last_four=card.last_four,
            )
        if status == "declined" or response.status_code == 402:
            return ChargeResult(approved=False, decline_reason=body.get("reason") or "Card declined")

        raise PaymentGatewayError(f"Unexpected payment gateway response (HTTP {response.status_code})")


def build_gateway(config) -> HttpPaymentGateway | None:
    url = config.get("PAYMENT_GATEWAY_URL")
    if not url:
        return None
    return HttpPaymentGateway(
        url,
        api_key=config.get("PAYMENT_GATEWAY_API_KEY"),
        timeout=float(config.get("PAYMENT_GATEWAY_TIMEOUT_SECONDS", 15)),
    )


def get_gateway():
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        raise PaymentGatewayError("Card payments are not configured")
    return gateway
