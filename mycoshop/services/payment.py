"""Payment gateway adapters.

The checkout state machine only sees ``PaymentOutcome``; how a processor is
reached stays in here. ``RazorpayGateway`` talks to Razorpay through its SDK,
``SimulatedCardGateway`` is the test-mode card processor.
"""

import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from mycoshop.core.config import settings
from mycoshop.core.exceptions import GatewayError, ValidationError
from mycoshop.models.order import Order, PaymentMethod

logger = structlog.get_logger(__name__)


@dataclass
class PaymentOutcome:
    success: bool
    method: PaymentMethod
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "USD"
    gateway_order_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class GatewayPayment:
    """A payment opened at the processor, waiting for the shopper."""
    gateway_order_id: str
    amount: Decimal
    currency: str
    raw: dict = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(str(amount)) * 100).to_integral_value())


class PaymentGateway(ABC):
    method: PaymentMethod

    @abstractmethod
    def create(self, order: Order) -> GatewayPayment:
        ...

    @abstractmethod
    def execute(self, order: Order, payload: dict) -> PaymentOutcome:
        ...

    @abstractmethod
    def status(self, payment_id: str) -> dict:
        ...


class RazorpayGateway(PaymentGateway):
    method = PaymentMethod.RAZORPAY

    def __init__(self, key_id: str = None, key_secret: str = None, webhook_secret: str = None, client=None):
        if client is None:
            import razorpay
            client = razorpay.Client(auth=(key_id or settings.RAZORPAY_KEY_ID,
                                           key_secret or settings.RAZORPAY_KEY_SECRET))
        self.client = client
        self.webhook_secret = webhook_secret or settings.RAZORPAY_WEBHOOK_SECRET

    def create(self, order: Order) -> GatewayPayment:
        data = {
            "amount": to_minor_units(order.total),
            "currency": settings.CURRENCY,
            "receipt": order.order_number,
            "payment_capture": 1,
            "notes": {"order_number": order.order_number},
        }
        try:
            payment = self.client.order.create(data=data)
        except Exception as e:
            logger.error("Razorpay order creation failed", order_number=order.order_number, error=str(e))
            raise GatewayError("Failed to create Razorpay payment") from e

        logger.info("Razorpay order created", order_number=order.order_number, gateway_order_id=payment.get("id"))
        return GatewayPayment(
            gateway_order_id=payment.get("id"),
            amount=order.total,
            currency=settings.CURRENCY,
            raw=payment,
        )

    def execute(self, order: Order, payload: dict) -> PaymentOutcome:
        """Verify the checkout signature the shopper's browser sent back."""
        params = {
            "razorpay_order_id": payload.get("razorpay_order_id"),
            "razorpay_payment_id": payload.get("razorpay_payment_id"),
            "razorpay_signature": payload.get("razorpay_signature"),
        }
        if not all(params.values()):
            raise ValidationError("Missing required payment information")

        try:
            self.client.utility.verify_payment_signature(params)
        except Exception as e:
            logger.warning("Razorpay signature rejected", order_number=order.order_number, error=str(e))
            return PaymentOutcome(
                success=False,
                method=self.method,
                gateway_order_id=params["razorpay_order_id"],
                error="Payment signature verification failed",
            )

        return PaymentOutcome(
            success=True,
            method=self.method,
            transaction_id=params["razorpay_payment_id"],
            amount=order.total,
            currency=settings.CURRENCY,
            gateway_order_id=params["razorpay_order_id"],
            details={
                "method": self.method.value,
                "razorpayPaymentId": params["razorpay_payment_id"],
                "razorpayOrderId": params["razorpay_order_id"],
                "completedAt": datetime.utcnow().isoformat(),
            },
        )

    def status(self, payment_id: str) -> dict:
        try:
            payment = self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error("Razorpay status lookup failed", payment_id=payment_id, error=str(e))
            raise GatewayError("Failed to get payment status") from e
        return {
            "paymentId": payment.get("id"),
            "state": payment.get("status"),
            "amount": payment.get("amount"),
            "currency": payment.get("currency"),
            "createdAt": payment.get("created_at"),
        }

    def verify_webhook(self, body: str, signature: str) -> bool:
        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except Exception:
            return False
        return True

    @staticmethod
    def outcome_from_event(event: dict) -> Optional[PaymentOutcome]:
        """Translate a webhook event into an outcome, None for events we ignore."""
        kind = event.get("event")
        if kind not in ("payment.captured", "payment.failed"):
            return None
        entity = event.get("payload", {}).get("payment", {}).get("entity", {})
        amount = entity.get("amount")
        return PaymentOutcome(
            success=kind == "payment.captured",
            method=PaymentMethod.RAZORPAY,
            transaction_id=entity.get("id"),
            amount=Decimal(amount) / 100 if amount is not None else None,
            currency=entity.get("currency", settings.CURRENCY),
            gateway_order_id=entity.get("order_id"),
            details={"method": PaymentMethod.RAZORPAY.value, "razorpayPaymentId": entity.get("id"),
                     "razorpayOrderId": entity.get("order_id")},
            error=entity.get("error_description"),
        )


# Well-known processor test numbers that always decline
DECLINED_TEST_CARDS = {"4000000000000002", "4000000000009995", "4000000000000069"}


class SimulatedCardGateway(PaymentGateway):
    """Card processor for test mode; never leaves the process."""
    method = PaymentMethod.CARD

    def create(self, order: Order) -> GatewayPayment:
        return GatewayPayment(gateway_order_id=f"sim_{order.order_number}", amount=order.total,
                              currency=settings.CURRENCY)

    def execute(self, order: Order, payload: dict) -> PaymentOutcome:
        number = "".join(ch for ch in str(payload.get("number", "")) if ch.isdigit())
        if len(number) < 12:
            raise ValidationError("Invalid card number")

        if number in DECLINED_TEST_CARDS or self._expired(payload.get("expiry")):
            return PaymentOutcome(success=False, method=self.method, error="Payment was declined",
                                  details={"method": self.method.value, "last4": number[-4:]})

        transaction_id = f"card_{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"
        return PaymentOutcome(
            success=True,
            method=self.method,
            transaction_id=transaction_id,
            amount=order.total,
            currency=settings.CURRENCY,
            details={
                "method": self.method.value,
                "last4": number[-4:],
                "amount": float(order.total),
                "currency": settings.CURRENCY,
                "completedAt": datetime.utcnow().isoformat(),
            },
        )

    def status(self, payment_id: str) -> dict:
        return {"paymentId": payment_id, "state": "unknown"}

    @staticmethod
    def _expired(expiry: Optional[str]) -> bool:
        """Expiry as MM/YY; missing or malformed values are not treated as expired."""
        if not expiry or "/" not in expiry:
            return False
        month, _, year = expiry.partition("/")
        try:
            month, year = int(month), int(year)
        except ValueError:
            return False
        if year < 100:
            year += 2000
        today = datetime.utcnow()
        return (year, month) < (today.year, today.month)
