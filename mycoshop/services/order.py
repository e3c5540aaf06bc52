import math
import secrets
import time
from dataclasses import dataclass
from typing import List, Optional
from datetime import datetime

import structlog
from sqlalchemy import func, update
from sqlmodel import Session, col, select

from mycoshop.core.config import settings
from mycoshop.core.exceptions import EmptyCart, InsufficientStock, InvalidTransition, OrderNotFound
from mycoshop.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentMethod,
    PaymentStatus,
)
from mycoshop.models.payment import Payment, PaymentRecordStatus
from mycoshop.services.cart import CartService
from mycoshop.services.catalog import CatalogStore
from mycoshop.services.payment import PaymentOutcome
from mycoshop.services.pricing import PricingPolicy, compute_totals

logger = structlog.get_logger(__name__)

# Payment may only be captured from these states
PAYABLE_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)


@dataclass
class Page:
    items: List[Order]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalOrders": self.total,
            "hasNextPage": self.page < self.total_pages,
            "hasPrevPage": self.page > 1,
        }


class OrderService:
    """Checkout and the order lifecycle.

    Fulfillment: pending -> processing -> shipped -> delivered, with
    cancelled reachable from pending. Payment is tracked separately:
    pending -> completed | failed, completed -> refunded.

    Stock is only taken and the cart only emptied once payment completes,
    inside the same transaction that marks the order paid.
    """

    def __init__(self, session: Session, catalog: CatalogStore, policy: Optional[PricingPolicy] = None,
                 carts: Optional[CartService] = None):
        self.session = session
        self.catalog = catalog
        self.policy = policy or PricingPolicy.from_settings()
        self.carts = carts or CartService(session, catalog, self.policy)

    # --- Checkout -------------------------------------------------------------

    def create_order(self, session_id: str, shipping_address: dict, payment_method: PaymentMethod,
                     notes: Optional[str] = None) -> Order:
        cart = self.carts.find_cart(session_id)
        if cart is None or not cart.items:
            raise EmptyCart()

        # Stock is checked again here, whatever the cart saw when lines were added
        for line in cart.items:
            product = self.catalog.get(line.product_id)
            if product is None or not product.active:
                raise InsufficientStock(f"Product {line.name} is no longer available")
            if self.catalog.available_stock(product, line.size) < line.quantity:
                raise InsufficientStock(f"Insufficient stock for {line.name} ({line.size.value})")

        totals = compute_totals(cart.items, self.policy)

        order = Order(
            order_number=self._generate_order_number(),
            session_id=session_id,
            cart_id=cart.id,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            shipping_address=shipping_address,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.PENDING,
            notes=notes,
        )
        order.items = [
            OrderItem(
                product_id=line.product_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                size=line.size,
                image=line.image,
            )
            for line in cart.items
        ]
        order.status_history = [OrderStatusHistory(status=OrderStatus.PENDING, note="Order placed")]

        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)

        logger.info("Order created", order_number=order.order_number, session_id=session_id,
                    total=str(order.total), items=len(order.items))
        return order

    # --- Payment --------------------------------------------------------------

    def record_payment_outcome(self, order: Order, outcome: PaymentOutcome) -> Order:
        """Apply a gateway result to the order. Safe to call more than once."""
        if outcome.transaction_id and self._payment_recorded(outcome.transaction_id):
            logger.info("Payment outcome already recorded", order_number=order.order_number,
                        transaction_id=outcome.transaction_id)
            return order

        if order.status == OrderStatus.CANCELLED:
            raise InvalidTransition("Order has been cancelled")

        if outcome.success:
            return self._complete_payment(order, outcome)
        return self._fail_payment(order, outcome)

    def attach_gateway_order(self, order: Order, gateway_order_id: str) -> Order:
        """Remember the gateway's order id so webhooks can find this order."""
        order.gateway_order_id = gateway_order_id
        order.updated_at = datetime.utcnow()
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Gateway order attached", order_number=order.order_number,
                    gateway_order_id=gateway_order_id)
        return order

    def refund_payment(self, order: Order, note: Optional[str] = None) -> Order:
        if order.payment_status != PaymentStatus.COMPLETED:
            raise InvalidTransition(
                f"Cannot refund a payment in {order.payment_status.value} state"
            )
        order.payment_status = PaymentStatus.REFUNDED
        order.updated_at = datetime.utcnow()
        order.status_history.append(OrderStatusHistory(status=order.status, note=note or "Payment refunded"))
        self.session.add(Payment(
            order_id=order.id,
            transaction_id=f"refund_{order.transaction_id}" if order.transaction_id else None,
            amount=order.total,
            currency=settings.CURRENCY,
            payment_method=order.payment_method,
            payment_status=PaymentRecordStatus.REFUNDED,
        ))
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Payment refunded", order_number=order.order_number)
        return order

    def _complete_payment(self, order: Order, outcome: PaymentOutcome) -> Order:
        if order.payment_status == PaymentStatus.COMPLETED:
            logger.info("Payment already completed", order_number=order.order_number)
            return order
        if order.payment_status not in PAYABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot complete a payment in {order.payment_status.value} state"
            )

        try:
            claimed = self.session.exec(
                update(Order)
                .where(col(Order.id) == order.id, col(Order.payment_status).in_(PAYABLE_STATUSES))
                .values(payment_status=PaymentStatus.COMPLETED)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                # Another request moved the payment first
                self.session.rollback()
                self.session.refresh(order)
                if order.payment_status == PaymentStatus.COMPLETED:
                    return order
                raise InvalidTransition(
                    f"Cannot complete a payment in {order.payment_status.value} state"
                )

            for item in order.items:
                self.catalog.decrement_stock(item.product_id, item.size, item.quantity)

            if order.cart_id is not None:
                self.carts.empty_cart(order.cart_id)

            now = datetime.utcnow()
            order.payment_status = PaymentStatus.COMPLETED
            order.transaction_id = outcome.transaction_id
            order.payment_details = outcome.details or None
            order.status = OrderStatus.PROCESSING
            order.updated_at = now
            order.status_history.append(OrderStatusHistory(
                status=OrderStatus.PROCESSING,
                note=f"Payment completed via {outcome.method.value}",
                timestamp=now,
            ))
            self.session.add(self._payment_record(order, outcome, PaymentRecordStatus.SUCCESS))
            self.session.add(order)
            self.session.commit()
        except InsufficientStock:
            self.session.rollback()
            logger.error("Stock ran out before payment completed", order_number=order.order_number,
                         transaction_id=outcome.transaction_id)
            raise
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(order)
        logger.info("Payment completed", order_number=order.order_number,
                    transaction_id=outcome.transaction_id, method=outcome.method.value)
        return order

    def _fail_payment(self, order: Order, outcome: PaymentOutcome) -> Order:
        if order.payment_status == PaymentStatus.COMPLETED:
            # A late failure never downgrades a captured payment
            logger.warning("Ignoring failure for completed payment", order_number=order.order_number)
            return order

        claimed = self.session.exec(
            update(Order)
            .where(col(Order.id) == order.id, col(Order.payment_status).in_(PAYABLE_STATUSES))
            .values(payment_status=PaymentStatus.FAILED)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            # Payment moved on in another request; the failure is stale
            self.session.rollback()
            self.session.refresh(order)
            logger.warning("Ignoring failure for settled payment", order_number=order.order_number,
                           payment_status=order.payment_status.value)
            return order

        order.payment_status = PaymentStatus.FAILED
        order.updated_at = datetime.utcnow()
        self.session.add(self._payment_record(order, outcome, PaymentRecordStatus.FAILED))
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.warning("Payment failed", order_number=order.order_number, error=outcome.error)
        return order

    # --- Fulfillment ----------------------------------------------------------

    def cancel_order(self, order: Order, note: str = "Order cancelled by customer") -> Order:
        if order.status != OrderStatus.PENDING:
            raise InvalidTransition("Order cannot be cancelled as it is already being processed")

        claimed = self.session.exec(
            update(Order)
            .where(col(Order.id) == order.id, col(Order.status) == OrderStatus.PENDING)
            .values(status=OrderStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.session.rollback()
            raise InvalidTransition("Order cannot be cancelled as it is already being processed")

        order.status = OrderStatus.CANCELLED
        if order.payment_status in PAYABLE_STATUSES:
            order.payment_status = PaymentStatus.CANCELLED
        order.updated_at = datetime.utcnow()
        order.status_history.append(OrderStatusHistory(status=OrderStatus.CANCELLED, note=note))
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Order cancelled", order_number=order.order_number)
        return order

    def update_fulfillment_status(self, order: Order, status: OrderStatus, note: Optional[str] = None,
                                  carrier: Optional[str] = None, tracking_number: Optional[str] = None) -> Order:
        """Admin status change.

        Any status may follow any other; shop staff correct mistakes through
        this path, so no ordering is imposed.
        """
        now = datetime.utcnow()
        previous = order.status
        order.status = status
        if carrier:
            order.tracking_carrier = carrier
        if tracking_number:
            order.tracking_number = tracking_number
        if status == OrderStatus.SHIPPED:
            order.shipped_at = now
        elif status == OrderStatus.DELIVERED:
            order.delivered_at = now
        order.updated_at = now
        order.status_history.append(OrderStatusHistory(
            status=status,
            note=note or f"Status updated to {status.value}",
            timestamp=now,
        ))
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Order status updated", order_number=order.order_number,
                    previous=previous.value, status=status.value)
        return order

    # --- Queries --------------------------------------------------------------

    def get_order(self, order_number: str, session_id: Optional[str] = None) -> Order:
        statement = select(Order).where(Order.order_number == order_number.strip().upper())
        if session_id is not None:
            statement = statement.where(Order.session_id == session_id)
        order = self.session.exec(statement).first()
        if order is None:
            raise OrderNotFound()
        return order

    def list_orders(self, session_id: str, page: int = 1, limit: int = 10) -> Page:
        return self._page([Order.session_id == session_id], page, limit)

    def list_all(self, page: int = 1, limit: int = 20, status: Optional[OrderStatus] = None) -> Page:
        conditions = [col(Order.status) == status] if status else []
        return self._page(conditions, page, limit)

    # --- Internal helpers -----------------------------------------------------

    def _page(self, conditions: list, page: int, limit: int) -> Page:
        page = max(page, 1)
        limit = max(limit, 1)
        total = self.session.exec(select(func.count()).select_from(Order).where(*conditions)).one()
        orders = self.session.exec(
            select(Order)
            .where(*conditions)
            .order_by(col(Order.created_at).desc(), col(Order.id).desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return Page(items=list(orders), page=page, limit=limit, total=total)

    def _generate_order_number(self) -> str:
        while True:
            number = f"MSH{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"
            exists = self.session.exec(select(Order.id).where(Order.order_number == number)).first()
            if exists is None:
                return number

    def _payment_recorded(self, transaction_id: str) -> bool:
        return self.session.exec(
            select(Payment.id).where(Payment.transaction_id == transaction_id)
        ).first() is not None

    @staticmethod
    def _payment_record(order: Order, outcome: PaymentOutcome, status: PaymentRecordStatus) -> Payment:
        return Payment(
            order_id=order.id,
            transaction_id=outcome.transaction_id,
            gateway_order_id=outcome.gateway_order_id,
            amount=outcome.amount if outcome.amount is not None else order.total,
            currency=outcome.currency,
            payment_method=outcome.method,
            payment_status=status,
            details=outcome.details or None,
            error_message=outcome.error,
        )
