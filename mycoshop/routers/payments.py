import json
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select
import structlog
from mycoshop.core.exceptions import InvalidTransition, OrderNotFound, PaymentDeclined, ValidationError
from mycoshop.models.order import Order, PaymentStatus
from mycoshop.models.payment import Payment
from mycoshop.routers.orders import get_order_service, order_to_dict
from mycoshop.routers.session import get_session_id
from mycoshop.services.order import OrderService
from mycoshop.services.payment import RazorpayGateway, SimulatedCardGateway

router = APIRouter()
logger = structlog.get_logger(__name__)

class RazorpayCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: str = Field(alias="orderNumber")

class RazorpayVerify(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: str = Field(alias="orderNumber")
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

class CardPayment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: str = Field(alias="orderNumber")
    number: str = Field(alias="cardNumber")
    expiry: Optional[str] = None
    cvv: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="cardholderName")

def get_razorpay_gateway() -> RazorpayGateway:
    return RazorpayGateway()

def get_card_gateway() -> SimulatedCardGateway:
    return SimulatedCardGateway()

def payable_order(service: OrderService, order_number: str, session_id: str) -> Order:
    order = service.get_order(order_number, session_id)
    if order.payment_status == PaymentStatus.COMPLETED:
        raise InvalidTransition("Order has already been paid")
    if order.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
        raise InvalidTransition(f"Order payment is {order.payment_status.value}")
    return order

@router.post("/razorpay/create")
def create_razorpay_payment(
    payment_in: RazorpayCreate,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
    gateway: RazorpayGateway = Depends(get_razorpay_gateway),
):
    order = payable_order(service, payment_in.order_number, session_id)
    payment = gateway.create(order)
    order = service.attach_gateway_order(order, payment.gateway_order_id)
    return {
        "success": True,
        "data": {
            "razorpayOrderId": payment.gateway_order_id,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "orderNumber": order.order_number,
        },
    }

@router.post("/razorpay/verify")
def verify_razorpay_payment(
    payment_in: RazorpayVerify,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
    gateway: RazorpayGateway = Depends(get_razorpay_gateway),
):
    order = payable_order(service, payment_in.order_number, session_id)
    outcome = gateway.execute(order, payment_in.model_dump(exclude={"order_number"}))
    order = service.record_payment_outcome(order, outcome)
    if not outcome.success:
        raise PaymentDeclined(outcome.error or "Payment verification failed")
    return {"success": True, "data": order_to_dict(order), "message": "Payment verified successfully"}

@router.get("/razorpay/status/{payment_id}")
def razorpay_payment_status(payment_id: str, gateway: RazorpayGateway = Depends(get_razorpay_gateway)):
    return {"success": True, "data": gateway.status(payment_id)}

@router.post("/webhook/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(None),
    service: OrderService = Depends(get_order_service),
    gateway: RazorpayGateway = Depends(get_razorpay_gateway),
):
    if not x_razorpay_signature:
        raise ValidationError("Missing signature")

    body = await request.body()
    if not gateway.verify_webhook(body.decode(), x_razorpay_signature):
        logger.warning("Rejected Razorpay webhook with bad signature")
        raise ValidationError("Invalid signature")

    event = json.loads(body)
    outcome = gateway.outcome_from_event(event)
    if outcome is None:
        return {"success": True, "message": f"Ignored event {event.get('event')}"}

    entity = event.get("payload", {}).get("payment", {}).get("entity", {})
    order = webhook_order(service.session, entity)
    if order is None:
        logger.warning("Webhook payment without matching order", transaction_id=outcome.transaction_id,
                       gateway_order_id=outcome.gateway_order_id)
        raise OrderNotFound()

    order = service.record_payment_outcome(order, outcome)
    return {"success": True, "data": {"orderNumber": order.order_number,
                                      "paymentStatus": order.payment_status.value}}

def webhook_order(session: Session, entity: dict) -> Optional[Order]:
    """Resolve the order from the payment notes, else from the gateway order opened at create time."""
    order_number = (entity.get("notes") or {}).get("order_number")
    if order_number:
        return session.exec(select(Order).where(Order.order_number == order_number)).first()

    gateway_order_id = entity.get("order_id")
    if gateway_order_id:
        order = session.exec(select(Order).where(Order.gateway_order_id == gateway_order_id)).first()
        if order:
            return order
        # A retry replaces the order's gateway id; earlier attempts remain on payment rows
        payment = session.exec(select(Payment).where(Payment.gateway_order_id == gateway_order_id)).first()
        if payment:
            return session.get(Order, payment.order_id)
    return None

@router.post("/card/process")
def process_card_payment(
    payment_in: CardPayment,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
    gateway: SimulatedCardGateway = Depends(get_card_gateway),
):
    order = payable_order(service, payment_in.order_number, session_id)
    outcome = gateway.execute(order, {"number": payment_in.number, "expiry": payment_in.expiry})
    order = service.record_payment_outcome(order, outcome)
    if not outcome.success:
        raise PaymentDeclined(outcome.error)
    return {"success": True, "data": order_to_dict(order), "message": "Payment processed successfully"}
