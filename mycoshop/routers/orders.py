from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session
from mycoshop.core.config import settings
from mycoshop.core.exceptions import Forbidden, StoreUnavailable, ValidationError
from mycoshop.db.session import get_session
from mycoshop.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from mycoshop.routers.products import get_catalog
from mycoshop.routers.session import get_session_id
from mycoshop.services.catalog import CatalogStore, SqlCatalogStore
from mycoshop.services.order import OrderService
from mycoshop.services.payment import PaymentOutcome

router = APIRouter()

class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(min_length=1, alias="firstName")
    last_name: str = Field(min_length=1, alias="lastName")
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = None
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1, alias="zipCode")
    country: str = Field(default="US", min_length=1)

class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    shipping_address: ShippingAddress = Field(alias="shippingAddress")
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    notes: Optional[str] = Field(default=None, max_length=500)

class OrderStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: OrderStatus
    note: Optional[str] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")

class PaymentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_status: PaymentStatus = Field(alias="paymentStatus")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    payment_details: Optional[dict] = Field(default=None, alias="paymentDetails")

def get_order_service(
    session: Session = Depends(get_session),
    catalog: CatalogStore = Depends(get_catalog),
) -> OrderService:
    if not isinstance(catalog, SqlCatalogStore):
        raise StoreUnavailable("Orders are unavailable while the store is offline")
    return OrderService(session, catalog)

def order_to_dict(order: Order) -> dict:
    return {
        "orderNumber": order.order_number,
        "items": [
            {
                "productId": item.product_id,
                "name": item.name,
                "price": float(item.price),
                "quantity": item.quantity,
                "size": item.size.value,
                "image": item.image,
                "lineTotal": float(item.price * item.quantity),
            }
            for item in order.items
        ],
        "subtotal": float(order.subtotal),
        "tax": float(order.tax),
        "shipping": float(order.shipping),
        "total": float(order.total),
        "shippingAddress": order.shipping_address,
        "paymentMethod": order.payment_method.value,
        "paymentStatus": order.payment_status.value,
        "transactionId": order.transaction_id,
        "gatewayOrderId": order.gateway_order_id,
        "paymentDetails": order.payment_details,
        "status": order.status.value,
        "statusHistory": [
            {"status": entry.status.value, "note": entry.note, "timestamp": entry.timestamp.isoformat()}
            for entry in order.status_history
        ],
        "tracking": {
            "carrier": order.tracking_carrier,
            "trackingNumber": order.tracking_number,
            "shippedAt": order.shipped_at.isoformat() if order.shipped_at else None,
            "deliveredAt": order.delivered_at.isoformat() if order.delivered_at else None,
        },
        "notes": order.notes,
        "createdAt": order.created_at.isoformat(),
        "updatedAt": order.updated_at.isoformat(),
    }

@router.post("/", status_code=201)
def create_order(
    order_in: OrderCreate,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
):
    order = service.create_order(
        session_id=session_id,
        shipping_address=order_in.shipping_address.model_dump(by_alias=True),
        payment_method=order_in.payment_method,
        notes=order_in.notes,
    )
    return {"success": True, "data": order_to_dict(order), "message": "Order created successfully"}

@router.get("/")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
):
    result = service.list_orders(session_id, page, limit)
    return {
        "success": True,
        "data": [order_to_dict(o) for o in result.items],
        "pagination": result.pagination(),
    }

@router.get("/admin/all")
def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    service: OrderService = Depends(get_order_service),
):
    result = service.list_all(page, limit, status)
    return {
        "success": True,
        "data": [order_to_dict(o) for o in result.items],
        "pagination": result.pagination(),
    }

@router.get("/{order_number}")
def get_order(
    order_number: str,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
):
    order = service.get_order(order_number, session_id)
    return {"success": True, "data": order_to_dict(order)}

@router.put("/{order_number}/status")
def update_order_status(
    order_number: str,
    status_in: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    order = service.get_order(order_number)
    order = service.update_fulfillment_status(
        order, status_in.status, note=status_in.note,
        carrier=status_in.carrier, tracking_number=status_in.tracking_number,
    )
    return {"success": True, "data": order_to_dict(order), "message": "Order status updated successfully"}

@router.put("/{order_number}/payment")
def update_payment_status(
    order_number: str,
    payment_in: PaymentUpdate,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
):
    # Anyone holding the session cookie reaches this route, so it stays a
    # development aid; gateways settle payments through /api/payments
    if not settings.manual_payment_updates:
        raise Forbidden("Manual payment updates are disabled")

    order = service.get_order(order_number, session_id)

    if payment_in.payment_status == PaymentStatus.REFUNDED:
        order = service.refund_payment(order)
    elif payment_in.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
        details = payment_in.payment_details or {}
        outcome = PaymentOutcome(
            success=payment_in.payment_status == PaymentStatus.COMPLETED,
            method=order.payment_method,
            transaction_id=payment_in.transaction_id,
            details=details,
            error=details.get("error"),
        )
        order = service.record_payment_outcome(order, outcome)
    else:
        raise ValidationError(f"Payment status cannot be set to {payment_in.payment_status.value}")

    return {"success": True, "data": order_to_dict(order), "message": "Payment status updated successfully"}

@router.delete("/{order_number}")
def cancel_order(
    order_number: str,
    session_id: str = Depends(get_session_id),
    service: OrderService = Depends(get_order_service),
):
    order = service.get_order(order_number, session_id)
    order = service.cancel_order(order)
    return {"success": True, "data": order_to_dict(order), "message": "Order cancelled successfully"}
