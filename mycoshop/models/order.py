from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import JSON, Enum as SAEnum
from enum import Enum
from mycoshop.models.product import Size

class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CARD = "card"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    product_id: int = Field(foreign_key="product.id")
    name: str
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=1)
    size: Size = Field(default=Size.STANDARD)
    image: Optional[str] = None

class OrderStatusHistory(SQLModel, table=True):
    # Append-only; rows are never updated or deleted
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    status: OrderStatus
    note: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Human-referenceable number, e.g. MSH1718030000123042
    order_number: str = Field(unique=True, index=True)
    session_id: str = Field(index=True)
    # Originating cart, emptied once payment completes
    cart_id: Optional[int] = None

    # Totals frozen at checkout
    subtotal: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    tax: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    shipping: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    total: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    shipping_address: dict = Field(sa_column=Column(JSON))

    # Payment Info
    payment_method: PaymentMethod
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
        sa_column=Column(SAEnum(PaymentStatus, values_callable=lambda x: [e.value for e in x]), nullable=False, index=True)
    )
    transaction_id: Optional[str] = None
    # Gateway-side order opened for this checkout, matched by webhooks
    gateway_order_id: Optional[str] = Field(default=None, index=True)
    payment_details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Fulfillment
    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        sa_column=Column(SAEnum(OrderStatus, values_callable=lambda x: [e.value for e in x]), nullable=False, index=True)
    )
    tracking_carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    notes: Optional[str] = Field(default=None, max_length=500)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    items: List["OrderItem"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderItem.id", "lazy": "selectin"}
    )
    status_history: List["OrderStatusHistory"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderStatusHistory.id", "lazy": "selectin"}
    )
