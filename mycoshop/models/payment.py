from typing import Optional
from decimal import Decimal
from datetime import datetime
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON, Enum as SAEnum
from enum import Enum
from mycoshop.models.order import PaymentMethod

class PaymentRecordStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"

class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    order_id: int = Field(foreign_key="order.id", index=True)

    # Payment Gateway Info
    transaction_id: Optional[str] = Field(default=None, unique=True)  # idempotency key for outcomes
    gateway_order_id: Optional[str] = Field(default=None, index=True)

    # Payment Details
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    currency: str = "USD"
    payment_method: PaymentMethod
    payment_status: PaymentRecordStatus = Field(
        sa_column=Column(SAEnum(PaymentRecordStatus, values_callable=lambda x: [e.value for e in x]), nullable=False)
    )
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Metadata
    error_message: Optional[str] = None  # For failed payments

    created_at: datetime = Field(default_factory=datetime.utcnow)
