from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from enum import Enum
from sqlmodel import Field, Relationship, SQLModel
from mycoshop.models.product import Size

class CartStatus(str, Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"

class CartItem(SQLModel, table=True):
    # The id doubles as the line id exposed by the API
    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(foreign_key="cart.id", index=True)
    product_id: int = Field(foreign_key="product.id")

    # Captured when the line is first added, never re-read from the catalog
    name: str = Field(max_length=100)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    image: str

    quantity: int = Field(default=1, ge=1)
    size: Size = Field(default=Size.STANDARD)

class Cart(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True)
    status: CartStatus = Field(default=CartStatus.ACTIVE)

    # Derived from the lines on every mutation
    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    shipping: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    total: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)

    # Optimistic lock, bumped by every persisted mutation
    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    items: List[CartItem] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "CartItem.id", "lazy": "selectin"}
    )
