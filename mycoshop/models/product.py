from typing import Optional, List, Dict
from decimal import Decimal
from enum import Enum
from sqlmodel import Field, Relationship, SQLModel, Column
from pydantic import computed_field
from sqlalchemy import JSON
from datetime import datetime

DEFAULT_PRODUCT_IMAGE = "/assets/default-product.jpg"

class ProductCategory(str, Enum):
    SPORES = "spores"
    GROWKITS = "growkits"
    SUPPLIES = "supplies"
    ACCESSORIES = "accessories"

class Size(str, Enum):
    SMALL = "small"
    STANDARD = "standard"
    LARGE = "large"
    BULK = "bulk"

class ProductSize(SQLModel, table=True):
    """Per-size price and stock override for a product."""
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    size: Size
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: str = Field(index=True, max_length=100)
    description: str = Field(max_length=1000)
    category: ProductCategory = Field(default=ProductCategory.SPORES, index=True)
    strain: Optional[str] = None

    # Images
    image_urls: List[str] = Field(default=[], sa_column=Column(JSON))

    # Pricing
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    # Inventory
    stock: int = Field(default=0, ge=0)

    # Metadata
    featured: bool = Field(default=False)
    active: bool = Field(default=True)
    specifications: Dict[str, str] = Field(default={}, sa_column=Column(JSON))
    rating_average: float = Field(default=0.0, ge=0, le=5)
    rating_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    sizes: List[ProductSize] = Relationship(sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin"})

    @computed_field
    @property
    def image_url(self) -> str:
        return self.image_urls[0] if self.image_urls else DEFAULT_PRODUCT_IMAGE

    def size_override(self, size: Size) -> Optional[ProductSize]:
        for override in self.sizes:
            if override.size == size:
                return override
        return None
