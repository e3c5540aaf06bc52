"""Catalog store: product lookup, querying and stock accounting.

Cart and checkout services depend on the ``CatalogStore`` interface only.
``SqlCatalogStore`` is the real store; ``FallbackCatalogStore`` is a
read-only stand-in used while the database is unreachable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func, update
from sqlmodel import Session, col, or_, select

from mycoshop.core.exceptions import InsufficientStock, ProductNotFound, StoreUnavailable
from mycoshop.models.product import Product, ProductCategory, ProductSize, Size
from mycoshop.services.fallback import fallback_products

logger = structlog.get_logger(__name__)

SORT_FIELDS = ("price", "created_at", "name")


@dataclass
class ProductQuery:
    category: Optional[ProductCategory] = None
    featured: Optional[bool] = None
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    active: Optional[bool] = True
    sort_by: str = "created_at"
    descending: bool = True
    skip: int = 0
    limit: Optional[int] = None


class CatalogStore(ABC):

    @abstractmethod
    def get(self, product_id: int) -> Optional[Product]:
        ...

    @abstractmethod
    def find(self, query: ProductQuery) -> Tuple[List[Product], int]:
        """Return one page of matching products and the total match count."""

    @abstractmethod
    def categories(self) -> List[str]:
        ...

    @abstractmethod
    def decrement_stock(self, product_id: int, size: Size, quantity: int) -> None:
        ...

    # --- Size-aware pricing and stock ----------------------------------------

    def unit_price(self, product: Product, size: Size) -> Decimal:
        override = product.size_override(size)
        return override.price if override else product.price

    def available_stock(self, product: Product, size: Size) -> int:
        override = product.size_override(size)
        return override.stock if override else product.stock


class SqlCatalogStore(CatalogStore):

    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def find(self, query: ProductQuery) -> Tuple[List[Product], int]:
        conditions = []
        if query.active is not None:
            conditions.append(Product.active == query.active)
        if query.category is not None:
            conditions.append(Product.category == query.category)
        if query.featured is not None:
            conditions.append(Product.featured == query.featured)
        if query.search:
            pattern = f"%{query.search}%"
            conditions.append(or_(
                col(Product.name).ilike(pattern),
                col(Product.description).ilike(pattern),
                col(Product.strain).ilike(pattern),
            ))
        if query.min_price is not None:
            conditions.append(Product.price >= query.min_price)
        if query.max_price is not None:
            conditions.append(Product.price <= query.max_price)

        total = self.session.exec(
            select(func.count()).select_from(Product).where(*conditions)
        ).one()

        sort_column = col(getattr(Product, query.sort_by if query.sort_by in SORT_FIELDS else "created_at"))
        statement = (
            select(Product)
            .where(*conditions)
            .order_by(sort_column.desc() if query.descending else sort_column.asc(), col(Product.id))
            .offset(query.skip)
        )
        if query.limit is not None:
            statement = statement.limit(query.limit)
        return list(self.session.exec(statement).all()), total

    def categories(self) -> List[str]:
        rows = self.session.exec(select(Product.category).distinct()).all()
        return sorted(ProductCategory(row).value for row in rows)

    def create(self, product: Product) -> Product:
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        logger.info("Product created", product_id=product.id, name=product.name)
        return product

    def update(self, product_id: int, values: dict) -> Product:
        product = self.get(product_id)
        if product is None:
            raise ProductNotFound()
        sizes = values.pop("sizes", None)
        for key, value in values.items():
            setattr(product, key, value)
        if sizes is not None:
            product.sizes = [ProductSize(**size) for size in sizes]
        product.updated_at = datetime.utcnow()
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        logger.info("Product updated", product_id=product.id)
        return product

    def deactivate(self, product_id: int) -> Product:
        """Products are hidden rather than deleted; cart and order lines still reference them."""
        return self.update(product_id, {"active": False})

    def decrement_stock(self, product_id: int, size: Size, quantity: int) -> None:
        """Conditional decrement, never drives stock below zero.

        Does not commit; the caller owns the transaction.
        """
        override_id = self.session.exec(
            select(ProductSize.id).where(ProductSize.product_id == product_id, ProductSize.size == size)
        ).first()

        if override_id is not None:
            statement = (
                update(ProductSize)
                .where(col(ProductSize.id) == override_id, col(ProductSize.stock) >= quantity)
                .values(stock=ProductSize.stock - quantity)
            )
        else:
            statement = (
                update(Product)
                .where(col(Product.id) == product_id, col(Product.stock) >= quantity)
                .values(stock=Product.stock - quantity, updated_at=datetime.utcnow())
            )

        result = self.session.exec(statement)
        if result.rowcount != 1:
            raise InsufficientStock(f"Insufficient stock for product {product_id} ({size.value})")
        logger.info("Stock decremented", product_id=product_id, size=size.value, quantity=quantity)


class FallbackCatalogStore(CatalogStore):
    """Read-only in-memory catalog."""

    def __init__(self, products: Optional[List[Product]] = None):
        self.products = products if products is not None else fallback_products()

    def get(self, product_id: int) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def find(self, query: ProductQuery) -> Tuple[List[Product], int]:
        products = list(self.products)

        if query.active is not None:
            products = [p for p in products if p.active == query.active]
        if query.category is not None:
            products = [p for p in products if p.category == query.category]
        if query.featured is not None:
            products = [p for p in products if p.featured == query.featured]
        if query.search:
            term = query.search.lower()
            products = [
                p for p in products
                if term in p.name.lower()
                or term in p.description.lower()
                or (p.strain and term in p.strain.lower())
            ]
        if query.min_price is not None:
            products = [p for p in products if p.price >= query.min_price]
        if query.max_price is not None:
            products = [p for p in products if p.price <= query.max_price]

        sort_by = query.sort_by if query.sort_by in SORT_FIELDS else "created_at"
        if sort_by == "name":
            products.sort(key=lambda p: p.name.lower(), reverse=query.descending)
        else:
            products.sort(key=lambda p: getattr(p, sort_by), reverse=query.descending)

        total = len(products)
        end = None if query.limit is None else query.skip + query.limit
        return products[query.skip:end], total

    def categories(self) -> List[str]:
        return sorted({p.category.value for p in self.products})

    def decrement_stock(self, product_id: int, size: Size, quantity: int) -> None:
        raise StoreUnavailable("Stock cannot be changed while the store is offline")
