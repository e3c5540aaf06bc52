import math
from typing import List, Optional, Dict
from decimal import Decimal
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session
import structlog
from mycoshop.core.exceptions import ProductNotFound, StoreUnavailable
from mycoshop.db.session import get_session, database_available
from mycoshop.models.product import Product, ProductCategory, ProductSize, Size
from mycoshop.services.catalog import CatalogStore, FallbackCatalogStore, ProductQuery, SqlCatalogStore

router = APIRouter()
logger = structlog.get_logger(__name__)

SORT_ALIASES = {"price": "price", "name": "name", "createdAt": "created_at", "created_at": "created_at"}

class SizeOverride(BaseModel):
    size: Size
    price: Decimal = Field(ge=0)
    stock: int = Field(ge=0)

class ProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    category: ProductCategory
    strain: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    image_urls: List[str] = Field(default=[], alias="imageUrls")
    sizes: List[SizeOverride] = []
    featured: bool = False
    active: bool = True
    specifications: Dict[str, str] = {}

def get_catalog(session: Session = Depends(get_session)) -> CatalogStore:
    """SQL catalog when the database answers, the static one otherwise."""
    if database_available(session):
        return SqlCatalogStore(session)
    logger.warning("Database unavailable, serving fallback catalog")
    return FallbackCatalogStore()

def get_writable_catalog(catalog: CatalogStore = Depends(get_catalog)) -> SqlCatalogStore:
    if not isinstance(catalog, SqlCatalogStore):
        raise StoreUnavailable()
    return catalog

def product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": float(product.price),
        "category": product.category.value,
        "strain": product.strain,
        "stock": product.stock,
        "image": product.image_url,
        "images": list(product.image_urls or []),
        "sizes": [
            {"size": s.size.value, "price": float(s.price), "stock": s.stock}
            for s in product.sizes
        ],
        "featured": product.featured,
        "active": product.active,
        "specifications": dict(product.specifications or {}),
        "ratings": {"average": product.rating_average, "count": product.rating_count},
        "createdAt": product.created_at.isoformat() if product.created_at else None,
    }

@router.get("/")
def read_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[ProductCategory] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder", pattern="^(asc|desc)$"),
    catalog: CatalogStore = Depends(get_catalog),
):
    if sort_by:
        query_sort, descending = SORT_ALIASES.get(sort_by, "created_at"), sort_order == "desc"
    else:
        # Newest first
        query_sort, descending = "created_at", True

    products, total = catalog.find(ProductQuery(
        category=category,
        featured=featured,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort_by=query_sort,
        descending=descending,
        skip=(page - 1) * limit,
        limit=limit,
    ))
    total_pages = math.ceil(total / limit)
    response = {
        "success": True,
        "data": [product_to_dict(p) for p in products],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalProducts": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }
    if isinstance(catalog, FallbackCatalogStore):
        response["message"] = "Serving fallback catalog while the store is unavailable"
    return response

@router.get("/categories/list")
def list_categories(catalog: CatalogStore = Depends(get_catalog)):
    return {"success": True, "data": catalog.categories()}

@router.get("/{product_id}")
def read_product(product_id: int, catalog: CatalogStore = Depends(get_catalog)):
    product = catalog.get(product_id)
    if not product:
        raise ProductNotFound()
    return {"success": True, "data": product_to_dict(product)}

@router.post("/", status_code=201)
def create_product(product_in: ProductIn, catalog: SqlCatalogStore = Depends(get_writable_catalog)):
    values = product_in.model_dump(exclude={"sizes"})
    product = Product(**values)
    product.sizes = [ProductSize(**s.model_dump()) for s in product_in.sizes]
    product = catalog.create(product)
    return {"success": True, "data": product_to_dict(product), "message": "Product created successfully"}

@router.put("/{product_id}")
def update_product(product_id: int, product_in: ProductIn, catalog: SqlCatalogStore = Depends(get_writable_catalog)):
    values = product_in.model_dump(exclude={"sizes"})
    values["sizes"] = [s.model_dump() for s in product_in.sizes]
    product = catalog.update(product_id, values)
    return {"success": True, "data": product_to_dict(product), "message": "Product updated successfully"}

@router.delete("/{product_id}")
def delete_product(product_id: int, catalog: SqlCatalogStore = Depends(get_writable_catalog)):
    catalog.deactivate(product_id)
    return {"success": True, "message": "Product deleted successfully"}
