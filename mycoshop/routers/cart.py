from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session
from mycoshop.core.exceptions import StoreUnavailable
from mycoshop.db.session import get_session
from mycoshop.models.cart import Cart
from mycoshop.models.product import Size
from mycoshop.routers.products import get_catalog
from mycoshop.routers.session import get_session_id
from mycoshop.services.cart import CartService
from mycoshop.services.catalog import CatalogStore, SqlCatalogStore
from mycoshop.services.pricing import Totals, item_count

router = APIRouter()

class CartItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)
    size: Size = Size.STANDARD

class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=0)

def get_cart_service(
    session: Session = Depends(get_session),
    catalog: CatalogStore = Depends(get_catalog),
) -> CartService:
    if not isinstance(catalog, SqlCatalogStore):
        raise StoreUnavailable("Cart is unavailable while the store is offline")
    return CartService(session, catalog)

def cart_to_dict(cart: Cart) -> dict:
    return {
        "id": cart.id,
        "status": cart.status.value,
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "name": item.name,
                "price": float(item.price),
                "quantity": item.quantity,
                "size": item.size.value,
                "image": item.image,
                "lineTotal": float(item.price * item.quantity),
            }
            for item in cart.items
        ],
        "subtotal": float(cart.subtotal),
        "tax": float(cart.tax),
        "shipping": float(cart.shipping),
        "total": float(cart.total),
        "itemCount": item_count(cart.items),
        "updatedAt": cart.updated_at.isoformat(),
    }

def cart_response(cart: Cart, message: str = None) -> dict:
    data = cart_to_dict(cart)
    totals = {key: data[key] for key in ("subtotal", "tax", "shipping", "total")}
    response = {"success": True, "data": {"cart": data, "totals": totals}}
    if message:
        response["message"] = message
    return response

@router.get("/")
def get_cart(
    session_id: str = Depends(get_session_id),
    catalog: CatalogStore = Depends(get_catalog),
    session: Session = Depends(get_session),
):
    """Get the visitor's cart"""
    if not isinstance(catalog, SqlCatalogStore):
        # Degraded mode: nothing to persist a cart in
        return {
            "success": True,
            "data": {"items": [], **Totals().as_dict(), "itemCount": 0},
            "message": "Using in-memory storage (no persistent cart)",
        }
    return cart_response(CartService(session, catalog).get_cart(session_id))

@router.post("/add")
def add_to_cart(
    cart_item: CartItemCreate,
    session_id: str = Depends(get_session_id),
    service: CartService = Depends(get_cart_service),
):
    """Add item to cart"""
    cart = service.add_item(session_id, cart_item.product_id, cart_item.quantity, cart_item.size)
    return cart_response(cart, "Item added to cart successfully")

@router.put("/update/{line_id}")
def update_cart_item(
    line_id: int,
    cart_update: CartItemUpdate,
    session_id: str = Depends(get_session_id),
    service: CartService = Depends(get_cart_service),
):
    """Update cart item quantity, 0 removes the line"""
    cart = service.update_quantity(session_id, line_id, cart_update.quantity)
    return cart_response(cart, "Cart updated successfully")

@router.delete("/remove/{line_id}")
def remove_from_cart(
    line_id: int,
    session_id: str = Depends(get_session_id),
    service: CartService = Depends(get_cart_service),
):
    """Remove item from cart"""
    cart = service.remove_item(session_id, line_id)
    return cart_response(cart, "Item removed from cart successfully")

@router.delete("/clear")
def clear_cart(
    session_id: str = Depends(get_session_id),
    service: CartService = Depends(get_cart_service),
):
    """Clear entire cart"""
    cart = service.clear(session_id)
    return cart_response(cart, "Cart cleared successfully")

@router.get("/count")
def get_cart_count(
    session_id: str = Depends(get_session_id),
    service: CartService = Depends(get_cart_service),
):
    return {"success": True, "data": {"count": service.count(session_id)}}
