from typing import List, Optional
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, update
from sqlmodel import Session, col, select

from mycoshop.core.config import settings
from mycoshop.core.exceptions import (
    ConcurrentModification,
    InvalidQuantity,
    ItemNotFound,
    OutOfStock,
    ProductNotFound,
)
from mycoshop.models.cart import Cart, CartItem, CartStatus
from mycoshop.models.product import Size
from mycoshop.services.catalog import CatalogStore
from mycoshop.services.pricing import PricedLine, PricingPolicy, Totals, compute_totals, item_count

logger = structlog.get_logger(__name__)


def _is_whole_number(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CartService:
    """Per-session shopping cart.

    Every mutation prices the proposed line set first, so a change that would
    break a quantity ceiling is rejected before anything is written. The
    write itself is guarded by a compare-and-set on ``Cart.version``; a
    request that lost a race gets ``ConcurrentModification`` instead of
    silently overwriting the other writer.
    """

    def __init__(self, session: Session, catalog: CatalogStore, policy: Optional[PricingPolicy] = None,
                 ttl: Optional[timedelta] = None):
        self.session = session
        self.catalog = catalog
        self.policy = policy or PricingPolicy.from_settings()
        self.ttl = ttl or timedelta(days=settings.CART_TTL_DAYS)

    # --- Queries --------------------------------------------------------------

    def get_cart(self, session_id: str) -> Cart:
        """Current active cart for the session, created on first use."""
        return self._active_cart(session_id)

    def find_cart(self, session_id: str) -> Optional[Cart]:
        """Current active cart without creating one."""
        return self._active_cart(session_id, create=False)

    def count(self, session_id: str) -> int:
        cart = self._active_cart(session_id, create=False)
        return item_count(cart.items) if cart else 0

    # --- Mutations ------------------------------------------------------------

    def add_item(self, session_id: str, product_id: int, quantity: int = 1, size: Size = Size.STANDARD) -> Cart:
        """Add a product or merge into the existing (product, size) line."""
        if not _is_whole_number(quantity) or quantity < 1:
            raise InvalidQuantity("Quantity must be a positive whole number")

        product = self.catalog.get(product_id)
        if product is None or not product.active:
            raise ProductNotFound()

        cart = self._active_cart(session_id)
        existing = self._find_line(cart, product_id, size)
        new_quantity = quantity + (existing.quantity if existing else 0)

        stock = self.catalog.available_stock(product, size)
        if stock < new_quantity:
            logger.warning("Add to cart rejected", session_id=session_id, product_id=product_id,
                           requested=new_quantity, stock=stock)
            if existing:
                raise OutOfStock(f"Not enough stock available for requested quantity. Only {stock} available")
            raise OutOfStock(f"Insufficient stock available. Only {stock} available")

        proposed = [
            PricedLine(line.price, new_quantity if line is existing else line.quantity)
            for line in cart.items
        ]
        price = self.catalog.unit_price(product, size)
        if existing is None:
            proposed.append(PricedLine(price, quantity))
        totals = compute_totals(proposed, self.policy)

        if existing:
            existing.quantity = new_quantity
            self.session.add(existing)
        else:
            cart.items.append(CartItem(
                product_id=product.id,
                name=product.name,
                price=price,
                image=product.image_url,
                quantity=quantity,
                size=size,
            ))

        self._save(cart, totals)
        logger.info("Item added to cart", session_id=session_id, product_id=product_id,
                    size=size.value, quantity=new_quantity)
        return cart

    def update_quantity(self, session_id: str, line_id: int, quantity: int) -> Cart:
        """Set a line's quantity; zero removes the line."""
        if not _is_whole_number(quantity) or quantity < 0:
            raise InvalidQuantity("Quantity must be zero or a positive whole number")

        cart = self._active_cart(session_id)
        line = self._get_line(cart, line_id)

        if quantity == 0:
            return self._remove_line(cart, line)

        product = self.catalog.get(line.product_id)
        stock = self.catalog.available_stock(product, line.size) if product and product.active else 0
        if stock < quantity:
            raise OutOfStock(f"Insufficient stock available. Only {stock} available")

        totals = compute_totals(
            [PricedLine(item.price, quantity if item is line else item.quantity) for item in cart.items],
            self.policy,
        )
        line.quantity = quantity
        self.session.add(line)

        self._save(cart, totals)
        logger.info("Cart quantity updated", session_id=session_id, line_id=line_id, quantity=quantity)
        return cart

    def remove_item(self, session_id: str, line_id: int) -> Cart:
        cart = self._active_cart(session_id)
        line = self._get_line(cart, line_id)
        return self._remove_line(cart, line)

    def clear(self, session_id: str) -> Cart:
        cart = self._active_cart(session_id)
        cart.items.clear()
        self._save(cart, Totals())
        logger.info("Cart cleared", session_id=session_id)
        return cart

    # --- Checkout hooks -------------------------------------------------------

    def empty_cart(self, cart_id: int, status: CartStatus = CartStatus.CONVERTED) -> None:
        """Empty a cart inside the caller's transaction (no commit)."""
        cart = self.session.get(Cart, cart_id)
        if cart is None:
            return
        cart.items.clear()
        self._apply_totals(cart, Totals())
        cart.status = status
        cart.version += 1
        self.session.add(cart)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete carts idle for longer than the TTL. Returns how many went."""
        cutoff = (now or datetime.utcnow()) - self.ttl
        expired_ids = select(Cart.id).where(col(Cart.updated_at) < cutoff)
        self.session.exec(
            delete(CartItem)
            .where(col(CartItem.cart_id).in_(expired_ids))
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(
            delete(Cart)
            .where(col(Cart.updated_at) < cutoff)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        if result.rowcount:
            logger.info("Expired carts purged", count=result.rowcount, cutoff=cutoff.isoformat())
        return result.rowcount

    # --- Internal helpers -----------------------------------------------------

    def _active_cart(self, session_id: str, create: bool = True) -> Optional[Cart]:
        cart = self.session.exec(
            select(Cart)
            .where(Cart.session_id == session_id, Cart.status == CartStatus.ACTIVE)
            .order_by(col(Cart.id).desc())
        ).first()

        if cart is not None and cart.updated_at < datetime.utcnow() - self.ttl:
            logger.info("Cart expired", session_id=session_id, cart_id=cart.id)
            self.session.delete(cart)
            self.session.commit()
            cart = None

        if cart is None and create:
            cart = Cart(session_id=session_id)
            self.session.add(cart)
            self.session.commit()
            self.session.refresh(cart)
        return cart

    @staticmethod
    def _find_line(cart: Cart, product_id: int, size: Size) -> Optional[CartItem]:
        return next((item for item in cart.items if item.product_id == product_id and item.size == size), None)

    @staticmethod
    def _get_line(cart: Cart, line_id: int) -> CartItem:
        line = next((item for item in cart.items if item.id == line_id), None)
        if line is None:
            raise ItemNotFound()
        return line

    def _remove_line(self, cart: Cart, line: CartItem) -> Cart:
        line_id = line.id
        remaining: List[CartItem] = [item for item in cart.items if item is not line]
        totals = compute_totals(remaining, self.policy)
        cart.items.remove(line)
        self._save(cart, totals)
        logger.info("Item removed from cart", session_id=cart.session_id, line_id=line_id)
        return cart

    @staticmethod
    def _apply_totals(cart: Cart, totals: Totals) -> None:
        cart.subtotal = totals.subtotal
        cart.tax = totals.tax
        cart.shipping = totals.shipping
        cart.total = totals.total
        cart.updated_at = datetime.utcnow()

    def _save(self, cart: Cart, totals: Totals) -> None:
        expected = cart.version
        claimed = self.session.exec(
            update(Cart)
            .where(col(Cart.id) == cart.id, col(Cart.version) == expected)
            .values(version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.session.rollback()
            logger.warning("Cart write lost a race", cart_id=cart.id, expected_version=expected)
            raise ConcurrentModification()

        cart.version = expected + 1
        self._apply_totals(cart, totals)
        self.session.add(cart)
        self.session.commit()
        self.session.refresh(cart)
