from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel, create_engine, select

from mycoshop.core.exceptions import (
    CartLimitExceeded,
    ConcurrentModification,
    InvalidQuantity,
    ItemLimitExceeded,
    ItemNotFound,
    OutOfStock,
    ProductNotFound,
)
from mycoshop.models.cart import Cart, CartItem, CartStatus
from mycoshop.models.product import Product, Size
from mycoshop.services.cart import CartService
from mycoshop.services.catalog import SqlCatalogStore

SESSION_ID = "visitor-1"


@pytest.fixture
def carts(session, catalog, policy):
    return CartService(session, catalog, policy)


class TestAddItem:

    def test_first_add_prices_cart(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 2)
        assert len(cart.items) == 1
        assert cart.subtotal == Decimal("40.00")
        assert cart.tax == Decimal("3.20")
        assert cart.shipping == Decimal("9.99")
        assert cart.total == Decimal("53.19")

    def test_same_product_and_size_merges(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 3)
        cart = carts.add_item(SESSION_ID, products["golden"].id, 2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5

    def test_different_size_is_a_new_line(self, carts, products):
        carts.add_item(SESSION_ID, products["kit"].id, 1, Size.STANDARD)
        cart = carts.add_item(SESSION_ID, products["kit"].id, 1, Size.SMALL)
        assert [(i.size, i.price) for i in cart.items] == [
            (Size.STANDARD, Decimal("89.99")),
            (Size.SMALL, Decimal("15.00")),
        ]

    def test_line_snapshots_product(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id)
        line = cart.items[0]
        assert line.name == "Golden Teacher Spores"
        assert line.image == "/assets/golden-teacher.jpg"
        assert line.price == Decimal("20.00")

    def test_unknown_product(self, carts, products):
        with pytest.raises(ProductNotFound):
            carts.add_item(SESSION_ID, 9999)

    def test_inactive_product(self, carts, products):
        with pytest.raises(ProductNotFound):
            carts.add_item(SESSION_ID, products["retired"].id)

    def test_stock_checked_against_merged_quantity(self, carts, products):
        carts.add_item(SESSION_ID, products["meanie"].id, 4)
        with pytest.raises(OutOfStock):
            carts.add_item(SESSION_ID, products["meanie"].id, 2)
        assert carts.count(SESSION_ID) == 4

    def test_stock_uses_size_override(self, carts, products):
        with pytest.raises(OutOfStock):
            carts.add_item(SESSION_ID, products["kit"].id, 4, Size.SMALL)

    @pytest.mark.parametrize("quantity", [0, -3, 2.5])
    def test_invalid_quantity(self, carts, products, quantity):
        with pytest.raises(InvalidQuantity):
            carts.add_item(SESSION_ID, products["golden"].id, quantity)

    def test_eleventh_unit_of_one_item(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 10)
        with pytest.raises(ItemLimitExceeded):
            carts.add_item(SESSION_ID, products["golden"].id, 1)
        assert carts.count(SESSION_ID) == 10

    def test_cart_ceiling(self, session, carts, products):
        extra = [
            Product(name=f"Syringe {n}", description="10ml", price=Decimal("5.00"), stock=100)
            for n in range(5)
        ]
        for product in extra:
            session.add(product)
        session.commit()

        for product in extra:
            carts.add_item(SESSION_ID, product.id, 10)
        with pytest.raises(CartLimitExceeded):
            carts.add_item(SESSION_ID, products["golden"].id, 1)
        assert carts.count(SESSION_ID) == 50


class TestUpdateAndRemove:

    def test_update_quantity_reprices(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        cart = carts.update_quantity(SESSION_ID, cart.items[0].id, 3)
        assert cart.items[0].quantity == 3
        assert cart.subtotal == Decimal("60.00")
        assert cart.shipping == Decimal("0.00")

    def test_update_to_zero_removes_line(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        cart = carts.update_quantity(SESSION_ID, cart.items[0].id, 0)
        assert cart.items == []
        assert cart.total == Decimal("0.00")

    def test_update_beyond_stock(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["meanie"].id, 1)
        with pytest.raises(OutOfStock):
            carts.update_quantity(SESSION_ID, cart.items[0].id, 6)

    def test_update_negative(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        with pytest.raises(InvalidQuantity):
            carts.update_quantity(SESSION_ID, cart.items[0].id, -1)

    def test_unknown_line(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 1)
        with pytest.raises(ItemNotFound):
            carts.remove_item(SESSION_ID, 9999)

    def test_other_sessions_line_is_not_found(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        with pytest.raises(ItemNotFound):
            carts.remove_item("someone-else", cart.items[0].id)

    def test_remove_keeps_other_lines(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 1)
        cart = carts.add_item(SESSION_ID, products["meanie"].id, 1)
        cart = carts.remove_item(SESSION_ID, cart.items[0].id)
        assert [i.product_id for i in cart.items] == [products["meanie"].id]
        assert cart.subtotal == Decimal("30.00")

    def test_clear_is_idempotent(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 2)
        first = carts.clear(SESSION_ID)
        assert first.items == []
        second = carts.clear(SESSION_ID)
        assert second.id == first.id
        assert second.items == []
        assert second.total == Decimal("0.00")


class TestCartLifecycle:

    def test_cart_created_lazily(self, session, carts):
        assert carts.find_cart(SESSION_ID) is None
        assert carts.count(SESSION_ID) == 0
        cart = carts.get_cart(SESSION_ID)
        assert cart.status == CartStatus.ACTIVE
        assert carts.get_cart(SESSION_ID).id == cart.id

    def test_sessions_are_isolated(self, carts, products):
        carts.add_item(SESSION_ID, products["golden"].id, 2)
        assert carts.count("visitor-2") == 0

    def test_every_write_bumps_version(self, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        first = cart.version
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        assert cart.version == first + 1

    def test_expired_cart_is_replaced(self, session, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        cart.updated_at = datetime.utcnow() - timedelta(days=8)
        session.add(cart)
        session.commit()

        fresh = carts.get_cart(SESSION_ID)
        assert fresh.items == []
        assert session.exec(select(CartItem)).all() == []

    def test_purge_expired(self, session, carts, products):
        stale = carts.add_item("stale-visitor", products["golden"].id, 1)
        stale.updated_at = datetime.utcnow() - timedelta(days=30)
        session.add(stale)
        session.commit()
        carts.add_item(SESSION_ID, products["golden"].id, 1)

        assert carts.purge_expired() == 1
        remaining = session.exec(select(Cart)).all()
        assert [c.session_id for c in remaining] == [SESSION_ID]

    def test_empty_cart_marks_converted(self, session, carts, products):
        cart = carts.add_item(SESSION_ID, products["golden"].id, 1)
        carts.empty_cart(cart.id)
        session.commit()
        assert cart.status == CartStatus.CONVERTED
        assert cart.items == []
        assert carts.find_cart(SESSION_ID) is None


def test_concurrent_writers_conflict(tmp_path):
    """Two requests holding the same cart version: the second write loses."""
    engine = create_engine(f"sqlite:///{tmp_path}/carts.db", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)

    with Session(engine) as seed:
        product = Product(name="Golden Teacher Spores", description="Classic", price=Decimal("20.00"), stock=50)
        seed.add(product)
        seed.commit()
        product_id = product.id

    with Session(engine) as first, Session(engine) as second:
        carts_a = CartService(first, SqlCatalogStore(first))
        carts_b = CartService(second, SqlCatalogStore(second))

        carts_a.add_item(SESSION_ID, product_id, 1)
        stale = carts_b.get_cart(SESSION_ID)
        assert stale.version == 1

        carts_a.add_item(SESSION_ID, product_id, 1)
        with pytest.raises(ConcurrentModification):
            carts_b.add_item(SESSION_ID, product_id, 1)

        assert carts_a.count(SESSION_ID) == 2
    engine.dispose()
