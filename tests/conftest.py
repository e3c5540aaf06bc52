from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from mycoshop.db.session import create_db_and_tables, get_session
from mycoshop.main import app
from mycoshop.models.product import Product, ProductCategory, ProductSize, Size
from mycoshop.routers.payments import get_card_gateway, get_razorpay_gateway
from mycoshop.services.catalog import SqlCatalogStore
from mycoshop.services.payment import RazorpayGateway, SimulatedCardGateway
from mycoshop.services.pricing import PricingPolicy
from tests.fakes import FakeRazorpayClient


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def products(session):
    """Seeded catalog keyed by a short handle."""
    catalog = {
        "golden": Product(
            name="Golden Teacher Spores",
            description="Classic beginner strain",
            price=Decimal("20.00"),
            category=ProductCategory.SPORES,
            strain="Golden Teacher",
            stock=50,
            featured=True,
            image_urls=["/assets/golden-teacher.jpg"],
        ),
        "meanie": Product(
            name="Blue Meanie Spores",
            description="Potent strain with blue bruising",
            price=Decimal("30.00"),
            category=ProductCategory.SPORES,
            strain="Blue Meanie",
            stock=5,
        ),
        "kit": Product(
            name="Beginner Grow Kit",
            description="Everything needed to start growing",
            price=Decimal("89.99"),
            category=ProductCategory.GROWKITS,
            stock=15,
            sizes=[ProductSize(size=Size.SMALL, price=Decimal("15.00"), stock=3)],
        ),
        "retired": Product(
            name="Retired Substrate",
            description="No longer sold",
            price=Decimal("9.99"),
            category=ProductCategory.SUPPLIES,
            stock=100,
            active=False,
        ),
    }
    for product in catalog.values():
        session.add(product)
    session.commit()
    for product in catalog.values():
        session.refresh(product)
    return catalog


@pytest.fixture
def catalog(session):
    return SqlCatalogStore(session)


@pytest.fixture
def policy():
    return PricingPolicy()


@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def client(session, products, razorpay_client):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_razorpay_gateway] = lambda: RazorpayGateway(
        webhook_secret="whsec_test", client=razorpay_client
    )
    app.dependency_overrides[get_card_gateway] = lambda: SimulatedCardGateway()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def offline_client(tmp_path):
    """Client whose database cannot be opened."""
    broken = create_engine(f"sqlite:///{tmp_path}/missing/dir/shop.db")

    def get_session_override():
        with Session(broken) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()
