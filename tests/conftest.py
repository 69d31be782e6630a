# tests/conftest.py
import os

# Settings are cached on first import, so the test environment goes in first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BASIC_AUTH_USERNAME", "admin")
os.environ.setdefault("BASIC_AUTH_PASSWORD", "test-password")
os.environ.setdefault("UPS_ACCOUNT_NUMBER", "A1B2C3")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401  registers every table
from app.core.enums import OrderItemStatus
from app.database import Base
from app.dependencies import get_db, get_processor, get_shipping_carrier
from app.main import app
from app.models.commission import Commission
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductListing
from app.models.seller import Seller

TEST_DATABASE_URL = "sqlite+aiosqlite://"

SELLER_ADDRESS = {
    "name": "Acme Tips",
    "line1": "1 Workshop Lane",
    "city": "Austin",
    "state": "TX",
    "postal_code": "78701",
    "country": "US",
    "phone": "(512) 555-0100",
}

BUYER_ADDRESS = {
    "name": "Jane Buyer",
    "line1": "22 Elm Street",
    "city": "Denver",
    "state": "CO",
    "postal_code": "80202",
    "country": "US",
    "phone": "303-555-0199",
}

AUTH = ("admin", "test-password")


@pytest.fixture
def buyer_address():
    return dict(BUYER_ADDRESS)


@pytest.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database for each test function."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Provide a database session for tests"""
    async_session_local = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_local() as session:
        yield session
        await session.rollback()


# --- Catalog fixtures ---

@pytest.fixture
async def seller(db_session):
    seller = Seller(
        name="Acme Tips",
        company_name="Acme Tips LLC",
        email="orders@acme.test",
        phone="512-555-0100",
        business_address=dict(SELLER_ADDRESS),
        stripe_account_id="acct_seller_1",
        payouts_enabled=True,
    )
    db_session.add(seller)
    await db_session.commit()
    return seller


@pytest.fixture
async def listing(db_session, seller):
    listing = ProductListing(seller_id=seller.id, title="Pool cue tips", stock=1)
    db_session.add(listing)
    await db_session.commit()
    return listing


@pytest.fixture
async def product(db_session, seller, listing):
    product = Product(
        seller_id=seller.id,
        listing_id=listing.id,
        title="Carbon cue",
        category="cues",
        price=Decimal("100.00"),
        quantity=3,
        is_active=True,
        is_archived=False,
        requires_retipping=True,
        retip_price=Decimal("10.00"),
        weight=2.5,
        length=58.0,
        width=3.0,
        height=3.0,
    )
    db_session.add(product)
    await db_session.commit()
    return product


@pytest.fixture
async def commission(db_session):
    row = Commission(category="cues", commission_rate=Decimal("5.00"))
    db_session.add(row)
    await db_session.commit()
    return row


@pytest.fixture
def make_order(db_session, product):
    """Insert a paid order with one item in the given state."""

    async def _make(
        quantity=1,
        status=OrderItemStatus.PENDING_APPROVAL,
        retip_added=False,
        payment_intent_id=None,
        payment_completed=True,
        seller_paid=False,
        target_product=None,
    ):
        target = target_product or product
        item_total = target.price * quantity
        order = Order(
            buyer_id="buyer-1",
            buyer_name="Jane Buyer",
            subtotal=item_total,
            total_amount=item_total,
            payment_intent_id=payment_intent_id or f"pi_{uuid.uuid4().hex[:12]}",
            payment_completed=payment_completed,
            shipping_address=dict(BUYER_ADDRESS),
        )
        db_session.add(order)
        await db_session.flush()

        item = OrderItem(
            order_id=order.id,
            product_id=target.id,
            quantity=quantity,
            price=target.price,
            title=target.title,
            retip_added=retip_added,
            retip_price=target.retip_price if retip_added else Decimal("0.00"),
            platform_commission=Decimal("0.00"),
            order_status=status,
            payment_status=payment_completed,
            seller_paid=seller_paid,
        )
        db_session.add(item)
        await db_session.commit()
        return order, item

    return _make


# --- External service mocks ---

@pytest.fixture
def mock_processor():
    """Payment processor double: every call succeeds unless a test says otherwise."""
    processor = AsyncMock()
    processor.retrieve_payment_intent.return_value = {"id": "pi_test", "status": "succeeded", "amount": 23218}
    processor.create_refund.return_value = {"id": "re_test_1", "status": "succeeded", "amount": 10000}
    processor.create_transfer.return_value = {"id": "tr_test_1", "amount": 9451, "destination": "acct_seller_1"}
    return processor


@pytest.fixture
def mock_carrier():
    """Carrier double returning a UPS-shaped shipment."""
    carrier = AsyncMock()
    carrier.carrier_code = "ups"
    carrier.carrier_name = "UPS"
    carrier.create_shipment.return_value = {
        "shipment_id": "1ZSHIP0001",
        "tracking_number": "1ZTRACK0001",
        "label_data": "R0lGODlh",
        "label_format": "GIF",
    }
    carrier.void_shipment.return_value = {"shipment_id": "1ZSHIP0001", "voided": True}
    carrier.schedule_pickup.return_value = {"pickup_request_number": "PRN123"}
    carrier.cancel_pickup.return_value = {"pickup_request_number": "PRN123", "cancelled": True}
    return carrier


# --- HTTP client ---

@pytest.fixture
async def client(db_session, mock_processor, mock_carrier):
    """API client sharing the test session and the service doubles."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_processor] = lambda: mock_processor
    app.dependency_overrides[get_shipping_carrier] = lambda: mock_carrier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver", auth=AUTH) as http_client:
        yield http_client

    app.dependency_overrides.clear()
