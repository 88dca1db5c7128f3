import os

# Settings are read at import time, so the test environment goes in first
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MAIL_USERNAME", "mailer")
os.environ.setdefault("MAIL_PASSWORD", "mailer-password")
os.environ.setdefault("MAIL_FROM", "noreply@example.com")
os.environ.setdefault("MAIL_SERVER", "smtp.example.com")
os.environ.setdefault("TELLABOT_USER", "tester")
os.environ.setdefault("TELLABOT_API_KEY", "tellabot-test-key")
os.environ.setdefault("CRYPTOMUS_MERCHANT_ID", "merchant-test")
os.environ.setdefault("CRYPTOMUS_API_KEY", "cryptomus-test-key")

from datetime import timedelta
from decimal import Decimal
from typing import Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from main import app
from core.database import Base
from models.users import User
from models.orders import Order
from models.rentals import Rental
from models.catalog import Service
from services.ledger_service import LedgerService
from services.token_service import TokenService
from services.tellabot_client import TellabotClient, TellabotResponse
from services.cryptomus_client import CryptomusClient
from services.price_client import PriceClient, STABLECOINS
from utils.deps import get_db, get_tellabot_client, get_cryptomus_client, get_price_client
from utils.security import get_password_hash
from utils.timeutils import utcnow

TEST_PASSWORD = "TestPassword123!"

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


class FakeTellabot(TellabotClient):
    """
    Scripted provider. Each command answers with the queued responses in
    order; the last one repeats. Every call is recorded in `calls`.
    """

    def __init__(self):
        super().__init__(api_url="http://tellabot.test/api", user="tester", api_key="tellabot-test-key")
        self.responses = {}
        self.calls = []

    def script(self, cmd: str, status: str = "ok", message=None):
        self.responses.setdefault(cmd, []).append(TellabotResponse(status=status, message=message))
        return self

    def called(self, cmd: str) -> list[dict]:
        return [params for name, params in self.calls if name == cmd]

    async def command(self, cmd: str, **params) -> TellabotResponse:
        self.calls.append((cmd, params))
        queue = self.responses.get(cmd)
        if not queue:
            raise AssertionError(f"Unexpected provider command: {cmd}")
        return queue.pop(0) if len(queue) > 1 else queue[0]


class FakeCryptomus(CryptomusClient):
    """Real signing, no network. create_payment answers a fixed invoice."""

    def __init__(self):
        super().__init__(merchant_id="merchant-test", api_key="cryptomus-test-key",
                         api_url="http://cryptomus.test/v1/payment")
        self.payloads = []

    async def create_payment(self, payload: dict) -> dict:
        self.payloads.append(payload)
        return {"uuid": "invoice-uuid", "url": f"https://pay.test/{payload['order_id']}",
                "order_id": payload["order_id"], "payment_status": "check"}


class FakePrices(PriceClient):
    PRICES = {"BTC": Decimal("50000"), "ETH": Decimal("2500"), "LTC": Decimal("80")}

    async def get_price(self, currency: str) -> Decimal:
        if currency in STABLECOINS:
            return Decimal(1)
        return self.PRICES[currency]


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tellabot() -> FakeTellabot:
    return FakeTellabot()


@pytest.fixture
def cryptomus() -> FakeCryptomus:
    return FakeCryptomus()


@pytest.fixture
async def client(session: Session, tellabot: FakeTellabot, cryptomus: FakeCryptomus):
    """
    Yields an HTTP client that interacts with the app using the test database
    and the fake provider clients.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tellabot_client] = lambda: tellabot
    app.dependency_overrides[get_cryptomus_client] = lambda: cryptomus
    app.dependency_overrides[get_price_client] = lambda: FakePrices()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def create_user(session: Session, email: str = "testuser@example.com", username: str = "testuser",
                balance: str = "0", is_verified: bool = True, is_active: bool = True) -> User:
    """User with an opening balance booked through the ledger."""
    user = User(
        email=email,
        username=username,
        hashed_password=get_password_hash(TEST_PASSWORD),
        contact_method="telegram",
        contact_value=f"@{username}",
        is_verified=is_verified,
        is_active=is_active,
        balance=0
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    if Decimal(balance) > 0:
        LedgerService.credit(session, user, Decimal(balance), "deposit", idempotency_key=f"opening:{user.id}")
        session.commit()
        session.refresh(user)
    return user


@pytest.fixture
def verified_user(session) -> User:
    return create_user(session, balance="10.00")


@pytest.fixture
def auth_headers(verified_user) -> dict:
    return {"Authorization": f"Bearer {TokenService.create_access_token(verified_user)}"}


@pytest.fixture
def whatsapp_service(session) -> Service:
    service = Service(
        name="whatsapp",
        price=Decimal("0.50"),
        ltr_short_price=Decimal("2.00"),
        ltr_price=Decimal("15.00"),
        available="120",
        ltr_available="40"
    )
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@pytest.fixture
def make_order(session, verified_user):
    def _make(**overrides) -> Order:
        values = dict(
            user_id=verified_user.id,
            service="whatsapp",
            amount=Decimal("0.50"),
            status="pending",
            transaction_id="tx-100",
            number="5551234567",
            expires_at=utcnow() + timedelta(minutes=15)
        )
        values.update(overrides)
        order = Order(**values)
        session.add(order)
        session.commit()
        session.refresh(order)
        return order
    return _make


@pytest.fixture
def make_rental(session, verified_user):
    def _make(**overrides) -> Rental:
        now = utcnow()
        values = dict(
            user_id=verified_user.id,
            service="whatsapp",
            duration="3days",
            number="5557654321",
            transaction_id="ltr-200",
            start_date=now,
            expires_at=now + timedelta(days=3),
            status="active",
            price=Decimal("2.00")
        )
        values.update(overrides)
        rental = Rental(**values)
        session.add(rental)
        session.commit()
        session.refresh(rental)
        return rental
    return _make
