import os
from decimal import Decimal

# Settings are read at import time; point everything at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["AUTH_JWT_AUDIENCE"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["ENV"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_clock, get_gateway, get_notifier, get_payment_config
from app.db.session import Base, get_db
from app.main import app
from app.models.notification import Notification  # noqa: F401
from app.models.payment_event import PaymentEvent  # noqa: F401
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentConfig
from tests.support import NOW, Factory, FakeGateway, RecordingNotifier


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def payment_config():
    return PaymentConfig(
        platform_charge_currency="USD",
        fx_rate_jod_to_usd=Decimal("1.41"),
        hold_window_minutes=15,
        success_url="https://dive.example/booking/success",
        cancel_url="https://dive.example/booking/cancel",
        environment="test",
    )


@pytest.fixture
def service(db, gateway, payment_config, notifier):
    return BookingService(db, gateway, payment_config, notifier, clock=lambda: NOW)


@pytest.fixture
def client(db, gateway, payment_config, notifier):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_payment_config] = lambda: payment_config
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
