import os

os.environ["ENV"] = "test"
os.environ["TENANT_ENCRYPTION_KEY"] = "7f" * 32
os.environ["PAYMENTS_PROVIDER"] = "mock"
os.environ["WHATSAPP_PROVIDER"] = "mock"
os.environ["RECEIPTS_ENABLED"] = "0"
os.environ["ADMIN_API_TOKEN"] = ""
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import shopbot.models  # noqa: F401
from shopbot.core.database import Base, get_db
from shopbot.payments.mock_provider import MockPaymentProvider
from shopbot.routers.razorpay_webhook import router as razorpay_webhook_router
from shopbot.routers.tenants import router as tenants_router
from shopbot.routers.whatsapp_webhook import router as whatsapp_webhook_router
from shopbot.runtime import build_runtime
from shopbot.whatsapp.mock_provider import MockWhatsAppProvider
from shopbot.whatsapp.service import WhatsAppService
from tests.fixtures_data import FakeGeocoder, create_tenant_row


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def whatsapp_mock():
    return MockWhatsAppProvider()


@pytest.fixture
def payments_mock():
    return MockPaymentProvider()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def tenant(db):
    return create_tenant_row(db)


@pytest.fixture
def runtime(db, tenant, whatsapp_mock, payments_mock, geocoder):
    # one shared session so background work and assertions see the same rows
    return build_runtime(
        session_factory=lambda: db,
        whatsapp_factory=lambda config: WhatsAppService(config, whatsapp_mock),
        payments_factory=lambda config: payments_mock,
        geocoder=geocoder,
        receipts_enabled=False,
    )


@pytest.fixture
def client(db, runtime):
    app = FastAPI()
    app.include_router(whatsapp_webhook_router)
    app.include_router(razorpay_webhook_router)
    app.include_router(tenants_router)
    app.state.runtime = runtime
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)
