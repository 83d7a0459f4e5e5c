"""Pytest configuration and fixtures."""

import os
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing app
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from erp_reporting.models import Base, User, Product, Customer, Lead, Order
from erp_reporting.api.deps import get_db


# Test database URL
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def erp_data(db):
    """Seed a small ERP dataset."""
    alice = User(name="Alice Admin", email="alice@example.com", role="admin", is_active=True)
    bob = User(name="Bob Sales", email="bob@example.com", role="user", is_active=True)
    db.add_all([alice, bob])
    db.flush()

    db.add_all([
        Product(name="Laptop", sku="EL-001", category="Electronics", price=Decimal("1200.00"),
                cost=Decimal("900.00"), stock=5, status="active"),
        Product(name="Desk", sku="FU-001", category="Furniture", price=Decimal("350.00"),
                cost=Decimal("200.00"), stock=0, status="out_of_stock"),
        Product(name="Monitor", sku="EL-002", category="Electronics", price=Decimal("50.00"),
                cost=Decimal("30.00"), stock=2, status="low_stock"),
        Product(name="Pen", sku="ST-001", category="Stationery", price=Decimal("2.50"),
                cost=None, stock=500, status="active"),
    ])

    acme = Customer(name="Jane Doe", company="Acme", email="jane@acme.test", created_at=datetime(2024, 1, 10, 9, 30))
    globex = Customer(name="John Roe", company="Globex", email="john@globex.test", created_at=datetime(2024, 2, 5, 14, 0))
    db.add_all([acme, globex])
    db.flush()

    db.add_all([
        Order(order_number="SO-1001", status="completed", total_amount=Decimal("1250.00"),
              order_date=date(2024, 3, 1), customer_id=acme.id),
        Order(order_number="SO-1002", status="pending", total_amount=Decimal("80.00"),
              order_date=date(2024, 3, 15), customer_id=acme.id),
        Order(order_number="SO-1003", status="completed", total_amount=Decimal("400.00"),
              order_date=date(2024, 4, 2), customer_id=globex.id),
    ])

    db.add_all([
        Lead(company="Initech", contact_name="Peter", status="hot", stage="proposal",
             value=Decimal("15000.00"), last_contact=date(2024, 3, 20), assigned_to_id=bob.id),
        Lead(company="Umbrella", contact_name="Alice W", status="cold", stage="initial_contact",
             value=None, last_contact=None, assigned_to_id=None),
    ])
    db.commit()
    return db


@pytest.fixture(scope="function")
def client(db):
    """Create test client against a clean app with the report routers."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware
    from erp_reporting.core.middleware import TenantContextMiddleware, RequestLoggingMiddleware
    from erp_reporting.core.exceptions import register_exception_handlers

    test_app = FastAPI(
        title="ERP Reporting API",
        version="1.0.0",
        debug=True
    )

    # Register exception handlers
    register_exception_handlers(test_app)

    test_app.add_middleware(RequestLoggingMiddleware)
    test_app.add_middleware(TenantContextMiddleware)
    test_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from erp_reporting.api.endpoints.health import router as health_router
    from erp_reporting.api.endpoints.reports import router as reports_router
    from erp_reporting.core.metrics import metrics_router

    @test_app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "ERP Reporting API",
            "version": "1.0.0",
            "docs": "/docs"
        }

    test_app.include_router(health_router, tags=["health"])
    test_app.include_router(reports_router, prefix="/api/v1", tags=["reports"])
    test_app.include_router(metrics_router, tags=["monitoring"])

    def override_get_db():
        try:
            yield db
        finally:
            pass

    test_app.dependency_overrides[get_db] = override_get_db
    with TestClient(test_app, raise_server_exceptions=False) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()
