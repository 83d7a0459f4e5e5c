"""Unit tests for database models."""

import pytest
from datetime import date, time
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from erp_reporting.models import (
    Base, Customer, Order, SavedReport, ReportSchedule, ReportRun,
    ReportFrequency, ExportFormat, RunStatus,
)


@pytest.fixture(scope="function")
def db_session():
    """Create test database session."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


class TestErpModels:
    """Test ERP source tables."""

    def test_order_belongs_to_customer(self, db_session):
        customer = Customer(name="Jane", company="Acme")
        customer.orders.append(Order(
            order_number="SO-1", status="pending", total_amount=Decimal("10.00"), order_date=date(2024, 1, 1)
        ))
        db_session.add(customer)
        db_session.commit()

        order = db_session.query(Order).one()
        assert order.customer.company == "Acme"
        assert order.total_amount == Decimal("10.00")


class TestSavedReportModel:
    """Test saved report, schedule and run models."""

    def test_schedule_defaults(self, db_session):
        """Test a new schedule gets the documented defaults."""
        report = SavedReport(name="Orders", config={"name": "Orders", "fields": ["order_number"]})
        report.schedule = ReportSchedule()
        db_session.add(report)
        db_session.commit()

        schedule = db_session.query(ReportSchedule).one()
        assert schedule.frequency == ReportFrequency.WEEKLY
        assert schedule.time_of_day == time(9, 0)
        assert schedule.timezone == "UTC"
        assert schedule.export_format == ExportFormat.PDF
        assert schedule.is_active is True

    def test_delete_cascades(self, db_session):
        report = SavedReport(name="Orders", config={"name": "Orders", "fields": ["order_number"]})
        report.schedule = ReportSchedule()
        report.runs.append(ReportRun(status=RunStatus.SUCCESS, row_count=3))
        db_session.add(report)
        db_session.commit()

        db_session.delete(report)
        db_session.commit()

        assert db_session.query(ReportSchedule).count() == 0
        assert db_session.query(ReportRun).count() == 0


class TestSchemaVerification:
    """Test the schema check used by scripts/verify_schema.py."""

    def test_created_schema_matches_field_catalog(self, db_session):
        from scripts.verify_schema import verify_schema

        assert verify_schema(db_session.get_bind()) is True
