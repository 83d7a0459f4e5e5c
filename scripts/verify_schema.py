#!/usr/bin/env python3
"""Verify that the database schema matches the report field catalog."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.append(str(Path(__file__).parent.parent))

from sqlalchemy import create_engine, inspect, text
from erp_reporting.config import settings
from erp_reporting.reporting.fields import default_registry


REPORT_TABLES = {"saved_reports", "report_schedules", "report_runs"}

FOREIGN_KEYS = {
    "orders": [("customer_id", "customers")],
    "leads": [("assigned_to_id", "users")],
    "report_schedules": [("saved_report_id", "saved_reports")],
    "report_runs": [("saved_report_id", "saved_reports")],
}


def verify_schema(engine) -> bool:
    """Check tables, reportable columns and join keys."""
    inspector = inspect(engine)
    registry = default_registry()
    catalog = registry.by_table()

    actual_tables = set(inspector.get_table_names())
    expected_tables = set(catalog) | REPORT_TABLES

    print("\n=== Table Verification ===")
    missing_tables = expected_tables - actual_tables
    if missing_tables:
        print(f"❌ Missing tables: {sorted(missing_tables)}")
        return False
    print(f"✅ All {len(expected_tables)} tables exist")

    print("\n=== Report Field Verification ===")
    all_columns_valid = True
    for table_name, fields in catalog.items():
        columns = {col["name"] for col in inspector.get_columns(table_name)}
        for field in fields:
            if field.source_column in columns:
                print(f"✅ {field.id} → {table_name}.{field.source_column}")
            else:
                print(f"❌ {field.id}: missing column {table_name}.{field.source_column}")
                all_columns_valid = False

    print("\n=== Foreign Key Verification ===")
    all_fks_valid = True
    for table_name, expected_fks in FOREIGN_KEYS.items():
        fk_map = {
            fk["constrained_columns"][0]: fk["referred_table"]
            for fk in inspector.get_foreign_keys(table_name)
        }
        for column, referenced_table in expected_fks:
            if fk_map.get(column) == referenced_table:
                print(f"✅ {table_name}.{column} → {referenced_table}")
            else:
                print(f"❌ Missing FK: {table_name}.{column} → {referenced_table}")
                all_fks_valid = False

    print("\n=== Summary ===")
    if all_columns_valid and all_fks_valid:
        print("✅ Schema verification PASSED")
        return True
    print("❌ Schema verification FAILED")
    return False


def test_connection(engine) -> bool:
    """Test database connection."""
    print("\n=== Connection Test ===")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Connected to database")
        return True
    except Exception as e:
        print(f"❌ Connection failed: {e}")
        return False


def main():
    print("=" * 60)
    print("ERP Reporting Schema Verification")
    print("=" * 60)

    engine = create_engine(settings.database_url_sync, **settings.engine_kwargs)
    if not test_connection(engine):
        print("Please check your DATABASE_URL configuration.")
        sys.exit(1)

    sys.exit(0 if verify_schema(engine) else 1)


if __name__ == "__main__":
    main()
