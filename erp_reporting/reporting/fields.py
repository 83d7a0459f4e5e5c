"""Catalogue of reportable fields."""

from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple
import enum

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import FieldNotFoundError


class FieldType(str, enum.Enum):
    """Semantic type of a reportable field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    ENUM = "enum"


class ReportField(BaseModel):
    """A typed, labeled column available for reporting."""

    model_config = ConfigDict(frozen=True)

    id: str
    table: str
    label: str
    type: FieldType
    column: Optional[str] = Field(default=None)  # attribute in the source table, defaults to id
    options: Tuple[str, ...] = Field(default=())

    @property
    def source_column(self) -> str:
        return self.column or self.id


class FieldRegistry:
    """Read-only registry of ReportField descriptors keyed by id."""

    def __init__(self, fields: Iterable[ReportField]):
        self._fields: Dict[str, ReportField] = {}
        for field in fields:
            if field.id in self._fields:
                raise ValueError(f"Duplicate report field id: {field.id}")
            self._fields[field.id] = field

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._fields

    def __iter__(self):
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def get(self, field_id: str) -> Optional[ReportField]:
        """Look up a field without raising."""
        return self._fields.get(field_id)

    def resolve(self, field_id: str) -> ReportField:
        """
        Resolve a field id to its descriptor.

        Raises:
            FieldNotFoundError: If no field is registered under the id
        """
        field = self._fields.get(field_id)
        if field is None:
            raise FieldNotFoundError(field_id)
        return field

    def by_table(self) -> Dict[str, List[ReportField]]:
        """Group fields by source table, in registration order."""
        tables: Dict[str, List[ReportField]] = {}
        for field in self._fields.values():
            tables.setdefault(field.table, []).append(field)
        return tables

    def tables_for(self, field_ids: Iterable[str]) -> List[str]:
        """Distinct tables referenced by the given field ids, in first-use order."""
        tables: List[str] = []
        for field_id in field_ids:
            table = self.resolve(field_id).table
            if table not in tables:
                tables.append(table)
        return tables


def _text(id: str, table: str, label: str, column: str) -> ReportField:
    return ReportField(id=id, table=table, label=label, type=FieldType.TEXT, column=column)


def _number(id: str, table: str, label: str, column: str) -> ReportField:
    return ReportField(id=id, table=table, label=label, type=FieldType.NUMBER, column=column)


def _date(id: str, table: str, label: str, column: str) -> ReportField:
    return ReportField(id=id, table=table, label=label, type=FieldType.DATE, column=column)


def _enum(id: str, table: str, label: str, column: str, options: Tuple[str, ...]) -> ReportField:
    return ReportField(id=id, table=table, label=label, type=FieldType.ENUM, column=column, options=options)


ERP_FIELDS: Tuple[ReportField, ...] = (
    # Users
    _text("user_name", "users", "User Name", "name"),
    _text("user_email", "users", "User Email", "email"),
    _enum("user_role", "users", "Role", "role", ("admin", "manager", "user")),
    ReportField(id="user_active", table="users", label="Active", type=FieldType.BOOLEAN, column="is_active"),
    _date("user_created", "users", "Joined", "created_at"),

    # Products
    _text("product_name", "products", "Product Name", "name"),
    _text("product_sku", "products", "SKU", "sku"),
    _enum("product_category", "products", "Category", "category",
          ("Electronics", "Furniture", "Stationery", "Software")),
    _number("product_price", "products", "Price", "price"),
    _number("product_cost", "products", "Cost", "cost"),
    _number("product_stock", "products", "Stock", "stock"),
    _enum("product_status", "products", "Stock Status", "status", ("active", "low_stock", "out_of_stock")),

    # Customers
    _text("customer_name", "customers", "Customer Name", "name"),
    _text("customer_company", "customers", "Company", "company"),
    _text("customer_email", "customers", "Email", "email"),
    _text("customer_phone", "customers", "Phone", "phone"),
    _text("customer_address", "customers", "Address", "address"),
    _date("customer_since", "customers", "Customer Since", "created_at"),

    # Leads
    _text("lead_company", "leads", "Lead Company", "company"),
    _text("lead_contact", "leads", "Contact Name", "contact_name"),
    _enum("lead_status", "leads", "Lead Status", "status", ("hot", "warm", "cold")),
    _enum("lead_stage", "leads", "Stage", "stage",
          ("initial_contact", "qualification", "proposal", "negotiation", "closed_won", "closed_lost")),
    _number("lead_value", "leads", "Deal Value", "value"),
    _date("lead_last_contact", "leads", "Last Contact", "last_contact"),

    # Orders
    _text("order_number", "orders", "Order Number", "order_number"),
    _enum("order_status", "orders", "Order Status", "status", ("pending", "processing", "completed", "cancelled")),
    _number("order_total", "orders", "Order Total", "total_amount"),
    _date("order_date", "orders", "Order Date", "order_date"),
)


@lru_cache(maxsize=1)
def default_registry() -> FieldRegistry:
    """Process-wide ERP field registry, built once."""
    return FieldRegistry(ERP_FIELDS)
