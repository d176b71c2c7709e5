"""
Declarative descriptions of the entity types found in a dump.

Each schema lists its columns in dump order together with the coercion
applied to the raw token, which fields are required, which must look like
identifiers and which are truncated to fit the database column.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Table

from app.db.models import Customer, Maintenance, Subscription

# Column kinds understood by the record mapper.
STRING = "string"
BOOLEAN = "boolean"
TIMESTAMP = "timestamp"
NULLABLE_DATE = "nullable_date"
INTEGER = "integer"

DEFAULT_STRING_LIMIT = 255


@dataclass(frozen=True)
class EntitySchema:
    entity_type: str  # Plural name used in results, e.g. "customers"
    table: Table
    key_column: str
    columns: Tuple[Tuple[str, str], ...]
    required_fields: Dict[str, str]  # field -> human label used in reasons
    identifier_fields: Tuple[str, ...] = ()
    string_limits: Dict[str, int] = field(default_factory=dict)
    parent_key_column: Optional[str] = None
    row_filter: Optional[Callable[[Dict[str, object]], bool]] = None

    @property
    def table_name(self) -> str:
        return self.table.name

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.columns]

    @property
    def update_columns(self) -> List[str]:
        return [name for name in self.column_names if name != self.key_column]

    def summary_id(self, record: Dict[str, object]) -> str:
        value = record.get(self.key_column)
        return str(value) if value else "unknown"


def _limits(fields: Sequence[str], limit: int = DEFAULT_STRING_LIMIT) -> Dict[str, int]:
    return {name: limit for name in fields}


def _is_sales_ticket(record: Dict[str, object]) -> bool:
    subject = record.get("subject_problem")
    return isinstance(subject, str) and subject.strip().lower() == "sales"


CUSTOMERS = EntitySchema(
    entity_type="customers",
    table=Customer.__table__,
    key_column="customer_id",
    columns=(
        ("customer_id", STRING),
        ("customer_password", STRING),
        ("customer_name", STRING),
        ("referral_source", STRING),
        ("customer_email", STRING),
        ("customer_address", STRING),
        ("customer_phone", STRING),
        ("customer_ktp_no", STRING),
        ("customer_ktp_picture", STRING),
        ("password_reset", STRING),
        ("created_at", TIMESTAMP),
        ("updated_at", TIMESTAMP),
    ),
    required_fields={"customer_id": "customer ID", "customer_name": "customer name"},
    identifier_fields=("customer_id",),
    string_limits=_limits(
        ["customer_name", "customer_email", "customer_address", "customer_phone"]
    ),
)

SUBSCRIPTIONS = EntitySchema(
    entity_type="subscriptions",
    table=Subscription.__table__,
    key_column="subscription_id",
    columns=(
        ("subscription_id", STRING),
        ("subscription_password", STRING),
        ("customer_id", STRING),
        ("serv_id", STRING),
        ("group", STRING),
        ("created_by", STRING),
        ("subscription_start_date", STRING),
        ("subscription_billing_cycle", STRING),
        ("subscription_price", STRING),
        ("subscription_address", STRING),
        ("subscription_status", STRING),
        ("subscription_maps", STRING),
        ("subscription_home_photo", STRING),
        ("subscription_form_scan", STRING),
        ("subscription_description", STRING),
        ("cpe_type", STRING),
        ("cpe_serial", STRING),
        ("cpe_picture", STRING),
        ("cpe_site", STRING),
        ("cpe_mac", STRING),
        ("is_cpe_rent", BOOLEAN),
        ("created_at", TIMESTAMP),
        ("updated_at", TIMESTAMP),
        ("dismantle_at", NULLABLE_DATE),
        ("suspend_at", NULLABLE_DATE),
        ("installed_by", STRING),
        ("subscription_test_result", STRING),
        ("odp_distance", STRING),
        ("approved_at", TIMESTAMP),
        ("installed_at", NULLABLE_DATE),
        ("index_month", INTEGER),
        ("attenuation_photo", STRING),
        ("ip_address", STRING),
        ("handle_by", STRING),
    ),
    required_fields={"subscription_id": "subscription ID", "customer_id": "customer ID"},
    identifier_fields=("subscription_id", "customer_id"),
    string_limits=_limits(
        [
            "subscription_address",
            "subscription_description",
            "subscription_maps",
            "subscription_home_photo",
            "subscription_form_scan",
            "cpe_picture",
            "attenuation_photo",
            "subscription_test_result",
        ]
    ),
    parent_key_column="customer_id",
)

MAINTENANCES = EntitySchema(
    entity_type="maintenances",
    table=Maintenance.__table__,
    key_column="ticket_id",
    columns=(
        ("ticket_id", STRING),
        ("subscription_id", STRING),
        ("customer_id", STRING),
        ("subject_problem", STRING),
        ("customer_report", STRING),
        ("technician_update_desc", STRING),
        ("work_by", STRING),
        ("open_by", STRING),
        ("open_at", NULLABLE_DATE),
        ("closed_at", NULLABLE_DATE),
        ("created_by", STRING),
        ("ticket_close_date", NULLABLE_DATE),
        ("status", STRING),
        ("picture_from_customer", STRING),
        ("picture_from_technician", STRING),
        ("created_at", TIMESTAMP),
        ("updated_at", TIMESTAMP),
        ("handle_by", STRING),
        ("handle_by_team", STRING),
    ),
    required_fields={"ticket_id": "ticket ID"},
    identifier_fields=("ticket_id",),
    string_limits=_limits(["picture_from_customer", "picture_from_technician"]),
    row_filter=_is_sales_ticket,
)

ENTITY_SCHEMAS = {
    schema.entity_type: schema for schema in (CUSTOMERS, SUBSCRIPTIONS, MAINTENANCES)
}


def get_entity_schema(entity_type: str) -> Optional[EntitySchema]:
    return ENTITY_SCHEMAS.get(entity_type)
