"""Static definition of the queryable CNC endmill management schema.

This is the single source of truth for:
- The allow-listed table set enforced by the SQL validator
- The schema description embedded in generation prompts
- Large-table flags used by the safety scorer

The definition is validated when this module is imported, so a malformed
entry fails the process at boot instead of failing individual requests.
Keep it in sync with the production database whenever a migration lands,
then call ``SchemaContextProvider.invalidate()``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from cncquery.exceptions import SchemaDefinitionError


class ColumnSpec(BaseModel):
    """A column of an allow-listed table."""

    name: str
    type: str
    description: str | None = None

    model_config = {"frozen": True}


class TableSpec(BaseModel):
    """An allow-listed table."""

    name: str
    description: str
    columns: list[ColumnSpec] = Field(min_length=1)
    large: bool = Field(default=False, description="Requires LIMIT/date filters to be cheap")
    usage: str | None = None

    model_config = {"frozen": True}

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


class RelationshipSpec(BaseModel):
    """A foreign-key style join path (source.column -> target.column)."""

    source_table: str
    source_column: str
    target_table: str
    target_column: str = "id"

    model_config = {"frozen": True}


class EnumSpec(BaseModel):
    """Exact stored values of a categorical column."""

    table: str
    column: str
    values: dict[str, str] = Field(min_length=1, description="stored value -> meaning")

    model_config = {"frozen": True}


class ExampleQuery(BaseModel):
    """A worked question -> SQL pair for few-shot grounding."""

    question: str
    sql: str

    model_config = {"frozen": True}


class SchemaDefinition(BaseModel):
    """The whole queryable schema."""

    title: str
    dialect: str = "postgresql"
    tables: list[TableSpec] = Field(min_length=1)
    relationships: list[RelationshipSpec] = Field(default_factory=list)
    enums: list[EnumSpec] = Field(default_factory=list)
    examples: list[ExampleQuery] = Field(default_factory=list)
    guidelines: list[str] = Field(default_factory=list)
    allowed_functions: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_references(self) -> SchemaDefinition:
        columns = {t.name: set(t.column_names) for t in self.tables}
        if len(columns) != len(self.tables):
            raise ValueError("Duplicate table names in schema definition")

        def require(table: str, column: str, where: str) -> None:
            if table not in columns:
                raise ValueError(f"{where} references unknown table '{table}'")
            if column not in columns[table]:
                raise ValueError(f"{where} references unknown column '{table}.{column}'")

        for rel in self.relationships:
            require(rel.source_table, rel.source_column, "Relationship")
            require(rel.target_table, rel.target_column, "Relationship")
        for enum in self.enums:
            require(enum.table, enum.column, "Enum")
        return self

    def table(self, name: str) -> TableSpec | None:
        """Look up a table by (case-insensitive) name."""
        lowered = name.lower()
        for t in self.tables:
            if t.name == lowered:
                return t
        return None


_C = ColumnSpec  # Keeps the table literals below readable

_RAW_DEFINITION: dict[str, Any] = {
    "title": "CNC Endmill Management Database",
    "dialect": "postgresql",
    "tables": [
        TableSpec(
            name="tool_changes",
            description="Tool change history. Core table for breakage and cost analysis.",
            large=True,
            usage="Breakage analysis, change patterns, cost analysis",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="equipment_id", type="UUID", description="References equipment.id"),
                _C(name="equipment_number", type="INTEGER", description="Machine number"),
                _C(name="model", type="TEXT", description="Machine model: PA1, PA2, PS, B7, Q7"),
                _C(name="process", type="TEXT", description="Process step, e.g. '가공1차'"),
                _C(name="t_number", type="INTEGER", description="Tool position T1..T24"),
                _C(name="endmill_type_id", type="UUID", description="References endmill_types.id"),
                _C(name="endmill_code", type="TEXT", description="Endmill code"),
                _C(name="endmill_name", type="TEXT", description="Endmill name"),
                _C(name="change_date", type="DATE", description="Date of the change"),
                _C(name="change_reason", type="TEXT", description="Reason, see enumerations"),
                _C(name="tool_life", type="INTEGER", description="Achieved tool life"),
                _C(name="changed_by", type="UUID", description="References user_profiles.id"),
                _C(name="production_model", type="TEXT", description="Product being machined"),
                _C(name="notes", type="TEXT"),
                _C(name="created_at", type="TIMESTAMP"),
            ],
        ),
        TableSpec(
            name="equipment",
            description="The 800 CNC machines on the floor.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="equipment_number", type="INTEGER", description="1..800, unique"),
                _C(name="location", type="TEXT", description="Building, see enumerations"),
                _C(name="status", type="TEXT", description="Machine status, see enumerations"),
                _C(name="model_code", type="TEXT"),
                _C(name="current_model", type="TEXT", description="Product currently produced"),
                _C(name="process", type="TEXT"),
                _C(name="tool_position_count", type="INTEGER", description="Defaults to 21"),
                _C(name="last_maintenance", type="DATE"),
                _C(name="created_at", type="TIMESTAMP"),
                _C(name="updated_at", type="TIMESTAMP"),
            ],
        ),
        TableSpec(
            name="endmill_types",
            description="Endmill catalogue and specifications.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="code", type="TEXT", description="Endmill code, unique"),
                _C(name="category_id", type="UUID", description="References endmill_categories.id"),
                _C(name="name", type="TEXT"),
                _C(name="unit_cost", type="NUMERIC"),
                _C(name="standard_life", type="INTEGER"),
                _C(name="created_at", type="TIMESTAMP"),
                _C(name="updated_at", type="TIMESTAMP"),
            ],
        ),
        TableSpec(
            name="endmill_categories",
            description="Endmill categories.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="code", type="TEXT"),
                _C(name="name_ko", type="TEXT", description="Korean name"),
                _C(name="name_vi", type="TEXT", description="Vietnamese name"),
                _C(name="description", type="TEXT"),
            ],
        ),
        TableSpec(
            name="inventory",
            description="Current endmill stock levels.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="endmill_type_id", type="UUID", description="References endmill_types.id"),
                _C(name="current_stock", type="INTEGER"),
                _C(name="min_stock", type="INTEGER"),
                _C(name="max_stock", type="INTEGER"),
                _C(name="status", type="TEXT", description="Stock status, see enumerations"),
                _C(name="location", type="TEXT", description="Storage location"),
                _C(name="last_updated", type="TIMESTAMP"),
            ],
        ),
        TableSpec(
            name="inventory_transactions",
            description="Inbound and outbound stock movements.",
            large=True,
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="inventory_id", type="UUID", description="References inventory.id"),
                _C(name="transaction_type", type="TEXT", description="'inbound' or 'outbound'"),
                _C(name="quantity", type="INTEGER"),
                _C(name="unit_price", type="NUMERIC"),
                _C(name="total_amount", type="NUMERIC"),
                _C(name="equipment_id", type="UUID", description="Outbound only"),
                _C(name="t_number", type="INTEGER", description="Outbound only"),
                _C(name="purpose", type="TEXT"),
                _C(name="processed_by", type="UUID", description="References user_profiles.id"),
                _C(name="processed_at", type="TIMESTAMP"),
                _C(name="notes", type="TEXT"),
            ],
        ),
        TableSpec(
            name="user_profiles",
            description="Operator profiles.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="user_id", type="UUID"),
                _C(name="employee_id", type="TEXT"),
                _C(name="name", type="TEXT"),
                _C(name="department", type="TEXT"),
                _C(name="position", type="TEXT"),
                _C(name="shift", type="TEXT", description="Shift, see enumerations"),
                _C(name="role_id", type="UUID", description="References user_roles.id"),
                _C(name="is_active", type="BOOLEAN"),
            ],
        ),
        TableSpec(
            name="user_roles",
            description="Role names assigned to operators.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="name", type="TEXT"),
                _C(name="type", type="TEXT", description="system_admin, admin or user"),
            ],
        ),
        TableSpec(
            name="cam_sheets",
            description="Tool specification sheets per model and process.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="model", type="TEXT"),
                _C(name="process", type="TEXT"),
                _C(name="cam_version", type="TEXT"),
                _C(name="version_date", type="DATE"),
                _C(name="created_by", type="UUID"),
            ],
        ),
        TableSpec(
            name="cam_sheet_endmills",
            description="Tools listed on a CAM sheet.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="cam_sheet_id", type="UUID", description="References cam_sheets.id"),
                _C(name="t_number", type="INTEGER"),
                _C(name="endmill_type_id", type="UUID", description="References endmill_types.id"),
                _C(name="endmill_code", type="TEXT"),
                _C(name="endmill_name", type="TEXT"),
                _C(name="tool_life", type="INTEGER"),
                _C(name="specifications", type="TEXT"),
            ],
        ),
        TableSpec(
            name="suppliers",
            description="Endmill suppliers.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="code", type="TEXT"),
                _C(name="name", type="TEXT"),
                _C(name="contact_info", type="JSONB"),
                _C(name="is_active", type="BOOLEAN"),
                _C(name="quality_rating", type="NUMERIC"),
            ],
        ),
        TableSpec(
            name="endmill_supplier_prices",
            description="Per-supplier endmill prices.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="endmill_type_id", type="UUID", description="References endmill_types.id"),
                _C(name="supplier_id", type="UUID", description="References suppliers.id"),
                _C(name="unit_price", type="NUMERIC"),
                _C(name="min_order_quantity", type="INTEGER"),
                _C(name="lead_time_days", type="INTEGER"),
                _C(name="is_preferred", type="BOOLEAN"),
                _C(name="quality_rating", type="INTEGER", description="1..10"),
            ],
        ),
        TableSpec(
            name="tool_positions",
            description="Tool currently mounted at each T position of each machine.",
            columns=[
                _C(name="id", type="UUID", description="Primary key"),
                _C(name="equipment_id", type="UUID", description="References equipment.id"),
                _C(name="equipment_number", type="INTEGER"),
                _C(name="model", type="TEXT"),
                _C(name="t_number", type="INTEGER", description="1..24"),
                _C(name="endmill_type_id", type="UUID", description="References endmill_types.id"),
                _C(name="endmill_code", type="TEXT"),
                _C(name="endmill_name", type="TEXT"),
                _C(name="tool_life", type="INTEGER"),
                _C(name="install_date", type="DATE"),
                _C(name="created_at", type="TIMESTAMP"),
                _C(name="updated_at", type="TIMESTAMP"),
            ],
        ),
    ],
    "relationships": [
        RelationshipSpec(source_table="tool_changes", source_column="equipment_id", target_table="equipment"),
        RelationshipSpec(source_table="tool_changes", source_column="endmill_type_id", target_table="endmill_types"),
        RelationshipSpec(source_table="tool_changes", source_column="changed_by", target_table="user_profiles"),
        RelationshipSpec(source_table="tool_positions", source_column="equipment_id", target_table="equipment"),
        RelationshipSpec(source_table="tool_positions", source_column="endmill_type_id", target_table="endmill_types"),
        RelationshipSpec(source_table="endmill_types", source_column="category_id", target_table="endmill_categories"),
        RelationshipSpec(source_table="inventory", source_column="endmill_type_id", target_table="endmill_types"),
        RelationshipSpec(source_table="inventory_transactions", source_column="inventory_id", target_table="inventory"),
        RelationshipSpec(source_table="inventory_transactions", source_column="equipment_id", target_table="equipment"),
        RelationshipSpec(source_table="inventory_transactions", source_column="processed_by", target_table="user_profiles"),
        RelationshipSpec(source_table="user_profiles", source_column="role_id", target_table="user_roles"),
        RelationshipSpec(source_table="cam_sheet_endmills", source_column="cam_sheet_id", target_table="cam_sheets"),
        RelationshipSpec(source_table="endmill_supplier_prices", source_column="supplier_id", target_table="suppliers"),
        RelationshipSpec(source_table="endmill_supplier_prices", source_column="endmill_type_id", target_table="endmill_types"),
    ],
    "enums": [
        EnumSpec(
            table="tool_changes",
            column="change_reason",
            values={
                "수명완료": "end of normal tool life",
                "파손": "breakage",
                "마모": "wear",
                "예방교체": "preventive replacement",
                "모델변경": "production model change",
                "기타": "other",
            },
        ),
        EnumSpec(table="equipment", column="location", values={"A동": "building A", "B동": "building B"}),
        EnumSpec(
            table="equipment",
            column="status",
            values={"가동중": "running", "점검중": "under inspection", "셋업중": "in setup"},
        ),
        EnumSpec(
            table="inventory",
            column="status",
            values={"sufficient": "enough stock", "low": "below minimum", "critical": "urgent"},
        ),
        EnumSpec(table="user_profiles", column="shift", values={"A": "shift A", "B": "shift B", "C": "shift C"}),
    ],
    "examples": [
        ExampleQuery(
            question="Which model had the most tool breakages in the last month?",
            sql=(
                "SELECT model, COUNT(*) AS damage_count\n"
                "FROM tool_changes\n"
                "WHERE change_date >= NOW() - INTERVAL '1 month'\n"
                "  AND change_reason = '파손'\n"
                "GROUP BY model\n"
                "ORDER BY damage_count DESC\n"
                "LIMIT 1"
            ),
        ),
        ExampleQuery(
            question="Show endmills that are low on stock",
            sql=(
                "SELECT et.code AS endmill_code, et.name, i.current_stock, i.min_stock, i.status\n"
                "FROM inventory i\n"
                "JOIN endmill_types et ON i.endmill_type_id = et.id\n"
                "WHERE i.status IN ('low', 'critical')\n"
                "ORDER BY CASE i.status WHEN 'critical' THEN 1 WHEN 'low' THEN 2 END,\n"
                "  i.current_stock ASC\n"
                "LIMIT 100"
            ),
        ),
        ExampleQuery(
            question="Which shift changed more tools, A or B?",
            sql=(
                "SELECT up.shift, COUNT(*) AS change_count\n"
                "FROM tool_changes tc\n"
                "JOIN user_profiles up ON tc.changed_by = up.id\n"
                "WHERE tc.change_date >= NOW() - INTERVAL '1 month'\n"
                "GROUP BY up.shift\n"
                "ORDER BY change_count DESC"
            ),
        ),
        ExampleQuery(
            question="Breakages per T position for model PA2",
            sql=(
                "SELECT t_number, COUNT(*) AS damage_count, ROUND(AVG(tool_life), 2) AS avg_tool_life\n"
                "FROM tool_changes\n"
                "WHERE model = 'PA2'\n"
                "  AND change_reason = '파손'\n"
                "  AND change_date >= NOW() - INTERVAL '3 months'\n"
                "GROUP BY t_number\n"
                "ORDER BY damage_count DESC"
            ),
        ),
        ExampleQuery(
            question="Monthly tool change cost over the last 3 months",
            sql=(
                "SELECT TO_CHAR(tc.change_date, 'YYYY-MM') AS month, COUNT(*) AS change_count,\n"
                "  SUM(et.unit_cost) AS total_cost\n"
                "FROM tool_changes tc\n"
                "JOIN endmill_types et ON tc.endmill_type_id = et.id\n"
                "WHERE tc.change_date >= NOW() - INTERVAL '3 months'\n"
                "GROUP BY TO_CHAR(tc.change_date, 'YYYY-MM')\n"
                "ORDER BY month DESC"
            ),
        ),
        ExampleQuery(
            question="Which endmill is mounted at T10 on machine 2?",
            sql=(
                "SELECT tp.equipment_number, tp.model, tp.t_number, tp.endmill_code,\n"
                "  tp.endmill_name, tp.tool_life, tp.install_date\n"
                "FROM tool_positions tp\n"
                "WHERE tp.equipment_number = 2 AND tp.t_number = 10"
            ),
        ),
    ],
    "guidelines": [
        "Recent data: change_date >= NOW() - INTERVAL '1 month'",
        "Date range: change_date BETWEEN '2025-01-01' AND '2025-12-31'",
        "Match stored enumeration values exactly (change_reason = '파손', not 'damage')",
        "Use ILIKE for case-insensitive matching of codes and model names",
        "Always filter tool_changes and inventory_transactions by date or add LIMIT",
        "Select the columns you need instead of SELECT *",
        "Use table aliases in JOINs",
    ],
    "allowed_functions": [
        "count", "sum", "avg", "max", "min", "round", "cast", "coalesce", "nullif",
        "now", "date_trunc", "to_char", "extract", "date_part", "age",
        "lower", "upper", "trim", "length", "concat", "abs", "greatest", "least",
        "date", "strftime", "julianday", "interval",
    ],
}


def _load_definition(raw: dict[str, Any]) -> SchemaDefinition:
    try:
        return SchemaDefinition.model_validate(raw)
    except ValidationError as e:
        raise SchemaDefinitionError(f"Invalid schema definition: {e}") from e


SCHEMA_DEFINITION = _load_definition(_RAW_DEFINITION)
