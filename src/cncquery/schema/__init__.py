"""Schema definition and bookkeeping tables for CNCQuery."""

from cncquery.schema.definition import SCHEMA_DEFINITION, SchemaDefinition, TableSpec
from cncquery.schema.models import Base, QueryAuditRecord, QueryCacheRecord

__all__ = [
    "SCHEMA_DEFINITION",
    "SchemaDefinition",
    "TableSpec",
    "Base",
    "QueryCacheRecord",
    "QueryAuditRecord",
]
