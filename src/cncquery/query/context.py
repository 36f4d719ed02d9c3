"""Schema context for LLM SQL generation.

Renders the static schema definition into the text block embedded in every
generation prompt, alongside the machine-readable allow-lists used by the
validator and scorer.

The context includes:
- Table descriptions with columns and types
- Join paths between tables
- Exact stored values of categorical columns
- Worked question -> SQL examples
- Query guidelines
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from cncquery.schema.definition import SCHEMA_DEFINITION, SchemaDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaContext:
    """Immutable schema context shared by all in-flight requests."""

    text: str
    """Prompt-ready schema description."""

    tables: frozenset[str]
    """Allow-listed table names (lower case)."""

    columns: dict[str, tuple[str, ...]]
    """Column names per allow-listed table."""

    large_tables: frozenset[str]
    """Tables that need a LIMIT or a date filter to be cheap."""

    allowed_functions: frozenset[str]
    """Functions the scorer does not penalize (lower case)."""

    dialect: str = "postgresql"

    def to_dict(self) -> dict[str, Any]:
        """Return context as JSON-serializable dict."""
        return {
            "dialect": self.dialect,
            "tables": sorted(self.tables),
            "columns": {name: list(cols) for name, cols in sorted(self.columns.items())},
            "large_tables": sorted(self.large_tables),
            "allowed_functions": sorted(self.allowed_functions),
            "text": self.text,
        }


class SchemaContextProvider:
    """Builds and memoizes the :class:`SchemaContext`.

    The first caller builds the context while holding a lock; concurrent
    callers block on the lock and then reuse the memoized instance, so the
    build runs at most once per invalidation.
    """

    def __init__(self, definition: SchemaDefinition | None = None) -> None:
        """Initialize the provider.

        Args:
            definition: Schema definition to render (defaults to the built-in one)
        """
        self._definition = definition or SCHEMA_DEFINITION
        self._lock = threading.Lock()
        self._cached: SchemaContext | None = None
        self.build_count = 0

    @property
    def definition(self) -> SchemaDefinition:
        return self._definition

    def build(self) -> SchemaContext:
        """Build a fresh context from the definition.

        Deterministic: the same definition always yields an equal context.
        """
        self.build_count += 1
        d = self._definition
        context = SchemaContext(
            text=self._render(d),
            tables=frozenset(t.name for t in d.tables),
            columns={t.name: tuple(t.column_names) for t in d.tables},
            large_tables=frozenset(t.name for t in d.tables if t.large),
            allowed_functions=frozenset(f.lower() for f in d.allowed_functions),
            dialect=d.dialect,
        )
        logger.debug("Built schema context (%d tables)", len(context.tables))
        return context

    def get_cached(self) -> SchemaContext:
        """Return the memoized context, building it on first use."""
        cached = self._cached
        if cached is not None:
            return cached
        with self._lock:
            if self._cached is None:
                self._cached = self.build()
            return self._cached

    def invalidate(self) -> None:
        """Drop the memoized context; the next call to get_cached() rebuilds it."""
        with self._lock:
            self._cached = None
        logger.info("Schema context invalidated")

    def _render(self, d: SchemaDefinition) -> str:
        lines = [f"# {d.title} ({d.dialect})", "", "## Tables"]

        for table in d.tables:
            flag = " [LARGE: always filter by date or add LIMIT]" if table.large else ""
            lines.append("")
            lines.append(f"### {table.name}{flag}")
            lines.append(table.description)
            if table.usage:
                lines.append(f"Used for: {table.usage}")
            for col in table.columns:
                desc = f" - {col.description}" if col.description else ""
                lines.append(f"- {col.name} {col.type}{desc}")

        if d.relationships:
            lines += ["", "## Join paths"]
            for rel in d.relationships:
                lines.append(
                    f"- {rel.source_table}.{rel.source_column} -> "
                    f"{rel.target_table}.{rel.target_column}"
                )

        if d.enums:
            lines += ["", "## Stored values (use exactly as written)"]
            for enum in d.enums:
                values = ", ".join(f"'{v}' ({meaning})" for v, meaning in enum.values.items())
                lines.append(f"- {enum.table}.{enum.column}: {values}")

        if d.examples:
            lines += ["", "## Examples"]
            for ex in d.examples:
                lines += ["", f"Q: {ex.question}", ex.sql]

        if d.guidelines:
            lines += ["", "## Guidelines"]
            lines += [f"- {g}" for g in d.guidelines]

        return "\n".join(lines)
