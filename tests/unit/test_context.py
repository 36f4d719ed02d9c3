"""Tests for the schema context provider."""

import threading
import time

import pytest

from cncquery.exceptions import SchemaDefinitionError
from cncquery.query.context import SchemaContext, SchemaContextProvider
from cncquery.schema.definition import SCHEMA_DEFINITION, SchemaDefinition, _load_definition


class SlowProvider(SchemaContextProvider):
    """Provider whose build takes long enough for threads to pile up."""

    def build(self) -> SchemaContext:
        time.sleep(0.05)
        return super().build()


class TestBuild:
    """Rendering the static definition."""

    def test_allow_lists(self):
        context = SchemaContextProvider().build()
        assert "tool_changes" in context.tables
        assert "inventory" in context.tables
        assert context.large_tables == frozenset({"tool_changes", "inventory_transactions"})
        assert "change_reason" in context.columns["tool_changes"]
        assert "count" in context.allowed_functions
        assert len(context.tables) == len(SCHEMA_DEFINITION.tables)

    def test_text_sections(self):
        text = SchemaContextProvider().build().text
        assert "## Tables" in text
        assert "### tool_changes [LARGE" in text
        assert "## Join paths" in text
        assert "tool_changes.equipment_id -> equipment.id" in text
        assert "'파손' (breakage)" in text
        assert "## Examples" in text
        assert "## Guidelines" in text

    def test_deterministic(self):
        provider = SchemaContextProvider()
        assert provider.build() == provider.build()

    def test_to_dict_is_json_friendly(self):
        data = SchemaContextProvider().build().to_dict()
        assert data["dialect"] == "postgresql"
        assert data["tables"] == sorted(data["tables"])
        assert isinstance(data["columns"]["equipment"], list)

    def test_custom_definition(self):
        definition = SchemaDefinition.model_validate(
            {
                "title": "Tiny",
                "dialect": "sqlite",
                "tables": [{"name": "parts", "description": "Parts", "columns": [{"name": "id", "type": "TEXT"}]}],
            }
        )
        context = SchemaContextProvider(definition).build()
        assert context.tables == frozenset({"parts"})
        assert context.dialect == "sqlite"

    def test_invalid_definition_rejected(self):
        with pytest.raises(SchemaDefinitionError):
            _load_definition(
                {
                    "title": "Broken",
                    "tables": [{"name": "a", "description": "A", "columns": [{"name": "id", "type": "TEXT"}]}],
                    "relationships": [
                        {"source_table": "a", "source_column": "b_id", "target_table": "b"}
                    ],
                }
            )


class TestMemo:
    """Memoization and invalidation."""

    def test_cached_instance_is_reused(self):
        provider = SchemaContextProvider()
        assert provider.get_cached() is provider.get_cached()
        assert provider.build_count == 1

    def test_invalidate_rebuilds(self):
        provider = SchemaContextProvider()
        first = provider.get_cached()
        provider.invalidate()
        second = provider.get_cached()
        assert first is not second
        assert first == second
        assert provider.build_count == 2

    def test_concurrent_callers_build_once(self):
        provider = SlowProvider()
        results: list[SchemaContext] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(provider.get_cached())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert provider.build_count == 1
        assert len(results) == 8
        assert all(r is results[0] for r in results)
