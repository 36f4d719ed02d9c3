"""MCP server for CNCQuery.

Exposes question answering, SQL checking and the schema context as MCP
tools for AI agents.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP  # type: ignore[import-not-found]

from cncquery import CNCQuery
from cncquery.api import handle_ask
from cncquery.core.config import get_database_url

# Configure logging to stderr (important for stdio transport)
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP("cncquery")

# Global engine instance (set during server startup)
_db: CNCQuery | None = None


def get_db() -> CNCQuery:
    """Get the engine instance."""
    if _db is None:
        raise RuntimeError("Engine not initialized. Call create_server() first.")
    return _db


@mcp.tool()
def cncquery_ask(question: str, history: list[dict[str, Any]] | None = None) -> str:
    """Answer a question about the CNC endmill database in natural language.

    The question is turned into one read-only SELECT, checked against the
    safety rules, executed and explained.

    Args:
        question: Question in natural language (3-500 characters)
        history: Optional prior turns, each {"role": "user"|"assistant", "content": str}

    Returns:
        JSON with answer, sql, data, cached, safetyScore, responseTimeMs and
        question, or {"error", "code"} when the question cannot be answered.
    """
    status, body = handle_ask(get_db(), {"question": question, "history": history or []})
    if status != 200:
        body = {**body, "status": status}
    return json.dumps(body, default=str, ensure_ascii=False)


@mcp.tool()
def cncquery_validate_sql(sql: str) -> str:
    """Check SQL against the safety rules without executing it.

    Args:
        sql: A single SELECT statement

    Returns:
        JSON with passed, violations (rule identifiers), safety_score,
        tables, threshold and would_execute.
    """
    db = get_db()
    verdict = db.validate_sql(sql)
    threshold = db.config.safety_threshold
    return json.dumps(
        {
            **verdict.model_dump(),
            "threshold": threshold,
            "would_execute": verdict.passed and verdict.safety_score >= threshold,
        }
    )


@mcp.tool()
def cncquery_schema_context(table: str | None = None) -> str:
    """Get the queryable schema: tables, columns, join paths and stored values.

    Args:
        table: Optional table name to return only its columns

    Returns:
        JSON with the allow-listed tables, their columns, large-table flags
        and the prompt-ready schema text.
    """
    context = get_db().schema_context()
    if table:
        name = table.lower()
        if name not in context.tables:
            return json.dumps({"error": f"Unknown table '{table}'", "tables": sorted(context.tables)})
        return json.dumps(
            {
                "table": name,
                "columns": list(context.columns[name]),
                "large": name in context.large_tables,
            }
        )
    return json.dumps(context.to_dict(), ensure_ascii=False)


def create_server(database_url: str | None = None, echo: bool = False) -> FastMCP:
    """Create and configure the MCP server with a database connection.

    Args:
        database_url: Database URL (falls back to CNCQUERY_DATABASE_URL)
        echo: Whether to echo SQL statements

    Returns:
        Configured FastMCP server instance
    """
    global _db
    _db = CNCQuery(database_url, echo=echo)
    logger.info("CNCQuery initialized with %s", _db.connection.safe_url)
    return mcp


def main() -> None:
    """Entry point for running the MCP server."""
    parser = argparse.ArgumentParser(description="CNCQuery MCP Server")
    parser.add_argument(
        "--database",
        "-d",
        default=None,
        help=f"Database URL (default: CNCQUERY_DATABASE_URL or {get_database_url()})",
    )
    parser.add_argument(
        "--echo",
        action="store_true",
        help="Echo SQL statements",
    )
    args = parser.parse_args()

    create_server(args.database, echo=args.echo)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
