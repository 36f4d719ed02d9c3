"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from cncquery.core.types import QueryPreview, QueryResult, ValidationVerdict
from cncquery.exceptions import CncQueryError, NLQueryError

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str] | None = None,
    ) -> None:
        """Print rows as a Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display (defaults to the first row's keys)
        """
        if self.json_mode:
            _emit_json(data)
            return
        columns = columns or (list(data[0].keys()) if data else [])
        table = Table(title=title, show_header=True, header_style="bold magenta")
        for col in columns:
            table.add_column(col)
        for row in data:
            table.add_row(*[str(row.get(col, "")) for col in columns])
        console.print(table)

    def print_answer(self, result: QueryResult, show_rows: bool = True) -> None:
        """Print an answered question.

        Args:
            result: Pipeline result
            show_rows: Whether to print the result rows
        """
        if self.json_mode:
            _emit_json(result.to_response())
            return

        console.print(Panel(result.answer, title="[bold]Answer[/bold]", border_style="green"))
        console.print(Syntax(result.sql, "sql", word_wrap=True))
        source = "cache" if result.cached else "live query"
        note = " (templated answer)" if result.degraded else ""
        console.print(
            f"Safety score: {result.safety_score} | {len(result.rows)} rows from {source} | "
            f"{result.elapsed_ms:.0f}ms{note}",
            style="dim",
        )
        if show_rows and result.rows:
            self.print_table(f"Rows ({len(result.rows)})", result.rows)

    def print_verdict(self, sql: str, verdict: ValidationVerdict, threshold: int) -> None:
        """Print a validation verdict.

        Args:
            sql: The checked SQL
            verdict: Validator output
            threshold: Minimum score for execution
        """
        if self.json_mode:
            output = verdict.model_dump()
            output["sql"] = sql
            output["threshold"] = threshold
            output["would_execute"] = verdict.passed and verdict.safety_score >= threshold
            _emit_json(output)
            return

        console.print(Syntax(sql or "(empty)", "sql", word_wrap=True))
        if not verdict.passed:
            console.print("✗ Rejected", style="bold red")
            for violation in verdict.violations:
                console.print(f"  • {violation}", style="red")
            return
        style = "green" if verdict.safety_score >= threshold else "yellow"
        console.print(f"✓ Valid (safety score {verdict.safety_score}, threshold {threshold})", style=style)
        if verdict.tables:
            console.print(f"  Tables: {', '.join(verdict.tables)}", style="dim")

    def print_preview(self, preview: QueryPreview) -> None:
        """Print a dry-run preview."""
        if self.json_mode:
            output = preview.model_dump()
            output["would_execute"] = preview.would_execute
            _emit_json(output)
            return
        self.print_verdict(preview.sql, preview.verdict, preview.threshold)
        if preview.would_execute:
            console.print("Would execute (dry run: nothing was run)", style="dim")

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print a maintenance outcome such as ``Cache cleared`` with its counts."""
        if self.json_mode:
            _emit_json({"success": True, "message": message, **(details or {})})
            return
        console.print(f"✓ {message}", style="green")
        for key, value in (details or {}).items():
            console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print a failure.

        Pipeline errors are titled with their taxonomy code. Operators at the
        terminal also see the audit context (SQL, violations, score), which
        the inbound API never returns.
        """
        if self.json_mode:
            _emit_json(error.to_dict() if isinstance(error, CncQueryError) else {"error": str(error)})
            return

        title = f"[red]{error.code}[/red]" if isinstance(error, NLQueryError) else "[red]Error[/red]"
        body = str(error)
        if isinstance(error, CncQueryError):
            extra = [f"{k}: {v}" for k, v in error.context.items() if v not in (None, [], "")]
            if extra:
                body += "\n\n" + "\n".join(extra)
        console.print(Panel(body, title=title, border_style="red"))

    def print_data(self, data: Any) -> None:
        if self.json_mode:
            _emit_json(data)
        else:
            console.print(data)


def _emit_json(data: Any) -> None:
    print(json.dumps(data, default=str, indent=2, ensure_ascii=False))
