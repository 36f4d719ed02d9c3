"""Audit trail commands."""

from typing import Annotated

import typer

from cncquery.cli.context import CLIContext
from cncquery.cli.output import OutputFormatter

app = typer.Typer(help="Review question/answer outcomes")


@app.command("recent")
def audit_recent(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of outcomes")] = 20,
    outcome: Annotated[
        str | None,
        typer.Option("--outcome", "-o", help="Filter by outcome (OK, UNSAFE_SQL, ...)"),
    ] = None,
) -> None:
    """Show the most recent outcomes.

    Examples:

        cncquery audit recent
        cncquery audit recent --outcome UNSAFE_SQL -n 5
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        rows = cli_ctx.get_db().recent_outcomes(limit=limit, outcome=outcome)
        formatter.print_table(
            "Recent outcomes",
            rows,
            ["timestamp", "outcome", "question", "safety_score", "cached", "row_count"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("cleanup")
def audit_cleanup(ctx: typer.Context) -> None:
    """Delete outcomes older than the retention period."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        deleted = db.cleanup_audit()
        formatter.print_success(
            "Old audit records removed",
            {"deleted": deleted, "retention_days": db.config.audit_retention_days},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
