"""CNCQuery CLI - Main entry point.

Usage:
    cncquery ask "How many endmills broke last month?"
    cncquery --json validate "SELECT model FROM equipment LIMIT 5"
    cncquery cache stats
"""

from typing import Annotated

import typer

import cncquery
from cncquery.cli.commands import ask, audit, cache, schema, sql
from cncquery.cli.context import CLIContext, get_database_url

app = typer.Typer(
    name="cncquery",
    help="Ask the CNC endmill database questions in plain language, with read-only SQL underneath",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option("--database", "-d", envvar="CNCQUERY_DATABASE_URL", help="Database URL (PostgreSQL or SQLite)"),
    ] = None,
    echo: Annotated[bool, typer.Option("--echo", "-e", help="Echo SQL statements to console")] = False,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON (machine-readable)")] = False,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Text model for generation (overrides CNCQUERY_MODEL)"),
    ] = None,
    threshold: Annotated[
        int | None,
        typer.Option("--threshold", min=0, max=100, help="Minimum safety score to execute (default 50)"),
    ] = None,
) -> None:
    """Resolve global options into the context every command receives."""
    ctx.obj = CLIContext(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
        model=model,
        safety_threshold=threshold,
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"CNCQuery v{cncquery.__version__}")


app.command(name="ask")(ask.ask_command)
app.command(name="validate")(sql.validate_command)
app.command(name="score")(sql.score_command)
app.command(name="sanitize")(sql.sanitize_command)

app.add_typer(schema.app, name="schema")
app.add_typer(cache.app, name="cache")
app.add_typer(audit.app, name="audit")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
