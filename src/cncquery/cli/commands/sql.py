"""SQL safety commands: validate, score, sanitize.

None of these need a text provider or touch production tables.
"""

import sys
from pathlib import Path
from typing import Annotated

import typer

from cncquery.cli.context import CLIContext
from cncquery.cli.output import OutputFormatter
from cncquery.query.sanitizer import sanitize_sql

SqlArgument = Annotated[
    str | None,
    typer.Argument(help="SQL text ('-' reads stdin)"),
]
FileOption = Annotated[
    str | None,
    typer.Option("--file", "-f", help="Load SQL from file"),
]


def _read_sql(sql: str | None, from_file: str | None) -> str:
    if from_file:
        return Path(from_file).read_text(encoding="utf-8")
    if sql == "-":
        return sys.stdin.read()
    if sql is not None:
        return sql
    raise typer.BadParameter("Either provide SQL or use --file")


def validate_command(
    ctx: typer.Context,
    sql: SqlArgument = None,
    from_file: FileOption = None,
) -> None:
    """Validate SQL against the safety rules and score it.

    Exits with code 1 when the SQL would not be executed.

    Examples:

        cncquery validate "SELECT model FROM equipment LIMIT 5"
        cncquery validate --file query.sql
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        sql_content = _read_sql(sql, from_file)
        db = cli_ctx.get_db()
        verdict = db.validate_sql(sql_content)
        threshold = db.config.safety_threshold
        formatter.print_verdict(sql_content, verdict, threshold)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if not verdict.passed or verdict.safety_score < threshold:
        raise typer.Exit(code=1)


def score_command(
    ctx: typer.Context,
    sql: SqlArgument = None,
    from_file: FileOption = None,
) -> None:
    """Print the safety score (0-100) of SQL.

    Examples:

        cncquery score "SELECT * FROM tool_changes"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        sql_content = _read_sql(sql, from_file)
        db = cli_ctx.get_db()
        score = db.score_sql(sql_content)
        if cli_ctx.json_output:
            formatter.print_data({"score": score, "threshold": db.config.safety_threshold})
        else:
            typer.echo(str(score))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def sanitize_command(
    ctx: typer.Context,
    text: SqlArgument = None,
    from_file: FileOption = None,
) -> None:
    """Strip code fences, labels and narrative from LLM output.

    Examples:

        cncquery sanitize "SQL: SELECT 1; -- done"
        pbpaste | cncquery sanitize -
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        cleaned = sanitize_sql(_read_sql(text, from_file))
        if cli_ctx.json_output:
            formatter.print_data({"sql": cleaned})
        else:
            typer.echo(cleaned)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
