"""Question answering command."""

import json
from pathlib import Path
from typing import Annotated

import typer

from cncquery.cli.context import CLIContext
from cncquery.cli.output import OutputFormatter


def _load_history(path: str | None) -> list[dict]:
    if not path:
        return []
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise typer.BadParameter("History file must contain a JSON array of turns")
    return data


def ask_command(
    ctx: typer.Context,
    question: Annotated[str, typer.Argument(help="Question in natural language")],
    history_file: Annotated[
        str | None,
        typer.Option("--history", "-H", help="JSON file with prior turns [{role, content}]"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Generate and check SQL without running it"),
    ] = False,
    show_rows: Annotated[
        bool,
        typer.Option("--rows/--no-rows", help="Print result rows"),
    ] = True,
) -> None:
    """Answer a question about the CNC database.

    Examples:

        cncquery ask "How many endmills broke last month?"
        cncquery ask "And on machine 3?" --history turns.json
        cncquery ask "Low stock endmills" --dry-run
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        history = _load_history(history_file)
        db = cli_ctx.get_db()
        if dry_run:
            formatter.print_preview(db.preview(question, history))
        else:
            formatter.print_answer(db.ask(question, history), show_rows=show_rows)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
