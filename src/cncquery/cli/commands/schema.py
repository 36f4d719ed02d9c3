"""Schema context commands."""

from typing import Annotated

import typer

from cncquery.cli.context import CLIContext
from cncquery.cli.output import OutputFormatter, console

app = typer.Typer(help="Inspect the queryable schema")


@app.command("tables")
def schema_tables(ctx: typer.Context) -> None:
    """List allow-listed tables.

    Examples:

        cncquery schema tables
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        context = cli_ctx.get_db().schema_context()
        rows = [
            {
                "table": name,
                "columns": len(context.columns[name]),
                "large": "✓" if name in context.large_tables else "",
            }
            for name in sorted(context.tables)
        ]
        formatter.print_table("Allow-listed tables", rows, ["table", "columns", "large"])
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("context")
def schema_context(
    ctx: typer.Context,
    table: Annotated[
        str | None,
        typer.Option("--table", "-t", help="Only show the columns of this table"),
    ] = None,
) -> None:
    """Show the schema context embedded in generation prompts.

    Examples:

        cncquery schema context
        cncquery schema context --table tool_changes
        cncquery --json schema context
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        context = cli_ctx.get_db().schema_context()
        if table:
            name = table.lower()
            if name not in context.tables:
                raise typer.BadParameter(f"Unknown table '{table}'")
            formatter.print_data({"table": name, "columns": list(context.columns[name])})
        elif cli_ctx.json_output:
            formatter.print_data(context.to_dict())
        else:
            console.print(context.text, markup=False)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
