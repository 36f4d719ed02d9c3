"""Answer cache maintenance commands."""

from typing import Annotated

import typer

from cncquery.cli.context import CLIContext
from cncquery.cli.output import OutputFormatter

app = typer.Typer(help="Inspect and maintain the answer cache")


@app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show cache entry counts.

    Hit/miss counters are per process, so they read zero in a fresh CLI run.
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        stats = db.cache_stats().model_dump()
        stats["ttl_seconds"] = db.cache.ttl_seconds
        if cli_ctx.json_output:
            formatter.print_data(stats)
        else:
            formatter.print_table(
                "Answer cache", [{"metric": k, "value": v} for k, v in stats.items()], ["metric", "value"]
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("clear")
def cache_clear(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete every cached answer."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not force and not cli_ctx.json_output:
        typer.confirm("Delete all cached answers?", abort=True)

    try:
        deleted = cli_ctx.get_db().clear_cache()
        formatter.print_success("Cache cleared", {"deleted": deleted})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("purge")
def cache_purge(ctx: typer.Context) -> None:
    """Delete expired cache entries."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        deleted = cli_ctx.get_db().purge_expired_cache()
        formatter.print_success("Expired entries purged", {"deleted": deleted})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    question: Annotated[str, typer.Argument(help="Question whose cached answer to drop")],
) -> None:
    """Drop the cached answer for one question."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        removed = cli_ctx.get_db().invalidate_question(question)
        formatter.print_success(
            "Cached answer removed" if removed else "No cached answer for that question",
            {"removed": removed},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
