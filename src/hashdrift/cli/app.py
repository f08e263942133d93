from typing import Optional

import typer

import hashdrift


def help_callback(ctx: typer.Context, value: Optional[bool]) -> None:
    """Show usage and exit with status 2."""
    if value:
        typer.echo(ctx.get_help())
        raise typer.Exit(2)


def version_callback(value: Optional[bool]) -> None:
    """Show version and exit with status 2."""
    if value:
        typer.echo(f"hashdrift version: {hashdrift.__version__}")
        raise typer.Exit(2)


# -h and -V exit with status 2, so click's own help option is replaced
app = typer.Typer(
    name="hashdrift",
    add_completion=False,
    context_settings={"help_option_names": []},
)
