"""Bridge CLI entry point."""

import typer
from rich.console import Console

from convobridge.api.cli.commands import config, serve

app = typer.Typer(
    name="convobridge",
    help="Conversation bridge between bot turns and push agent messaging",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("serve")(serve.serve)
app.add_typer(config.app, name="config", help="Configuration inspection")


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Conversation bridge CLI."""
    ctx.obj = {"debug": debug}


@app.command()
def version():
    """Show the bridge version."""
    from convobridge import __version__

    console.print(f"[bold blue]Version:[/bold blue] [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
