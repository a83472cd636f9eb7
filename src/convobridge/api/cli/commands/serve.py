"""Serve command - Run the bridge."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from convobridge.application.config_loader import load_config
from convobridge.application.factory import build_bridge_service
from convobridge.core.domain.config_schema import BridgeConfig
from convobridge.core.domain.enums import BridgeMode
from convobridge.core.domain.errors import BridgeError, ConfigError

console = Console()

MODE_CHOICES = {
    "both": BridgeMode.BOTH,
    "turn-only": BridgeMode.TURN_ONLY,
    "push-only": BridgeMode.PUSH_ONLY,
}


def parse_mode(value: Optional[str]) -> Optional[BridgeMode]:
    if value is None:
        return None
    mode = MODE_CHOICES.get(value.lower())
    if mode is None:
        raise typer.BadParameter(f"Choose one of: {', '.join(MODE_CHOICES)}")
    return mode


def serve(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Bridge config YAML (defaults to the packaged one)"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="Protocols to serve: both, turn-only or push-only"
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address of the turn endpoint"),
    port: Optional[int] = typer.Option(None, "--port", help="Port of the turn endpoint"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Run the bridge until interrupted."""
    from convobridge.api.server import configure_logging

    overrides: dict[str, object] = {}
    selected_mode = parse_mode(mode)
    if selected_mode is not None:
        overrides["mode"] = selected_mode.value

    try:
        config = load_config(config_path, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc.message}")
        for error in exc.details.get("errors", []):
            console.print(f"  [yellow]{error['field']}[/yellow]: {error['message']}")
        raise typer.Exit(1)

    if host is not None or port is not None:
        turn = config.turn.model_copy(
            update={key: value for key, value in (("host", host), ("port", port)) if value is not None}
        )
        config = config.model_copy(update={"turn": turn})

    debug = debug or bool(ctx.obj and ctx.obj.get("debug"))
    configure_logging("DEBUG" if debug else config.logging.level)

    console.print(f"[bold blue]Mode:[/bold blue] [cyan]{config.mode.value}[/cyan]")
    if config.mode is BridgeMode.PUSH_ONLY:
        try:
            asyncio.run(run_push_only(config))
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted[/yellow]")
        except BridgeError as exc:
            console.print(f"[red]Push connection failed:[/red] {exc.message}")
            raise typer.Exit(1)
        return

    import uvicorn

    from convobridge.api.server import create_app

    console.print(
        f"[bold blue]Listening:[/bold blue] [cyan]http://{config.turn.host}:{config.turn.port}/api/messages[/cyan]"
    )
    uvicorn.run(
        create_app(config=config),
        host=config.turn.host,
        port=config.turn.port,
        log_level="debug" if debug else config.logging.level.lower(),
    )


async def run_push_only(config: BridgeConfig) -> None:
    """Run only the push side until its connection closes."""
    bridge = build_bridge_service(config)
    connection = bridge.push_connection
    if connection is None:
        raise ConfigError("push_only mode requires push credentials")
    await bridge.start()
    try:
        await connection.wait_closed()
    finally:
        await bridge.stop()
