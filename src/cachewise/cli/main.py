"""CLI for cachewise: invoke / compose / stats commands."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from cachewise.core.config import AppSettings
from cachewise.core.startup_checks import validate_settings
from cachewise.exceptions import CachewiseError
from cachewise.models import ToolInvocationRequest
from cachewise.services.invocation_service import InvocationService

app = typer.Typer(name="cachewise", help="Cache-aware prompt composition and context aggregation")
console = Console()


def _build_request(
    message: str,
    order_context: Optional[str],
    user_metadata: Optional[str],
    history: Optional[str],
) -> ToolInvocationRequest:
    """Build the invocation request from CLI flags (JSON strings)."""
    try:
        return ToolInvocationRequest(
            message=message,
            order_context=json.loads(order_context) if order_context else {},
            user_metadata=json.loads(user_metadata) if user_metadata else {},
            conversation_history=json.loads(history) if history else [],
        )
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Invalid JSON: {e}") from e


def _stats_table(stats: dict) -> Table:
    table = Table(title="Cache statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key in (
        "requests_total", "cache_hits", "hit_rate", "tokens_cached",
        "tokens_total", "estimated_cost", "estimated_cost_saved",
    ):
        value = stats.get(key, 0)
        table.add_row(key, f"{value:.4f}" if isinstance(value, float) else str(value))
    return table


@app.command()
def invoke(
    message: str = typer.Argument(..., help="User message"),
    order_context: Optional[str] = typer.Option(None, "--order-context", help="Order context as JSON"),
    user_metadata: Optional[str] = typer.Option(None, "--user-metadata", help="User metadata as JSON"),
    history: Optional[str] = typer.Option(None, "--history", help="Conversation history as JSON list"),
    stream: bool = typer.Option(False, "--stream", help="Print chunks as they arrive"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run one invocation through the configured adapter."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    settings = AppSettings()
    validate_settings(settings)
    request = _build_request(message, order_context, user_metadata, history)
    service = InvocationService.from_settings(settings)

    async def _run() -> None:
        try:
            if stream:
                chunks = await service.stream(request)
                async for chunk in chunks:
                    console.print(chunk, end="")
                console.print()
            else:
                result = await service.invoke(request)
                console.print(result.content)
        finally:
            await service.aclose()

    try:
        asyncio.run(_run())
    except CachewiseError as e:
        console.print(f"[red]{e.kind}[/red]: {e}")
        raise typer.Exit(code=1) from e

    console.print(_stats_table(service.accountant.snapshot().to_dict()))


@app.command()
def compose(
    message: str = typer.Argument(..., help="User message"),
    order_context: Optional[str] = typer.Option(None, "--order-context", help="Order context as JSON"),
    user_metadata: Optional[str] = typer.Option(None, "--user-metadata", help="User metadata as JSON"),
    history: Optional[str] = typer.Option(None, "--history", help="Conversation history as JSON list"),
) -> None:
    """Show the composed blocks without invoking a model."""
    settings = AppSettings()
    request = _build_request(message, order_context, user_metadata, history)
    service = InvocationService.from_settings(settings)

    blocks = asyncio.run(service.prepare(request))

    console.print(f"[bold]Template fingerprint:[/bold] {service.composer.fingerprint()}")
    for i, block in enumerate(blocks):
        tag = "[green]cached[/green]" if block.cache_eligible else "[yellow]dynamic[/yellow]"
        console.rule(f"[{i}] {block.role} {tag}")
        console.print(block.content, markup=False)


@app.command()
def stats(
    url: str = typer.Option("http://localhost:8080", "--url", help="Base URL of a running cachewise service"),
) -> None:
    """Poll a running service for its cache statistics."""
    try:
        response = httpx.get(f"{url.rstrip('/')}/metrics/cache", timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Could not read stats from {url}:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(_stats_table(response.json()))


if __name__ == "__main__":
    app()
