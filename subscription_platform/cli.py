"""CLI for the Subscription Platform.

Runs either service under uvicorn and drives simulated traffic against a
running subscription service.
"""

import asyncio
import random
from typing import Optional

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from subscription_platform.config import get_settings
from subscription_platform.monitoring.logging import setup_logging
from subscription_platform.simulation import TrafficSimulator, TrafficState

app = typer.Typer(
    name="subscription-platform",
    help="Subscription Platform - subscription service with a payment dependency",
    add_completion=False,
)

console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the subscription service."""
    settings = get_settings()
    uvicorn.run(
        "subscription_platform.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload or settings.debug,
        log_level=settings.log_level.lower(),
    )


@app.command("serve-payments")
def serve_payments(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the payment service."""
    settings = get_settings()
    uvicorn.run(
        "subscription_platform.api.payment_app:app",
        host=host or settings.api_host,
        port=port or settings.payment_api_port,
        reload=reload or settings.debug,
        log_level=settings.log_level.lower(),
    )


def _print_summary(state: TrafficState) -> None:
    table = Table(title=f"Traffic summary ({state.cycles} cycles)")
    table.add_column("Operation", style="cyan")
    table.add_column("Status", justify="right")
    table.add_column("Count", justify="right", style="green")

    for (operation, status_code), count in sorted(state.outcomes.items()):
        style = "red" if status_code >= 500 else "yellow" if status_code >= 400 else None
        table.add_row(operation, f"[{style}]{status_code}[/{style}]" if style else str(status_code), str(count))

    console.print(table)
    console.print(f"Live subscriptions created by this run: {len(state.subscription_ids)}")


async def _simulate(base_url: str, cycles: int, interval: float, seed: Optional[int]) -> TrafficState:
    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        simulator = TrafficSimulator(client, rng=random.Random(seed))
        for cycle in range(cycles):
            await simulator.run_cycle()
            console.print(
                f"[dim]cycle {cycle + 1}/{cycles}: "
                f"{len(simulator.state.subscription_ids)} live subscriptions[/dim]"
            )
            if interval > 0 and cycle + 1 < cycles:
                await asyncio.sleep(interval)
        return simulator.state


@app.command()
def simulate(
    base_url: str = typer.Option(
        "http://localhost:8080",
        "--base-url",
        "-u",
        help="Subscription service base URL",
    ),
    cycles: int = typer.Option(10, "--cycles", "-n", min=1, help="Number of traffic cycles"),
    interval: float = typer.Option(2.0, "--interval", "-i", min=0.0, help="Pause between cycles (seconds)"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for picking target subscriptions"),
) -> None:
    """Generate mixed traffic against a running subscription service."""
    setup_logging()

    console.print(f"[bold]Simulating traffic against {base_url}[/bold]")
    try:
        state = asyncio.run(_simulate(base_url, cycles, interval, seed))
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_summary(state)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
