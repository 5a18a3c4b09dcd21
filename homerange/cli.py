from __future__ import annotations

import asyncio
import importlib.metadata as md
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from .apps.homerange_core.main import run_headless_task, run_service, sample_once
from .config import HomerangeConfig, configure_logging, load_config, resolve_config_path

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="Homerange CLI")
console = Console()


def _load(config: Path) -> HomerangeConfig:
    resolved = resolve_config_path(config)
    try:
        cfg = load_config(resolved)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Cannot load config {resolved}:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    configure_logging(cfg.logging)
    return cfg


@app.command()
def version() -> None:
    """Print version information."""
    try:
        console.print(f"homerange {md.version('homerange')}")
    except md.PackageNotFoundError:
        console.print("homerange dev")
    raise typer.Exit(code=0)


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/homerange.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}", soft_wrap=True)
    try:
        cfg = load_config(resolved)
    except Exception as exc:
        console.print(f"Config validation failed: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- reference: {cfg.reference.latitude}, {cfg.reference.longitude}")
    console.print(f"- location: {cfg.location.source} (timeout {cfg.location.timeout_ms} ms)")
    console.print(f"- interval: {cfg.scheduler.interval_ms} ms")
    console.print(f"- background: every {cfg.scheduler.background.minimum_fetch_interval} min")
    console.print(f"- collector: {cfg.collector.url}")


@app.command(name="config-which")
def config_which(path: Path = typer.Option(Path("configs/homerange.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(path)), soft_wrap=True)


@app.command()
def run(
    config: Path = typer.Option(Path("configs/homerange.yml"), "--config", "-c"),
    runtime: float | None = typer.Option(None, "--runtime", help="Stop after SECONDS"),
    mock: bool = typer.Option(False, "--mock", help="Use the simulated location provider"),
) -> None:
    """Start the sampling service using CONFIG."""
    cfg = _load(config)
    console.print("Starting homerange ...")
    service = asyncio.run(run_service(cfg, runtime_seconds=runtime, mock=mock))
    console.print({
        "samples": service.sampler.sample_count,
        "failures": service.sampler.failure_count,
        "sent": service.reporter.sent_count,
        "send_failures": service.reporter.failed_count,
    })
    console.print("homerange stopped.")


@app.command()
def sample(
    config: Path = typer.Option(Path("configs/homerange.yml"), "--config", "-c"),
    mock: bool = typer.Option(False, "--mock", help="Use the simulated location provider"),
) -> None:
    """Take one sample now and report it."""
    cfg = _load(config)
    report = asyncio.run(sample_once(cfg, mock=mock))
    if report is None:
        console.print("[yellow]No position available[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Distance: {report.distance_meters:.2f} meters ({report.lifecycle_state.value})")


@app.command()
def headless(
    config: Path = typer.Option(Path("configs/homerange.yml"), "--config", "-c"),
    task_id: str | None = typer.Option(None, "--task-id"),
    mock: bool = typer.Option(False, "--mock", help="Use the simulated location provider"),
) -> None:
    """Run one background fetch without the service (for systemd timers or cron)."""
    cfg = _load(config)
    asyncio.run(run_headless_task(cfg, task_id=task_id, mock=mock))
    # The task is finished either way; a failed sample is not a failed task
    raise typer.Exit(code=0)


def launch() -> None:
    """Entry point when executed as a module/script."""
    sys.exit(cli())


# Click command export
cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    launch()
