import asyncio
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
import typer
from dotenv import load_dotenv

from .core.config import get_config, load_settings, save_settings, set_test_mode
from .core.models import SyncSettings
from .core.store import LocalVault
from .enrich.openalex import OpenAlexClient
from .enrich.orchestrator import HubSyncEngine, Outcome, format_process_report
from .graph.registry import HubRegistry
from .triggers.scheduler import (
    AutoProcessScheduler,
    VaultPoller,
    auto_processing_message,
    toggle_auto_processing,
)
from .triggers.scheduler import watch as watch_vault
from .utils.log import get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

_log_state: dict[str, Any] = {
    "session_id": datetime.now().strftime("%Y%m%d_%H%M%S"),
    "log_file": None,
    "logger": None,
}

app = typer.Typer(help="Sync paper notes with OpenAlex and build citation hubs.")


@app.callback()
def callback(
    vault: Path = typer.Option(Path("."), "--vault", help="Vault root directory"),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress console log output (logs still written to file)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging"),
    test: bool = typer.Option(False, "--test", help="Use test settings and log locations"),
) -> None:
    """Initialize structured logging and the vault configuration."""
    if test:
        set_test_mode()
    get_config().set_vault_root(vault)

    log_level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO")
    _log_state["log_file"] = setup_logging(
        session_id=_log_state["session_id"],
        log_level=log_level,
        console_output=not quiet,
        log_dir=get_config().log_dir,
    )
    _log_state["logger"] = get_logger(__name__)
    _log_state["logger"].info(
        "application_started",
        session_id=_log_state["session_id"],
        log_file=str(_log_state["log_file"]),
        **get_config().get_summary(),
    )


def _get_logger() -> structlog.BoundLogger:
    if _log_state["logger"] is None:
        _log_state["log_file"] = setup_logging(session_id=_log_state["session_id"])
        _log_state["logger"] = get_logger(__name__)
    return _log_state["logger"]


def _load_settings() -> SyncSettings:
    try:
        return load_settings(get_config().settings_path)
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2) from e


def _engine(settings: SyncSettings, client: OpenAlexClient) -> HubSyncEngine:
    engine = HubSyncEngine(
        LocalVault(get_config().vault_root),
        client,
        settings=settings,
        notify=typer.echo,
    )
    engine.startup()
    return engine


def _client(settings: SyncSettings) -> OpenAlexClient:
    return OpenAlexClient(
        mailto=settings.mailto, timeout=settings.http_timeout, retries=settings.http_retries
    )


def _vault_path(path: Path) -> str:
    """Vault-relative POSIX path for a note given on the command line."""
    root = get_config().vault_root.resolve()
    resolved = path.resolve() if path.is_absolute() or path.exists() else (root / path).resolve()
    try:
        return resolved.relative_to(root).as_posix()
    except ValueError as e:
        typer.echo(f"{path} is outside the vault {root}", err=True)
        raise typer.Exit(code=2) from e


@app.command()
def process(path: Path) -> None:
    """Process one paper note."""
    settings = _load_settings()
    rel = _vault_path(path)
    _get_logger().info("process_started", path=rel)

    async def run() -> None:
        async with _client(settings) as client:
            result = await _engine(settings, client).process_paper(rel)
        typer.echo(format_process_report(result))
        if result.outcome is Outcome.FAILED:
            raise typer.Exit(code=1)

    asyncio.run(run())


@app.command("process-all")
def process_all() -> None:
    """Process every unprocessed note in the papers folder, one at a time."""
    settings = _load_settings()
    _get_logger().info("batch_started", papers_folder=settings.papers_folder)

    async def run() -> None:
        async with _client(settings) as client:
            report = await _engine(settings, client).process_all_unprocessed()
        for result in report.results:
            typer.echo(format_process_report(result))
        typer.echo(
            f"\n{report.count(Outcome.PROCESSED)} processed, "
            f"{report.count(Outcome.FAILED)} failed, {len(report.results)} total"
        )

    asyncio.run(run())


@app.command()
def rebuild() -> None:
    """Rescan the hub folder and report what the registry holds."""
    settings = _load_settings()
    registry = HubRegistry()
    registry.rebuild(LocalVault(get_config().vault_root), settings.hub_folder)
    typer.echo(
        f"{len(registry)} hubs in {settings.hub_folder} "
        f"({len(registry.by_paper)} with a parent paper)"
    )


@app.command("toggle-auto")
def toggle_auto() -> None:
    """Flip auto-processing of new notes and save the setting."""
    enabled = toggle_auto_processing(_load_settings(), get_config().settings_path)
    typer.echo(auto_processing_message(enabled))


@app.command()
def settings(
    save: bool = typer.Option(False, "--save", help="Write the effective settings file"),
) -> None:
    """Show the effective settings."""
    current = _load_settings()
    typer.echo(current.model_dump_json(indent=2))
    if save:
        typer.echo(f"Saved to {save_settings(current, get_config().settings_path)}")


@app.command()
def watch(
    interval: float = typer.Option(1.0, help="Seconds between vault scans"),
) -> None:
    """Watch the papers folder and auto-process newly imported notes."""
    settings = _load_settings()
    if not settings.auto_process_new_files:
        typer.echo("Auto-processing is disabled; enable it with `toggle-auto`.")
        raise typer.Exit(code=1)

    async def run() -> None:
        async with _client(settings) as client:
            engine = _engine(settings, client)
            vault = LocalVault(get_config().vault_root)
            scheduler = AutoProcessScheduler(engine, settings_path=get_config().settings_path)
            typer.echo(f"Watching {settings.papers_folder} (Ctrl+C to stop)")
            await watch_vault(scheduler, VaultPoller(vault, settings.papers_folder), interval)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        _get_logger().info("watch_stopped")


if __name__ == "__main__":
    app()
