"""Auto-processing of newly imported paper notes.

Watching and processing are separate stages. A created note is watched once
``create_debounce_ms`` has passed; the next modification of a watched note
queues it, and it becomes due ``modify_debounce_ms`` later. Due notes are then
handed to the engine one at a time.
"""

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

from ..core.config import save_settings
from ..core.models import SyncSettings
from ..core.store import LocalVault
from ..enrich.orchestrator import HubSyncEngine, ProcessResult
from ..utils.log import get_logger

log = get_logger(__name__)

Clock = Callable[[], float]


def toggle_auto_processing(settings: SyncSettings, settings_path: Path | None = None) -> bool:
    """Flip auto mode on ``settings``, persist it when a path is given, and return the new state."""
    settings.auto_process_new_files = not settings.auto_process_new_files
    if settings_path is not None:
        save_settings(settings, settings_path)
    log.info("auto_processing_toggled", enabled=settings.auto_process_new_files)
    return settings.auto_process_new_files


def auto_processing_message(enabled: bool) -> str:
    return f"Auto-processing {'enabled' if enabled else 'disabled'}"


class AutoProcessScheduler:
    def __init__(
        self,
        engine: HubSyncEngine,
        settings_path: Path | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.engine = engine
        self.settings_path = settings_path
        self.clock = clock
        # path -> moment the path starts being watched
        self.watching: dict[str, float] = {}
        # path -> moment the path is due for processing
        self.queue: dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self.engine.settings.auto_process_new_files

    def toggle(self) -> bool:
        """Flip auto mode, persist it when a settings file is known, and return the new state."""
        enabled = toggle_auto_processing(self.engine.settings, self.settings_path)
        if not enabled:
            self.watching.clear()
            self.queue.clear()
        self.engine.notify(auto_processing_message(enabled))
        return enabled

    def on_created(self, path: str, now: float | None = None) -> bool:
        if not self.enabled or not self.engine.is_paper(path):
            return False
        now = self.clock() if now is None else now
        self.watching[path] = now + self.engine.settings.create_debounce_ms / 1000.0
        log.debug("paper_watch_scheduled", path=path)
        return True

    def on_modified(self, path: str, now: float | None = None) -> bool:
        now = self.clock() if now is None else now
        watched_from = self.watching.get(path)
        if watched_from is None or now < watched_from:
            return False
        if path in self.queue or path in self.engine.in_flight:
            return False
        del self.watching[path]
        self.queue[path] = now + self.engine.settings.modify_debounce_ms / 1000.0
        log.debug("paper_queued", path=path, due=self.queue[path])
        return True

    def due(self, now: float | None = None) -> list[str]:
        now = self.clock() if now is None else now
        return [p for p, at in sorted(self.queue.items(), key=lambda kv: kv[1]) if at <= now]

    async def run_due(self, now: float | None = None) -> list[ProcessResult]:
        """Process every due note sequentially."""
        results = []
        for path in self.due(now):
            del self.queue[path]
            results.append(await self.engine.process_paper(path))
        return results


class VaultPoller:
    """Turns successive modification-time snapshots into created/modified events."""

    def __init__(self, vault: LocalVault, folder: str | None = None) -> None:
        self.vault = vault
        self.folder = folder
        self.snapshot = vault.mtimes(folder)

    def poll(self) -> tuple[list[str], list[str]]:
        current = self.vault.mtimes(self.folder)
        created = [p for p in current if p not in self.snapshot]
        modified = [
            p for p, mtime in current.items() if p in self.snapshot and mtime != self.snapshot[p]
        ]
        self.snapshot = current
        return created, modified


async def watch(
    scheduler: AutoProcessScheduler,
    poller: VaultPoller,
    interval: float = 1.0,
    iterations: int | None = None,
) -> None:
    """Poll the vault and feed events to the scheduler until interrupted."""
    done = 0
    while iterations is None or done < iterations:
        created, modified = poller.poll()
        for path in created:
            scheduler.on_created(path)
        for path in modified:
            scheduler.on_modified(path)
        await scheduler.run_due()
        done += 1
        await asyncio.sleep(interval)
