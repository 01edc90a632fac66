from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..core.errors import HubSyncError, NoIdentifier, NotFound, ParseError
from ..core.models import SyncSettings
from ..core.store import DocumentStore, VaultDocument, document_name, is_under
from ..graph.expander import ExpansionLimits, ExpansionResult, GraphExpander
from ..graph.hubs import HubMerger
from ..graph.registry import HubRegistry
from ..utils.files import is_hub_filename
from ..utils.http import RequestThrottle
from ..utils.log import get_logger
from .annotate import PaperAnnotator
from .openalex import BibliographicSource, resolve_work

log = get_logger(__name__)

Notifier = Callable[[str], None]


class Outcome(str, Enum):
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    IN_FLIGHT = "in_flight"
    NO_IDENTIFIER = "no_identifier"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ProcessResult:
    """What happened to one paper note."""

    path: str
    outcome: Outcome
    work_id: str | None = None
    hub_path: str | None = None
    expansion: ExpansionResult | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return document_name(self.path)


@dataclass
class BatchReport:
    results: list[ProcessResult] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)


def _log_notifier(message: str) -> None:
    log.info("notice", message=message)


class HubSyncEngine:
    """
    Synchronizes paper notes with OpenAlex and maintains the hub graph.

    One paper is processed at a time; every external call is awaited before
    the next one and followed by the configured delay.
    """

    def __init__(
        self,
        store: DocumentStore,
        source: BibliographicSource,
        settings: SyncSettings | None = None,
        notify: Notifier | None = None,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.settings = settings or SyncSettings()
        self.notify = notify or _log_notifier
        self.throttle = throttle or RequestThrottle.from_milliseconds(
            self.settings.delay_between_requests_ms
        )
        self.registry = HubRegistry()
        self.merger = HubMerger(store, self.registry, self.settings.hub_folder)
        self.annotator = PaperAnnotator(store)
        self.in_flight: set[str] = set()

    def _expander(self) -> GraphExpander:
        # built per run so settings changes apply without restarting
        return GraphExpander(
            self.source,
            self.merger,
            limits=ExpansionLimits(
                max_references=self.settings.max_references_to_process,
                max_cited_by=self.settings.max_cited_by_to_process,
            ),
            phantom_links=self.settings.create_phantom_links,
            throttle=self.throttle,
        )

    def startup(self) -> int:
        """Rebuild the hub registry from the store."""
        return self.registry.rebuild(self.store, self.settings.hub_folder)

    def is_paper(self, path: str) -> bool:
        doc = VaultDocument(path)
        return (
            path.endswith(".md")
            and is_under(path, self.settings.papers_folder)
            and not is_under(path, self.settings.hub_folder)
            and not is_hub_filename(doc.filename)
        )

    def _inform(self, message: str) -> None:
        if self.settings.enable_notifications:
            self.notify(message)

    async def process_paper(self, path: str) -> ProcessResult:
        """Run the whole pipeline for one paper note.

        Failures are reported and returned, never raised, so that batches keep going.
        """
        if path in self.in_flight:
            log.info("paper_in_flight", path=path)
            return ProcessResult(path, Outcome.IN_FLIGHT)

        self.in_flight.add(path)
        try:
            return await self._process(path)
        finally:
            self.in_flight.discard(path)

    async def _process(self, path: str) -> ProcessResult:
        name = document_name(path)
        try:
            note = self.annotator.read(path)
            if note.processed:
                self._inform(f"{name} already processed")
                return ProcessResult(path, Outcome.ALREADY_PROCESSED)

            self._inform(f"Processing {name}...")
            work = await resolve_work(self.source, doi=note.doi, title=note.title)

            self.annotator.annotate(path, work)
            hub_path = self.merger.ensure_hub(work, name)
            self.annotator.add_hub_link(path, hub_path)

            expansion = None
            if self.settings.create_hubs:
                expansion = await self._expander().expand(work, name, hub_path)

        except NoIdentifier as e:
            self.notify(f"No DOI or title found for {name}")
            log.warning("paper_no_identifier", path=path, error=str(e))
            return ProcessResult(path, Outcome.NO_IDENTIFIER, error=str(e))
        except NotFound as e:
            self.notify(f"No OpenAlex data found for {name}")
            log.warning("paper_not_found", path=path, error=str(e))
            return ProcessResult(path, Outcome.NOT_FOUND, error=str(e))
        except (HubSyncError, OSError, UnicodeDecodeError) as e:
            self.notify(f"Error processing {name}: {e}")
            log.error("paper_failed", path=path, error=str(e), error_type=type(e).__name__)
            return ProcessResult(path, Outcome.FAILED, error=str(e))

        self._inform(f"✓ Processed {name}")
        log.info("paper_processed", path=path, work_id=work.id, hub=hub_path)
        return ProcessResult(
            path, Outcome.PROCESSED, work_id=work.id, hub_path=hub_path, expansion=expansion
        )

    def unprocessed_papers(self) -> list[str]:
        paths = []
        for doc in self.store.list_documents(self.settings.papers_folder):
            if not self.is_paper(doc.path) or doc.path in self.in_flight:
                continue
            try:
                if self.annotator.read(doc.path).processed:
                    continue
            except (OSError, UnicodeDecodeError) as e:
                log.warning("paper_unreadable", path=doc.path, error=str(e))
                continue
            except ParseError as e:
                # kept in the batch so that the failure is reported for this note
                log.warning("paper_frontmatter_invalid", path=doc.path, error=str(e))
            paths.append(doc.path)
        return paths

    async def process_all_unprocessed(self) -> BatchReport:
        """Process every unprocessed paper note, strictly one after another."""
        report = BatchReport()
        paths = self.unprocessed_papers()
        if not paths:
            self.notify("No unprocessed files found")
            return report

        self.notify(f"Processing {len(paths)} files...")
        for path in paths:
            report.results.append(await self.process_paper(path))
            await self.throttle.wait()

        self.notify("Batch processing complete")
        log.info(
            "batch_completed",
            total=len(report.results),
            processed=report.count(Outcome.PROCESSED),
            failed=report.count(Outcome.FAILED),
        )
        return report


def format_process_report(result: ProcessResult) -> str:
    """Human-readable summary of one ``ProcessResult``."""
    lines = [f"{result.name}: {result.outcome.value}"]
    if result.work_id:
        lines.append(f"  OpenAlex ID: {result.work_id}")
    if result.hub_path:
        lines.append(f"  Hub: {result.hub_path}")
    if result.expansion is not None:
        exp = result.expansion
        lines.append(
            f"  Cited: {len(exp.cited)} "
            f"(attempted {len(exp.attempted_references)}, failed {len(exp.failed_references)})"
        )
        lines.append(f"  Cited By: {len(exp.cited_by)}")
        if exp.cited_by_error:
            lines.append(f"  Cited By query failed: {exp.cited_by_error}")
    if result.error:
        lines.append(f"  Error: {result.error}")
    return "\n".join(lines)
