from dataclasses import dataclass, field

from ..core.errors import HubSyncError
from ..core.models import Work
from ..enrich.openalex import BibliographicSource
from ..utils.files import generate_cite_key
from ..utils.http import RequestThrottle
from ..utils.log import get_logger
from .hubs import HubMerger, hub_name

log = get_logger(__name__)


@dataclass(frozen=True)
class ExpansionLimits:
    max_references: int = 100
    max_cited_by: int = 50


@dataclass
class ExpansionResult:
    """Edges gathered for one hub during a single expansion."""

    cited: list[str] = field(default_factory=list)
    cited_by: list[str] = field(default_factory=list)
    attempted_references: list[str] = field(default_factory=list)
    failed_references: list[str] = field(default_factory=list)
    cited_by_error: str | None = None


class GraphExpander:
    """
    Walks one level out from a work: the works it references and the works citing it.

    Every external call is awaited in turn and followed by the throttle delay.
    A failing edge is dropped; it never aborts the expansion.
    """

    def __init__(
        self,
        source: BibliographicSource,
        merger: HubMerger,
        limits: ExpansionLimits | None = None,
        phantom_links: bool = True,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self.source = source
        self.merger = merger
        self.limits = limits or ExpansionLimits()
        self.phantom_links = phantom_links
        self.throttle = throttle or RequestThrottle()

    def _link_name(self, work: Work, source_paper: str) -> str:
        if self.phantom_links:
            # the hub file name can carry a collision suffix
            return hub_name(self.merger.ensure_hub(work, source_paper, phantom=True))
        return generate_cite_key(work)

    async def expand(self, work: Work, source_paper: str, hub_path: str) -> ExpansionResult:
        result = ExpansionResult()

        for ref_id in work.referenced_works[: self.limits.max_references]:
            result.attempted_references.append(ref_id)
            try:
                ref_work = await self.source.fetch_by_id(ref_id)
                result.cited.append(self._link_name(ref_work, source_paper))
            except (HubSyncError, OSError) as e:
                result.failed_references.append(ref_id)
                log.warning("reference_skipped", work_id=work.id, reference=ref_id, error=str(e))
            finally:
                await self.throttle.wait()

        if work.cited_by_count > 0 and self.limits.max_cited_by > 0:
            try:
                citing = await self.source.fetch_citing_works(work.id, self.limits.max_cited_by)
            except HubSyncError as e:
                citing = []
                result.cited_by_error = str(e)
                log.warning("cited_by_query_failed", work_id=work.id, error=str(e))

            for citing_work in citing[: self.limits.max_cited_by]:
                try:
                    result.cited_by.append(self._link_name(citing_work, source_paper))
                except (HubSyncError, OSError) as e:
                    log.warning(
                        "citing_work_skipped",
                        work_id=work.id,
                        citing=citing_work.id,
                        error=str(e),
                    )
                await self.throttle.wait()

        self.merger.merge_citation_sections(hub_path, result.cited, result.cited_by)
        log.info(
            "graph_expanded",
            work_id=work.id,
            hub=hub_path,
            cited=len(result.cited),
            cited_by=len(result.cited_by),
            failed_references=len(result.failed_references),
        )
        return result
