import math
from pathlib import PurePosixPath

from ..core.errors import ParseError
from ..core.models import Work
from ..core.store import DocumentStore, document_name
from ..utils.files import generate_cite_key
from ..utils.log import get_logger
from ..utils.markdown import Frontmatter, MarkdownDocument, bullet_links, heading
from .registry import PHANTOM_KEY, HubRegistry, parse_hub

log = get_logger(__name__)

PARENT_PAPER = "Parent Paper"
PAPER_DETAILS = "Paper Details"
ABSTRACT = "Abstract"
KEY_CONCEPTS = "Key Concepts"
CONNECTED_PAPERS = "Connected Papers"
CITED = "Cited"
CITED_BY = "Cited By"
RESEARCH_NOTES = "Research Notes"


def percent(score: float) -> int:
    """Relevance score as a whole percentage, halves rounded up."""
    return int(math.floor(score * 100 + 0.5))


def render_hub(work: Work, parent_paper: str, phantom: bool = False) -> str:
    """Initial text of a hub document for ``work``.

    ``phantom`` marks a hub created for a reference or citing work of ``parent_paper``
    rather than for the paper itself.
    """
    title = work.name or "Unknown"
    authors = ", ".join(work.author_names) or "Unknown"
    year = work.publication_year or "Unknown"
    venue = work.venue_name or "Unknown"

    frontmatter = Frontmatter()
    frontmatter.update(
        {
            "title": title,
            "doi": work.doi or "",
            "publication_year": work.publication_year,
            "journal": venue,
            "authors": authors,
            "openalex_id": work.id,
            "cited_by_count": work.cited_by_count,
            "is_hub": True,
            "cssclass": "research-hub",
            "tags": ["hub", "research"],
        }
    )
    if phantom:
        frontmatter.set(PHANTOM_KEY, True)

    lines = [
        f"# {work.name or 'Unknown Paper'}",
        "",
        "> [!abstract] Research Hub 🔗",
        "> Central hub connecting papers in your research network",
        "",
        heading(PARENT_PAPER),
        f"- [[{parent_paper}]]",
        "",
        heading(PAPER_DETAILS),
        f"- **Authors:** {authors}",
        f"- **Year:** {year}",
        f"- **Journal:** {venue}",
        f"- **DOI:** {work.doi or 'N/A'}",
        f"- **Citation Count:** {work.cited_by_count}",
        f"- **OpenAlex ID:** [{work.id}]({work.id})",
        "",
    ]

    abstract = work.abstract()
    if abstract:
        lines += [heading(ABSTRACT), abstract, ""]

    concepts = work.top_concepts()
    if concepts:
        lines.append(heading(KEY_CONCEPTS))
        lines += [f"- {c.display_name} ({percent(c.score)}%)" for c in concepts]
        lines.append("")

    lines += [
        heading(CONNECTED_PAPERS),
        "*Papers in your vault that reference this work*",
        "",
        heading(CITED),
        "*Papers this work references*",
        "",
        heading(CITED_BY),
        "*Papers that cite this work*",
        "",
        heading(RESEARCH_NOTES),
        "*Add your research insights and connections here*",
        "",
    ]

    doc = MarkdownDocument.parse("\n".join(lines))
    doc.frontmatter = frontmatter
    return doc.render()


class HubMerger:
    """Creates hub documents and merges new edges into existing ones."""

    def __init__(self, store: DocumentStore, registry: HubRegistry, hub_folder: str) -> None:
        self.store = store
        self.registry = registry
        self.hub_folder = hub_folder.strip("/")

    def _path(self, name: str) -> str:
        if not self.hub_folder:
            return f"{name}.md"
        return str(PurePosixPath(self.hub_folder) / f"{name}.md")

    def _free_path(self, work: Work) -> str:
        """Path for a new hub; an existing hub for the same work is returned as is."""
        slug = generate_cite_key(work)
        candidate = self._path(slug)
        counter = 0
        while self.store.exists(candidate):
            try:
                existing_id = parse_hub(self.store.read(candidate), candidate).work_id
            except ParseError:
                existing_id = None
            if existing_id == work.id:
                return candidate
            counter += 1
            candidate = self._path(f"{slug}-{counter}")
        return candidate

    def ensure_hub(self, work: Work, connecting_paper: str, phantom: bool = False) -> str:
        """Return the one hub for ``work.id``, creating it on first encounter.

        A hub created with ``phantom`` is indexed by work id only, so that
        ``lookup_paper(connecting_paper)`` keeps pointing at the paper's own hub.
        """
        hub_path = self.registry.lookup_work(work.id)
        if hub_path and self.store.exists(hub_path):
            self.update_connection(hub_path, connecting_paper)
            return hub_path

        self.store.create_folder(self.hub_folder)
        hub_path = self._free_path(work)
        if self.store.exists(hub_path):
            # hub written by an earlier run that the registry has not seen
            log.info("hub_adopted", work_id=work.id, path=hub_path)
            header = parse_hub(self.store.read(hub_path), hub_path)
            self.registry.register(work.id, header.owner, hub_path)
            self.update_connection(hub_path, connecting_paper)
            return hub_path

        self.store.create(hub_path, render_hub(work, connecting_paper, phantom))
        self.registry.register(work.id, None if phantom else connecting_paper, hub_path)
        log.info(
            "hub_created",
            work_id=work.id,
            path=hub_path,
            parent=connecting_paper,
            phantom=phantom,
        )
        return hub_path

    def update_connection(self, hub_path: str, paper_name: str) -> bool:
        """Link ``paper_name`` under Connected Papers unless it is already linked.

        Returns:
            True when the hub was modified
        """
        doc = MarkdownDocument.parse(self.store.read(hub_path))

        parent = doc.section(PARENT_PAPER)
        if parent is not None and parent.links()[:1] == [paper_name]:
            return False

        link = f"[[{paper_name}]]"
        connected = doc.section(CONNECTED_PAPERS)
        if connected is not None and link in "\n".join(connected.lines):
            return False

        if connected is None:
            doc.insert_section(
                CONNECTED_PAPERS, [f"- {link}", ""], before=(CITED, CITED_BY, RESEARCH_NOTES)
            )
        else:
            body = list(connected.lines)
            while body and not body[-1].strip():
                body.pop()
            connected.lines = [*body, f"- {link}", ""]

        self.store.modify(hub_path, doc.render())
        log.info("hub_connection_added", path=hub_path, paper=paper_name)
        return True

    def merge_citation_sections(
        self, hub_path: str, cited: list[str], cited_by: list[str]
    ) -> bool:
        """Overwrite Cited / Cited By with non-empty lists; empty lists leave a section alone.

        Returns:
            True when the hub was modified
        """
        if not cited and not cited_by:
            return False

        doc = MarkdownDocument.parse(self.store.read(hub_path))
        if cited:
            doc.set_section(CITED, bullet_links(cited), before=(CITED_BY, RESEARCH_NOTES))
        if cited_by:
            doc.set_section(CITED_BY, bullet_links(cited_by), before=(RESEARCH_NOTES,))

        self.store.modify(hub_path, doc.render())
        log.info(
            "hub_citations_merged",
            path=hub_path,
            cited=len(cited),
            cited_by=len(cited_by),
        )
        return True


def hub_name(hub_path: str) -> str:
    return document_name(hub_path)
