"""Write OpenAlex metadata and the hub back-link into a user's paper note."""

import re
from dataclasses import dataclass

from ..core.models import Work
from ..core.store import DocumentStore, document_name
from ..graph.hubs import hub_name, percent
from ..utils.log import get_logger
from ..utils.markdown import MarkdownDocument

log = get_logger(__name__)

PROCESSED_KEY = "processed_by_openalex"
METADATA_SECTION = "📊 OpenAlex Metadata"
HUB_SECTION = "Hub"
PERSISTENT_NOTES = "🗒 Persistent Notes"

DOI_RE = re.compile(
    r"(?:doi:\s*[\"']?|https?://(?:dx\.)?doi\.org/)(10\.\d{4,}/[^\s\"'\]]+)", re.IGNORECASE
)
H1_RE = re.compile(r"^# (.+)$")
_DOI_PREFIXES = (
    "https://doi.org/",
    "https://dx.doi.org/",
    "http://doi.org/",
    "http://dx.doi.org/",
    "doi:",
)


def normalize_doi(s: str | None) -> str | None:
    """Bare ``10.x/...`` DOI without resolver prefix or trailing punctuation."""
    if not s:
        return None
    s = s.strip()
    for prefix in _DOI_PREFIXES:
        if s.lower().startswith(prefix):
            s = s[len(prefix):].strip()
            break
    s = s.rstrip(".,;)>")
    return s or None


@dataclass
class PaperNote:
    """Identity of a paper note as found in its text."""

    name: str
    doi: str | None
    title: str | None
    processed: bool


def extract_doi(text: str) -> str | None:
    doc = MarkdownDocument.parse(text)
    if doc.frontmatter is not None:
        value = doc.frontmatter.get("doi")
        if isinstance(value, str) and normalize_doi(value):
            return normalize_doi(value)
    m = DOI_RE.search(text)
    return normalize_doi(m.group(1)) if m else None


def extract_title(text: str, fallback: str | None = None) -> str | None:
    doc = MarkdownDocument.parse(text)
    if doc.frontmatter is not None:
        value = doc.frontmatter.get("title")
        # YAML turns titles such as ``1984`` into numbers
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            if str(value).strip():
                return str(value).strip()
    for block in doc.blocks:
        for line in block.lines:
            m = H1_RE.match(line)
            if m and m.group(1).strip():
                return m.group(1).strip()
    return fallback or None


def is_processed(text: str) -> bool:
    doc = MarkdownDocument.parse(text)
    return doc.frontmatter is not None and doc.frontmatter.get(PROCESSED_KEY) is True


def read_paper_note(text: str, name: str) -> PaperNote:
    return PaperNote(
        name=name,
        doi=extract_doi(text),
        title=extract_title(text, fallback=name),
        processed=is_processed(text),
    )


def build_metadata_section(work: Work) -> list[str]:
    """Body lines of the ``📊 OpenAlex Metadata`` section."""
    lines = [
        "",
        "### Publication Details",
        f"- **Journal:** {work.venue_name or 'Unknown'}",
        f"- **Publication Year:** {work.publication_year or 'Unknown'}",
        f"- **DOI:** {work.doi or 'N/A'}",
        f"- **OpenAlex ID:** [{work.id}]({work.id})",
        f"- **Citation Count:** {work.cited_by_count}",
        "",
    ]

    concepts = work.top_concepts()
    if concepts:
        lines.append("### Research Concepts")
        lines += [f"- **{c.display_name}** ({percent(c.score)}%)" for c in concepts]
        lines.append("")

    abstract = work.abstract()
    if abstract:
        lines += ["### OpenAlex Abstract", f"> {abstract}", ""]

    lines += [
        "### Citation Network",
        f"- **References:** {len(work.referenced_works)} papers",
        f"- **Cited By:** {work.cited_by_count} papers",
        "",
    ]
    return lines


class PaperAnnotator:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def annotate(self, path: str, work: Work) -> bool:
        """
        Merge ``work`` metadata into the note at ``path`` and mark it processed.

        Returns:
            False when the note was already processed (nothing written)
        """
        doc = MarkdownDocument.parse(self.store.read(path))
        frontmatter = doc.ensure_frontmatter()
        if frontmatter.get(PROCESSED_KEY) is True:
            log.info("paper_already_processed", path=path)
            return False

        frontmatter.update(
            {
                "publication_year": work.publication_year,
                "journal": work.venue_name or "Unknown",
                "openalex_id": work.id,
                "cited_by_count": work.cited_by_count,
                "concepts": [c.display_name for c in work.top_concepts()],
                PROCESSED_KEY: True,
            }
        )
        doc.set_section(METADATA_SECTION, build_metadata_section(work), before=(PERSISTENT_NOTES,))

        self.store.modify(path, doc.render())
        log.info("paper_annotated", path=path, work_id=work.id)
        return True

    def add_hub_link(self, path: str, hub_path: str) -> bool:
        """Add a ``## Hub`` back-link unless the note already has one."""
        doc = MarkdownDocument.parse(self.store.read(path))
        if doc.has_section(HUB_SECTION):
            return False
        doc.insert_section(
            HUB_SECTION, [f"- [[{hub_name(hub_path)}]]", ""], before=(PERSISTENT_NOTES,)
        )
        self.store.modify(path, doc.render())
        log.info("paper_hub_linked", path=path, hub=hub_path)
        return True

    def read(self, path: str) -> PaperNote:
        return read_paper_note(self.store.read(path), document_name(path))
