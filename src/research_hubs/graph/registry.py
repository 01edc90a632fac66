"""In-memory index over the hub documents of a vault.

The index is a derived cache: the ``openalex_id`` stored in every hub's own
frontmatter stays the source of truth, and ``rebuild`` can recreate the maps
from the store at any time.

Only a paper's own hub is indexed by paper name. Hubs created while expanding
that paper's references and citations carry ``phantom: true`` and are indexed
by work id alone.
"""

from typing import NamedTuple

from ..core.errors import ParseError
from ..core.store import DocumentStore, is_under
from ..utils.files import is_hub_filename
from ..utils.log import get_logger
from ..utils.markdown import MarkdownDocument

log = get_logger(__name__)

HUB_ID_KEY = "openalex_id"
PHANTOM_KEY = "phantom"
PARENT_SECTION = "Parent Paper"


class HubHeader(NamedTuple):
    work_id: str
    parent: str | None
    phantom: bool = False

    @property
    def owner(self) -> str | None:
        """Paper whose own hub this is; None for hubs reached through citations."""
        return None if self.phantom else self.parent


def parse_hub(text: str, path: str = "<memory>") -> HubHeader:
    """Read the identity embedded in a hub document.

    Raises:
        ParseError: The document carries no usable ``openalex_id``
    """
    doc = MarkdownDocument.parse(text)
    if doc.frontmatter is None:
        raise ParseError(f"{path}: hub has no frontmatter")
    data = doc.frontmatter.data()
    work_id = data.get(HUB_ID_KEY)
    if not isinstance(work_id, str) or not work_id.strip():
        raise ParseError(f"{path}: hub has no {HUB_ID_KEY}")

    parent = None
    section = doc.section(PARENT_SECTION)
    if section is not None:
        links = section.links()
        parent = links[0] if links else None
    return HubHeader(work_id.strip(), parent, data.get(PHANTOM_KEY) is True)


class HubRegistry:
    def __init__(self) -> None:
        self.by_work_id: dict[str, str] = {}
        self.by_paper: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.by_work_id)

    def lookup_work(self, work_id: str) -> str | None:
        return self.by_work_id.get(work_id)

    def lookup_paper(self, paper_name: str) -> str | None:
        return self.by_paper.get(paper_name)

    def register(self, work_id: str, paper_name: str | None, path: str) -> None:
        self.by_work_id[work_id] = path
        if paper_name:
            self.by_paper[paper_name] = path
        log.debug("hub_registered", work_id=work_id, paper=paper_name, path=path)

    def clear(self) -> None:
        self.by_work_id.clear()
        self.by_paper.clear()

    def rebuild(self, store: DocumentStore, hub_folder: str) -> int:
        """Rescan every hub under ``hub_folder``; unreadable hubs are skipped.

        Returns:
            Number of hubs indexed
        """
        self.clear()
        skipped = 0
        for doc in store.list_documents(hub_folder):
            if not is_under(doc.path, hub_folder) or not is_hub_filename(doc.filename):
                continue
            try:
                header = parse_hub(store.read(doc.path), doc.path)
            except (ParseError, OSError, UnicodeDecodeError) as e:
                skipped += 1
                log.warning("hub_parse_skipped", path=doc.path, error=str(e))
                continue
            if header.work_id in self.by_work_id:
                log.warning(
                    "hub_duplicate_id",
                    work_id=header.work_id,
                    kept=self.by_work_id[header.work_id],
                    ignored=doc.path,
                )
                continue
            self.register(header.work_id, header.owner, doc.path)

        log.info("hub_registry_rebuilt", hubs=len(self), skipped=skipped, folder=hub_folder)
        return len(self)
