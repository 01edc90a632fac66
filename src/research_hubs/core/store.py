"""Document store collaborator: the vault holding paper notes and hubs."""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from ..utils.log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class VaultDocument:
    """A Markdown document addressed by its vault-relative POSIX path."""

    path: str

    @property
    def name(self) -> str:
        """File name without extension, the target of ``[[wiki links]]``."""
        return PurePosixPath(self.path).stem

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name


def document_name(path: str) -> str:
    return VaultDocument(path).name


def is_under(path: str, folder: str) -> bool:
    """True when ``path`` lies somewhere below ``folder`` (both vault-relative)."""
    folder = folder.strip("/")
    if not folder:
        return True
    return path == folder or path.startswith(folder + "/")


class DocumentStore(Protocol):
    def list_documents(self, folder: str | None = None) -> list[VaultDocument]: ...

    def read(self, path: str) -> str: ...

    def modify(self, path: str, text: str) -> None: ...

    def create(self, path: str, text: str) -> None: ...

    def create_folder(self, path: str) -> None: ...

    def exists(self, path: str) -> bool: ...


class LocalVault:
    """DocumentStore over a directory of Markdown files."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / PurePosixPath(path)

    def list_documents(self, folder: str | None = None) -> list[VaultDocument]:
        """List ``.md`` files, optionally restricted to a folder, sorted by path."""
        base = self._resolve(folder.strip("/")) if folder else self.root
        if not base.is_dir():
            return []
        docs = []
        for file in base.rglob("*.md"):
            rel = file.relative_to(self.root)
            # skip dot-directories such as .obsidian or our own state folder
            if any(part.startswith(".") for part in rel.parts[:-1]):
                continue
            docs.append(VaultDocument(rel.as_posix()))
        return sorted(docs, key=lambda d: d.path)

    def read(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def modify(self, path: str, text: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"Cannot modify missing document: {path}")
        target.write_text(text, encoding="utf-8")
        log.debug("document_modified", path=path, chars=len(text))

    def create(self, path: str, text: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        # "x" refuses to clobber an existing document
        with target.open("x", encoding="utf-8") as fh:
            fh.write(text)
        log.debug("document_created", path=path, chars=len(text))

    def create_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def mtimes(self, folder: str | None = None) -> dict[str, float]:
        """Modification time of every listed document, used by the poller."""
        snapshot = {}
        for doc in self.list_documents(folder):
            try:
                snapshot[doc.path] = self._resolve(doc.path).stat().st_mtime
            except FileNotFoundError:
                continue
        return snapshot
