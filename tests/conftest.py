from pathlib import Path
from typing import Any

import pytest

from research_hubs.core.errors import HubSyncError, NotFound, TransportError
from research_hubs.core.models import SyncSettings, Work
from research_hubs.core.store import LocalVault
from research_hubs.utils.http import RequestThrottle


def make_work(
    work_id: str,
    title: str = "A Study of Deep Networks",
    author: str | None = "Jane Q. Smith",
    year: int | None = 2021,
    **fields: Any,
) -> Work:
    """Build a Work the way OpenAlex would return it."""
    data: dict[str, Any] = {
        "id": f"https://openalex.org/{work_id}",
        "display_name": title,
        "title": title,
        "publication_year": year,
        "authorships": [{"author": {"display_name": author}}] if author else [],
    }
    data.update(fields)
    return Work.model_validate(data)


class FakeSource:
    """Scripted BibliographicSource recording every call."""

    def __init__(self) -> None:
        self.by_doi: dict[str, Work] = {}
        self.by_title: dict[str, Work] = {}
        self.by_id: dict[str, Work] = {}
        self.citing: dict[str, list[Work]] = {}
        self.failing_ids: set[str] = set()
        self.citing_error: HubSyncError | None = None
        self.calls: list[tuple[str, str]] = []

    def add(self, *works: Work) -> None:
        for work in works:
            self.by_id[work.id] = work

    async def fetch_by_doi(self, doi: str) -> Work:
        self.calls.append(("doi", doi))
        if doi not in self.by_doi:
            raise NotFound(doi)
        return self.by_doi[doi]

    async def search_by_title(self, title: str) -> Work:
        self.calls.append(("title", title))
        if title not in self.by_title:
            raise NotFound(title)
        return self.by_title[title]

    async def fetch_by_id(self, work_id: str) -> Work:
        self.calls.append(("id", work_id))
        if work_id in self.failing_ids:
            raise TransportError(f"connection reset for {work_id}")
        if work_id not in self.by_id:
            raise NotFound(work_id)
        return self.by_id[work_id]

    async def fetch_citing_works(self, work_id: str, per_page: int) -> list[Work]:
        self.calls.append(("cites", work_id))
        if self.citing_error is not None:
            raise self.citing_error
        return self.citing.get(work_id, [])[:per_page]


@pytest.fixture
def vault(tmp_path: Path) -> LocalVault:
    return LocalVault(tmp_path)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(delay_between_requests_ms=0)


@pytest.fixture
def throttle() -> RequestThrottle:
    return RequestThrottle(0)
