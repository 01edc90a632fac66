from typing import Any, Protocol
from urllib.parse import quote

import httpx

from ..core.errors import NoIdentifier, NotFound, TransportError
from ..core.models import Work
from ..utils.http import JsonResponse, get_client, get_json
from ..utils.log import get_logger

log = get_logger(__name__)

OPENALEX_API = "https://api.openalex.org"


class BibliographicSource(Protocol):
    """Lookups the engine needs from a scholarly metadata service."""

    async def fetch_by_doi(self, doi: str) -> Work: ...

    async def search_by_title(self, title: str) -> Work: ...

    async def fetch_by_id(self, work_id: str) -> Work: ...

    async def fetch_citing_works(self, work_id: str, per_page: int) -> list[Work]: ...


def short_work_id(work_id: str) -> str:
    """Normalize ``https://openalex.org/W123`` (or ``W123``) to ``W123``."""
    parts = [p for p in work_id.strip().split("/") if p]
    return parts[-1] if parts else work_id


class OpenAlexClient:
    """
    OpenAlex implementation of ``BibliographicSource``.

    Non-2xx answers become ``NotFound``; network errors and undecodable bodies
    become ``TransportError``. Retries only happen when ``retries`` > 0.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        mailto: str | None = None,
        timeout: float = 30.0,
        retries: int = 0,
        base_url: str = OPENALEX_API,
    ) -> None:
        self._owns_client = client is None
        self._client = client or get_client(mailto=mailto, timeout=timeout)
        self.mailto = mailto
        self.retries = retries
        self.base_url = base_url.rstrip("/")
        self.calls = 0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "OpenAlexClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> JsonResponse:
        params = dict(params or {})
        if self.mailto:
            params["mailto"] = self.mailto
        url = f"{self.base_url}/{path}"
        self.calls += 1
        return await get_json(self._client, url, params=params or None, retries=self.retries)

    def _work_from(self, resp: JsonResponse, query: str) -> Work:
        if not resp.ok or not resp.data:
            log.info("openalex_not_found", query=query, status=resp.status_code)
            raise NotFound(f"OpenAlex has no work for {query} (HTTP {resp.status_code})")
        try:
            return Work.model_validate(resp.data)
        except ValueError as e:
            log.error("openalex_work_invalid", query=query, error=str(e))
            raise TransportError(f"Unexpected OpenAlex payload for {query}") from e

    async def fetch_by_doi(self, doi: str) -> Work:
        resp = await self._get(f"works/https://doi.org/{quote(doi, safe='/')}")
        work = self._work_from(resp, f"doi:{doi}")
        log.info("openalex_fetched", doi=doi, work_id=work.id)
        return work

    async def search_by_title(self, title: str) -> Work:
        resp = await self._get("works", {"search": title, "per-page": 1})
        results = (resp.data or {}).get("results") if resp.ok else None
        if not results:
            log.info("openalex_search_empty", title=title, status=resp.status_code)
            raise NotFound(f"OpenAlex search found nothing for title {title!r}")
        work = self._work_from(JsonResponse(resp.status_code, results[0]), f"title:{title}")
        log.info("openalex_searched", title=title, work_id=work.id)
        return work

    async def fetch_by_id(self, work_id: str) -> Work:
        resp = await self._get(f"works/{short_work_id(work_id)}")
        return self._work_from(resp, work_id)

    async def fetch_citing_works(self, work_id: str, per_page: int) -> list[Work]:
        """One page of works citing ``work_id``, in the order OpenAlex returns them."""
        resp = await self._get(
            "works", {"filter": f"cites:{short_work_id(work_id)}", "per-page": per_page}
        )
        if not resp.ok:
            raise NotFound(f"Citing works query failed for {work_id} (HTTP {resp.status_code})")
        works = []
        for raw in (resp.data or {}).get("results") or []:
            try:
                works.append(Work.model_validate(raw))
            except ValueError as e:
                log.warning("openalex_citing_work_invalid", work_id=work_id, error=str(e))
        log.info("openalex_citing_fetched", work_id=work_id, count=len(works))
        return works


async def resolve_work(
    source: BibliographicSource, doi: str | None = None, title: str | None = None
) -> Work:
    """
    Resolve a paper to its canonical Work: exact DOI lookup first, else best title match.

    Raises:
        NoIdentifier: Neither DOI nor title given (no request is made)
        NotFound: The source has no matching work
        TransportError: The request itself failed
    """
    doi = (doi or "").strip() or None
    title = (title or "").strip() or None
    if doi is None and title is None:
        raise NoIdentifier("No DOI or title available")
    if doi is not None:
        return await source.fetch_by_doi(doi)
    return await source.search_by_title(title)  # type: ignore[arg-type]
