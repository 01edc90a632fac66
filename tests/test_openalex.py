"""Tests for the OpenAlex client and identity resolution, using httpx.MockTransport."""

from collections.abc import Callable

import httpx
import pytest
from conftest import FakeSource, make_work

from research_hubs.core.errors import NoIdentifier, NotFound, TransportError
from research_hubs.enrich.openalex import OpenAlexClient, resolve_work, short_work_id

WORK = {
    "id": "https://openalex.org/W2741809807",
    "display_name": "The state of OA",
    "publication_year": 2018,
    "cited_by_count": 3,
}


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: object) -> OpenAlexClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAlexClient(client=http, **kwargs)  # type: ignore[arg-type]


async def test_fetch_by_doi() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=WORK)

    client = _client(handler, mailto="me@example.org")
    work = await client.fetch_by_doi("10.7717/peerj.4375")

    assert work.id == WORK["id"]
    assert seen[0].url.path == "/works/https://doi.org/10.7717/peerj.4375"
    assert seen[0].url.params["mailto"] == "me@example.org"


async def test_fetch_by_doi_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, json={"error": "nope"}))
    with pytest.raises(NotFound):
        await client.fetch_by_doi("10.1/missing")


async def test_fetch_by_doi_empty_body() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(NotFound):
        await client.fetch_by_doi("10.1/empty")


async def test_search_by_title_takes_first_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [WORK, {**WORK, "id": "https://openalex.org/W2"}]})

    work = await _client(handler).search_by_title("The state of OA")

    assert work.id == WORK["id"]
    assert seen[0].url.params["search"] == "The state of OA"
    assert seen[0].url.params["per-page"] == "1"


async def test_search_by_title_no_results() -> None:
    client = _client(lambda request: httpx.Response(200, json={"results": []}))
    with pytest.raises(NotFound):
        await client.search_by_title("nothing like this")


async def test_fetch_by_id_uses_short_id() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json=WORK)

    await _client(handler).fetch_by_id("https://openalex.org/W2741809807")
    assert seen == ["/works/W2741809807"]


async def test_fetch_citing_works() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        results = [{**WORK, "id": f"https://openalex.org/W{i}"} for i in (3, 1, 2)]
        return httpx.Response(200, json={"results": results})

    works = await _client(handler).fetch_citing_works("https://openalex.org/W99", per_page=25)

    assert [short_work_id(w.id) for w in works] == ["W3", "W1", "W2"]
    assert seen[0].url.params["filter"] == "cites:W99"
    assert seen[0].url.params["per-page"] == "25"


async def test_citing_works_non_2xx_is_not_found() -> None:
    client = _client(lambda request: httpx.Response(403))
    with pytest.raises(NotFound):
        await client.fetch_citing_works("W1", per_page=5)


async def test_network_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(TransportError):
        await _client(handler).fetch_by_id("W1")


async def test_invalid_json_is_transport_error() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(TransportError):
        await client.fetch_by_id("W1")


async def test_server_error_is_not_retried_by_default() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    client = _client(handler)
    with pytest.raises(NotFound):
        await client.fetch_by_id("W1")
    assert calls == 1


async def test_server_error_retried_when_enabled() -> None:
    responses = [httpx.Response(503), httpx.Response(200, json=WORK)]

    client = _client(lambda request: responses.pop(0), retries=1)
    work = await client.fetch_by_id("W1")

    assert work.id == WORK["id"]
    assert responses == []


def test_short_work_id() -> None:
    assert short_work_id("https://openalex.org/W123") == "W123"
    assert short_work_id("W123") == "W123"


class TestResolveWork:
    async def test_no_identifier_makes_no_call(self, source: FakeSource) -> None:
        with pytest.raises(NoIdentifier):
            await resolve_work(source, doi=None, title="  ")
        assert source.calls == []

    async def test_doi_preferred_over_title(self, source: FakeSource) -> None:
        source.by_doi["10.1/x"] = make_work("W1")
        source.by_title["Some title"] = make_work("W2")

        work = await resolve_work(source, doi="10.1/x", title="Some title")

        assert short_work_id(work.id) == "W1"
        assert source.calls == [("doi", "10.1/x")]

    async def test_title_used_without_doi(self, source: FakeSource) -> None:
        source.by_title["Some title"] = make_work("W2")
        work = await resolve_work(source, title="Some title")
        assert short_work_id(work.id) == "W2"

    async def test_not_found_propagates(self, source: FakeSource) -> None:
        with pytest.raises(NotFound):
            await resolve_work(source, doi="10.1/unknown")
