import httpx
import pytest

from dashlink.infrastructure.resilience.endpoint_resolver import (
    EndpointResolver,
    candidates_from_ports,
    is_dashboard_status,
)

DEFAULT_URL = "http://api.example.com"
CANDIDATES = candidates_from_ports([3001, 3002, 3003])


def status_body(port):
    return {"success": True, "status": "online", "port": port}


def make_resolver(answers, probing_enabled=True, probed=None):
    """answers maps 'host:port' to a Response, or to an exception to raise."""
    def handler(request: httpx.Request) -> httpx.Response:
        key = f"{request.url.host}:{request.url.port}"
        if probed is not None:
            probed.append(key)
        answer = answers.get(key)
        if answer is None:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(answer, Exception):
            raise answer
        return answer

    return EndpointResolver(
        default_url=DEFAULT_URL,
        candidates=CANDIDATES,
        probing_enabled=probing_enabled,
        transport=httpx.MockTransport(handler),
    )


def test_candidates_from_ports():
    assert candidates_from_ports([3001, 4000]) == ["http://localhost:3001", "http://localhost:4000"]


@pytest.mark.parametrize("payload, expected", [
    (status_body(3001), True),
    (status_body(3001.0), True),
    ({"success": True, "status": "online"}, False),
    ({"success": True, "status": "online", "port": "3001"}, False),
    ({"success": True, "status": "online", "port": True}, False),
    ({"success": "true", "status": "online", "port": 3001}, False),
    ({"success": True, "status": "degraded", "port": 3001}, False),
    (["online"], False),
    ("online", False),
    (None, False),
])
def test_is_dashboard_status(payload, expected):
    assert is_dashboard_status(payload) is expected


@pytest.mark.asyncio
async def test_production_uses_default_without_probing():
    probed = []
    resolver = make_resolver({"localhost:3001": httpx.Response(200, json=status_body(3001))},
                             probing_enabled=False, probed=probed)

    assert await resolver.resolve() == DEFAULT_URL
    assert probed == []


@pytest.mark.asyncio
async def test_first_valid_candidate_wins_and_later_ones_are_not_probed():
    probed = []
    resolver = make_resolver({
        "localhost:3002": httpx.Response(200, json=status_body(3002)),
        "localhost:3003": httpx.Response(200, json=status_body(3003)),
    }, probed=probed)

    assert await resolver.resolve() == "http://localhost:3002"
    assert probed == ["localhost:3001", "localhost:3002"]


@pytest.mark.asyncio
async def test_wrong_service_is_skipped():
    resolver = make_resolver({
        "localhost:3001": httpx.Response(200, json={"hello": "world"}),
        "localhost:3002": httpx.Response(200, json=status_body(3002)),
    })

    assert await resolver.resolve() == "http://localhost:3002"


@pytest.mark.asyncio
async def test_error_status_and_non_json_bodies_are_rejected():
    resolver = make_resolver({
        "localhost:3001": httpx.Response(500, json=status_body(3001)),
        "localhost:3002": httpx.Response(200, text="<html>dev server</html>"),
        "localhost:3003": httpx.ReadTimeout("slow"),
    })

    assert await resolver.resolve() == DEFAULT_URL


@pytest.mark.asyncio
async def test_falls_back_to_default_when_nothing_answers():
    probed = []
    resolver = make_resolver({}, probed=probed)

    assert await resolver.resolve() == DEFAULT_URL
    assert probed == ["localhost:3001", "localhost:3002", "localhost:3003"]


@pytest.mark.asyncio
async def test_malformed_candidate_is_skipped():
    def handler(request):
        return httpx.Response(200, json=status_body(3002))

    resolver = EndpointResolver(
        default_url=DEFAULT_URL,
        candidates=["http://local\x00host:3001", "http://localhost:3002"],
        probing_enabled=True,
        transport=httpx.MockTransport(handler),
    )

    assert await resolver.resolve() == "http://localhost:3002"


def test_trailing_slashes_are_stripped():
    resolver = EndpointResolver(default_url="http://api.example.com/", candidates=["http://localhost:3001/"])

    assert resolver.default_url == "http://api.example.com"
    assert resolver.candidates == ["http://localhost:3001"]
