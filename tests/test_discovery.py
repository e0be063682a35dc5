"""Tests for the discovery service using httpx.MockTransport."""

import httpx
import pytest

from axiom_log.models.entry import IdentityState
from axiom_log.services.discovery import (
    EMPTY_MESSAGE,
    ERROR_MESSAGE,
    INSUFFICIENT_DATA_MESSAGE,
    DiscoveryService,
    build_discovery_prompt,
)

from conftest import UTC, make_entry


@pytest.fixture
def entries():
    return [
        make_entry("a", (2024, 3, 4), IdentityState.NORMAL, tags=("stress",)),
        make_entry("b", (2024, 3, 5), IdentityState.SURVIVAL, energy=2),
        make_entry("c", (2024, 3, 6), IdentityState.REST),
    ]


def make_service(handler, api_key="key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiscoveryService(api_key, model="test-model", base_url="https://gen.test", client=client)


class TestDiscoveryService:
    """Tests for DiscoveryService.analyze."""

    def test_prompt_lists_entries_in_order(self, entries):
        prompt = build_discovery_prompt(list(reversed(entries)), UTC)

        assert prompt.index("Mon Mar 04 2024") < prompt.index("Wed Mar 06 2024")
        assert '"stress"' in prompt

    async def test_insufficient_data(self, entries):
        service = make_service(lambda r: httpx.Response(500))
        assert await service.analyze(entries[:2]) == INSUFFICIENT_DATA_MESSAGE

    async def test_returns_generated_text(self, entries):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": "Insight one. "}, {"text": "Two."}]}}]
            })

        result = await make_service(handler).analyze(entries, UTC)

        assert result == "Insight one. Two."
        assert seen[0].url.path == "/models/test-model:generateContent"
        assert seen[0].url.params["key"] == "key"

    async def test_http_error(self, entries):
        service = make_service(lambda r: httpx.Response(503))
        assert await service.analyze(entries) == ERROR_MESSAGE

    async def test_missing_api_key(self, entries):
        service = make_service(lambda r: httpx.Response(200, json={}), api_key=None)
        assert await service.analyze(entries) == ERROR_MESSAGE

    async def test_no_candidates(self, entries):
        service = make_service(lambda r: httpx.Response(200, json={"candidates": []}))
        assert await service.analyze(entries) == EMPTY_MESSAGE

    @pytest.mark.parametrize("payload", [
        {"candidates": ["x"]},
        {"candidates": [{"content": "x"}]},
        {"candidates": [{"content": {"parts": ["x"]}}]},
        {"candidates": {"content": {}}},
        ["not", "an", "object"],
    ])
    async def test_malformed_response(self, entries, payload):
        """Test an unexpected response shape is reported, never raised."""
        service = make_service(lambda r: httpx.Response(200, json=payload))
        assert await service.analyze(entries) == ERROR_MESSAGE
