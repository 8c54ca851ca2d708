"""Tests for MessageClient using respx."""

import json

import httpx
import pytest
import respx

from swrcache import MessageClient, UpstreamError

BASE_URL = "https://api.example.org/graphql-bridge"


@pytest.fixture
async def client():
    client = MessageClient(BASE_URL)
    yield client
    await client.aclose()


class TestMessageClient:
    @respx.mock
    async def test_posts_message(self, client: MessageClient) -> None:
        route = respx.post(f"{BASE_URL}/").mock(
            return_value=httpx.Response(200, json={"id": 3, "trashed": False})
        )

        result = await client.handle_message_json("UuidQuery", {"id": 3})

        assert result == {"id": 3, "trashed": False}
        assert route.called
        body = json.loads(route.calls.last.request.content)
        assert body == {"type": "UuidQuery", "payload": {"id": 3}}

    @respx.mock
    async def test_message_without_payload(self, client: MessageClient) -> None:
        route = respx.post(f"{BASE_URL}/").mock(return_value=httpx.Response(200, json=[]))

        assert await client.handle_message_json("SubjectsQuery") == []
        assert json.loads(route.calls.last.request.content) == {"type": "SubjectsQuery"}

    @respx.mock
    async def test_unexpected_status_raises(self, client: MessageClient) -> None:
        respx.post(f"{BASE_URL}/").mock(return_value=httpx.Response(500))

        with pytest.raises(UpstreamError) as info:
            await client.handle_message("UuidQuery", {"id": 3})
        assert info.value.status_code == 500

    @respx.mock
    async def test_expected_not_found_returns_none(self, client: MessageClient) -> None:
        respx.post(f"{BASE_URL}/").mock(return_value=httpx.Response(404))

        result = await client.handle_message_json(
            "UuidQuery", {"id": 999}, expected_status_codes=(200, 404)
        )
        assert result is None

    @respx.mock
    async def test_custom_headers(self) -> None:
        route = respx.post(f"{BASE_URL}/").mock(return_value=httpx.Response(200, json={}))
        client = MessageClient(BASE_URL, headers={"Authorization": "Serlo Service=abc"})
        try:
            await client.handle_message("UuidQuery", {"id": 1})
        finally:
            await client.aclose()
        assert route.calls.last.request.headers["Authorization"] == "Serlo Service=abc"
