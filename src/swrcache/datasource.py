"""HTTP client for a message-based system-of-record."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

import httpx

from swrcache.exceptions import UpstreamError


class MessageClient:
    """Sends ``{"type", "payload"}`` messages and checks the status code.

    Query and mutation specs call this from ``get_current_value`` and
    ``mutate``; a status outside ``expected_status_codes`` raises
    :class:`UpstreamError`, which the query path propagates to its caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    async def handle_message(
        self,
        message_type: str,
        payload: dict[str, Any] | None = None,
        *,
        expected_status_codes: Collection[int] = (200,),
    ) -> httpx.Response:
        message: dict[str, Any] = {"type": message_type}
        if payload is not None:
            message["payload"] = payload

        response = await self._client.post("/", json=message)
        if response.status_code not in expected_status_codes:
            raise UpstreamError(response.status_code, message)
        return response

    async def handle_message_json(
        self,
        message_type: str,
        payload: dict[str, Any] | None = None,
        *,
        expected_status_codes: Collection[int] = (200,),
    ) -> Any:
        """Like :meth:`handle_message` but returns the JSON body.

        An empty body (e.g. on 404) is returned as ``None``.
        """
        response = await self.handle_message(
            message_type, payload, expected_status_codes=expected_status_codes
        )
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
