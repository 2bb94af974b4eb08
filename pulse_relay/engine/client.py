"""HTTP client for the upstream search endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..config import UpstreamConfig
from ..errors import TransportError
from ..logging_conf import redact
from .query import QueryRequest

_MAX_ERROR_BODY = 500


@dataclass(slots=True)
class SearchPage:
    """First page of an upstream search, newest first."""

    items: list[Any]
    next_cursor: str | None = None


class SearchClient:
    """Execute one search call per request; every failure surfaces as ``TransportError``."""

    def __init__(
        self,
        upstream: UpstreamConfig,
        api_key: str,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.upstream = upstream
        self.logger = logger or structlog.get_logger("pulse_relay.client")
        self._client = httpx.Client(
            timeout=upstream.timeout_s,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def search(self, request: QueryRequest, timeout: float | None = None) -> SearchPage:
        self.logger.debug("search_request", topic=request.topic, query=request.query)
        try:
            response = self._client.get(
                self.upstream.base_url,
                params=request.params(),
                timeout=timeout or self.upstream.timeout_s,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Upstream timed out for {request.topic}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Upstream request failed for {request.topic}: {redact(str(exc))}"
            ) from exc

        if not response.is_success:
            body = response.text[:_MAX_ERROR_BODY]
            raise TransportError(
                f"Upstream error {response.status_code} for {request.topic}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Upstream returned non-JSON body for {request.topic}",
                status_code=response.status_code,
                body=response.text[:_MAX_ERROR_BODY],
            ) from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("tweets"), list):
            raise TransportError(
                f"Unexpected response format for {request.topic}",
                status_code=response.status_code,
                body=response.text[:_MAX_ERROR_BODY],
            )

        next_cursor = payload.get("next_cursor")
        return SearchPage(
            items=payload["tweets"],
            next_cursor=next_cursor if isinstance(next_cursor, str) else None,
        )


__all__ = ["SearchClient", "SearchPage"]
