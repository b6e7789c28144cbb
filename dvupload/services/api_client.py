"""HTTP adapter for origin service and object storage calls."""
from __future__ import annotations

import json
import logging
from typing import Dict, Mapping, Optional

import httpx

from ..errors import ResponseDecodeError, TransportError
from ..models import ApiResponse
from .request import PlainRequest, RequestType

logger = logging.getLogger(__name__)

API_TOKEN_HEADER = "X-Dataverse-key"


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Without a base URL and token it doubles as
    the object storage client, where pre-signed URLs carry the authorization.
    """

    def __init__(
        self,
        base_url: str = "",
        api_token: Optional[str] = None,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {API_TOKEN_HEADER: self._api_token} if self._api_token else None
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional[RequestType] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        return await self.request("GET", endpoint, params, context, headers)

    async def post(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional[RequestType] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        return await self.request("POST", endpoint, params, context, headers)

    async def put(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional[RequestType] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        return await self.request("PUT", endpoint, params, context, headers)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional[RequestType] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        context = context or PlainRequest()
        with context.to_request(self._client, method, endpoint, params=params, headers=headers) as request:
            logger.debug("Calling %s %s", method, request.url.copy_with(query=None))
            try:
                return await self._client.send(request)
            except httpx.HTTPError as exc:
                raise TransportError(
                    f"{method} {request.url.copy_with(query=None)} failed: {_describe_http_error(exc)}"
                ) from exc


def _describe_http_error(exc: httpx.HTTPError) -> str:
    message = str(exc).strip()
    if message:
        return message
    return type(exc).__name__


def evaluate_response(response: httpx.Response) -> ApiResponse:
    """
    Decode the origin service envelope.

    The HTTP status is not checked here: the service reports application
    errors through the envelope's status field, which callers inspect.
    """
    raw = response.text
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ResponseDecodeError(
            f"could not decode response ({response.status_code}): {exc}", raw
        ) from exc
    return ApiResponse.from_payload(payload, raw)
