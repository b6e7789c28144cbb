"""
Protocols (Interfaces) for Dependency Inversion.

Services depend on these small interfaces rather than on httpx directly,
so tests can substitute fakes.
"""
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Protocol, runtime_checkable

import httpx

if TYPE_CHECKING:
    from .services.request import RequestType


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for HTTP calls issued by the pipeline."""

    async def get(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional["RequestType"] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """GET request."""
        ...

    async def post(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional["RequestType"] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """POST request."""
        ...

    async def put(
        self,
        endpoint: str,
        params: Optional[Mapping[str, str]] = None,
        context: Optional["RequestType"] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """PUT request."""
        ...
