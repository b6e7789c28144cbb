"""
Registration Repository - Single Responsibility: tell the origin service
that stored objects belong to a dataset.

Singular and batched registration share one encoding: the JSON payload is
placed in the ``jsonData`` form field of a multipart POST without file parts.
"""
import json
import logging
from typing import Any, List, Sequence

from ..errors import IncompleteBodyError
from ..identifier import Identifier
from ..models import ApiResponse, DirectUploadBody
from ..protocols import IAPIClient
from .api_client import evaluate_response
from .request import MultipartRequest

logger = logging.getLogger(__name__)

JSON_DATA_FIELD = "jsonData"


def _ensure_complete(bodies: Sequence[DirectUploadBody]) -> None:
    for body in bodies:
        if not body.is_complete:
            raise IncompleteBodyError(
                f"refusing to register {body.file_name or 'unnamed file'}: "
                "checksum, storage identifier and file name are required"
            )


class RegistrationRepository:
    """
    Repository for registering uploaded objects with the origin service.

    Implements Repository Pattern - abstracts the add/addFiles endpoints.
    """

    def __init__(self, api_client: IAPIClient):
        """
        Initialize repository.

        Args:
            api_client: HTTP client for origin service calls
        """
        self._api = api_client

    async def register_one(self, destination: Identifier, body: DirectUploadBody) -> ApiResponse:
        """
        Register a single stored object.

        Args:
            destination: Dataset receiving the file
            body: Completed registration body
        """
        _ensure_complete([body])
        return await self._register(destination, "add", body.to_payload())

    async def register_many(
        self, destination: Identifier, bodies: Sequence[DirectUploadBody]
    ) -> ApiResponse:
        """
        Register several stored objects in one request, preserving order.

        Args:
            destination: Dataset receiving the files
            bodies: Completed registration bodies
        """
        _ensure_complete(bodies)
        payload: List[Any] = [body.to_payload() for body in bodies]
        return await self._register(destination, "addFiles", payload)

    async def _register(self, destination: Identifier, action: str, payload: Any) -> ApiResponse:
        path, params = destination.endpoint(action)
        context = MultipartRequest(bodies={JSON_DATA_FIELD: json.dumps(payload)})

        response = await self._api.post(path, params=params, context=context)
        result = evaluate_response(response)
        if result.is_ok:
            logger.info("Registered %s with %s", action, destination)
        else:
            logger.error("Registration %s for %s failed: %s", action, destination, result.message)
        return result
