"""
Ticket Broker - asks the origin service where a file should be stored.

The service decides, based on the announced size, whether the object goes
to a single pre-signed URL or is split across several part URLs.
"""
import logging

from ..errors import ResponseDecodeError
from ..identifier import Identifier
from ..models import UploadTicket
from ..protocols import IAPIClient
from .api_client import evaluate_response
from .request import PlainRequest

logger = logging.getLogger(__name__)


class TicketBroker:
    """Requests and classifies upload tickets."""

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def get_ticket(self, destination: Identifier, file_size: int) -> UploadTicket:
        """
        Request an upload ticket for ``file_size`` bytes.

        Raises:
            ApiResponseError: the service refused to issue a ticket
            ResponseDecodeError: the reply was not a valid ticket
        """
        path, params = destination.endpoint("uploadurls")
        params = dict(params or {})
        params["size"] = str(file_size)

        response = await self._api.get(path, params=params, context=PlainRequest())
        envelope = evaluate_response(response).ensure_ok()
        if not isinstance(envelope.data, dict):
            raise ResponseDecodeError("ticket response carries no data", response.text)

        ticket = UploadTicket.from_data(envelope.data)
        logger.debug(
            "Ticket for %s (%d bytes): storage_identifier=%s multipart=%s",
            destination,
            file_size,
            ticket.storage_identifier,
            ticket.is_multipart,
        )
        return ticket
