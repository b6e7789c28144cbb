"""
Storage Service - Single Responsibility: put file bytes into object storage.

The destination comes from an upload ticket; the storage response body is
not interpreted beyond its status code.
"""
import logging
from typing import Optional

from ..errors import MultipartUploadNotSupported, StorageUploadError
from ..models import FileDescriptor, UploadConfig, UploadTicket
from ..protocols import IAPIClient
from ..utils.progress import ProgressSink
from .request import FileRequest

logger = logging.getLogger(__name__)

STORAGE_TAGGING_HEADER = "x-amz-tagging"


class StorageService:
    """
    Service for uploading files straight to object storage.

    Holds no per-upload state, so one instance serves concurrent uploads.
    """

    def __init__(
        self,
        client: IAPIClient,
        config: Optional[UploadConfig] = None
    ):
        """
        Initialize storage service.

        Args:
            client: HTTP client without origin credentials
            config: Upload configuration
        """
        self._client = client
        self._config = config or UploadConfig()

    async def upload(
        self,
        file: FileDescriptor,
        ticket: UploadTicket,
        progress_sink: Optional[ProgressSink] = None
    ) -> str:
        """
        Upload one file to the destination named by ``ticket``.

        Args:
            file: Local file and its size
            ticket: Ticket obtained for this file
            progress_sink: Optional sink receiving byte increments

        Returns:
            The storage identifier pre-assigned by the ticket
        """
        if ticket.is_multipart:
            return await self._multipart_upload(file, ticket, progress_sink)
        await self._single_part_upload(file, ticket.url, progress_sink)
        return ticket.storage_identifier

    async def _single_part_upload(
        self,
        file: FileDescriptor,
        url: str,
        progress_sink: Optional[ProgressSink]
    ) -> None:
        headers = {
            "Content-Length": str(file.size),
            STORAGE_TAGGING_HEADER: self._config.storage_tagging,
        }
        context = FileRequest(
            file.path,
            callback=progress_sink,
            chunk_size=self._config.stream_chunk_size,
        )

        logger.info(f"[storage] Uploading {file.name} ({file.size} bytes)")
        response = await self._client.put(url, context=context, headers=headers)

        if not response.is_success:
            raise StorageUploadError(response.status_code, response.text.strip()[:500])
        logger.debug(f"[storage] Stored {file.name} (status {response.status_code})")

    async def _multipart_upload(
        self,
        file: FileDescriptor,
        ticket: UploadTicket,
        progress_sink: Optional[ProgressSink]
    ) -> str:
        # TODO: PUT each part_size slice to ticket.urls, then POST the part ETags to ticket.complete
        raise MultipartUploadNotSupported(len(ticket.urls))
