"""Use case for the per-file direct upload pipeline."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from dvupload.errors import MultipartUploadNotSupported
from dvupload.identifier import Identifier
from dvupload.models import (
    DirectUploadBody,
    FileDescriptor,
    TransferOutcome,
    TransferState,
    UploadConfig,
)
from dvupload.services.checksum import md5_file
from dvupload.services.storage import StorageService
from dvupload.services.tickets import TicketBroker
from dvupload.utils.progress import ProgressSink

logger = logging.getLogger(__name__)


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class _StateTracker:
    """Records the last state reached by one file."""

    def __init__(self, name: str):
        self.name = name
        self.state = TransferState.INIT

    def advance(self, state: TransferState) -> None:
        logger.debug("%s: %s -> %s", self.name, self.state.value, state.value)
        self.state = state


class DirectUploadFileUseCase:
    """
    Drive one file from local disk to a registration-ready body.

    Steps run strictly in order: ticket, upload, checksum, body completion.
    Any failure ends the pipeline for this file only.
    """

    def __init__(
        self,
        tickets: TicketBroker,
        storage: StorageService,
        config: Optional[UploadConfig] = None,
    ):
        self._tickets = tickets
        self._storage = storage
        self._config = config or UploadConfig()

    async def execute(
        self,
        destination: Identifier,
        path: Union[str, Path],
        body: DirectUploadBody,
        progress_sink: Optional[ProgressSink] = None,
    ) -> TransferOutcome:
        file_path = Path(path)
        tracker = _StateTracker(file_path.name)
        storage_identifier = None

        try:
            descriptor = FileDescriptor.from_path(file_path)

            tracker.advance(TransferState.TICKET_REQUESTED)
            ticket = await self._tickets.get_ticket(destination, descriptor.size)
            if ticket.is_multipart:
                tracker.advance(TransferState.REJECTED)
                raise MultipartUploadNotSupported(len(ticket.urls))

            tracker.advance(TransferState.SINGLE_PART_UPLOAD)
            storage_identifier = await self._storage.upload(descriptor, ticket, progress_sink)

            checksum = await md5_file(descriptor.path, self._config.checksum_chunk_size)
            tracker.advance(TransferState.CHECKSUM_COMPUTED)
        except Exception as exc:
            error_msg = _describe_exception(exc)
            logger.error(
                "Direct upload failed for %s at %s: %s",
                file_path.name,
                tracker.state.value,
                error_msg,
                exc_info=True,
            )
            return TransferOutcome.failed(
                file_path.name,
                error_msg,
                state=tracker.state,
                storage_identifier=storage_identifier,
                cause=exc,
            )

        completed = body.copy()
        completed.checksum = checksum
        completed.storage_identifier = storage_identifier
        if not completed.file_name:
            completed.file_name = descriptor.name
        tracker.advance(TransferState.READY_TO_REGISTER)

        return TransferOutcome.uploaded(file_path.name, completed)
