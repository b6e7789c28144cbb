"""Exceptions raised by the direct upload pipeline."""
from typing import List, Optional


class DirectUploadError(RuntimeError):
    """Base class for direct upload failures."""


class TransportError(DirectUploadError):
    """Raised when a request could not be sent or no response was received."""


class ResponseDecodeError(DirectUploadError):
    """Raised when the origin service answers with something that is not a valid envelope."""

    def __init__(self, reason: str, raw: str):
        super().__init__(f"{reason} - {raw}")
        self.raw = raw


class ApiResponseError(DirectUploadError):
    """Raised when the origin service reports an application error."""

    def __init__(self, message: Optional[str], request_url: Optional[str] = None):
        super().__init__(message or "origin service returned status ERROR")
        self.request_url = request_url


class MultipartUploadNotSupported(DirectUploadError):
    """Raised when a ticket asks for a chunked (multipart) upload."""

    def __init__(self, part_count: int = 0):
        super().__init__(
            f"Multipart upload not supported yet (ticket has {part_count} part URLs)"
        )
        self.part_count = part_count


class StorageUploadError(DirectUploadError):
    """Raised when object storage rejects a PUT."""

    def __init__(self, status_code: int, detail: str = ""):
        message = f"Object storage returned {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status_code = status_code


class BatchUploadError(DirectUploadError):
    """
    Raised when at least one file of a batch failed.

    Registration is never attempted for such a batch. ``outcomes`` holds the
    result of every file in caller order, so objects that did reach storage
    can still be identified.
    """

    def __init__(self, outcomes: List["TransferOutcome"]):  # noqa: F821
        self.outcomes = outcomes
        failed = [o for o in outcomes if not o.success]
        details = "; ".join(f"{o.filename}: {o.error}" for o in failed)
        super().__init__(f"{len(failed)} of {len(outcomes)} files failed: {details}")

    @property
    def orphaned(self) -> List[str]:
        """Storage identifiers uploaded in this batch that were never registered."""
        return [o.storage_identifier for o in self.outcomes if o.success and o.storage_identifier]


class IncompleteBodyError(DirectUploadError):
    """Raised when a body lacks its checksum, storage identifier or file name."""
