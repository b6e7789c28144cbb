"""
dvupload - Direct-to-storage file uploads for Dataverse datasets.

Files bypass the origin service: each one is PUT straight to object storage
using a pre-signed URL issued by the origin service, then registered with
the dataset together with its MD5 checksum.

Usage:
    from dvupload import UploadOrchestrator, DirectUploadBody

    async with UploadOrchestrator(base_url, api_token) as uploader:
        # Single file, registered through the "add" endpoint
        result = await uploader.upload(
            "data.csv", "doi:10.5072/FK2/ABC123", DirectUploadBody(description="Raw data")
        )

        # Several files, uploaded concurrently and registered in one "addFiles" call
        result = await uploader.transfer(
            ["a.csv", "b.csv"],
            "doi:10.5072/FK2/ABC123",
            [DirectUploadBody(), DirectUploadBody(categories=["Data"])],
        )
"""
from .errors import (
    ApiResponseError,
    BatchUploadError,
    IncompleteBodyError,
    DirectUploadError,
    MultipartUploadNotSupported,
    ResponseDecodeError,
    StorageUploadError,
    TransportError,
)
from .identifier import Identifier
from .models import (
    ApiResponse,
    Checksum,
    DirectUploadBody,
    ResponseStatus,
    TransferOutcome,
    TransferState,
    TransferStatus,
    UploadConfig,
    UploadTicket,
)
from .orchestrator import UploadOrchestrator
from .services import (
    HTTPAPIClient,
    RegistrationRepository,
    StorageService,
    TicketBroker,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "Identifier",
    # Models
    "ApiResponse",
    "Checksum",
    "DirectUploadBody",
    "ResponseStatus",
    "TransferOutcome",
    "TransferState",
    "TransferStatus",
    "UploadConfig",
    "UploadTicket",
    # Services
    "HTTPAPIClient",
    "RegistrationRepository",
    "StorageService",
    "TicketBroker",
    # Errors
    "DirectUploadError",
    "TransportError",
    "ResponseDecodeError",
    "ApiResponseError",
    "MultipartUploadNotSupported",
    "StorageUploadError",
    "BatchUploadError",
    "IncompleteBodyError",
]
