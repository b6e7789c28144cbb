"""Services for dvupload."""
from .api_client import HTTPAPIClient, evaluate_response
from .checksum import md5_file, md5_stream
from .repository import RegistrationRepository
from .request import FileRequest, JsonRequest, MultipartRequest, PlainRequest, RequestType
from .storage import StorageService
from .tickets import TicketBroker

__all__ = [
    "HTTPAPIClient",
    "evaluate_response",
    "md5_file",
    "md5_stream",
    "RegistrationRepository",
    "RequestType",
    "PlainRequest",
    "JsonRequest",
    "MultipartRequest",
    "FileRequest",
    "StorageService",
    "TicketBroker",
]
