"""
Models for dvupload.

Tickets, checksums and outcomes are immutable. ``DirectUploadBody`` is the
one mutable record: the pipeline fills in checksum, storage identifier and
file name once the object has been stored.
"""
import os
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ApiResponseError, ResponseDecodeError


class ResponseStatus(Enum):
    """Status field of the origin service envelope."""
    OK = "OK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ApiResponse:
    """Typed envelope returned by every origin service endpoint."""
    status: ResponseStatus
    data: Any = None
    message: Optional[str] = None
    request_url: Optional[str] = None
    request_method: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status == ResponseStatus.OK

    def ensure_ok(self) -> "ApiResponse":
        """Return self, or raise ApiResponseError when the service reported ERROR."""
        if not self.is_ok:
            raise ApiResponseError(self.message, self.request_url)
        return self

    @classmethod
    def from_payload(cls, payload: Any, raw: str = "") -> "ApiResponse":
        if not isinstance(payload, dict):
            raise ResponseDecodeError("response is not a JSON object", raw)
        try:
            status = ResponseStatus(payload.get("status"))
        except ValueError:
            raise ResponseDecodeError(
                f"unknown response status {payload.get('status')!r}", raw
            ) from None
        message = payload.get("message")
        if isinstance(message, dict):
            # some endpoints wrap the message as {"message": "..."}
            message = message.get("message")
        return cls(
            status=status,
            data=payload.get("data"),
            message=message,
            request_url=payload.get("requestUrl"),
            request_method=payload.get("requestMethod"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status.value}
        if self.data is not None:
            out["data"] = self.data
        if self.message is not None:
            out["message"] = self.message
        return out


@dataclass(frozen=True)
class Checksum:
    """Content digest embedded into the registration payload."""
    value: str
    type: str = "MD5"

    def to_payload(self) -> Dict[str, str]:
        return {"@type": self.type, "@value": self.value}

    @classmethod
    def from_payload(cls, data: Mapping[str, str]) -> "Checksum":
        return cls(value=data["@value"], type=data.get("@type", "MD5"))


@dataclass(frozen=True)
class UploadTicket:
    """
    Upload destination issued by the origin service.

    Exactly one of ``url`` (single part) or ``urls`` (multipart, ordered by
    part number) is populated.
    """
    storage_identifier: str
    url: Optional[str] = None
    urls: Tuple[str, ...] = ()
    part_size: Optional[int] = None
    abort: Optional[str] = None
    complete: Optional[str] = None

    @property
    def is_multipart(self) -> bool:
        return self.url is None

    @property
    def storage_destinations(self) -> Union[str, Tuple[str, ...]]:
        return self.urls if self.is_multipart else self.url

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "UploadTicket":
        storage_identifier = data.get("storageIdentifier")
        if not storage_identifier:
            raise ResponseDecodeError("ticket has no storageIdentifier", repr(dict(data)))

        raw_urls = data.get("urls") or ()
        if isinstance(raw_urls, Mapping):
            try:
                order = sorted(raw_urls, key=int)
            except (TypeError, ValueError):
                raise ResponseDecodeError("ticket part numbers are not integers", repr(dict(data))) from None
            urls = tuple(raw_urls[key] for key in order)
        else:
            urls = tuple(raw_urls)

        part_size = data.get("partSize")
        return cls(
            storage_identifier=storage_identifier,
            url=data.get("url") or None,
            urls=urls,
            part_size=int(part_size) if part_size is not None else None,
            abort=data.get("abort"),
            complete=data.get("complete"),
        )


@dataclass(frozen=True)
class FileDescriptor:
    """Local file taking part in a transfer."""
    path: Path
    size: int
    identifier: str

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: Union[str, Path], identifier: Optional[str] = None) -> "FileDescriptor":
        file_path = Path(path)
        size = file_path.stat().st_size
        return cls(path=file_path, size=size, identifier=identifier or file_path.name)


@dataclass
class DirectUploadBody:
    """Metadata record that attaches a stored object to a dataset."""
    categories: List[str] = field(default_factory=list)
    description: Optional[str] = None
    directory_label: Optional[str] = None
    mime_type: Optional[str] = None
    restrict: Optional[bool] = None
    file_name: Optional[str] = None
    storage_identifier: Optional[str] = None
    checksum: Optional[Checksum] = None

    _FIELDS = (
        ("description", "description"),
        ("directory_label", "directoryLabel"),
        ("mime_type", "mimeType"),
        ("restrict", "restrict"),
        ("file_name", "fileName"),
        ("storage_identifier", "storageIdentifier"),
    )

    def copy(self) -> "DirectUploadBody":
        return deepcopy(self)

    @property
    def is_complete(self) -> bool:
        """True once the object has been stored and checksummed."""
        return bool(self.storage_identifier and self.checksum and self.file_name)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"categories": list(self.categories)}
        for attr, key in self._FIELDS:
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        if self.checksum is not None:
            payload["checksum"] = self.checksum.to_payload()
        return payload

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "DirectUploadBody":
        body = cls(categories=list(data.get("categories") or []))
        for attr, key in cls._FIELDS:
            if key in data:
                setattr(body, attr, data[key])
        if data.get("checksum"):
            body.checksum = Checksum.from_payload(data["checksum"])
        return body


class TransferState(Enum):
    """Per-file pipeline state."""
    INIT = "init"
    TICKET_REQUESTED = "ticket_requested"
    SINGLE_PART_UPLOAD = "single_part_upload"
    REJECTED = "rejected"  # multipart ticket
    CHECKSUM_COMPUTED = "checksum_computed"
    READY_TO_REGISTER = "ready_to_register"
    FAILED = "failed"


class TransferStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferOutcome:
    """
    Immutable result of one per-file pipeline.

    For failures ``state`` is the last state the file reached.
    """
    filename: str
    status: TransferStatus
    state: TransferState
    storage_identifier: Optional[str] = None
    checksum: Optional[Checksum] = None
    body: Optional[DirectUploadBody] = None
    error: Optional[str] = None
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    @property
    def success(self) -> bool:
        return self.status == TransferStatus.SUCCESS

    @classmethod
    def uploaded(cls, filename: str, body: DirectUploadBody):
        return cls(
            filename=filename,
            status=TransferStatus.SUCCESS,
            state=TransferState.READY_TO_REGISTER,
            storage_identifier=body.storage_identifier,
            checksum=body.checksum,
            body=body,
        )

    @classmethod
    def failed(
        cls,
        filename: str,
        error: str,
        state: TransferState = TransferState.FAILED,
        storage_identifier: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        return cls(
            filename=filename,
            status=TransferStatus.FAILED,
            state=state,
            storage_identifier=storage_identifier,
            error=error,
            cause=cause,
        )


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for direct uploads."""
    timeout: float = 60.0
    max_parallel: Optional[int] = None  # None = derive from file sizes
    stream_chunk_size: int = 64 * 1024
    checksum_chunk_size: int = 1_000_000
    storage_tagging: str = "dv-state=temp"

    @classmethod
    def from_env(cls) -> "UploadConfig":
        kwargs: Dict[str, Any] = {}
        timeout = os.getenv("DVUPLOAD_TIMEOUT")
        if timeout:
            kwargs["timeout"] = float(timeout)
        max_parallel = os.getenv("DVUPLOAD_MAX_PARALLEL")
        if max_parallel:
            kwargs["max_parallel"] = int(max_parallel)
        return cls(**kwargs)
