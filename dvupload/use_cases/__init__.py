"""Application use cases for direct upload workflows."""

from .direct_upload import DirectUploadFileUseCase

__all__ = [
    "DirectUploadFileUseCase",
]
