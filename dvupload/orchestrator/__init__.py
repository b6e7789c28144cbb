"""Orchestrator package - coordinates direct upload workflows."""
from .core import UploadOrchestrator
from .models import UploadTask
from .parallel import get_parallel_count

__all__ = ["UploadOrchestrator", "UploadTask", "get_parallel_count"]
