"""Orchestrator data models."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..models import DirectUploadBody
from ..utils.progress import ProgressSink


@dataclass
class UploadTask:
    """One file scheduled for a batched direct upload."""
    file_path: Path
    body: DirectUploadBody
    progress_sink: Optional[ProgressSink] = None
    file_size: int = 0
