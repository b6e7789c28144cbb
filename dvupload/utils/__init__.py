"""Utility helpers for dvupload."""
from .progress import CountingSink, FileProgress, ProgressReader, ProgressSink

__all__ = ["CountingSink", "FileProgress", "ProgressReader", "ProgressSink"]
