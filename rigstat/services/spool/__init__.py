"""
Durable delivery: spool directory, collector uploader and sweeper.
"""

from .backoff import RetryBackoff
from .store import SpoolEntry, SpoolStore
from .sweeper import Sweeper, UploadOutcome
from .uploader import Delivered, Uploader

__all__ = [
    "Delivered",
    "RetryBackoff",
    "SpoolEntry",
    "SpoolStore",
    "Sweeper",
    "UploadOutcome",
    "Uploader",
]
