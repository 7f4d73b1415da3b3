"""Qollect - app metadata export and field/master item usage analysis."""

__version__ = "1.4.0"

from .core.config import Config
from .core.qollect import Qollect
from .engine.provider import EngineClient, EngineRequestError, MissingDocumentError, SnapshotEngineClient
from .report.rows import MetadataReport

__all__ = [
    "Config",
    "Qollect",
    "EngineClient",
    "SnapshotEngineClient",
    "EngineRequestError",
    "MissingDocumentError",
    "MetadataReport",
]
