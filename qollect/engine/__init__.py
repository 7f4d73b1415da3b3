"""Engine access: models, client interface and fetchers."""

from .models import Field, MasterDimension, MasterMeasure, Sheet, Variable, VisualizationObject
from .provider import EngineClient, EngineRequestError, MissingDocumentError, SnapshotEngineClient

__all__ = [
    "Field",
    "MasterDimension",
    "MasterMeasure",
    "Sheet",
    "Variable",
    "VisualizationObject",
    "EngineClient",
    "SnapshotEngineClient",
    "EngineRequestError",
    "MissingDocumentError",
]
