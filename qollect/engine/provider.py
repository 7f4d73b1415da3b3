"""Engine client interface and implementations."""

import copy
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from loguru import logger


class MissingDocumentError(Exception):
    """The engine document handle is not available."""

    def __init__(self, message: str = "Engine document not available"):
        super().__init__(message)
        self.message = message


class EngineRequestError(Exception):
    """A single engine request failed (unknown id, permissions, transient error)."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.item_id = item_id

    def __str__(self) -> str:
        if self.item_id:
            return f"{self.message} (id: {self.item_id})"
        return self.message


class EngineClient(ABC):
    """
    Abstract interface to the BI engine.

    Every call is a single asynchronous request returning the engine's raw
    JSON-like shapes. Implementations raise EngineRequestError for a failed
    item request and MissingDocumentError when no document is open.
    """

    @property
    def app_id(self) -> str:
        return ""

    async def ensure_document(self) -> None:
        """Raise MissingDocumentError if the document handle is unavailable."""
        return None

    @abstractmethod
    async def list_sheets(self) -> List[Dict[str, Any]]:
        """
        List sheets.

        Returns:
            Items shaped like {"qInfo": {"qId"}, "qMeta": {"title", "description", "owner"}}
        """
        pass

    @abstractmethod
    async def get_object_properties(self, object_id: str) -> Dict[str, Any]:
        """Get an object's definition (properties) tree."""
        pass

    @abstractmethod
    async def get_object_layout(self, object_id: str) -> Dict[str, Any]:
        """Get an object's evaluated layout tree."""
        pass

    @abstractmethod
    async def get_child_infos(self, object_id: str) -> List[Dict[str, Any]]:
        """Get an object's direct children as [{"qId", "qType"}]."""
        pass

    @abstractmethod
    async def list_dimensions(self) -> List[Dict[str, Any]]:
        """List master dimensions as [{"qInfo": {"qId"}, "qMeta": {...}}]."""
        pass

    @abstractmethod
    async def list_measures(self) -> List[Dict[str, Any]]:
        """List master measures as [{"qInfo": {"qId"}, "qMeta": {...}}]."""
        pass

    @abstractmethod
    async def list_variables(self) -> List[Dict[str, Any]]:
        """List variables as [{"qName", "qDefinition", ...}]."""
        pass

    @abstractmethod
    async def list_fields(self) -> List[Dict[str, Any]]:
        """List fields as [{"qName", "qTags", "qSrcTables"}]."""
        pass

    @abstractmethod
    async def get_dimension_properties(self, dimension_id: str) -> Dict[str, Any]:
        """Resolve a master dimension to {"qInfo", "qDim", "qMetaDef"}."""
        pass

    @abstractmethod
    async def get_measure_properties(self, measure_id: str) -> Dict[str, Any]:
        """Resolve a master measure to {"qInfo", "qMeasure", "qMetaDef"}."""
        pass

    @abstractmethod
    async def get_variable_properties(self, name: str) -> Dict[str, Any]:
        """Resolve a variable by name to {"qName", "qDefinition", "qComment", ...}."""
        pass

    @abstractmethod
    async def get_app_layout(self) -> Dict[str, Any]:
        """Get the app layout ({"qTitle", ...})."""
        pass

    @abstractmethod
    async def get_script(self) -> str:
        """Get the app load script."""
        pass

    async def list_extensions(self) -> List[str]:
        """Ids of installed visualization extensions (empty when unknown)."""
        return []


class SnapshotEngineClient(EngineClient):
    """
    Engine client backed by an exported app snapshot.

    Snapshot layout::

        app:        {"id": ..., "qTitle": ...}
        sheets:     [{"qInfo": {"qId"}, "qMeta": {...}}]
        objects:    {id: {"properties": {...}, "layout": {...}, "children": [ids]}}
        dimensions: {id: {"qDim": {...}, "qMetaDef": {...}}}
        measures:   {id: {"qMeasure": {...}, "qMetaDef": {...}}}
        variables:  [{"qName", "qDefinition", "qComment", ...}]
        fields:     [{"qName", "qTags", "qSrcTables"}]
        extensions: [ids]
        script:     "..."
    """

    def __init__(self, snapshot: Optional[Dict[str, Any]]):
        """
        Initialize snapshot client.

        Args:
            snapshot: Snapshot dictionary, or None when no document is open
        """
        self._snapshot = snapshot

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "SnapshotEngineClient":
        """
        Load a snapshot from a JSON or YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot file not found: {file_path}")

        logger.info(f"Loading app snapshot: {file_path}")
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                snapshot = yaml.safe_load(f)
            else:
                snapshot = json.load(f)

        return cls(snapshot)

    def _document(self) -> Dict[str, Any]:
        if self._snapshot is None:
            raise MissingDocumentError()
        return self._snapshot

    def _object(self, object_id: str) -> Dict[str, Any]:
        objects = self._document().get("objects") or {}
        if object_id not in objects:
            raise EngineRequestError("Object not found", object_id)
        return objects[object_id]

    @property
    def app_id(self) -> str:
        if self._snapshot is None:
            return ""
        return str((self._snapshot.get("app") or {}).get("id", ""))

    async def ensure_document(self) -> None:
        self._document()

    async def list_sheets(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._document().get("sheets") or [])

    async def get_object_properties(self, object_id: str) -> Dict[str, Any]:
        properties = self._object(object_id).get("properties")
        if properties is None:
            raise EngineRequestError("Object has no properties", object_id)
        return copy.deepcopy(properties)

    async def get_object_layout(self, object_id: str) -> Dict[str, Any]:
        layout = self._object(object_id).get("layout")
        if layout is None:
            raise EngineRequestError("Object has no layout", object_id)
        return copy.deepcopy(layout)

    async def get_child_infos(self, object_id: str) -> List[Dict[str, Any]]:
        children = self._object(object_id).get("children") or []
        objects = self._document().get("objects") or {}
        infos = []
        for child_id in children:
            child = objects.get(child_id) or {}
            child_type = (child.get("properties") or {}).get("visualization", "")
            infos.append({"qId": child_id, "qType": child_type})
        return infos

    async def list_dimensions(self) -> List[Dict[str, Any]]:
        return [self._list_item(dim_id, props) for dim_id, props in (self._document().get("dimensions") or {}).items()]

    async def list_measures(self) -> List[Dict[str, Any]]:
        return [self._list_item(msr_id, props) for msr_id, props in (self._document().get("measures") or {}).items()]

    @staticmethod
    def _list_item(item_id: str, props: Dict[str, Any]) -> Dict[str, Any]:
        meta = (props or {}).get("qMetaDef") or {}
        return {
            "qInfo": {"qId": item_id},
            "qMeta": {
                "title": meta.get("title", ""),
                "description": meta.get("description", ""),
                "tags": list(meta.get("tags") or []),
            },
        }

    async def list_variables(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._document().get("variables") or [])

    async def list_fields(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._document().get("fields") or [])

    async def get_dimension_properties(self, dimension_id: str) -> Dict[str, Any]:
        dimensions = self._document().get("dimensions") or {}
        if dimension_id not in dimensions:
            raise EngineRequestError("Dimension not found", dimension_id)
        return copy.deepcopy(dimensions[dimension_id])

    async def get_measure_properties(self, measure_id: str) -> Dict[str, Any]:
        measures = self._document().get("measures") or {}
        if measure_id not in measures:
            raise EngineRequestError("Measure not found", measure_id)
        return copy.deepcopy(measures[measure_id])

    async def get_variable_properties(self, name: str) -> Dict[str, Any]:
        for item in self._document().get("variables") or []:
            if item.get("qName") == name:
                return copy.deepcopy(item)
        raise EngineRequestError("Variable not found", name)

    async def get_app_layout(self) -> Dict[str, Any]:
        app = self._document().get("app") or {}
        return {"qTitle": app.get("qTitle", app.get("title", ""))}

    async def get_script(self) -> str:
        script = self._document().get("script")
        if script is None:
            raise EngineRequestError("Script not available")
        return script

    async def list_extensions(self) -> List[str]:
        return list(self._document().get("extensions") or [])
