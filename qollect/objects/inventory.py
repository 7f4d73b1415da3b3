"""Enumeration of every object placed on the app's sheets."""

from typing import Any, Dict, List, Optional, Set

from loguru import logger

from ..engine.fetchers import fetch_sheets, optional_result
from ..engine.models import Sheet, VisualizationObject
from ..engine.provider import EngineClient
from .walker import ALTERNATE_KEY


def _item_id(item: Any) -> str:
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return ""
    return str(item.get("qId") or item.get("id") or item.get("Id") or "")


def _cell_id(cell: Any) -> str:
    if not isinstance(cell, dict):
        return ""
    return str(cell.get("name") or cell.get("qId") or cell.get("id") or "")


def merge_alternates(properties: Optional[Dict[str, Any]], layout: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Properties to scan, carrying the alternate-state block from either source.

    The layout's copy of qLayoutExclude wins over the properties' copy.
    """
    exclude = (layout or {}).get(ALTERNATE_KEY) or (properties or {}).get(ALTERNATE_KEY)
    if properties and exclude:
        return {**properties, ALTERNATE_KEY: exclude}
    if properties:
        return properties
    if exclude:
        return {ALTERNATE_KEY: exclude}
    return {}


class ObjectInventory:
    """
    Collects sheets' objects, recursing into containers.

    Children are discovered with a child-info request, falling back to the
    legacy `cells` list of the parent's properties. Objects are resolved one
    at a time; an object whose properties and layout both fail is omitted.
    """

    def __init__(self, client: EngineClient):
        self.client = client
        self._master_objects: Dict[str, Optional[Dict[str, Any]]] = {}

    async def enumerate(self) -> List[VisualizationObject]:
        """
        Enumerate all objects under all sheets.

        Returns:
            Flat list of objects, parents before their children
        """
        sheets = await fetch_sheets(self.client)
        visited: Set[str] = set()
        objects: List[VisualizationObject] = []

        for sheet in sheets:
            if not sheet.id:
                continue
            for child_id in await self._child_ids(sheet.id):
                await self._add_object(child_id, sheet, sheet.id, visited, objects)

        logger.info(f"Inventory: {len(objects)} objects on {len(sheets)} sheets")
        return objects

    async def _child_ids(self, object_id: str, properties: Optional[Dict[str, Any]] = None) -> List[str]:
        infos = await optional_result(self.client.get_child_infos(object_id), "Child infos", object_id) or []
        ids = [_item_id(info) for info in infos]
        ids = [i for i in ids if i]
        if ids:
            return ids

        if properties is None:
            properties = await optional_result(
                self.client.get_object_properties(object_id), "Object properties", object_id
            ) or {}
        cells = properties.get("cells")
        if not isinstance(cells, list):
            return []
        return [c for c in (_cell_id(cell) for cell in cells) if c]

    async def _add_object(self, object_id: str, sheet: Sheet, parent_id: str,
                          visited: Set[str], objects: List[VisualizationObject]) -> None:
        if not object_id or object_id in visited:
            return
        visited.add(object_id)

        properties = await optional_result(self.client.get_object_properties(object_id), "Object properties", object_id)
        layout = await optional_result(self.client.get_object_layout(object_id), "Object layout", object_id)

        if properties is None and layout is None:
            logger.debug(f"Omitting object '{object_id}' on sheet '{sheet.id}': nothing could be fetched")
        else:
            obj = VisualizationObject(
                object_id=object_id,
                sheet_id=sheet.id,
                sheet_title=sheet.title,
                parent_id=parent_id,
                properties=merge_alternates(properties, layout),
                layout=layout or {}
            )
            if obj.extends_id:
                obj.master_properties = await self._master_object(obj.extends_id)
            objects.append(obj)

        for child_id in await self._child_ids(object_id, properties or {}):
            await self._add_object(child_id, sheet, object_id, visited, objects)

    async def _master_object(self, master_id: str) -> Optional[Dict[str, Any]]:
        """Definition of an extended master object, fetched once per inventory."""
        if master_id not in self._master_objects:
            properties = await optional_result(self.client.get_object_properties(master_id), "Master object properties", master_id)
            layout = await optional_result(self.client.get_object_layout(master_id), "Master object layout", master_id)
            merged = merge_alternates(properties, layout)
            self._master_objects[master_id] = merged or None
        return self._master_objects[master_id]
