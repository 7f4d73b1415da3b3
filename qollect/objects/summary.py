"""Human-readable dimension/measure listings for visualization objects."""

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..engine.models import VisualizationObject
from ..usage.master_cache import MasterItemCache
from .walker import (
    MAX_SEARCH_DEPTH, as_dict, as_list, field_defs, find_alternate_hypercube, find_first_hypercube,
    find_first_layout_hypercube, hypercube_has_content
)

PREVIEW_LENGTH = 120
MAX_CONTAINER_DEPTH = 3
LINE_BREAK = "\r\n"
INDENT = "   "

GUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

VISUALIZATION_NAMES = {
    "barchart": "Bar chart",
    "linechart": "Line chart",
    "combochart": "Combo chart",
    "piechart": "Pie chart",
    "table": "Table",
    "pivot": "Pivot table",
    "pivotchart": "Pivot table",
    "kpi": "KPI",
    "filterpane": "Filter pane",
    "listbox": "List box",
    "treemap": "Treemap",
    "map": "Map",
    "scatterplot": "Scatter plot",
    "distributionplot": "Distribution plot",
    "boxplot": "Box plot",
    "gauge": "Gauge",
    "textimage": "Text and image",
    "container": "Container",
}


def truncate(text: Any, length: int = PREVIEW_LENGTH) -> str:
    value = str(text or "")
    return value if len(value) <= length else value[:length - 1] + "…"


def format_master(name: Any) -> str:
    return f"[Master Item: {str(name or '(no title)').strip()}]"


def format_field(field_text: Any, label: Any = "") -> str:
    field_text = str(field_text or "").strip()
    label = str(label or "").strip()
    if not label or not field_text:
        return f"[Field: {field_text or label}]"
    if label == field_text:
        return f"[Field: {field_text}]"
    return f"[Field: {field_text}, Label: {label}]"


def format_expression(expression: Any, label: Any = "", length: int = PREVIEW_LENGTH) -> str:
    expression = str(expression or "").strip()
    label = str(label or "").strip()
    if not label:
        return f"[Expression: {truncate(expression, length)}]"
    return f"[Expression: {truncate(expression, length)}, Label: {label}]"


def is_guid_like(value: Any) -> bool:
    return bool(GUID.match(str(value or "").strip()))


def pretty_visualization_name(visualization: Any) -> str:
    """'barchart' -> 'Bar chart'; unknown types are de-slugged."""
    value = str(visualization or "").strip()
    if value.lower() in VISUALIZATION_NAMES:
        return VISUALIZATION_NAMES[value.lower()]
    cleaned = re.sub(r"([a-z])([A-Z])", r"\1 \2", value)
    cleaned = re.sub(r"[_-]+", " ", cleaned).strip().lower()
    if not cleaned:
        return "Chart"
    return cleaned[0].upper() + cleaned[1:]


def title_from_properties(properties: Optional[Dict[str, Any]]) -> str:
    """Object title: a plain string or the string expression behind it."""
    if not properties:
        return ""
    title = properties.get("title")
    if isinstance(title, str):
        return title
    if isinstance(title, dict) and isinstance(title.get("qStringExpression"), str):
        return title["qStringExpression"]
    meta = properties.get("qMetaDef")
    if isinstance(meta, dict) and isinstance(meta.get("title"), str):
        return meta["title"]
    return ""


def field_text(slot: Dict[str, Any]) -> str:
    """Drill levels of a dimension slot joined with arrows."""
    levels = [re.sub(r"^\[|\]$", "", str(d)) for d in field_defs(slot.get("qDef") or {})]
    return "→".join(level for level in levels if level) or "Field"


def dedupe_slots(slots: Sequence[Any]) -> List[Dict[str, Any]]:
    """Drop slots repeating a library id or an inline definition."""
    out = []
    seen = set()
    for slot in slots:
        if not isinstance(slot, dict):
            continue
        if slot.get("qLibraryId"):
            key = "lib:" + str(slot["qLibraryId"])
        else:
            key = "def:" + json.dumps(slot.get("qDef") or {}, sort_keys=True, default=str)
        if key in seen:
            continue
        seen.add(key)
        out.append(slot)
    return out


def alternate_slots(source: Optional[Dict[str, Any]]) -> Tuple[List[Any], List[Any]]:
    hypercube = find_alternate_hypercube(source) or {}
    return as_list(hypercube.get("qDimensions")), as_list(hypercube.get("qMeasures"))


def display_title(raw_title: Any, visualization: Any, object_id: str) -> Tuple[str, bool]:
    """
    Title to show for a container child.

    Returns:
        (text, is_fallback); missing or GUID-like titles fall back to "Container > <type>"
    """
    title = str(raw_title or "").strip()
    if title and title != str(object_id or "").strip() and not is_guid_like(title):
        return title, False
    return f"Container > {pretty_visualization_name(visualization)}", True


def child_list_entries(layout: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
    """Child id -> {title, type} from a container layout's child list."""
    layout = layout or {}
    items = None
    for key in ("qChildList", "qChildListObject", "qChildren"):
        block = layout.get(key)
        if isinstance(block, dict) and isinstance(block.get("qItems"), list):
            items = block["qItems"]
            break
    entries: Dict[str, Dict[str, str]] = {}
    for item in items or []:
        if not isinstance(item, dict):
            continue
        info = as_dict(item.get("qInfo"))
        meta = as_dict(item.get("qMeta"))
        data = as_dict(item.get("qData"))
        child_id = info.get("qId") or item.get("qId") or item.get("id") or ""
        if not child_id:
            continue
        entries[child_id] = {
            "title": meta.get("title") or meta.get("name") or data.get("title") or item.get("title") or "",
            "type": data.get("visualization") or data.get("type") or item.get("qType") or item.get("type") or "",
        }
    return entries


class ItemsSummaryBuilder:
    """Builds the multi-line items block shown per object in the charts table."""

    def __init__(self, cache: MasterItemCache, preview_length: int = PREVIEW_LENGTH,
                 max_container_depth: int = MAX_CONTAINER_DEPTH, max_search_depth: int = MAX_SEARCH_DEPTH):
        self.cache = cache
        self.max_search_depth = max_search_depth
        self.preview_length = preview_length
        self.max_container_depth = max_container_depth

    async def build_for_object(self, obj: VisualizationObject, inventory: Sequence[VisualizationObject]) -> str:
        """Summary of one object; containers list their children instead."""
        summary = await self.build(obj.merged_properties(), obj.layout)
        if obj.visualization.lower() == "container":
            container_summary = await self.build_container(obj, inventory)
            if container_summary.strip():
                summary = container_summary
        return summary

    async def build(self, properties: Optional[Dict[str, Any]], layout: Optional[Dict[str, Any]]) -> str:
        """
        Summarise an object's primary and alternate dimensions and measures.

        Args:
            properties: Object definition (already merged with its master object)
            layout: Evaluated layout, used for titles

        Returns:
            Multi-line text, empty when the object has no hypercube content
        """
        properties = properties or {}
        layout = layout or {}

        hypercube = properties.get("qHyperCubeDef")
        if not hypercube_has_content(hypercube):
            hypercube = find_first_hypercube(properties, self.max_search_depth) or hypercube
        hypercube = hypercube if isinstance(hypercube, dict) else {}

        property_dims, property_msrs = alternate_slots(properties)
        layout_dims, layout_msrs = alternate_slots(layout)
        alt_dimensions = dedupe_slots([*property_dims, *layout_dims])
        alt_measures = dedupe_slots([*property_msrs, *layout_msrs])

        layout_hypercube = layout.get("qHyperCube") if isinstance(layout.get("qHyperCube"), dict) \
            else find_first_layout_hypercube(layout, self.max_search_depth)
        layout_hypercube = layout_hypercube or {}
        dimension_infos = as_list(layout_hypercube.get("qDimensionInfo"))
        measure_infos = as_list(layout_hypercube.get("qMeasureInfo"))

        dimension_lines = []
        for i, slot in enumerate(as_list(hypercube.get("qDimensions"))):
            if not isinstance(slot, dict):
                continue
            info = dimension_infos[i] if i < len(dimension_infos) and isinstance(dimension_infos[i], dict) else {}
            shown = info.get("qFallbackTitle") or (as_list(info.get("qGroupFieldDefs")) or [""])[0] or ""
            if slot.get("qLibraryId"):
                dimension_lines.append(f"• {format_master(shown or await self._dimension_title(slot['qLibraryId']))}")
            else:
                dimension_lines.append(f"• {format_field(field_text(slot), shown)}")

        measure_lines = []
        for i, slot in enumerate(as_list(hypercube.get("qMeasures"))):
            if not isinstance(slot, dict):
                continue
            info = measure_infos[i] if i < len(measure_infos) and isinstance(measure_infos[i], dict) else {}
            shown = info.get("qFallbackTitle") or ""
            if slot.get("qLibraryId"):
                measure_lines.append(f"• {format_master(shown or await self._measure_title(slot['qLibraryId']))}")
            else:
                q_def = as_dict(slot.get("qDef"))
                label = str(q_def.get("qLabel") or shown or "").strip()
                measure_lines.append(f"• {format_expression(q_def.get('qDef'), label, self.preview_length)}")

        alt_dimension_lines = []
        for slot in alt_dimensions:
            if slot.get("qLibraryId"):
                alt_dimension_lines.append(f"• Alt: {format_master(await self._dimension_title(slot['qLibraryId']))}")
            else:
                q_def = as_dict(slot.get("qDef"))
                label = str(q_def.get("qLabel") or q_def.get("qFallbackTitle") or "").strip()
                alt_dimension_lines.append(f"• Alt: {format_field(field_text(slot), label)}")

        alt_measure_lines = []
        for slot in alt_measures:
            if slot.get("qLibraryId"):
                alt_measure_lines.append(f"• Alt: {format_master(await self._measure_title(slot['qLibraryId']))}")
            else:
                q_def = as_dict(slot.get("qDef"))
                label = str(q_def.get("qLabel") or "").strip()
                alt_measure_lines.append(f"• Alt: {format_expression(q_def.get('qDef'), label, self.preview_length)}")

        sections: List[str] = []
        for title, lines in (
            (f"Dimensions ({len(dimension_lines)})", dimension_lines),
            (f"Measures ({len(measure_lines)})", measure_lines),
            (f"Alternate Dimensions ({len(alt_dimension_lines)})", alt_dimension_lines),
            (f"Alternate Measures ({len(alt_measure_lines)})", alt_measure_lines),
        ):
            if lines:
                sections.append(title)
                sections.extend(INDENT + line for line in lines)
        return LINE_BREAK.join(sections)

    async def build_container(self, container: VisualizationObject, inventory: Sequence[VisualizationObject],
                              depth: int = 0) -> str:
        """List a container's children, each with its own summary indented below."""
        if depth > self.max_container_depth:
            return ""

        entries = child_list_entries(container.layout)
        children = [o for o in inventory if o.parent_id == container.object_id]
        if not children:
            return ""

        lines = [f"Container items ({len(children)})"]
        for child in children:
            entry = entries.get(child.object_id, {})
            child_type = child.visualization or entry.get("type", "")
            raw_title = title_from_properties(child.properties) \
                or as_dict(child.layout.get("qMeta")).get("title") \
                or entry.get("title", "")
            text, is_fallback = display_title(raw_title, child_type, child.object_id)

            summary = await self.build(child.merged_properties(), child.layout)
            if not summary.strip() and str(child_type).lower() == "container":
                summary = await self.build_container(child, inventory, depth + 1)

            if is_fallback or not child_type:
                lines.append(f"• {text}")
            else:
                lines.append(f"• {text} ({child_type})")
            if summary.strip():
                lines.extend(INDENT + line for line in re.split(r"\r?\n", summary))

        return LINE_BREAK.join(lines)

    async def _dimension_title(self, library_id: str) -> str:
        dimension = await self.cache.resolve_dimension(library_id)
        if dimension is None:
            return library_id
        levels = [re.sub(r"^\[|\]$", "", level) for level in dimension.levels]
        return dimension.title or (levels[0] if levels else "") or library_id

    async def _measure_title(self, library_id: str) -> str:
        measure = await self.cache.resolve_measure(library_id)
        if measure is None:
            return library_id
        return measure.label or measure.title or library_id
