"""Data model for an app metadata snapshot."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

KEY_FIELD_TAG = "$key"


@dataclass
class Field:
    """A data model field."""
    name: str
    tags: List[str] = field(default_factory=list)
    source_tables: List[str] = field(default_factory=list)

    def has_tag(self, tag: str) -> bool:
        """Check for a tag, case-insensitive and word-bounded."""
        pattern = re.escape(tag.lower()) + r"\b"
        return any(re.search(pattern, str(t).lower()) for t in self.tags)

    @property
    def is_key(self) -> bool:
        """True if the field carries the key-field system tag."""
        return self.has_tag(KEY_FIELD_TAG)


@dataclass
class Variable:
    """An app variable."""
    name: str
    definition: str = ""
    comment: str = ""
    tags: List[str] = field(default_factory=list)
    is_script_created: Optional[bool] = None
    is_reserved: Optional[bool] = None


@dataclass
class MasterDimension:
    """A shared (library) dimension."""
    id: str
    title: str = ""
    field_defs: List[str] = field(default_factory=list)
    drill_down_field_defs: List[str] = field(default_factory=list)
    label_expression: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)

    @property
    def levels(self) -> List[str]:
        """Drill-down levels, falling back to the plain field definitions."""
        return list(self.drill_down_field_defs) if self.drill_down_field_defs else list(self.field_defs)

    @property
    def all_field_defs(self) -> List[str]:
        return [*self.field_defs, *self.drill_down_field_defs]


@dataclass
class MasterMeasure:
    """A shared (library) measure."""
    id: str
    title: str = ""
    expression: str = ""
    label: str = ""
    label_expression: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)


@dataclass
class Sheet:
    """An app sheet."""
    id: str
    title: str = ""
    description: str = ""
    owner: str = ""


@dataclass
class VisualizationObject:
    """An object placed on a sheet (chart, filter pane, container, ...)."""
    object_id: str
    sheet_id: str
    sheet_title: str = ""
    parent_id: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    layout: Dict[str, Any] = field(default_factory=dict)
    master_properties: Optional[Dict[str, Any]] = None

    @property
    def extends_id(self) -> Optional[str]:
        value = self.properties.get("qExtendsId")
        return value if isinstance(value, str) and value.strip() else None

    @property
    def visualization(self) -> str:
        return str(self.properties.get("visualization") or self.layout.get("visualization") or "")

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None or self.parent_id == self.sheet_id

    def merged_properties(self) -> Dict[str, Any]:
        """
        Definition to summarise for this object.

        An object extending a master object carries an incomplete hypercube;
        in that case the master's definition is used, keeping the object's own
        alternate-state block when it has one.
        """
        props = self.properties
        hypercube = props.get("qHyperCubeDef")
        complete = isinstance(hypercube, dict) and isinstance(hypercube.get("qMeasures"), list)
        if complete or not self.master_properties:
            return props
        merged = dict(self.master_properties)
        exclude = props.get("qLayoutExclude") or self.master_properties.get("qLayoutExclude")
        if exclude:
            merged["qLayoutExclude"] = exclude
        return merged
