"""Flat row tables of the metadata report."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, TypeVar

from ..engine.models import Field, MasterDimension, MasterMeasure, Sheet, Variable, VisualizationObject
from ..usage.aggregator import UsageResult
from .script import SCRIPT_UNAVAILABLE, ScriptTab

REPORT_SECTIONS = ["overview", "dimensions", "measures", "variables", "fields", "sheets", "charts", "script"]

USED = "USED"
UNUSED = "UNUSED"

R = TypeVar("R")


def yes_no(value: Optional[bool]) -> str:
    """'Y', 'N', or '' when unknown."""
    if value is True:
        return "Y"
    if value is False:
        return "N"
    return ""


def join_list(values: Iterable[Any]) -> str:
    return ", ".join(str(v) for v in values or [] if v is not None and str(v) != "")


def sort_rows(rows: Iterable[R], key: str) -> List[R]:
    """Sort rows case-insensitively by one attribute."""
    return sorted(rows, key=lambda row: str(getattr(row, key, "") or "").casefold())


@dataclass
class OverviewRow:
    app_name: str
    app_id: str
    dimensions: int = 0
    measures: int = 0
    fields: int = 0
    sheets: int = 0
    charts: int = 0
    variables: int = 0


@dataclass
class DimensionRow:
    id: str
    title: str
    fields: str
    label_expression: str
    description: str
    tags: str
    used_count: int = 0

    @classmethod
    def from_model(cls, dimension: MasterDimension, used_count: int = 0) -> "DimensionRow":
        return cls(
            id=dimension.id,
            title=dimension.title,
            fields=join_list(dimension.levels),
            label_expression=dimension.label_expression,
            description=dimension.description,
            tags=join_list(dimension.tags),
            used_count=used_count
        )


@dataclass
class MeasureRow:
    id: str
    title: str
    expression: str
    label: str
    label_expression: str
    description: str
    tags: str
    used_count: int = 0

    @classmethod
    def from_model(cls, measure: MasterMeasure, used_count: int = 0) -> "MeasureRow":
        return cls(
            id=measure.id,
            title=measure.title,
            expression=measure.expression,
            label=measure.label,
            label_expression=measure.label_expression,
            description=measure.description,
            tags=join_list(measure.tags),
            used_count=used_count
        )


@dataclass
class FieldRow:
    name: str
    source_tables: str
    tags: str
    usage_state: str
    used_in: str

    @classmethod
    def from_model(cls, f: Field, usage: Optional[UsageResult]) -> "FieldRow":
        unused = usage is not None and usage.is_unused(f.name)
        return cls(
            name=f.name,
            source_tables=join_list(f.source_tables),
            tags=join_list(f.tags),
            usage_state=UNUSED if unused else USED,
            used_in=join_list(usage.categories(f.name)) if usage is not None else ""
        )


@dataclass
class SheetRow:
    id: str
    title: str
    description: str
    owner: str

    @classmethod
    def from_model(cls, sheet: Sheet) -> "SheetRow":
        return cls(id=sheet.id, title=sheet.title, description=sheet.description, owner=sheet.owner)


@dataclass
class ChartRow:
    object_id: str
    type: str
    is_extension: str
    title: str
    sheet_title: str
    sheet_id: str
    is_master: str
    master_id: str
    items: str = ""

    @classmethod
    def from_model(cls, obj: VisualizationObject, title: str, items: str,
                   extension_ids: Optional[Set[str]] = None) -> "ChartRow":
        visualization = obj.visualization
        is_extension = ""
        if extension_ids:
            is_extension = yes_no(visualization.lower() in extension_ids)
        return cls(
            object_id=obj.object_id,
            type=visualization,
            is_extension=is_extension,
            title=title,
            sheet_title=obj.sheet_title,
            sheet_id=obj.sheet_id,
            is_master=yes_no(obj.extends_id is not None),
            master_id=obj.extends_id or "",
            items=items
        )


@dataclass
class VariableRow:
    name: str
    definition: str
    comment: str
    tags: str
    is_script_created: str
    is_reserved: str

    @classmethod
    def from_model(cls, variable: Variable) -> "VariableRow":
        return cls(
            name=variable.name,
            definition=variable.definition,
            comment=variable.comment,
            tags=join_list(variable.tags),
            is_script_created=yes_no(variable.is_script_created),
            is_reserved=yes_no(variable.is_reserved)
        )


@dataclass
class MetadataReport:
    """Everything collected in one run; empty tables for skipped sections."""
    sections: List[str] = field(default_factory=lambda: list(REPORT_SECTIONS))
    overview: Optional[OverviewRow] = None
    dimensions: List[DimensionRow] = field(default_factory=list)
    measures: List[MeasureRow] = field(default_factory=list)
    fields: List[FieldRow] = field(default_factory=list)
    sheets: List[SheetRow] = field(default_factory=list)
    charts: List[ChartRow] = field(default_factory=list)
    variables: List[VariableRow] = field(default_factory=list)
    script: List[ScriptTab] = field(default_factory=list)
    script_available: bool = True

    @property
    def unused_fields(self) -> List[str]:
        return [row.name for row in self.fields if row.usage_state == UNUSED]

    def sort(self) -> "MetadataReport":
        """Sort tables case-insensitively by title or name."""
        self.dimensions = sort_rows(self.dimensions, "title")
        self.measures = sort_rows(self.measures, "title")
        self.fields = sort_rows(self.fields, "name")
        self.sheets = sort_rows(self.sheets, "title")
        self.charts = sort_rows(self.charts, "title")
        self.variables = sort_rows(self.variables, "name")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert the requested sections to a dictionary."""
        tables: Dict[str, Sequence[Any]] = {
            "dimensions": self.dimensions,
            "measures": self.measures,
            "fields": self.fields,
            "sheets": self.sheets,
            "charts": self.charts,
            "variables": self.variables,
        }
        result: Dict[str, Any] = {}
        for section in self.sections:
            if section == "overview":
                result["overview"] = asdict(self.overview) if self.overview else {}
            elif section == "script":
                if self.script_available:
                    result["script"] = [tab.to_dict() for tab in self.script]
                else:
                    result["script"] = {"info": SCRIPT_UNAVAILABLE}
            elif section in tables:
                result[section] = [asdict(row) for row in tables[section]]
        return result
