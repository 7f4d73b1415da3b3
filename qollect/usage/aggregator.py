"""Field usage classification across master items, variables and objects."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from loguru import logger

from ..engine.models import KEY_FIELD_TAG, Field, MasterDimension, MasterMeasure, Variable, VisualizationObject
from ..engine.provider import MissingDocumentError
from ..expressions.extractor import (
    ExpressionFieldExtractor, base_field_name, has_set_analysis, is_derived_field, unbracket
)
from ..expressions.macro import MAX_EXPANSION_DEPTH, MacroExpander
from ..objects.walker import MAX_WALK_DEPTH, LibraryReference, ObjectGraphWalker
from .master_cache import MasterItemCache


class UsageCategory(Enum):
    """Where a field is referenced. Declaration order is display order."""
    KEY = "Key"
    CHART = "Chart"
    SET_ANALYSIS = "Set analysis"
    DIMENSION = "Dimension"
    MEASURE = "Measure"
    VARIABLE = "Variable"


CATEGORY_ORDER = list(UsageCategory)


@dataclass
class UsageResult:
    """Used/unused classification of the app's fields."""
    used: Set[str] = field(default_factory=set)
    unused: Set[str] = field(default_factory=set)
    used_in: Dict[str, Set[UsageCategory]] = field(default_factory=dict)
    key_fields: Set[str] = field(default_factory=set)

    def categories(self, name: str) -> List[str]:
        """Usage categories of a field in display order."""
        found = self.used_in.get(name, set())
        return [c.value for c in CATEGORY_ORDER if c in found]

    def is_unused(self, name: str) -> bool:
        return name in self.unused

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "used": sorted(self.used),
            "unused": sorted(self.unused),
            "used_in": {name: self.categories(name) for name in sorted(self.used_in)},
            "key_fields": sorted(self.key_fields)
        }


class UsageAggregator:
    """
    Computes which fields are used, and where.

    Sources are scanned in order: key fields, master dimensions, master
    measures, variables, then every inventory object (including master items
    the object references by library id). A failure on one item only drops
    that item's contribution.
    """

    def __init__(self, cache: Optional[MasterItemCache] = None,
                 walker: Optional[ObjectGraphWalker] = None,
                 max_macro_depth: int = MAX_EXPANSION_DEPTH,
                 key_field_tag: str = KEY_FIELD_TAG):
        self.cache = cache
        self.walker = walker or ObjectGraphWalker(max_depth=MAX_WALK_DEPTH)
        self.max_macro_depth = max_macro_depth
        self.key_field_tag = key_field_tag

    async def find_unused(self, fields: Iterable[Field], master_dimensions: Iterable[MasterDimension],
                          master_measures: Iterable[MasterMeasure], variables: Iterable[Variable],
                          inventory: Iterable[VisualizationObject]) -> UsageResult:
        """
        Classify every field as used or unused.

        Args:
            fields: Data model fields
            master_dimensions: Master dimensions with resolved definitions
            master_measures: Master measures with resolved definitions
            variables: App variables
            inventory: Objects from ObjectInventory

        Returns:
            UsageResult
        """
        fields = [f for f in fields or [] if f.name]
        master_dimensions = list(master_dimensions or [])
        master_measures = list(master_measures or [])
        variables = list(variables or [])

        run = _UsageRun(
            known=[f.name for f in fields],
            expander=MacroExpander.from_variables(variables, max_depth=self.max_macro_depth)
        )

        for f in fields:
            if f.has_tag(self.key_field_tag):
                run.result.key_fields.add(f.name)
                run.add(f.name, UsageCategory.KEY)

        for dimension in master_dimensions:
            run.mark_dimension(dimension, UsageCategory.DIMENSION)

        for measure in master_measures:
            run.mark_measure(measure, UsageCategory.MEASURE)

        for variable in variables:
            if variable.definition:
                run.mark(variable.definition, UsageCategory.VARIABLE)

        if self.cache is not None:
            self.cache.prime(master_dimensions, master_measures)

        objects = 0
        for obj in inventory or []:
            objects += 1
            try:
                await self._mark_object(run, obj, master_dimensions, master_measures)
            except MissingDocumentError:
                raise
            except Exception as e:
                logger.debug(f"Skipping object '{obj.object_id}': {e}")

        run.finish()
        result = run.result
        logger.info(
            f"Field usage over {objects} objects: {len(result.used)} used, {len(result.unused)} unused, "
            f"{len(result.key_fields)} key fields"
        )
        return result

    async def _mark_object(self, run: "_UsageRun", obj: VisualizationObject,
                           master_dimensions: List[MasterDimension], master_measures: List[MasterMeasure]) -> None:
        trees = [obj.properties]
        if obj.master_properties:
            trees.append(obj.master_properties)
        for tree in trees:
            scan = self.walker.walk(tree)
            for candidate in scan.expressions:
                run.mark(candidate.text, UsageCategory.CHART)
            for reference in scan.library_references:
                await self._mark_reference(run, reference, master_dimensions, master_measures)

    async def _mark_reference(self, run: "_UsageRun", reference: LibraryReference,
                              master_dimensions: List[MasterDimension], master_measures: List[MasterMeasure]) -> None:
        """Pull in the field usage of a master item a chart selects."""
        dimension = measure = None
        if reference.kind != "measure":
            dimension = await self._lookup_dimension(reference.library_id, master_dimensions)
        if reference.kind != "dimension" or dimension is None:
            measure = await self._lookup_measure(reference.library_id, master_measures)

        if dimension is not None:
            run.mark_dimension(dimension, UsageCategory.CHART)
        if measure is not None:
            run.mark_measure(measure, UsageCategory.CHART)
        if dimension is None and measure is None:
            logger.debug(f"Unresolved library reference '{reference.library_id}' at {reference.path}")

    async def _lookup_dimension(self, item_id: str, known: List[MasterDimension]) -> Optional[MasterDimension]:
        for dimension in known:
            if dimension.id == item_id:
                return dimension
        if self.cache is not None:
            return await self.cache.resolve_dimension(item_id)
        return None

    async def _lookup_measure(self, item_id: str, known: List[MasterMeasure]) -> Optional[MasterMeasure]:
        for measure in known:
            if measure.id == item_id:
                return measure
        if self.cache is not None:
            return await self.cache.resolve_measure(item_id)
        return None


class _UsageRun:
    """Mutable state of one aggregation."""

    def __init__(self, known: List[str], expander: MacroExpander):
        self.known: Set[str] = set(known)
        self.expander = expander
        self.extractor = ExpressionFieldExtractor(self.known)
        self.result = UsageResult()

    def add(self, name: str, category: UsageCategory) -> None:
        if not name:
            return
        self.result.used.add(name)
        self.result.used_in.setdefault(name, set()).add(category)

    def mark(self, expression: Optional[str], category: UsageCategory) -> None:
        """Expand an expression, extract its fields and record them."""
        expanded = self.expander.expand(expression)
        if not expanded:
            return
        in_set = has_set_analysis(expanded)
        for name in self.extractor.extract(expanded):
            self.add(name, category)
            if in_set:
                self.add(name, UsageCategory.SET_ANALYSIS)

    def mark_field_def(self, definition: str, category: UsageCategory) -> None:
        """A dimension field definition: an '=' expression or a (bracketed) field name."""
        text = str(definition or "").strip()
        if not text:
            return
        if text.startswith("="):
            self.mark(text, category)
            return
        base = base_field_name(unbracket(text))
        if base in self.known:
            self.add(base, category)
        self.mark(text if text.startswith("[") and text.endswith("]") else f"[{text}]", category)

    def mark_dimension(self, dimension: MasterDimension, category: UsageCategory) -> None:
        for definition in dimension.all_field_defs:
            self.mark_field_def(definition, category)
        if dimension.label_expression:
            self.mark(dimension.label_expression, category)

    def mark_measure(self, measure: MasterMeasure, category: UsageCategory) -> None:
        if measure.expression:
            self.mark(measure.expression, category)
        if measure.label_expression:
            self.mark(measure.label_expression, category)

    def finish(self) -> None:
        """Propagate derived-field usage to base fields and compute the unused set."""
        result = self.result
        for name in sorted(self.known):
            if is_derived_field(name) and name in result.used:
                self.add(base_field_name(name), UsageCategory.CHART)

        result.unused = {
            name for name in self.known
            if not is_derived_field(name) and name not in result.key_fields and name not in result.used
        }
