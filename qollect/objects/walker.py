"""Traversal of object definition trees for expressions and master item references."""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

MAX_WALK_DEPTH = 50
MAX_SEARCH_DEPTH = 60

HYPERCUBE_KEY = "qHyperCubeDef"
LAYOUT_HYPERCUBE_KEY = "qHyperCube"
LIST_OBJECT_KEY = "qListObjectDef"
ALTERNATE_KEY = "qLayoutExclude"
LIBRARY_ID_KEY = "qLibraryId"

EXPRESSION_CHARS = re.compile(r"[=\[\]{}$]")
FUNCTION_CALL = re.compile(r"[A-Za-z_]\w*\s*\(")
DIMENSION_SLOT = re.compile(r"qDimensions\[(\d+)\]")
MEASURE_SLOT = re.compile(r"qMeasures\[(\d+)\]")


@dataclass
class ExpressionCandidate:
    """A string found in a definition tree that may reference fields."""
    text: str
    path: str
    forced: bool = False
    alternate: bool = False


@dataclass
class LibraryReference:
    """A reference to a master dimension or measure."""
    library_id: str
    path: str
    kind: Optional[str] = None  # "dimension", "measure" or None when the position is ambiguous
    slot: Optional[str] = None  # e.g. "qDimensions[2]"
    alternate: bool = False


@dataclass
class ObjectScan:
    """Everything a walk over one definition tree found."""
    expressions: List[ExpressionCandidate] = field(default_factory=list)
    library_references: List[LibraryReference] = field(default_factory=list)


def looks_like_expression(value: Any) -> bool:
    """True for strings that could hold an expression or field reference."""
    if not isinstance(value, str) or not value.strip():
        return False
    return bool(
        EXPRESSION_CHARS.search(value)
        or "autoCalendar" in value
        or FUNCTION_CALL.search(value)
    )


def as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    return [] if value is None else [value]


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def field_defs(slot_def: Any) -> List[str]:
    """Field definitions of a dimension/list-object qDef: qFieldDefs, else [qFieldDef]."""
    if not isinstance(slot_def, dict):
        return []
    defs = slot_def.get("qFieldDefs")
    if isinstance(defs, list) and defs:
        return [d for d in defs if isinstance(d, str)]
    single = slot_def.get("qFieldDef")
    return [single] if isinstance(single, str) and single else []


def hypercube_has_content(hypercube: Any) -> bool:
    if not isinstance(hypercube, dict):
        return False
    return bool(as_list(hypercube.get("qDimensions")) or as_list(hypercube.get("qMeasures")))


def find_alternate_hypercube(node: Any) -> Optional[Dict[str, Any]]:
    """
    Alternate-state hypercube of a node.

    Reachable either as node.qLayoutExclude.qHyperCubeDef or nested under the
    primary hypercube as node.qHyperCubeDef.qLayoutExclude.qHyperCubeDef.
    """
    if not isinstance(node, dict):
        return None
    exclude = node.get(ALTERNATE_KEY)
    if isinstance(exclude, dict) and isinstance(exclude.get(HYPERCUBE_KEY), dict):
        return exclude[HYPERCUBE_KEY]
    primary = node.get(HYPERCUBE_KEY)
    if isinstance(primary, dict):
        nested = primary.get(ALTERNATE_KEY)
        if isinstance(nested, dict) and isinstance(nested.get(HYPERCUBE_KEY), dict):
            return nested[HYPERCUBE_KEY]
    return None


def _children(node: Any) -> List[Any]:
    """Child nodes, leaving out the alternate-state block."""
    if isinstance(node, list):
        return node
    if isinstance(node, dict):
        return [value for key, value in node.items() if key != ALTERNATE_KEY]
    return []


def find_first_hypercube(tree: Any, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Dict[str, Any]]:
    """
    Locate the primary hypercube definition anywhere in a tree.

    The root hypercube wins when it has dimensions or measures. Otherwise the
    first nested one with content is returned, falling back to the first
    hypercube found at all.
    """
    seen: Set[int] = set()
    first_empty: List[Dict[str, Any]] = []

    def walk(node: Any, depth: int) -> Optional[Dict[str, Any]]:
        if depth > max_depth or not isinstance(node, (dict, list)) or id(node) in seen:
            return None
        seen.add(id(node))
        if isinstance(node, dict) and isinstance(node.get(HYPERCUBE_KEY), dict):
            hypercube = node[HYPERCUBE_KEY]
            if hypercube_has_content(hypercube):
                return hypercube
            if not first_empty:
                first_empty.append(hypercube)
        for child in _children(node):
            hit = walk(child, depth + 1)
            if hit is not None:
                return hit
        return None

    found = walk(tree, 0)
    if found is not None:
        return found
    return first_empty[0] if first_empty else None


def find_first_layout_hypercube(layout: Any, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Dict[str, Any]]:
    """Locate the evaluated hypercube (qHyperCube) anywhere in a layout tree."""
    seen: Set[int] = set()

    def walk(node: Any, depth: int) -> Optional[Dict[str, Any]]:
        if depth > max_depth or not isinstance(node, (dict, list)) or id(node) in seen:
            return None
        seen.add(id(node))
        if isinstance(node, dict) and isinstance(node.get(LAYOUT_HYPERCUBE_KEY), dict):
            return node[LAYOUT_HYPERCUBE_KEY]
        for child in _children(node):
            hit = walk(child, depth + 1)
            if hit is not None:
                return hit
        return None

    return walk(layout, 0)


def reference_position(path: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Classify a library reference by its structural path.

    Returns:
        (kind, slot), e.g. ("dimension", "qDimensions[1]"); None where unknown
    """
    is_measure = re.search(r"/qMeasures(\[|/|$)", path) is not None
    is_dimension = re.search(r"/qDimensions(\[|/|$)", path) is not None or LIST_OBJECT_KEY in path

    slot = None
    slots = [(m.start(), m.group(0)) for m in DIMENSION_SLOT.finditer(path)]
    slots += [(m.start(), m.group(0)) for m in MEASURE_SLOT.finditer(path)]
    if slots:
        slot = max(slots)[1]

    if is_measure:
        return "measure", slot
    if is_dimension:
        return "dimension", slot
    return None, slot


Handler = Callable[[Dict[str, Any], str, bool, ObjectScan], None]


class ObjectGraphWalker:
    """
    Depth-first walker over an object's definition tree.

    Special substructures are recognised by shape: each entry of `handlers` is
    a (predicate, handler) pair tried in order on every mapping node before
    its children are visited. Every string leaf that looks like an expression
    is also collected.
    """

    def __init__(self, max_depth: int = MAX_WALK_DEPTH):
        self.max_depth = max_depth
        self.handlers: List[Tuple[Callable[[Dict[str, Any]], bool], Handler]] = [
            (lambda node: isinstance(node.get(LIST_OBJECT_KEY), dict), self._scan_list_object),
            (lambda node: isinstance(node.get(HYPERCUBE_KEY), dict), self._scan_hypercube),
            (lambda node: isinstance(node.get(LIBRARY_ID_KEY), str) and bool(node[LIBRARY_ID_KEY].strip()),
             self._record_library_reference),
        ]

    def walk(self, tree: Any, root: str = "object") -> ObjectScan:
        """Collect expression candidates and library references from a tree."""
        scan = ObjectScan()
        seen: Set[int] = set()
        self._walk(tree, root, 0, seen, scan)
        return scan

    def collect_expressions(self, tree: Any) -> List[ExpressionCandidate]:
        return self.walk(tree).expressions

    def collect_library_references(self, tree: Any) -> List[LibraryReference]:
        return self.walk(tree).library_references

    def _walk(self, node: Any, path: str, depth: int, seen: Set[int], scan: ObjectScan) -> None:
        if node is None or depth > self.max_depth:
            return
        if isinstance(node, str):
            self._push_expression(node, path, scan, alternate=ALTERNATE_KEY in path)
            return
        if not isinstance(node, (dict, list)) or id(node) in seen:
            return
        seen.add(id(node))

        if isinstance(node, list):
            for i, value in enumerate(node):
                self._walk(value, f"{path}[{i}]", depth + 1, seen, scan)
            return

        alternate = ALTERNATE_KEY in path
        for predicate, handler in self.handlers:
            if predicate(node):
                handler(node, path, alternate, scan)

        for key, value in node.items():
            self._walk(value, f"{path}/{key}", depth + 1, seen, scan)

    @staticmethod
    def _push_expression(value: Any, path: str, scan: ObjectScan, forced: bool = False,
                         alternate: bool = False) -> None:
        if not isinstance(value, str) or not value.strip():
            return
        if forced or looks_like_expression(value):
            scan.expressions.append(ExpressionCandidate(value, path, forced=forced, alternate=alternate))

    @staticmethod
    def _push_field(value: Any, path: str, scan: ObjectScan, alternate: bool = False) -> None:
        """Push a field definition; plain names are bracketed, '=...' is kept as an expression."""
        if not isinstance(value, str) or not value.strip():
            return
        text = value.strip()
        if not text.startswith("=") and not (text.startswith("[") and text.endswith("]")):
            text = f"[{text}]"
        scan.expressions.append(ExpressionCandidate(text, path, forced=True, alternate=alternate))

    def _scan_list_object(self, node: Dict[str, Any], path: str, alternate: bool, scan: ObjectScan) -> None:
        base = f"{path}/{LIST_OBJECT_KEY}"
        list_object = node[LIST_OBJECT_KEY]
        q_def = as_dict(list_object.get("qDef"))
        for i, value in enumerate(field_defs(q_def)):
            self._push_field(value, f"{base}/qDef/qFieldDefs[{i}]", scan, alternate)
        self._push_expression(q_def.get("qLabelExpression"), f"{base}/qDef/qLabelExpression", scan, alternate=alternate)
        self._push_expression(list_object.get("qCalcCond"), f"{base}/qCalcCond", scan, alternate=alternate)

    def _scan_hypercube(self, node: Dict[str, Any], path: str, alternate: bool, scan: ObjectScan) -> None:
        base = f"{path}/{HYPERCUBE_KEY}"
        hypercube = node[HYPERCUBE_KEY]

        for i, dimension in enumerate(as_list(hypercube.get("qDimensions"))):
            if not isinstance(dimension, dict):
                continue
            slot = f"{base}/qDimensions[{i}]"
            q_def = as_dict(dimension.get("qDef"))
            for j, value in enumerate(field_defs(q_def)):
                self._push_field(value, f"{slot}/qDef/qFieldDefs[{j}]", scan, alternate)
            self._push_expression(q_def.get("qLabelExpression"), f"{slot}/qDef/qLabelExpression", scan,
                                  alternate=alternate)
            self._push_expression(dimension.get("qCalcCond"), f"{slot}/qCalcCond", scan, alternate=alternate)

        for i, measure in enumerate(as_list(hypercube.get("qMeasures"))):
            if not isinstance(measure, dict):
                continue
            slot = f"{base}/qMeasures[{i}]"
            q_def = as_dict(measure.get("qDef"))
            sort_by = as_dict(measure.get("qSortByExpression"))
            self._push_expression(q_def.get("qDef"), f"{slot}/qDef/qDef", scan, forced=True, alternate=alternate)
            self._push_expression(q_def.get("qLabelExpression"), f"{slot}/qDef/qLabelExpression", scan,
                                  alternate=alternate)
            self._push_expression(sort_by.get("qExpression"), f"{slot}/qSortByExpression/qExpression", scan,
                                  forced=True, alternate=alternate)

        for key in ("qCalcCond", "qSuppressZero", "qSuppressMissing"):
            self._push_expression(hypercube.get(key), f"{base}/{key}", scan, alternate=alternate)

    @staticmethod
    def _record_library_reference(node: Dict[str, Any], path: str, alternate: bool, scan: ObjectScan) -> None:
        library_id = node[LIBRARY_ID_KEY].strip()
        ref_path = f"{path}/{LIBRARY_ID_KEY}"
        kind, slot = reference_position(ref_path)
        scan.library_references.append(LibraryReference(
            library_id=library_id,
            path=ref_path,
            kind=kind,
            slot=slot,
            alternate=alternate
        ))
