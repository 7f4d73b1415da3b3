"""Master dimension/measure usage counts, one per distinct hypercube slot."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from loguru import logger

from ..engine.models import VisualizationObject
from ..objects.walker import ALTERNATE_KEY, LIBRARY_ID_KEY, LIST_OBJECT_KEY, MAX_WALK_DEPTH

DIMENSION_SLOT = re.compile(r"qDimensions\[\d+\]")
MEASURE_SLOT = re.compile(r"qMeasures\[\d+\]")


@dataclass
class MasterUsage:
    """Distinct usage slots per master item id."""
    dimension_slots: Dict[str, Set[str]] = field(default_factory=dict)
    measure_slots: Dict[str, Set[str]] = field(default_factory=dict)

    @property
    def dimension_usage(self) -> Dict[str, int]:
        return {item_id: len(slots) for item_id, slots in self.dimension_slots.items()}

    @property
    def measure_usage(self) -> Dict[str, int]:
        return {item_id: len(slots) for item_id, slots in self.measure_slots.items()}

    def dimension_count(self, dimension_id: str) -> int:
        return len(self.dimension_slots.get(dimension_id, ()))

    def measure_count(self, measure_id: str) -> int:
        return len(self.measure_slots.get(measure_id, ()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dimension_usage": dict(sorted(self.dimension_usage.items())),
            "measure_usage": dict(sorted(self.measure_usage.items()))
        }


def _slot_key(object_id: str, slot: str, alternate: bool) -> str:
    return f"{object_id}:{'alternate/' if alternate else ''}{slot}"


class MasterUsageCounter:
    """
    Counts how many hypercube slots reference each master item.

    A reference is attributed to the dimension or measure slot on its path.
    A reference outside any slot falls back to the most recently entered
    measure slot, else dimension slot. Each (object, slot) pair counts once
    per master item however many routes lead to it.
    """

    def __init__(self, max_depth: int = MAX_WALK_DEPTH):
        self.max_depth = max_depth

    def count(self, inventory: Iterable[VisualizationObject]) -> MasterUsage:
        """
        Count master item usage over an inventory.

        Args:
            inventory: Objects from ObjectInventory

        Returns:
            MasterUsage; ids never referenced are absent
        """
        usage = MasterUsage()
        total = 0
        for obj in inventory:
            total += 1
            self.scan(obj.properties, obj.object_id, usage)
            if obj.master_properties:
                self.scan(obj.master_properties, obj.object_id, usage)
        logger.info(
            f"Master usage over {total} objects: {len(usage.dimension_slots)} dimensions, "
            f"{len(usage.measure_slots)} measures referenced"
        )
        return usage

    def scan(self, properties: Any, object_id: str, usage: MasterUsage) -> None:
        """Record every library reference in one definition tree."""
        seen: Set[int] = set()
        self._walk(properties, "object", 0, None, None, object_id, usage, seen)

    @staticmethod
    def _add(slots: Dict[str, Set[str]], item_id: str, slot_key: str) -> None:
        slots.setdefault(item_id, set()).add(slot_key)

    def _walk(self, node: Any, path: str, depth: int, last_dimension: Optional[int], last_measure: Optional[int],
              object_id: str, usage: MasterUsage, seen: Set[int]) -> None:
        if depth > self.max_depth or not isinstance(node, (dict, list)) or id(node) in seen:
            return
        seen.add(id(node))

        if isinstance(node, list):
            for i, value in enumerate(node):
                if path.endswith("qDimensions"):
                    self._walk(value, f"{path}[{i}]", depth + 1, i, last_measure, object_id, usage, seen)
                elif path.endswith("qMeasures"):
                    self._walk(value, f"{path}[{i}]", depth + 1, last_dimension, i, object_id, usage, seen)
                else:
                    self._walk(value, f"{path}[{i}]", depth + 1, last_dimension, last_measure, object_id, usage, seen)
            return

        for key, value in node.items():
            if key == LIBRARY_ID_KEY and isinstance(value, str) and value.strip():
                self._record(value.strip(), path, last_dimension, last_measure, object_id, usage)
            if isinstance(value, (dict, list)):
                self._walk(value, f"{path}/{key}", depth + 1, last_dimension, last_measure, object_id, usage, seen)

    def _record(self, library_id: str, path: str, last_dimension: Optional[int], last_measure: Optional[int],
                object_id: str, usage: MasterUsage) -> None:
        alternate = ALTERNATE_KEY in path
        is_measure = re.search(r"/qMeasures(\[|/)", path) is not None
        is_dimension = re.search(r"/qDimensions(\[|/)", path) is not None or LIST_OBJECT_KEY in path

        if is_measure or is_dimension:
            slots = DIMENSION_SLOT.findall(path) if not is_measure else MEASURE_SLOT.findall(path)
            slot = slots[-1] if slots else path
            target = usage.measure_slots if is_measure else usage.dimension_slots
            self._add(target, library_id, _slot_key(object_id, slot, alternate))
        elif last_measure is not None:
            self._add(usage.measure_slots, library_id, _slot_key(object_id, f"qMeasures[{last_measure}]", alternate))
        else:
            index = last_dimension if last_dimension is not None else 0
            self._add(usage.dimension_slots, library_id, _slot_key(object_id, f"qDimensions[{index}]", alternate))
