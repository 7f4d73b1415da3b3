"""Visualization object traversal, inventory and summaries."""

from .walker import ObjectGraphWalker, find_alternate_hypercube, find_first_hypercube
from .inventory import ObjectInventory
from .summary import ItemsSummaryBuilder

__all__ = [
    "ObjectGraphWalker",
    "find_alternate_hypercube",
    "find_first_hypercube",
    "ObjectInventory",
    "ItemsSummaryBuilder",
]
