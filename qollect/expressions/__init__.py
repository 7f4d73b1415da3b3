"""Expression macro expansion and field extraction."""

from .macro import MacroExpander, expand_macros
from .extractor import ExpressionFieldExtractor

__all__ = ["MacroExpander", "expand_macros", "ExpressionFieldExtractor"]
