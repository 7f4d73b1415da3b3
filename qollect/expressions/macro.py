"""Dollar-sign macro expansion against the app's variables."""

import re
from typing import Iterable, Mapping, Optional, Set

from ..engine.models import Variable

MAX_EXPANSION_DEPTH = 5

# $(=Sum(Sales)) - inline expression, spliced in without the wrapper
INLINE_MACRO = re.compile(r"\$\(\s*=\s*([^)]*?)\s*\)")
# $(vName) or $(vName(arg)) - named variable, call suffix ignored
NAMED_MACRO = re.compile(r"\$\(\s*([A-Za-z_]\w*)(?:\([^\)]*\))?\s*\)")


def build_variable_map(variables: Iterable[Variable]) -> dict:
    """Map variable names to their definitions."""
    return {v.name: v.definition or "" for v in variables or [] if v.name}


def expand_macros(text: Optional[str], variable_map: Mapping[str, str], depth: int = 0,
                  seen: Optional[Set[str]] = None, max_depth: int = MAX_EXPANSION_DEPTH) -> str:
    """
    Expand $(...) placeholders in an expression.

    Args:
        text: Expression text
        variable_map: Variable name -> definition
        depth: Current recursion depth
        seen: Variable names already expanded for this expression, shared by
            the whole expansion so each variable expands at most once
        max_depth: Depth past which text is returned unexpanded

    Returns:
        Expanded text. Unknown variables and repeat references expand to "".
    """
    if seen is None:
        seen = set()
    if not text or not isinstance(text, str):
        return ""
    if depth > max_depth:
        return text

    text = INLINE_MACRO.sub(lambda m: m.group(1) or "", text)

    def replace_named(match: "re.Match") -> str:
        name = match.group(1)
        if name not in variable_map or name in seen:
            return ""
        seen.add(name)
        return expand_macros(variable_map[name] or "", variable_map, depth + 1, seen, max_depth)

    return NAMED_MACRO.sub(replace_named, text)


class MacroExpander:
    """Expands macros against a fixed variable map."""

    def __init__(self, variable_map: Mapping[str, str], max_depth: int = MAX_EXPANSION_DEPTH):
        self.variable_map = dict(variable_map or {})
        self.max_depth = max_depth

    @classmethod
    def from_variables(cls, variables: Iterable[Variable], max_depth: int = MAX_EXPANSION_DEPTH) -> "MacroExpander":
        return cls(build_variable_map(variables), max_depth=max_depth)

    def expand(self, text: Optional[str]) -> str:
        return expand_macros(text, self.variable_map, max_depth=self.max_depth)
