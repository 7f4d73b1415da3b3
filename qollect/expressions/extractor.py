"""Field reference extraction from (macro-expanded) expression text."""

import re
from typing import Iterable, List, Optional, Set, Tuple

DERIVED_FIELD_MARKER = ".autoCalendar."

LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
BRACKETED_TOKEN = re.compile(r"\[(?:[^\]\\]|\\.)+\]")
# {<...>}, optionally with a set identifier: {$<...>}, {1<...>}, {BM01<...>}
SET_ANALYSIS_BLOCK = re.compile(r"\{\s*(?:[\w$]+\s*)?<([\s\S]*?)>\s*\}")
SET_CLAUSE_LHS = re.compile(r"(?:^|[,<\s])(?:[\w$]+::)?(\[?[^\]=,]+?\]?)(?==)")
DERIVED_FIELD_TOKEN = re.compile(r"([A-Za-z_][\w ]*)\.autoCalendar\.[A-Za-z]+")
DERIVED_SUFFIX = re.compile(r"\.autoCalendar\..*$")
SIMPLE_FIELD_NAME = re.compile(r"^[A-Za-z_][\w.]*$")

_OPENERS = {"(": ")", "[": "]", "{": "}"}


def strip_comments(text: str) -> str:
    """Remove // line comments and /* */ block comments."""
    return BLOCK_COMMENT.sub("", LINE_COMMENT.sub("", text))


def base_field_name(name: str) -> str:
    """Strip a derived-field suffix: 'Date.autoCalendar.Year' -> 'Date'."""
    return DERIVED_SUFFIX.sub("", name)


def is_derived_field(name: str) -> bool:
    return DERIVED_FIELD_MARKER in name


def unbracket(name: str) -> str:
    """Strip one pair of surrounding brackets: '[Order Date]' -> 'Order Date'."""
    return re.sub(r"^\[|\]$", "", name)


def has_set_analysis(text: Optional[str]) -> bool:
    """True if the text contains a set-analysis block."""
    return bool(text) and SET_ANALYSIS_BLOCK.search(text) is not None


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """
    Split on separators that are outside quotes and nested brackets.

    "Region={'East','West'}, Year={2020}" -> ["Region={'East','West'}", " Year={2020}"]
    """
    parts = []
    current = []
    quote = None
    closers = []
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch in _OPENERS:
            closers.append(_OPENERS[ch])
        elif closers and ch == closers[-1]:
            closers.pop()
        elif ch == separator and not closers:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


class ExpressionFieldExtractor:
    """
    Finds which known fields an expression references.

    Four strategies are unioned: bracketed tokens, set-analysis clause
    left-hand sides, derived-field tokens and a word-bounded bare-name scan.
    The bare-name scan is a heuristic: a short field name such as ID matches
    any standalone ID token, whatever its role in the expression.

    Comments are stripped before any strategy runs, without regard to quotes:
    in If(Url='http://x', [Sales]) everything after the // is dropped, so the
    [Sales] reference is missed.
    """

    def __init__(self, known_fields: Iterable[str]):
        self.known_fields: Set[str] = {f for f in known_fields if f}
        self._bare_patterns: List[Tuple[str, "re.Pattern"]] = [
            (name, re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])"))
            for name in sorted(self.known_fields)
            if SIMPLE_FIELD_NAME.match(name)
        ]

    def _add_known(self, name: str, used: Set[str]) -> None:
        if name in self.known_fields:
            used.add(name)
        base = base_field_name(name)
        if base in self.known_fields:
            used.add(base)

    def extract(self, text: Optional[str]) -> Set[str]:
        """
        Extract referenced fields.

        Args:
            text: Expanded expression text

        Returns:
            Set of known field names referenced
        """
        used: Set[str] = set()
        if not text or not isinstance(text, str):
            return used

        s = strip_comments(text)

        for token in BRACKETED_TOKEN.findall(s):
            self._add_known(token[1:-1], used)

        for block in SET_ANALYSIS_BLOCK.finditer(s):
            for clause in split_top_level(block.group(1)):
                match = SET_CLAUSE_LHS.search(clause)
                if not match:
                    continue
                lhs = unbracket(match.group(1).strip().rstrip("+-*/ "))
                self._add_known(lhs, used)

        for match in DERIVED_FIELD_TOKEN.finditer(s):
            base = base_field_name(match.group(0)).strip()
            if base in self.known_fields:
                used.add(base)

        for name, pattern in self._bare_patterns:
            if name not in used and pattern.search(s):
                used.add(name)

        return used
