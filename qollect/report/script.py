"""Load-script metadata: statement counts, QVD files and variables per tab."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

SCRIPT_UNAVAILABLE = "Script metadata not available for this session."

BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
LINE_COMMENT = re.compile(r"//.*$")
TAB_MARKER = re.compile(r"^///?\s*\$tab\s*(.*)$", re.IGNORECASE)
VARIABLE_ASSIGNMENT = re.compile(r"^\s*(SET|LET)\s+([A-Za-z_]\w*)\s*=", re.IGNORECASE)
PATH_SEPARATOR = re.compile(r"[/\\]")
QVD_SUFFIX = re.compile(r"\.qvd\b", re.IGNORECASE)

KEYWORDS = {
    "loads": re.compile(r"\bLOAD\b", re.IGNORECASE),
    "stores": re.compile(r"\bSTORE\b", re.IGNORECASE),
    "joins": re.compile(r"\bJOIN\b", re.IGNORECASE),
    "residents": re.compile(r"\bRESIDENT\b", re.IGNORECASE),
}


@dataclass
class ScriptTab:
    """Statement counts of one script tab."""
    tab: str = "Main"
    loads: int = 0
    stores: int = 0
    joins: int = 0
    residents: int = 0
    qvds: List[str] = field(default_factory=list)
    variables: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.loads or self.stores or self.joins or self.residents or self.qvds or self.variables)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tab": self.tab,
            "loads": self.loads,
            "stores": self.stores,
            "joins": self.joins,
            "residents": self.residents,
            "qvds": list(self.qvds),
            "variables": list(self.variables)
        }


def _file_name(path: str) -> str:
    return PATH_SEPARATOR.split(path)[-1]


def extract_qvds_from_line(line: str) -> List[str]:
    """
    QVD file names referenced on one script line.

    Bracketed, quoted and bare forms are recognised; directories are
    stripped and duplicates dropped, first occurrence first.
    """
    hits = []

    for inner in re.findall(r"\[([^\]]+)\]", line):
        last = _file_name(inner)
        if last and QVD_SUFFIX.search(last):
            hits.append(last)

    for inner in re.findall(r"[\"']([^\"']*?\.qvd[^\"']*)[\"']", line, flags=re.IGNORECASE):
        last = _file_name(inner)
        if last and QVD_SUFFIX.search(last):
            hits.append(last)

    for token in re.findall(r"\b[^\s\"'()\[\];,]+\.qvd\b", line, flags=re.IGNORECASE):
        token = re.sub(r"[\]).;,]+$", "", _file_name(token))
        if token and QVD_SUFFIX.search(token):
            hits.append(token)

    out = []
    for hit in hits:
        clean = hit.strip()
        if clean and clean not in out:
            out.append(clean)
    return out


def parse_script_metadata(script: str) -> List[ScriptTab]:
    """
    Summarise a load script per tab.

    Lines before the first `///$tab` marker belong to a "Main" tab. Block
    comments are dropped up front; line comments only for keyword counts.
    Tabs with nothing to report are omitted.

    Args:
        script: Load script text

    Returns:
        ScriptTab rows in script order
    """
    rows: List[ScriptTab] = []
    current = None

    lines = BLOCK_COMMENT.sub("", str(script or "")).replace("\r\n", "\n").split("\n")
    for raw in lines:
        marker = TAB_MARKER.match(raw.strip())
        if marker:
            if current is not None and not current.is_empty():
                rows.append(current)
            current = ScriptTab(tab=marker.group(1).strip() or "Untitled")
            continue

        line = LINE_COMMENT.sub("", raw).strip()
        if not line:
            continue
        if current is None:
            current = ScriptTab()

        for attribute, pattern in KEYWORDS.items():
            if pattern.search(line):
                setattr(current, attribute, getattr(current, attribute) + 1)

        for qvd in extract_qvds_from_line(raw):
            if qvd not in current.qvds:
                current.qvds.append(qvd)

        assignment = VARIABLE_ASSIGNMENT.match(line)
        if assignment and assignment.group(2) not in current.variables:
            current.variables.append(assignment.group(2))

    if current is not None and not current.is_empty():
        rows.append(current)
    return rows
