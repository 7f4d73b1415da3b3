"""Report rows and load-script metadata."""

from .rows import MetadataReport
from .script import ScriptTab, parse_script_metadata

__all__ = ["MetadataReport", "ScriptTab", "parse_script_metadata"]
