"""Core components of Qollect"""

from .config import Config
from .qollect import Qollect

__all__ = ["Config", "Qollect"]
