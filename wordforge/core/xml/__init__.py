"""Element-tree value type with lxml-backed serialization and parsing."""

from .builder import build, to_bytes
from .element import XmlNode, el, w
from .namespaces import NAMESPACES
from .parser import parse

__all__ = [
    "XmlNode",
    "el",
    "w",
    "build",
    "to_bytes",
    "parse",
    "NAMESPACES",
]
