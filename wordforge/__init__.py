"""Top-level package for wordforge, a word-processing package engine.

Callers should depend on the names exported here rather than importing
internal modules directly.
"""

from .core.context import DocumentContext
from .core.elements import (
    Comment,
    ComplexField,
    ControlType,
    Image,
    ListItem,
    StructuredDocumentTag,
    TableOfContents,
)
from .core.formatting import AbstractNumbering, NumberingInstance, NumberingLevel, Style, StyleType
from .core.models import Paragraph, ParagraphFormatting, Run, RunFormatting, Table
from .core.package_utils import Package, PackageAssembler
from .core.services import PackageService
from .version import get_version

__version__ = get_version()

__all__: list[str] = [
    "DocumentContext",
    "Comment",
    "ComplexField",
    "ControlType",
    "Image",
    "ListItem",
    "StructuredDocumentTag",
    "TableOfContents",
    "AbstractNumbering",
    "NumberingInstance",
    "NumberingLevel",
    "Style",
    "StyleType",
    "Paragraph",
    "ParagraphFormatting",
    "Run",
    "RunFormatting",
    "Table",
    "Package",
    "PackageAssembler",
    "PackageService",
    "__version__",
]
