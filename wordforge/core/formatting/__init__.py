"""Definition/instance stores: numbering and styles."""

from .numbering import (
    AbstractNumbering,
    LevelAlignment,
    LevelSuffix,
    NumberFormat,
    NumberingInstance,
    NumberingLevel,
)
from .numbering_manager import CleanupResult, NumberingManager
from .style_manager import StyleManager
from .styles import Style, StyleType

__all__ = [
    "AbstractNumbering",
    "LevelAlignment",
    "LevelSuffix",
    "NumberFormat",
    "NumberingInstance",
    "NumberingLevel",
    "NumberingManager",
    "CleanupResult",
    "Style",
    "StyleType",
    "StyleManager",
]
