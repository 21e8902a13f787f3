"""Document elements backed by their own stores or field protocols."""

from .comments import Comment, CommentManager, CommentThread
from .fields import (
    FIELD_STAGE_ORDER,
    ComplexField,
    FieldStage,
    TableOfContents,
    decode_complex_field,
    validate_stage_sequence,
)
from .images import BulkLoadResult, Image, ImageEntry, ImageManager, ImageManagerOptions, InlineImage
from .sdt import BuildingBlock, ControlType, ListItem, LockType, StructuredDocumentTag

__all__ = [
    "Comment",
    "CommentManager",
    "CommentThread",
    "FIELD_STAGE_ORDER",
    "ComplexField",
    "FieldStage",
    "TableOfContents",
    "decode_complex_field",
    "validate_stage_sequence",
    "BulkLoadResult",
    "Image",
    "ImageEntry",
    "ImageManager",
    "ImageManagerOptions",
    "InlineImage",
    "BuildingBlock",
    "ControlType",
    "ListItem",
    "LockType",
    "StructuredDocumentTag",
]
