"""Plain value structs for document content and formatting."""

from .content import (
    Paragraph,
    Run,
    Table,
    TableCell,
    TableRow,
    decode_block,
    decode_blocks,
    encode_blocks,
)
from .formatting import ParagraphFormatting, RunFormatting
from .properties import CoreProperties

__all__ = [
    "Run",
    "Paragraph",
    "Table",
    "TableRow",
    "TableCell",
    "ParagraphFormatting",
    "RunFormatting",
    "CoreProperties",
    "decode_block",
    "decode_blocks",
    "encode_blocks",
]
