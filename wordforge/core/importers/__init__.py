from __future__ import annotations

"""Importers that read existing packages into a document context.

Key components:
- DocxPackageImporter: reads a ``.docx`` container, re-registering its ids
"""

from .docx_importer import DocxPackageImporter

__all__ = ["DocxPackageImporter"]
