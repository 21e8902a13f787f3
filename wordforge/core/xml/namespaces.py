"""Namespace URIs used by word-processing packages.

Trees in :mod:`wordforge.core.xml` carry prefixed names (``w:p``,
``r:id``). Prefixes that a tree does not declare itself are resolved here
and declared on the root element when the tree is serialized.
"""

NAMESPACES = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "pic": "http://schemas.openxmlformats.org/drawingml/2006/picture",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "w14": "http://schemas.microsoft.com/office/word/2010/wordml",
    "w15": "http://schemas.microsoft.com/office/word/2012/wordml",
    "wp14": "http://schemas.microsoft.com/office/word/2010/wordprocessingDrawing",
    "cp": "http://schemas.openxmlformats.org/package/2006/metadata/core-properties",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "dcmitype": "http://purl.org/dc/dcmitype/",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}

XML_NS = "http://www.w3.org/XML/1998/namespace"

# Default namespaces of package-level parts
CONTENT_TYPES_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
PACKAGE_RELATIONSHIPS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

W = NAMESPACES["w"]
R = NAMESPACES["r"]

__all__ = [
    "NAMESPACES",
    "XML_NS",
    "CONTENT_TYPES_NS",
    "PACKAGE_RELATIONSHIPS_NS",
    "W",
    "R",
]
