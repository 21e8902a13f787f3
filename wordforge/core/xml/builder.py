"""Serialize :class:`XmlNode` trees through lxml.

Output is deterministic: attributes keep insertion order, namespace
declarations are written where the tree declares them, and prefixes the tree
uses without declaring are resolved from :data:`NAMESPACES` and declared on
the root. Childless nodes are written self-closing and are never dropped.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from lxml import etree

from wordforge.core.exceptions import XmlBuildError
from wordforge.core.xml.element import XmlNode, format_value
from wordforge.core.xml.namespaces import NAMESPACES, XML_NS

logger = logging.getLogger(__name__)

__all__ = ["build", "to_bytes", "to_element"]


def build(node: XmlNode, declaration: bool = True, standalone: bool = True) -> str:
    """Return the text of *node*, prefixed with an XML declaration by default."""
    return to_bytes(node, declaration=declaration, standalone=standalone).decode("utf-8")


def to_bytes(node: XmlNode, declaration: bool = True, standalone: bool = True) -> bytes:
    """UTF-8 encoded form of :func:`build`, as stored in a package."""
    root = to_element(node)
    if declaration:
        return etree.tostring(
            root,
            xml_declaration=True,
            encoding="UTF-8",
            standalone=True if standalone else None,
        )
    return etree.tostring(root, encoding="UTF-8")


def to_element(node: XmlNode) -> etree._Element:
    """Convert *node* into an lxml element tree."""
    implicit: Dict[str, str] = {}
    _collect_undeclared(node, {}, implicit)
    return _convert(node, None, {}, implicit)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _declarations(node: XmlNode) -> Dict[Optional[str], str]:
    declared: Dict[Optional[str], str] = {}
    for key, value in node.attributes.items():
        if key == "xmlns":
            declared[None] = format_value(value)
        elif key.startswith("xmlns:"):
            declared[key[6:]] = format_value(value)
    return declared


def _prefixes_used(node: XmlNode) -> List[str]:
    used: List[str] = []
    if node.prefix:
        used.append(node.prefix)
    for key in node.attributes:
        if key == "xmlns" or key.startswith("xmlns:"):
            continue
        if ":" in key:
            used.append(key.split(":", 1)[0])
    return used


def _collect_undeclared(node: XmlNode, scope: Dict[Optional[str], str],
                        implicit: Dict[str, str]) -> None:
    local_scope = dict(scope)
    local_scope.update(_declarations(node))
    for prefix in _prefixes_used(node):
        if prefix == "xml" or prefix in local_scope or prefix in implicit:
            continue
        uri = NAMESPACES.get(prefix)
        if uri is None:
            raise XmlBuildError(f"Undeclared namespace prefix '{prefix}' on <{node.name}>")
        implicit[prefix] = uri
    for child in node.children:
        if isinstance(child, XmlNode):
            _collect_undeclared(child, local_scope, implicit)


def _qualify(name: str, scope: Dict[Optional[str], str], is_attribute: bool) -> str:
    if ":" in name:
        prefix, local = name.split(":", 1)
        if prefix == "xml":
            return f"{{{XML_NS}}}{local}"
        uri = scope.get(prefix)
        if uri is None:
            raise XmlBuildError(f"Undeclared namespace prefix '{prefix}' in '{name}'")
        return f"{{{uri}}}{local}"
    if not is_attribute and None in scope:
        return f"{{{scope[None]}}}{name}"
    return name


def _convert(node: XmlNode, parent: Optional[etree._Element],
             scope: Dict[Optional[str], str], implicit: Dict[str, str]) -> etree._Element:
    nsmap = _declarations(node)
    if parent is None:
        for prefix, uri in implicit.items():
            nsmap.setdefault(prefix, uri)
    local_scope = dict(scope)
    local_scope.update(nsmap)

    tag = _qualify(node.name, local_scope, is_attribute=False)
    if parent is None:
        element = etree.Element(tag, nsmap=nsmap or None)
    else:
        element = etree.SubElement(parent, tag, nsmap=nsmap or None)

    for key, value in node.attributes.items():
        if key == "xmlns" or key.startswith("xmlns:"):
            continue
        element.set(_qualify(key, local_scope, is_attribute=True), format_value(value))

    last: Optional[etree._Element] = None
    for child in node.children:
        if isinstance(child, XmlNode):
            last = _convert(child, element, local_scope, implicit)
        elif child:
            if last is None:
                element.text = (element.text or "") + child
            else:
                last.tail = (last.tail or "") + child
    return element
