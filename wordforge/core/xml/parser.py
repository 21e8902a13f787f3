"""Parse XML text into :class:`XmlNode` trees.

Names keep their source prefixes and namespace declarations reappear as
``xmlns`` attributes on the element that introduced them, so a parsed part can
be written back unchanged. Whitespace-only text between elements is dropped
unless the element asks for ``xml:space="preserve"``. Comments and processing
instructions are not kept.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

from lxml import etree

from wordforge.core.exceptions import XmlParseError
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import XML_NS

logger = logging.getLogger(__name__)

__all__ = ["parse", "from_element"]

_PARSER = etree.XMLParser(remove_blank_text=False, resolve_entities=False, huge_tree=True)


def parse(source: Union[str, bytes], part: Optional[str] = None) -> XmlNode:
    """Parse *source* into a tree.

    Raises
    ------
    XmlParseError
        If *source* is not well formed. ``part`` is recorded on the error.
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    try:
        root = etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as exc:
        logger.error("Malformed XML in %s: %s", part or "<input>", exc)
        raise XmlParseError(f"Malformed XML: {exc}", part=part, cause=exc) from exc
    return from_element(root)


def from_element(element: etree._Element) -> XmlNode:
    parent = element.getparent()
    inherited = dict(parent.nsmap) if parent is not None else {}
    return _convert(element, inherited, preserve=False)


def _prefixed(qname: str, nsmap: Dict[Optional[str], str], prefix: Optional[str] = None) -> str:
    q = etree.QName(qname)
    if q.namespace is None:
        return q.localname
    if q.namespace == XML_NS:
        return f"xml:{q.localname}"
    if prefix is None:
        for candidate, uri in nsmap.items():
            if uri == q.namespace and candidate is not None:
                prefix = candidate
                break
    return f"{prefix}:{q.localname}" if prefix else q.localname


def _convert(element: etree._Element, inherited: Dict[Optional[str], str], preserve: bool) -> XmlNode:
    nsmap = dict(element.nsmap)
    node = XmlNode(_prefixed(element.tag, nsmap, element.prefix))

    for prefix, uri in nsmap.items():
        if inherited.get(prefix) != uri:
            node.attributes["xmlns" if prefix is None else f"xmlns:{prefix}"] = uri
    for key, value in element.attrib.items():
        node.attributes[_prefixed(key, nsmap)] = value

    space = element.get(f"{{{XML_NS}}}space")
    if space is not None:
        preserve = space == "preserve"

    children = [c for c in element if isinstance(c.tag, str)]
    keep_blank = preserve or not children

    def add_text(text: Optional[str]) -> None:
        if not text:
            return
        if not keep_blank and not text.strip():
            return
        if node.children and isinstance(node.children[-1], str):
            node.children[-1] += text
        else:
            node.children.append(text)

    add_text(element.text)
    for child in element:
        if isinstance(child.tag, str):
            node.children.append(_convert(child, nsmap, preserve))
        add_text(child.tail)
    return node
