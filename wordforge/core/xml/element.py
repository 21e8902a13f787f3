from __future__ import annotations

"""Plain element-tree value used for every part of a package.

An :class:`XmlNode` is a name, an insertion-ordered attribute mapping and an
ordered list of children, each either another node or a text string. Names
keep their prefix (``w:p``), and namespace declarations are ordinary
``xmlns``/``xmlns:p`` attributes. Nothing here touches lxml; conversion
happens in :mod:`wordforge.core.xml.builder` and
:mod:`wordforge.core.xml.parser`.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Union

AttrValue = Union[str, int, float, bool]
Child = Union["XmlNode", str]

__all__ = ["XmlNode", "Child", "el", "w", "format_value"]


@dataclass
class XmlNode:
    name: str
    attributes: Dict[str, AttrValue] = field(default_factory=dict)
    children: List[Child] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Name helpers
    # ------------------------------------------------------------------
    @property
    def prefix(self) -> Optional[str]:
        return self.name.split(":", 1)[0] if ":" in self.name else None

    @property
    def local_name(self) -> str:
        return self.name.split(":", 1)[1] if ":" in self.name else self.name

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------
    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return attribute *name* as text, or *default* when absent."""
        value = self.attributes.get(name)
        if value is None:
            return default
        return format_value(value)

    def set(self, name: str, value: AttrValue) -> "XmlNode":
        self.attributes[name] = value
        return self

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------
    def append(self, child: Child) -> Child:
        self.children.append(child)
        return child

    def extend(self, children) -> None:
        self.children.extend(children)

    def element_children(self) -> List["XmlNode"]:
        return [c for c in self.children if isinstance(c, XmlNode)]

    def find(self, name: str) -> Optional["XmlNode"]:
        """First direct child called *name*."""
        for child in self.children:
            if isinstance(child, XmlNode) and child.name == name:
                return child
        return None

    def find_all(self, name: str) -> List["XmlNode"]:
        return [c for c in self.children if isinstance(c, XmlNode) and c.name == name]

    def find_path(self, *names: str) -> Optional["XmlNode"]:
        """Follow a chain of direct-child names, e.g. ``find_path("w:pPr", "w:pStyle")``."""
        node: Optional[XmlNode] = self
        for name in names:
            if node is None:
                return None
            node = node.find(name)
        return node

    def iter(self, name: Optional[str] = None) -> Iterator["XmlNode"]:
        """Depth-first walk over this node and its descendants."""
        if name is None or self.name == name:
            yield self
        for child in self.children:
            if isinstance(child, XmlNode):
                yield from child.iter(name)

    def text_content(self) -> str:
        parts: List[str] = []
        for child in self.children:
            if isinstance(child, XmlNode):
                parts.append(child.text_content())
            else:
                parts.append(child)
        return "".join(parts)

    def is_empty(self) -> bool:
        return not self.children

    def copy(self) -> "XmlNode":
        return copy.deepcopy(self)


def format_value(value: AttrValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def el(name: str, attributes: Optional[Mapping[str, AttrValue]] = None,
       children: Optional[List[Child]] = None) -> XmlNode:
    """Build a node with a fully prefixed *name*."""
    return XmlNode(name, dict(attributes or {}), list(children or []))


def w(local: str, attributes: Optional[Mapping[str, AttrValue]] = None,
      children: Optional[List[Child]] = None) -> XmlNode:
    """Build a ``w:`` node; unprefixed attribute keys get the ``w:`` prefix too.

    >>> w("pStyle", {"val": "Heading1"}).attributes
    {'w:val': 'Heading1'}
    """
    attrs: Dict[str, AttrValue] = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        attrs[key if ":" in key or key == "xmlns" else f"w:{key}"] = value
    return XmlNode(f"w:{local}", attrs, list(children or []))
