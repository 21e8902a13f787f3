from __future__ import annotations

"""Package core properties (``docProps/core.xml``)."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import NAMESPACES

logger = logging.getLogger(__name__)

__all__ = ["CoreProperties"]

PART_NAME = "docProps/core.xml"

# attribute -> element name, in write order
_TEXT_FIELDS = (
    ("title", "dc:title"),
    ("subject", "dc:subject"),
    ("creator", "dc:creator"),
    ("keywords", "cp:keywords"),
    ("description", "dc:description"),
    ("last_modified_by", "cp:lastModifiedBy"),
    ("revision", "cp:revision"),
)
_DATE_FIELDS = (("created", "dcterms:created"), ("modified", "dcterms:modified"))


def _w3cdtf(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class CoreProperties:
    title: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = "wordforge"
    keywords: Optional[str] = None
    description: Optional[str] = None
    last_modified_by: Optional[str] = None
    revision: Optional[str] = "1"
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    extra: List[XmlNode] = field(default_factory=list)

    def touch(self) -> None:
        """Stamp ``modified`` (and ``created`` when unset) with the current time."""
        now = datetime.now(timezone.utc).replace(microsecond=0)
        if self.created is None:
            self.created = now
        self.modified = now

    def to_xml(self) -> XmlNode:
        root = XmlNode("cp:coreProperties", {
            "xmlns:cp": NAMESPACES["cp"],
            "xmlns:dc": NAMESPACES["dc"],
            "xmlns:dcterms": NAMESPACES["dcterms"],
            "xmlns:dcmitype": NAMESPACES["dcmitype"],
            "xmlns:xsi": NAMESPACES["xsi"],
        })
        for attr, name in _TEXT_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                root.append(XmlNode(name, {}, [str(value)] if value != "" else []))
        for attr, name in _DATE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                root.append(XmlNode(name, {"xsi:type": "dcterms:W3CDTF"}, [_w3cdtf(value)]))
        root.extend(n.copy() for n in self.extra)
        return root

    @classmethod
    def from_xml(cls, root: XmlNode) -> "CoreProperties":
        by_name: Dict[str, str] = {name: attr for attr, name in _TEXT_FIELDS}
        dates: Dict[str, str] = {name: attr for attr, name in _DATE_FIELDS}
        values: Dict[str, Any] = {"creator": None, "revision": None}
        extra: List[XmlNode] = []
        for child in root.element_children():
            if child.name in by_name:
                values[by_name[child.name]] = child.text_content()
            elif child.name in dates:
                try:
                    values[dates[child.name]] = datetime.fromisoformat(child.text_content().replace("Z", "+00:00"))
                except ValueError:
                    logger.warning("Unparseable %s '%s'", child.name, child.text_content())
                    extra.append(child)
            else:
                extra.append(child)
        return cls(extra=extra, **values)
