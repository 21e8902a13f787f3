from __future__ import annotations

"""Identifier and relationship bookkeeping for one document.

:class:`IdentifierRegistry` owns every per-document counter (numbering
definitions, numbering instances, comments, drawing properties, ...) plus a
mapping from external keys to already-created entries. A single registry is
created per :class:`~wordforge.core.context.DocumentContext` and handed to
each store, so ids minted anywhere in the document never collide.

:class:`RelationshipManager` keeps the relationships of one source part and
renders its ``.rels`` part.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from wordforge.core.exceptions import UnknownIdSpaceError
from wordforge.core.xml.builder import build
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import PACKAGE_RELATIONSHIPS_NS

logger = logging.getLogger(__name__)

__all__ = [
    "IdSpace",
    "IdentifierRegistry",
    "Relationship",
    "RelationshipType",
    "RelationshipManager",
]


class IdSpace(Enum):
    """Independent integer id spaces, each with its first id."""

    ABSTRACT_NUMBERING = ("abstract_numbering", 0)
    NUMBERING_INSTANCE = ("numbering_instance", 1)
    COMMENT = ("comment", 0)
    DRAWING_PROPERTY = ("drawing_property", 1)
    IMAGE = ("image", 1)
    RELATIONSHIP = ("relationship", 1)
    CONTENT_CONTROL = ("content_control", 1)
    BOOKMARK = ("bookmark", 0)

    @property
    def first_id(self) -> int:
        return self.value[1]


class IdentifierRegistry:
    """Per-document monotonic counters and the external-key entry map.

    Counters only move forward: :meth:`observe` raises a counter above an id
    seen while loading, and :meth:`allocate` hands out the next value.
    """

    def __init__(self) -> None:
        self._next: Dict[IdSpace, int] = {space: space.first_id for space in IdSpace}
        self._external: Dict[Tuple[str, Hashable], Any] = {}
        self._lock = RLock()

    # -------------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------------

    def allocate(self, space: IdSpace) -> int:
        """Return the next unused id in *space* and advance its counter."""
        with self._lock:
            self._check(space)
            value = self._next[space]
            self._next[space] = value + 1
            return value

    def observe(self, space: IdSpace, value: int) -> None:
        """Record that *value* is in use so later allocations skip past it."""
        with self._lock:
            self._check(space)
            if value >= self._next[space]:
                self._next[space] = value + 1

    def peek(self, space: IdSpace) -> int:
        """The id :meth:`allocate` would return next, without consuming it."""
        self._check(space)
        return self._next[space]

    def reset(self, space: Optional[IdSpace] = None) -> None:
        with self._lock:
            if space is None:
                self._next = {s: s.first_id for s in IdSpace}
                self._external.clear()
                return
            self._check(space)
            self._next[space] = space.first_id

    # -------------------------------------------------------------------------
    # External key mapping
    # -------------------------------------------------------------------------

    def register_by_external_key(self, key: Hashable, factory: Callable[[], Any],
                                 scope: str = "default") -> Any:
        """Return the entry recorded under *key*, creating it with *factory* once.

        A second call with the same key returns the original entry unchanged
        and does not call *factory*.
        """
        with self._lock:
            slot = (scope, key)
            if slot in self._external:
                return self._external[slot]
            entry = factory()
            self._external[slot] = entry
            return entry

    def lookup_external(self, key: Hashable, scope: str = "default") -> Optional[Any]:
        return self._external.get((scope, key))

    def forget_external(self, key: Hashable, scope: str = "default") -> bool:
        with self._lock:
            return self._external.pop((scope, key), None) is not None

    def forget_matching(self, scope: str, predicate: Callable[[Any], bool]) -> int:
        """Drop entries in *scope* for which *predicate* is true; return how many."""
        with self._lock:
            doomed = [s for s, entry in self._external.items() if s[0] == scope and predicate(entry)]
            for slot in doomed:
                del self._external[slot]
            return len(doomed)

    def clear_scope(self, scope: str) -> None:
        with self._lock:
            for slot in [s for s in self._external if s[0] == scope]:
                del self._external[slot]

    @staticmethod
    def _check(space: Any) -> None:
        if not isinstance(space, IdSpace):
            raise UnknownIdSpaceError(f"Unknown id space: {space!r}")


# -------------------------------------------------------------------------
# Relationships
# -------------------------------------------------------------------------


class RelationshipType:
    """Relationship type URIs."""

    _BASE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

    OFFICE_DOCUMENT = f"{_BASE}/officeDocument"
    CORE_PROPERTIES = "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties"
    EXTENDED_PROPERTIES = f"{_BASE}/extended-properties"
    STYLES = f"{_BASE}/styles"
    NUMBERING = f"{_BASE}/numbering"
    COMMENTS = f"{_BASE}/comments"
    COMMENTS_EXTENDED = "http://schemas.microsoft.com/office/2011/relationships/commentsExtended"
    IMAGE = f"{_BASE}/image"
    HYPERLINK = f"{_BASE}/hyperlink"
    SETTINGS = f"{_BASE}/settings"
    FONT_TABLE = f"{_BASE}/fontTable"
    WEB_SETTINGS = f"{_BASE}/webSettings"
    THEME = f"{_BASE}/theme"
    HEADER = f"{_BASE}/header"
    FOOTER = f"{_BASE}/footer"


@dataclass
class Relationship:
    rel_id: str
    rel_type: str
    target: str
    target_mode: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.target_mode == "External"

    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"Id": self.rel_id, "Type": self.rel_type, "Target": self.target}
        if self.target_mode:
            attrs["TargetMode"] = self.target_mode
        return XmlNode("Relationship", attrs)

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Relationship":
        return cls(
            rel_id=node.get("Id", ""),
            rel_type=node.get("Type", ""),
            target=node.get("Target", ""),
            target_mode=node.get("TargetMode"),
        )


_RID_PATTERN = re.compile(r"^rId(\d+)$")


class RelationshipManager:
    """Relationships owned by a single source part.

    New ids have the form ``rId<N>``. Ids read from an existing package are
    kept verbatim; numeric ones advance the counter so a fresh id never
    collides with a loaded one.
    """

    def __init__(self, source_part: str, registry: Optional[IdentifierRegistry] = None) -> None:
        self.source_part = source_part
        self._registry = registry or IdentifierRegistry()
        self._relationships: Dict[str, Relationship] = {}

    @property
    def rels_part(self) -> str:
        """Path of the ``.rels`` part that stores these relationships."""
        if "/" in self.source_part:
            folder, name = self.source_part.rsplit("/", 1)
            return f"{folder}/_rels/{name}.rels"
        if self.source_part:
            return f"_rels/{self.source_part}.rels"
        return "_rels/.rels"

    def add(self, rel_type: str, target: str, external: bool = False) -> str:
        """Record a new relationship and return its id."""
        rel_id = self._next_id()
        self._relationships[rel_id] = Relationship(
            rel_id, rel_type, target, "External" if external else None
        )
        logger.debug("%s: added %s -> %s (%s)", self.source_part or "package", rel_id, target, rel_type)
        return rel_id

    def register_existing(self, relationship: Relationship) -> Relationship:
        match = _RID_PATTERN.match(relationship.rel_id)
        if match:
            self._registry.observe(IdSpace.RELATIONSHIP, int(match.group(1)))
        self._relationships[relationship.rel_id] = relationship
        return relationship

    def register_by_external_key(self, key: Hashable, factory: Callable[[], Relationship]) -> Relationship:
        """Return the relationship recorded under *key*, creating it once via *factory*."""

        def create() -> Relationship:
            relationship = factory()
            self._relationships.setdefault(relationship.rel_id, relationship)
            return relationship

        return self._registry.register_by_external_key(key, create, scope=f"rels:{self.source_part}")

    def ensure(self, rel_type: str, target: str, external: bool = False) -> str:
        """Id of the relationship to *target* of *rel_type*, adding it when missing."""
        existing = self.find_by_target(target, rel_type)
        if existing is not None:
            return existing.rel_id
        return self.add(rel_type, target, external)

    def get(self, rel_id: str) -> Optional[Relationship]:
        return self._relationships.get(rel_id)

    def has(self, rel_id: str) -> bool:
        return rel_id in self._relationships

    def find_by_target(self, target: str, rel_type: Optional[str] = None) -> Optional[Relationship]:
        for relationship in self._relationships.values():
            if relationship.target == target and (rel_type is None or relationship.rel_type == rel_type):
                return relationship
        return None

    def find_by_type(self, rel_type: str) -> List[Relationship]:
        return [r for r in self._relationships.values() if r.rel_type == rel_type]

    def remove(self, rel_id: str) -> bool:
        if self._relationships.pop(rel_id, None) is None:
            return False
        self._registry.forget_matching(
            f"rels:{self.source_part}", lambda entry: getattr(entry, "rel_id", None) == rel_id
        )
        return True

    def all(self) -> List[Relationship]:
        return list(self._relationships.values())

    def __len__(self) -> int:
        return len(self._relationships)

    def clear(self) -> None:
        self._relationships.clear()
        self._registry.clear_scope(f"rels:{self.source_part}")

    def to_xml(self) -> XmlNode:
        root = XmlNode("Relationships", {"xmlns": PACKAGE_RELATIONSHIPS_NS})
        for relationship in self._relationships.values():
            root.append(relationship.to_xml())
        return root

    def generate_xml(self) -> str:
        return build(self.to_xml())

    def load_xml(self, node: XmlNode) -> None:
        for child in node.find_all("Relationship"):
            self.register_existing(Relationship.from_xml(child))

    def _next_id(self) -> str:
        while True:
            rel_id = f"rId{self._registry.allocate(IdSpace.RELATIONSHIP)}"
            if rel_id not in self._relationships:
                return rel_id
