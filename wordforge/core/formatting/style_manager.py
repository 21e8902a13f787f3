from __future__ import annotations

"""Style store for one document; renders ``word/styles.xml``."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from wordforge.core.exceptions import StyleReferenceError, StyleValidationError
from wordforge.core.formatting.styles import Style
from wordforge.core.registry import IdentifierRegistry
from wordforge.core.xml.builder import build
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import NAMESPACES

logger = logging.getLogger(__name__)

__all__ = ["StyleManager"]


class StyleManager:
    """String-keyed store of :class:`Style` definitions.

    ``w:docDefaults`` and ``w:latentStyles`` from a loaded part are kept as
    raw nodes and written back first, as the schema requires.
    """

    def __init__(self, registry: Optional[IdentifierRegistry] = None) -> None:
        self._registry = registry or IdentifierRegistry()
        self._styles: Dict[str, Style] = {}
        self.document_defaults: Optional[XmlNode] = None
        self.latent_styles: Optional[XmlNode] = None
        self._root_attributes: Dict[str, Any] = {}

    @classmethod
    def create_default(cls, registry: Optional[IdentifierRegistry] = None) -> "StyleManager":
        manager = cls(registry)
        manager.add_default_styles()
        return manager

    def add_default_styles(self) -> None:
        """Add ``Normal``, ``Heading1``, ``ListParagraph`` and ``TOCHeading`` if absent."""
        for style in (Style.normal(), Style.heading(1), Style.list_paragraph(), Style.toc_heading()):
            if style.style_id not in self._styles:
                self._styles[style.style_id] = style

    # -------------------------------------------------------------------------
    # Store operations
    # -------------------------------------------------------------------------

    def add_style(self, style: Style) -> Style:
        """Insert or replace *style* under its id.

        Raises
        ------
        StyleValidationError
            If the style is based on or linked to itself.
        """
        if style.based_on == style.style_id or style.link == style.style_id:
            raise StyleValidationError(f"Style '{style.style_id}' references itself")
        if style.style_id in self._styles:
            logger.debug("Replacing style '%s'", style.style_id)
        self._styles[style.style_id] = style
        return style

    def get_style(self, style_id: str) -> Optional[Style]:
        return self._styles.get(style_id)

    def has_style(self, style_id: str) -> bool:
        return style_id in self._styles

    def get_all_styles(self) -> List[Style]:
        return list(self._styles.values())

    def remove_style(self, style_id: str) -> bool:
        return self._styles.pop(style_id, None) is not None

    def get_count(self) -> int:
        return len(self._styles)

    def clear(self) -> None:
        self._styles.clear()
        self.document_defaults = None
        self.latent_styles = None
        self._root_attributes.clear()

    def get_default_style(self, style_type: str = "paragraph") -> Optional[Style]:
        for style in self._styles.values():
            if style.is_default and style.type.value == style_type:
                return style
        return None

    # -------------------------------------------------------------------------
    # Reference graph
    # -------------------------------------------------------------------------

    def find_cycles(self) -> List[List[str]]:
        """Return inheritance cycles.

        Any ``based_on`` cycle is reported. ``link`` pairs a paragraph style
        with a character style in both directions, so only ``link`` loops of
        three or more styles are reported.
        """
        cycles: List[List[str]] = []
        seen: Set[frozenset] = set()
        for attr, min_length in (("based_on", 2), ("link", 3)):
            for start in self._styles:
                path = [start]
                current = getattr(self._styles[start], attr)
                while current is not None and current in self._styles:
                    if current == start:
                        key = frozenset(path)
                        if len(path) >= min_length and (attr, key) not in seen:
                            seen.add((attr, key))
                            cycles.append(path + [start])
                        break
                    if current in path:
                        break
                    path.append(current)
                    current = getattr(self._styles[current], attr)
        return cycles

    def find_dangling_references(self) -> List[str]:
        problems = []
        for style in self._styles.values():
            for ref in style.references():
                if ref not in self._styles:
                    problems.append(f"Style '{style.style_id}' references missing style '{ref}'")
        return problems

    def validate(self) -> List[str]:
        """Per-style problems, dangling references and inheritance cycles."""
        problems: List[str] = []
        for style in self._styles.values():
            problems.extend(f"{style.style_id}: {p}" for p in style.validate())
        problems.extend(self.find_dangling_references())
        problems.extend("Inheritance cycle: " + " -> ".join(c) for c in self.find_cycles())
        return problems

    def cleanup_unused(self, used_style_ids: Iterable[str]) -> int:
        """Remove styles not reachable from *used_style_ids* or a default style.

        Reachability follows ``based_on``, ``next`` and ``link``. Returns the
        number of styles removed.
        """
        keep: Set[str] = {sid for sid in used_style_ids if sid in self._styles}
        keep.update(sid for sid, style in self._styles.items() if style.is_default)
        stack = list(keep)
        while stack:
            style = self._styles.get(stack.pop())
            if style is None:
                continue
            for ref in style.references():
                if ref in self._styles and ref not in keep:
                    keep.add(ref)
                    stack.append(ref)
        doomed = [sid for sid in self._styles if sid not in keep]
        for sid in doomed:
            del self._styles[sid]
        if doomed:
            logger.info("Style cleanup removed %d unused style(s)", len(doomed))
        return len(doomed)

    # -------------------------------------------------------------------------
    # XML
    # -------------------------------------------------------------------------

    def to_xml(self) -> XmlNode:
        """Build ``w:styles``.

        Raises
        ------
        StyleReferenceError
            If ``based_on`` or ``link`` references form a cycle.
        """
        cycles = self.find_cycles()
        if cycles:
            description = "; ".join(" -> ".join(c) for c in cycles)
            logger.error("Refusing to write styles with inheritance cycles: %s", description)
            raise StyleReferenceError(f"Style inheritance cycle: {description}", cycles[0])
        for problem in self.find_dangling_references():
            logger.warning(problem)

        attrs: Dict[str, Any] = {"xmlns:w": NAMESPACES["w"], "xmlns:r": NAMESPACES["r"]}
        for key, value in self._root_attributes.items():
            attrs.setdefault(key, value)
        root = XmlNode("w:styles", attrs)
        if self.document_defaults is not None:
            root.append(self.document_defaults.copy())
        if self.latent_styles is not None:
            root.append(self.latent_styles.copy())
        root.extend(style.to_xml() for style in self._styles.values())
        return root

    def generate_styles_xml(self) -> str:
        return build(self.to_xml())

    def load_xml(self, root: XmlNode) -> None:
        self._root_attributes = dict(root.attributes)
        for child in root.element_children():
            if child.name == "w:docDefaults":
                self.document_defaults = child
            elif child.name == "w:latentStyles":
                self.latent_styles = child
            elif child.name == "w:style":
                style = Style.from_xml(child)
                self._styles[style.style_id] = style
        logger.debug("Loaded %d style(s)", len(self._styles))
