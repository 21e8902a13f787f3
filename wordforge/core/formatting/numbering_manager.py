from __future__ import annotations

"""Numbering store for one document.

Owns abstract definitions and instances keyed by integer id, mints new ids
through the document's :class:`~wordforge.core.registry.IdentifierRegistry`,
and renders ``word/numbering.xml``.

Reference discipline:

* an instance may only be added when its abstract definition exists;
* removing an abstract definition removes every instance that uses it;
* :meth:`NumberingManager.cleanup_unused_numbering` sweeps instances not in
  the live set, then definitions no surviving instance references.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from wordforge.core.exceptions import NumberingValidationError, UnknownAbstractNumberingError
from wordforge.core.formatting.numbering import (
    MAX_LEVEL,
    STANDARD_HANGING_INDENT,
    AbstractNumbering,
    NumberingInstance,
    NumberingLevel,
    standard_left_indent,
)
from wordforge.core.registry import IdentifierRegistry, IdSpace
from wordforge.core.xml.builder import build
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import NAMESPACES

logger = logging.getLogger(__name__)

__all__ = ["NumberingManager", "CleanupResult"]

PART_NAME = "word/numbering.xml"


@dataclass
class CleanupResult:
    instances_removed: int = 0
    abstracts_removed: int = 0


class NumberingManager:
    """Registry of numbering definitions and instances."""

    def __init__(self, registry: Optional[IdentifierRegistry] = None) -> None:
        self._registry = registry or IdentifierRegistry()
        self._abstracts: Dict[int, AbstractNumbering] = {}
        self._instances: Dict[int, NumberingInstance] = {}
        # Root attributes and unmodelled children (w:numPicBullet, ...) of a loaded part
        self._root_attributes: Dict[str, Any] = {}
        self._preserved: List[XmlNode] = []

    # -------------------------------------------------------------------------
    # Abstract definitions
    # -------------------------------------------------------------------------

    def add_abstract_numbering(self, definition: AbstractNumbering) -> AbstractNumbering:
        """Insert or replace *definition* under its own id."""
        self._registry.observe(IdSpace.ABSTRACT_NUMBERING, definition.abstract_num_id)
        if definition.abstract_num_id in self._abstracts:
            logger.debug("Replacing abstract numbering %d", definition.abstract_num_id)
        self._abstracts[definition.abstract_num_id] = definition
        return definition

    def get_abstract_numbering(self, abstract_num_id: int) -> Optional[AbstractNumbering]:
        return self._abstracts.get(abstract_num_id)

    def has_abstract_numbering(self, abstract_num_id: int) -> bool:
        return abstract_num_id in self._abstracts

    def get_all_abstract_numberings(self) -> List[AbstractNumbering]:
        return [self._abstracts[k] for k in sorted(self._abstracts)]

    def remove_abstract_numbering(self, abstract_num_id: int) -> bool:
        """Remove a definition and every instance that references it."""
        if self._abstracts.pop(abstract_num_id, None) is None:
            return False
        dependants = [n for n, inst in self._instances.items() if inst.abstract_num_id == abstract_num_id]
        for num_id in dependants:
            del self._instances[num_id]
        logger.debug("Removed abstract numbering %d and %d instance(s)", abstract_num_id, len(dependants))
        return True

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    def add_numbering_instance(self, instance: NumberingInstance) -> NumberingInstance:
        if instance.abstract_num_id not in self._abstracts:
            raise UnknownAbstractNumberingError(
                f"Abstract numbering {instance.abstract_num_id} does not exist",
                reference=instance.abstract_num_id,
                part=PART_NAME,
            )
        self._registry.observe(IdSpace.NUMBERING_INSTANCE, instance.num_id)
        self._instances[instance.num_id] = instance
        return instance

    def get_numbering_instance(self, num_id: int) -> Optional[NumberingInstance]:
        return self._instances.get(num_id)

    def has_numbering_instance(self, num_id: int) -> bool:
        return num_id in self._instances

    def get_all_numbering_instances(self) -> List[NumberingInstance]:
        return [self._instances[k] for k in sorted(self._instances)]

    def remove_numbering_instance(self, num_id: int) -> bool:
        return self._instances.pop(num_id, None) is not None

    def get_level(self, num_id: int, level: int) -> Optional[NumberingLevel]:
        """Level definition that applies to paragraphs using instance *num_id*."""
        instance = self._instances.get(num_id)
        if instance is None:
            return None
        definition = self._abstracts.get(instance.abstract_num_id)
        return definition.get_level(level) if definition else None

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def create_instance(self, abstract_num_id: int, start_overrides: Optional[Dict[int, int]] = None) -> int:
        """Create a new instance of an existing definition and return its ``numId``."""
        if abstract_num_id not in self._abstracts:
            raise UnknownAbstractNumberingError(
                f"Abstract numbering {abstract_num_id} does not exist",
                reference=abstract_num_id,
                part=PART_NAME,
            )
        instance = NumberingInstance(self._registry.allocate(IdSpace.NUMBERING_INSTANCE), abstract_num_id)
        for level, start in (start_overrides or {}).items():
            instance.set_start_override(level, start)
        self.add_numbering_instance(instance)
        return instance.num_id

    def create_bullet_list(self, levels: int = 9, bullets: Optional[Sequence[str]] = None) -> int:
        """Register a bullet definition plus an instance of it; return the ``numId``."""
        definition = AbstractNumbering.bullet_list(self._next_abstract_id(), levels, bullets)
        return self._register_with_instance(definition)

    def create_numbered_list(self, levels: int = 9, formats: Optional[Sequence[Any]] = None) -> int:
        definition = AbstractNumbering.numbered_list(self._next_abstract_id(), levels, formats)
        return self._register_with_instance(definition)

    def create_outline_list(self, levels: int = 9) -> int:
        definition = AbstractNumbering.outline_list(self._next_abstract_id(), levels)
        return self._register_with_instance(definition)

    def create_multi_level_list(self, levels: int = 9) -> int:
        definition = AbstractNumbering.multi_level_list(self._next_abstract_id(), levels)
        return self._register_with_instance(definition)

    def create_custom_list(self, levels: Iterable[NumberingLevel], name: Optional[str] = None,
                           multi_level_type: str = "hybridMultilevel") -> int:
        definition = AbstractNumbering(self._next_abstract_id(), name=name, multi_level_type=multi_level_type)
        for level in levels:
            definition.add_level(level)
        if not definition.levels:
            raise NumberingValidationError("A custom list needs at least one level")
        return self._register_with_instance(definition)

    def _next_abstract_id(self) -> int:
        return self._registry.allocate(IdSpace.ABSTRACT_NUMBERING)

    def _register_with_instance(self, definition: AbstractNumbering) -> int:
        self.add_abstract_numbering(definition)
        return self.create_instance(definition.abstract_num_id)

    # -------------------------------------------------------------------------
    # Indentation
    # -------------------------------------------------------------------------

    @staticmethod
    def get_standard_indentation(level: int) -> Dict[str, int]:
        """Standard ``left``/``hanging`` indents in twips for *level*."""
        if not 0 <= level <= MAX_LEVEL:
            raise NumberingValidationError(f"Level must be between 0 and {MAX_LEVEL}, got {level}")
        return {"left": standard_left_indent(level), "hanging": STANDARD_HANGING_INDENT}

    def set_list_indentation(self, num_id: int, level: int, left: int,
                             hanging: int = STANDARD_HANGING_INDENT) -> bool:
        """Set indentation of *level* for the definition behind *num_id*.

        Negative values are clamped to 0. Returns False (with a warning) when
        the instance, its definition or the level does not exist.
        """
        if not 0 <= level <= MAX_LEVEL:
            raise NumberingValidationError(f"Level must be between 0 and {MAX_LEVEL}, got {level}")
        lvl = self.get_level(num_id, level)
        if lvl is None:
            logger.warning("Cannot set indentation: numbering %s level %s not found", num_id, level)
            return False
        lvl.set_indentation(max(left, 0), max(hanging, 0))
        return True

    def normalize_list_indentation(self, num_id: int) -> bool:
        """Restore standard indentation on every level of the definition behind *num_id*."""
        instance = self._instances.get(num_id)
        definition = self._abstracts.get(instance.abstract_num_id) if instance else None
        if definition is None:
            logger.warning("Cannot normalize indentation: numbering %s not found", num_id)
            return False
        for lvl in definition.levels.values():
            lvl.reset_indentation()
        return True

    def normalize_all_list_indentation(self) -> int:
        """Normalize every definition; return how many were touched."""
        count = 0
        for definition in self._abstracts.values():
            for lvl in definition.levels.values():
                lvl.reset_indentation()
            count += 1
        return count

    # -------------------------------------------------------------------------
    # Cleanup and bookkeeping
    # -------------------------------------------------------------------------

    def cleanup_unused_numbering(self, used_num_ids: Iterable[int]) -> CleanupResult:
        """Mark-and-sweep over the live instance ids.

        Removes exactly the instances whose id is not in *used_num_ids*, then
        exactly the definitions no surviving instance references.
        """
        live = set(used_num_ids)
        result = CleanupResult()
        for num_id in [n for n in self._instances if n not in live]:
            del self._instances[num_id]
            result.instances_removed += 1
        referenced = {inst.abstract_num_id for inst in self._instances.values()}
        for abstract_id in [a for a in self._abstracts if a not in referenced]:
            del self._abstracts[abstract_id]
            result.abstracts_removed += 1
        if result.instances_removed or result.abstracts_removed:
            logger.info("Numbering cleanup removed %d instance(s) and %d definition(s)",
                        result.instances_removed, result.abstracts_removed)
        return result

    def get_abstract_count(self) -> int:
        return len(self._abstracts)

    def get_instance_count(self) -> int:
        return len(self._instances)

    def is_empty(self) -> bool:
        return not self._abstracts and not self._instances

    def clear(self) -> None:
        self._abstracts.clear()
        self._instances.clear()
        self._preserved.clear()
        self._root_attributes.clear()

    # -------------------------------------------------------------------------
    # XML
    # -------------------------------------------------------------------------

    def to_xml(self) -> XmlNode:
        """``w:numbering`` with definitions then instances, each ascending by id."""
        attrs: Dict[str, Any] = {"xmlns:w": NAMESPACES["w"], "xmlns:r": NAMESPACES["r"]}
        for key, value in self._root_attributes.items():
            attrs.setdefault(key, value)
        root = XmlNode("w:numbering", attrs)
        # w:numPicBullet precedes w:abstractNum in the schema
        root.extend(n.copy() for n in self._preserved if n.name == "w:numPicBullet")
        root.extend(a.to_xml() for a in self.get_all_abstract_numberings())
        for instance in self.get_all_numbering_instances():
            if instance.abstract_num_id not in self._abstracts:
                logger.warning("Skipping numbering instance %d: abstract numbering %d is missing",
                               instance.num_id, instance.abstract_num_id)
                continue
            root.append(instance.to_xml())
        root.extend(n.copy() for n in self._preserved if n.name != "w:numPicBullet")
        return root

    def generate_numbering_xml(self) -> str:
        return build(self.to_xml())

    def load_xml(self, root: XmlNode) -> None:
        """Rebuild the store from a parsed ``w:numbering`` tree.

        Ids are re-registered with the registry so ids minted afterwards do
        not collide. Instances whose definition is missing are dropped with a
        warning.
        """
        self._root_attributes = dict(root.attributes)
        pending: List[NumberingInstance] = []
        for child in root.element_children():
            if child.name == "w:abstractNum":
                self.add_abstract_numbering(AbstractNumbering.from_xml(child))
            elif child.name == "w:num":
                pending.append(NumberingInstance.from_xml(child))
            else:
                self._preserved.append(child)
        for instance in pending:
            try:
                self.add_numbering_instance(instance)
            except UnknownAbstractNumberingError:
                logger.warning("Dropping numbering instance %d: abstract numbering %d is missing",
                               instance.num_id, instance.abstract_num_id)
        logger.debug("Loaded %d abstract numbering(s) and %d instance(s)",
                     len(self._abstracts), len(self._instances))
