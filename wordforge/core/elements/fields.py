from __future__ import annotations

"""Complex fields and the table-of-contents field.

A complex field spans five consecutive runs: ``begin``, the instruction,
``separate``, the cached result and ``end``. Word rejects a document where
any of the markers is missing, so encoding always validates the full
sequence first.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from wordforge.core.exceptions import FieldValidationError, IncompleteFieldError
from wordforge.core.models.content import Paragraph, Run, text_node
from wordforge.core.models.formatting import RunFormatting
from wordforge.core.xml.element import XmlNode, w

logger = logging.getLogger(__name__)

__all__ = [
    "FieldStage",
    "FIELD_STAGE_ORDER",
    "validate_stage_sequence",
    "ComplexField",
    "decode_complex_field",
    "TableOfContents",
]

PLACEHOLDER_TEXT = "Right-click to update field."


class FieldStage(str, Enum):
    BEGIN = "begin"
    INSTRUCTION = "instruction"
    SEPARATE = "separate"
    RESULT = "result"
    END = "end"


FIELD_STAGE_ORDER: Tuple[FieldStage, ...] = (
    FieldStage.BEGIN,
    FieldStage.INSTRUCTION,
    FieldStage.SEPARATE,
    FieldStage.RESULT,
    FieldStage.END,
)


def validate_stage_sequence(stages: Iterable[FieldStage]) -> None:
    """Raise :class:`IncompleteFieldError` unless *stages* is the full five-stage sequence."""
    actual = tuple(FieldStage(s) for s in stages)
    if actual != FIELD_STAGE_ORDER:
        missing = [s.value for s in FIELD_STAGE_ORDER if s not in actual]
        detail = f"missing {', '.join(missing)}" if missing else "stages out of order"
        raise IncompleteFieldError(
            f"Complex field must be begin, instruction, separate, result, end; got "
            f"{[s.value for s in actual]} ({detail})"
        )


def _marker(kind: str, dirty: bool = False) -> Run:
    attrs = {"fldCharType": kind}
    if dirty:
        attrs["dirty"] = True
    return Run(content=[w("fldChar", attrs)])


@dataclass
class ComplexField:
    """A ``w:fldChar`` delimited field.

    ``result_runs`` is the cached result shown until the field is updated.
    When empty, a placeholder run is written.
    """

    instruction: str
    result_runs: List[Run] = field(default_factory=list)
    dirty: bool = False

    def stage_runs(self) -> List[Tuple[FieldStage, Run]]:
        result = self.result_runs or [
            Run.from_text(PLACEHOLDER_TEXT, RunFormatting(no_proof=True))
        ]
        instruction_run = Run(content=[text_node(f" {self.instruction.strip()} ", "w:instrText")])
        pairs: List[Tuple[FieldStage, Run]] = [
            (FieldStage.BEGIN, _marker("begin", self.dirty)),
            (FieldStage.INSTRUCTION, instruction_run),
            (FieldStage.SEPARATE, _marker("separate")),
        ]
        pairs.extend((FieldStage.RESULT, run) for run in result)
        pairs.append((FieldStage.END, _marker("end")))
        return pairs

    def to_xml(self) -> List[XmlNode]:
        """Return the field's runs.

        Raises
        ------
        IncompleteFieldError
            If the instruction is empty.
        """
        if not self.instruction or not self.instruction.strip():
            raise IncompleteFieldError("Complex field has an empty instruction")
        pairs = self.stage_runs()
        # several cached result runs collapse to one result stage
        stages: List[FieldStage] = []
        for stage, _ in pairs:
            if not stages or stages[-1] != stage:
                stages.append(stage)
        validate_stage_sequence(stages)
        return [run.to_xml() for _, run in pairs]


def _field_char(run: Run) -> Optional[XmlNode]:
    for node in run.content:
        if node.name == "w:fldChar":
            return node
    return None


def decode_complex_field(runs: Sequence[Union[Run, XmlNode]]) -> ComplexField:
    """Decode a complex field from its runs.

    The cached result may hold anything, nested fields included; only the
    outer field's four markers are required.

    Raises
    ------
    IncompleteFieldError
        If a marker or the instruction text is missing.
    """
    decoded = [r if isinstance(r, Run) else Run.from_xml(r) for r in runs]
    begin = _field_char(decoded[0]) if decoded else None
    if begin is None or begin.get("w:fldCharType") != "begin":
        raise IncompleteFieldError("Complex field does not start with a begin marker")

    dirty = begin.get("w:dirty") in ("true", "1", "on")
    instruction_parts: List[str] = []
    result: List[Run] = []
    stage = FieldStage.INSTRUCTION
    depth = 0
    index = 1
    while index < len(decoded):
        run = decoded[index]
        index += 1
        marker = _field_char(run)
        kind = marker.get("w:fldCharType") if marker is not None else None

        if stage == FieldStage.INSTRUCTION:
            if kind == "separate":
                stage = FieldStage.RESULT
            elif kind is None:
                instruction_parts.extend(
                    node.text_content() for node in run.content if node.name == "w:instrText"
                )
            else:
                raise IncompleteFieldError(f"Unexpected '{kind}' marker inside a field instruction")
            continue

        if kind == "begin":
            depth += 1
        elif kind == "end":
            if depth == 0:
                stage = FieldStage.END
                break
            depth -= 1
        result.append(run)

    if stage == FieldStage.INSTRUCTION:
        raise IncompleteFieldError("Complex field has no separate marker")
    if stage != FieldStage.END:
        raise IncompleteFieldError("Complex field has no end marker")
    instruction = "".join(instruction_parts).strip()
    if not instruction:
        raise IncompleteFieldError("Complex field has no instruction text")
    if index < len(decoded):
        logger.debug("Ignoring %d run(s) after the field end marker", len(decoded) - index)
    return ComplexField(instruction, result, dirty)


# ---------------------------------------------------------------------------
# Table of contents
# ---------------------------------------------------------------------------

TAB_LEADERS = {"dot": None, "hyphen": "-", "underscore": "_", "none": " "}
_LEADER_BY_CHAR = {v: k for k, v in TAB_LEADERS.items() if v is not None}
_ARGUMENT_SWITCHES = frozenset("abcdfglnopst")
_TOKEN_RE = re.compile(r'"[^"]*"|\S+')


@dataclass
class TableOfContents:
    """A ``TOC`` field with an optional heading paragraph."""

    title: str = "Table of Contents"
    levels: int = 3
    include_styles: List[str] = field(default_factory=list)
    show_page_numbers: bool = True
    use_hyperlinks: bool = False
    tab_leader: str = "dot"
    field_switches: str = ""

    def __post_init__(self) -> None:
        self.set_levels(self.levels)
        self.set_tab_leader(self.tab_leader)

    def set_levels(self, levels: int) -> "TableOfContents":
        if not 1 <= levels <= 9:
            raise FieldValidationError("TOC levels must be between 1 and 9")
        self.levels = levels
        return self

    def set_tab_leader(self, leader: str) -> "TableOfContents":
        if leader not in TAB_LEADERS:
            raise FieldValidationError(
                f"Unknown tab leader '{leader}'; expected one of {sorted(TAB_LEADERS)}"
            )
        self.tab_leader = leader
        return self

    def set_include_styles(self, styles: Iterable[str]) -> "TableOfContents":
        """Restrict entries to *styles*; replaces the heading-level switch."""
        self.include_styles = list(styles)
        return self

    # Presets ----------------------------------------------------------------

    @classmethod
    def standard(cls, title: Optional[str] = None) -> "TableOfContents":
        return cls(title=title or "Table of Contents", levels=3)

    @classmethod
    def simple(cls, title: Optional[str] = None) -> "TableOfContents":
        return cls(title=title or "Contents", levels=2)

    @classmethod
    def detailed(cls, title: Optional[str] = None) -> "TableOfContents":
        return cls(title=title or "Table of Contents", levels=4)

    @classmethod
    def hyperlinked(cls, title: Optional[str] = None) -> "TableOfContents":
        return cls(title=title or "Contents", levels=3, show_page_numbers=False, use_hyperlinks=True)

    # Field ------------------------------------------------------------------

    def build_field_instruction(self) -> str:
        parts = ["TOC"]
        if self.include_styles:
            pairs = ",".join(f"{style},1" for style in self.include_styles)
            parts.append(f'\\t "{pairs}"')
        else:
            parts.append(f'\\o "1-{self.levels}"')
        if self.use_hyperlinks:
            parts.append("\\h")
        if not self.show_page_numbers:
            parts.append("\\n")
        leader = TAB_LEADERS[self.tab_leader]
        if leader is not None:
            parts.append(f'\\p "{leader}"')
        if self.field_switches:
            parts.append(self.field_switches.strip())
        parts.append("\\* MERGEFORMAT")
        return " ".join(parts)

    def to_field(self) -> ComplexField:
        return ComplexField(self.build_field_instruction(), dirty=True)

    def to_paragraphs(self) -> List[Paragraph]:
        paragraphs = []
        if self.title:
            paragraphs.append(Paragraph.from_text(self.title, style_id="TOCHeading"))
        paragraphs.append(Paragraph(content=[self.to_field()]))
        return paragraphs

    def to_xml(self) -> List[XmlNode]:
        """The title paragraph (``TOCHeading`` style) followed by the field paragraph."""
        return [p.to_xml() for p in self.to_paragraphs()]

    @classmethod
    def from_instruction(cls, instruction: str, title: str = "") -> "TableOfContents":
        """Parse a ``TOC`` field instruction; unknown switches are kept verbatim."""
        tokens = _TOKEN_RE.findall(instruction)
        if not tokens or tokens[0].upper() != "TOC":
            raise FieldValidationError(f"Not a TOC instruction: '{instruction}'")
        toc = cls(title=title)
        custom: List[str] = []
        index = 1
        while index < len(tokens):
            token = tokens[index]
            index += 1
            if not token.startswith("\\"):
                custom.append(token)
                continue
            switch = token[1:]
            argument = None
            takes_argument = switch == "*" or switch.lower() in _ARGUMENT_SWITCHES
            if takes_argument and index < len(tokens) and not tokens[index].startswith("\\"):
                argument = tokens[index]
                index += 1
            value = argument.strip('"') if argument is not None else None

            if switch == "o" and value:
                match = re.match(r"\s*\d+\s*-\s*(\d+)", value)
                if match:
                    toc.set_levels(min(max(int(match.group(1)), 1), 9))
            elif switch == "t" and value:
                names = [part.strip() for part in value.split(",")]
                toc.include_styles = [n for n in names[0::2] if n]
            elif switch == "h":
                toc.use_hyperlinks = True
            elif switch == "n":
                toc.show_page_numbers = False
            elif switch == "p" and value is not None and value in _LEADER_BY_CHAR:
                toc.tab_leader = _LEADER_BY_CHAR[value]
            elif switch == "*" and value and value.upper() == "MERGEFORMAT":
                continue
            else:
                custom.append(token if argument is None else f"{token} {argument}")
        toc.field_switches = " ".join(custom)
        return toc
