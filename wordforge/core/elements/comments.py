from __future__ import annotations

"""Threaded comments.

Comments live in ``word/comments.xml``. Reply threading is not expressible
there, so it is written to ``word/commentsExtended.xml``: every comment's
last paragraph carries a ``w14:paraId`` and each reply's ``w15:commentEx``
names its parent's paragraph in ``w15:paraIdParent``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from wordforge.core.exceptions import UnknownCommentError
from wordforge.core.models.content import Paragraph, Run, decode_block, encode_blocks
from wordforge.core.registry import IdentifierRegistry, IdSpace
from wordforge.core.xml.builder import build
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import NAMESPACES

logger = logging.getLogger(__name__)

__all__ = ["Comment", "CommentThread", "CommentManager"]

PART_NAME = "word/comments.xml"
EXTENDED_PART_NAME = "word/commentsExtended.xml"
_PARA_ID = "w14:paraId"

CommentContent = Union[str, Run, Sequence[Run]]


def _initials(author: str) -> str:
    return "".join(word[0] for word in author.split() if word).upper()


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_date(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_date(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable comment date '%s'", text)
        return None
    return _as_utc(parsed)


@dataclass
class Comment:
    """One comment or reply. ``id`` is assigned by :class:`CommentManager`."""

    author: str
    content: List[Any] = field(default_factory=list)
    initials: Optional[str] = None
    date: Optional[datetime] = None
    parent_id: Optional[int] = None
    id: int = -1
    done: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)
    # minted by the manager when no paragraph carries a w14:paraId
    assigned_para_id: Optional[str] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.initials is None:
            self.initials = _initials(self.author)
        self.date = datetime.now(timezone.utc) if self.date is None else _as_utc(self.date)

    @classmethod
    def create(cls, author: str, content: CommentContent, initials: Optional[str] = None,
               parent_id: Optional[int] = None, date: Optional[datetime] = None) -> "Comment":
        paragraph = Paragraph()
        if isinstance(content, str):
            paragraph.add_run(content)
        elif isinstance(content, Run):
            paragraph.content.append(content)
        else:
            paragraph.content.extend(content)
        return cls(author, [paragraph], initials, date, parent_id)

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def paragraphs(self) -> List[Paragraph]:
        return [block for block in self.content if isinstance(block, Paragraph)]

    @property
    def runs(self) -> List[Run]:
        return [run for p in self.paragraphs for run in p.runs]

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.paragraphs)

    @property
    def para_id(self) -> str:
        """``w14:paraId`` of the last paragraph; threading refers to it."""
        paragraphs = self.paragraphs
        if paragraphs and _PARA_ID in paragraphs[-1].attributes:
            return str(paragraphs[-1].attributes[_PARA_ID])
        if self.assigned_para_id is not None:
            return self.assigned_para_id
        return f"{self.id + 1:08X}"

    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"w:id": self.id, "w:author": self.author}
        if self.date is not None:
            attrs["w:date"] = _format_date(self.date)
        if self.initials:
            attrs["w:initials"] = self.initials
        for key, value in self.attributes.items():
            attrs.setdefault(key, value)
        blocks = encode_blocks(self.content)
        paragraphs = [b for b in blocks if b.name == "w:p"]
        if not paragraphs:
            blocks.append(XmlNode("w:p"))
            paragraphs = blocks[-1:]
        paragraphs[-1].attributes.setdefault(_PARA_ID, self.para_id)
        return XmlNode("w:comment", attrs, blocks)

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Comment":
        attributes = {k: v for k, v in node.attributes.items()
                      if k not in ("w:id", "w:author", "w:date", "w:initials")}
        comment = cls(
            author=node.get("w:author", ""),
            content=[decode_block(child) for child in node.element_children()],
            initials=node.get("w:initials", ""),
            date=_parse_date(node.get("w:date")),
            id=int(node.get("w:id", "-1")),
            attributes=attributes,
        )
        if node.get("w:date") is None:
            comment.date = None
        return comment


@dataclass
class CommentThread:
    comment: Comment
    replies: List[Comment]


class CommentManager:
    """Id-keyed comment store with parent/child threading."""

    def __init__(self, registry: Optional[IdentifierRegistry] = None) -> None:
        self._registry = registry or IdentifierRegistry()
        self._comments: Dict[int, Comment] = {}
        self._replies: Dict[int, List[int]] = {}
        self._para_ids: Set[str] = set()
        self._reserved_para_ids: Set[str] = set()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, comment: Comment, keep_id: bool = False) -> Comment:
        """Assign the next id and store *comment*.

        A reply whose parent is unknown is stored without threading. With
        ``keep_id`` the comment's existing id is kept (used when loading).
        """
        if keep_id and comment.id >= 0:
            self._registry.observe(IdSpace.COMMENT, comment.id)
        else:
            comment.id = self._registry.allocate(IdSpace.COMMENT)
        self._claim_para_id(comment)
        self._comments[comment.id] = comment
        self._replies.setdefault(comment.id, [])
        if comment.parent_id is not None:
            siblings = self._replies.get(comment.parent_id)
            if siblings is not None and comment.parent_id in self._comments:
                siblings.append(comment.id)
            else:
                logger.debug("Comment %d names unknown parent %s", comment.id, comment.parent_id)
        return comment

    def _claim_para_id(self, comment: Comment) -> None:
        """Keep paraIds unique across the stored comments.

        A comment without one, or repeating one already taken, gets the first
        free value counting up from ``id + 1``.
        """
        paragraphs = comment.paragraphs
        explicit = paragraphs[-1].attributes.get(_PARA_ID) if paragraphs else None
        if explicit is not None and str(explicit) not in self._para_ids:
            self._para_ids.add(str(explicit))
            return
        taken = self._para_ids | self._reserved_para_ids
        candidate = comment.id + 1
        while f"{candidate:08X}" in taken:
            candidate += 1
        para_id = f"{candidate:08X}"
        if explicit is not None:
            logger.warning("Comment %d repeats paraId %s; using %s", comment.id, explicit, para_id)
            paragraphs[-1].attributes[_PARA_ID] = para_id
        else:
            comment.assigned_para_id = para_id
        self._para_ids.add(para_id)

    def create_comment(self, author: str, content: CommentContent, initials: Optional[str] = None,
                       date: Optional[datetime] = None) -> Comment:
        return self.register(Comment.create(author, content, initials, date=date))

    def create_reply(self, parent_id: int, author: str, content: CommentContent,
                     initials: Optional[str] = None, date: Optional[datetime] = None) -> Comment:
        """Create a reply to *parent_id*.

        Raises
        ------
        UnknownCommentError
            If no comment with *parent_id* exists.
        """
        if parent_id not in self._comments:
            raise UnknownCommentError(
                f"Cannot create reply: parent comment with id {parent_id} does not exist",
                reference=parent_id,
                part=PART_NAME,
            )
        return self.register(Comment.create(author, content, initials, parent_id, date))

    def remove_comment(self, comment_id: int) -> bool:
        """Remove a comment together with all of its replies, recursively."""
        if comment_id not in self._comments:
            return False
        for reply_id in list(self._replies.get(comment_id, [])):
            self.remove_comment(reply_id)
        comment = self._comments.pop(comment_id)
        self._para_ids.discard(comment.para_id)
        self._replies.pop(comment_id, None)
        if comment.parent_id is not None and comment.parent_id in self._replies:
            self._replies[comment.parent_id] = [r for r in self._replies[comment.parent_id] if r != comment_id]
        return True

    def clear(self) -> None:
        self._comments.clear()
        self._replies.clear()
        self._para_ids.clear()
        self._registry.reset(IdSpace.COMMENT)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        return self._comments.get(comment_id)

    def has_comment(self, comment_id: int) -> bool:
        return comment_id in self._comments

    def get_all_comments(self) -> List[Comment]:
        """Top-level comments only."""
        return [c for c in self._comments.values() if not c.is_reply]

    def get_all_comments_with_replies(self) -> List[Comment]:
        return list(self._comments.values())

    def get_replies(self, comment_id: int) -> List[Comment]:
        return [self._comments[r] for r in self._replies.get(comment_id, []) if r in self._comments]

    def has_replies(self, comment_id: int) -> bool:
        return bool(self._replies.get(comment_id))

    def get_count(self) -> int:
        return len(self._comments)

    def get_top_level_count(self) -> int:
        return len(self.get_all_comments())

    def is_empty(self) -> bool:
        return not self._comments

    def get_authors(self) -> List[str]:
        return list(dict.fromkeys(c.author for c in self._comments.values()))

    def get_comments_by_author(self, author: str) -> List[Comment]:
        return [c for c in self._comments.values() if c.author == author]

    def get_comments_by_date_range(self, start: datetime, end: datetime) -> List[Comment]:
        start, end = _as_utc(start), _as_utc(end)
        return [c for c in self._comments.values() if c.date is not None and start <= _as_utc(c.date) <= end]

    def find_comments_by_text(self, text: str) -> List[Comment]:
        needle = text.lower()
        return [c for c in self._comments.values() if needle in c.text.lower()]

    def get_comment_thread(self, comment_id: int) -> Optional[CommentThread]:
        """The comment and its replies; None for unknown ids and for replies."""
        comment = self._comments.get(comment_id)
        if comment is None or comment.is_reply:
            return None
        return CommentThread(comment, self.get_replies(comment_id))

    def get_recent_comments(self, count: int) -> List[Comment]:
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        ordered = sorted(self._comments.values(), key=lambda c: _as_utc(c.date) if c.date else oldest,
                         reverse=True)
        return ordered[:count]

    def get_stats(self) -> Dict[str, Any]:
        top_level = self.get_top_level_count()
        return {
            "total": len(self._comments),
            "top_level": top_level,
            "replies": len(self._comments) - top_level,
            "authors": self.get_authors(),
            "next_id": self._registry.peek(IdSpace.COMMENT),
        }

    # -------------------------------------------------------------------------
    # XML
    # -------------------------------------------------------------------------

    def to_xml(self) -> XmlNode:
        """``w:comments``; an empty root when there are no comments."""
        root = XmlNode("w:comments", {
            "xmlns:w": NAMESPACES["w"],
            "xmlns:r": NAMESPACES["r"],
            "xmlns:mc": NAMESPACES["mc"],
            "xmlns:w14": NAMESPACES["w14"],
            "mc:Ignorable": "w14",
        })
        root.extend(c.to_xml() for c in self._comments.values())
        return root

    def generate_comments_xml(self) -> str:
        return build(self.to_xml())

    def has_threads(self) -> bool:
        return any(c.is_reply and c.parent_id in self._comments for c in self._comments.values())

    def to_extended_xml(self) -> XmlNode:
        """``w15:commentsEx`` recording reply threading and resolved state."""
        root = XmlNode("w15:commentsEx", {
            "xmlns:mc": NAMESPACES["mc"],
            "xmlns:w15": NAMESPACES["w15"],
            "mc:Ignorable": "w15",
        })
        for comment in self._comments.values():
            attrs: Dict[str, Any] = {"w15:paraId": comment.para_id}
            parent = self._comments.get(comment.parent_id) if comment.parent_id is not None else None
            if parent is not None:
                attrs["w15:paraIdParent"] = parent.para_id
            attrs["w15:done"] = "1" if comment.done else "0"
            root.append(XmlNode("w15:commentEx", attrs))
        return root

    def load_xml(self, root: XmlNode, extended: Optional[XmlNode] = None) -> None:
        """Rebuild the store from ``w:comments`` and optional ``w15:commentsEx``.

        Loaded ids are kept and re-registered with the registry.
        """
        loaded = [Comment.from_xml(child) for child in root.find_all("w:comment")]
        if extended is not None:
            by_para = {c.para_id: c for c in loaded}
            for entry in extended.find_all("w15:commentEx"):
                comment = by_para.get(entry.get("w15:paraId", ""))
                if comment is None:
                    continue
                comment.done = entry.get("w15:done") == "1"
                parent = by_para.get(entry.get("w15:paraIdParent", ""))
                if parent is not None and parent is not comment:
                    comment.parent_id = parent.id
        # ids minted for comments without a paraId must not take one a later comment carries
        self._reserved_para_ids = {
            str(c.paragraphs[-1].attributes[_PARA_ID]) for c in loaded
            if c.paragraphs and _PARA_ID in c.paragraphs[-1].attributes
        }
        try:
            # parents first so replies thread onto them
            for comment in sorted(loaded, key=lambda c: c.parent_id is not None):
                self.register(comment, keep_id=True)
        finally:
            self._reserved_para_ids = set()
        logger.debug("Loaded %d comment(s)", len(loaded))
