from datetime import datetime, timedelta, timezone

import pytest

from wordforge.core.elements.comments import Comment, CommentManager
from wordforge.core.exceptions import UnknownCommentError
from wordforge.core.models.content import Run
from wordforge.core.models.formatting import RunFormatting
from wordforge.core.xml import NAMESPACES, build, parse


@pytest.fixture
def manager(registry):
    return CommentManager(registry)


class TestComment:
    """Test cases for a single comment."""

    def test_initials_derived(self):
        """Test initials from the author name."""
        assert Comment.create("ada lovelace", "Hi").initials == "AL"
        assert Comment.create("Grace Hopper", "Hi", initials="gh").initials == "gh"

    def test_create_from_runs(self):
        """Test content given as runs."""
        comment = Comment.create("A", [Run.from_text("bold", RunFormatting(bold=True)), Run.from_text("!")])
        assert comment.text == "bold!"
        assert len(comment.runs) == 2

    def test_xml(self):
        """Test the comment element and its paragraph id."""
        comment = Comment.create("Ada Lovelace", "Check this",
                                 date=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        comment.id = 6
        node = comment.to_xml()
        assert node.get("w:id") == "6"
        assert node.get("w:date") == "2024-01-02T03:04:05Z"
        assert node.get("w:initials") == "AL"
        assert node.find("w:p").get("w14:paraId") == "00000007"

    def test_naive_date_taken_as_utc(self):
        """Test that dates without a zone are stored as UTC and others converted."""
        naive = Comment.create("A", "x", date=datetime(2024, 1, 2, 3, 4, 5))
        assert naive.date.tzinfo is timezone.utc
        naive.id = 0
        assert naive.to_xml().get("w:date") == "2024-01-02T03:04:05Z"
        shifted = Comment.create("A", "x", date=datetime(2024, 1, 2, 5, 0, tzinfo=timezone(timedelta(hours=2))))
        assert shifted.date == datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)

    def test_empty_comment_still_has_paragraph(self):
        """Test that a comment always writes at least one paragraph."""
        comment = Comment("A")
        comment.id = 0
        assert [c.name for c in comment.to_xml().element_children()] == ["w:p"]


class TestCommentManager:
    """Test cases for the comment store."""

    def test_ids_start_at_zero(self, manager):
        """Test sequential ids."""
        first = manager.create_comment("A", "one")
        second = manager.create_comment("B", "two")
        assert (first.id, second.id) == (0, 1)

    def test_reply_threading(self, manager):
        """Test replies attach to their parent."""
        parent = manager.create_comment("A", "Question?")
        reply = manager.create_reply(parent.id, "B", "Answer.")
        assert reply.is_reply
        assert manager.get_replies(parent.id) == [reply]
        assert manager.has_replies(parent.id)
        thread = manager.get_comment_thread(parent.id)
        assert thread.comment is parent
        assert thread.replies == [reply]
        assert manager.get_comment_thread(reply.id) is None
        assert manager.get_all_comments() == [parent]

    def test_reply_to_unknown_parent(self, manager):
        """Test that a reply needs an existing parent."""
        with pytest.raises(UnknownCommentError):
            manager.create_reply(42, "B", "Answer.")

    def test_remove_cascades(self, manager):
        """Test that removing a comment removes its replies."""
        parent = manager.create_comment("A", "Root")
        reply = manager.create_reply(parent.id, "B", "Reply")
        nested = manager.create_reply(reply.id, "C", "Nested")
        other = manager.create_comment("D", "Other")
        assert manager.remove_comment(parent.id) is True
        assert not manager.has_comment(nested.id)
        assert manager.get_count() == 1
        assert manager.has_comment(other.id)
        assert manager.remove_comment(parent.id) is False

    def test_queries(self, manager):
        """Test author, text and date queries."""
        now = datetime.now(timezone.utc)
        manager.create_comment("Ada", "Typo here", date=now - timedelta(days=2))
        manager.create_comment("Bob", "Looks good", date=now)
        manager.create_comment("Ada", "Another typo", date=now - timedelta(days=1))
        assert manager.get_authors() == ["Ada", "Bob"]
        assert len(manager.get_comments_by_author("Ada")) == 2
        assert len(manager.find_comments_by_text("TYPO")) == 2
        assert [c.author for c in manager.get_recent_comments(1)] == ["Bob"]
        in_range = manager.get_comments_by_date_range(now - timedelta(days=1, hours=1), now)
        assert len(in_range) == 2

    def test_queries_mix_naive_and_aware_dates(self, manager):
        """Test that date queries accept zone-less dates alongside UTC ones."""
        manager.create_comment("Ada", "old", date=datetime(2024, 1, 1))
        manager.create_comment("Bob", "new", date=datetime(2024, 6, 1, tzinfo=timezone.utc))
        late = manager.create_comment("Cy", "set later")
        late.date = datetime(2024, 3, 1)
        assert [c.author for c in manager.get_recent_comments(3)] == ["Bob", "Cy", "Ada"]
        in_range = manager.get_comments_by_date_range(datetime(2024, 2, 1), datetime(2024, 12, 31))
        assert sorted(c.author for c in in_range) == ["Bob", "Cy"]

    def test_stats(self, manager):
        """Test the summary counts."""
        parent = manager.create_comment("A", "x")
        manager.create_reply(parent.id, "B", "y")
        stats = manager.get_stats()
        assert stats["total"] == 2
        assert stats["top_level"] == 1
        assert stats["replies"] == 1
        assert stats["next_id"] == 2

    def test_clear_resets_ids(self, manager):
        """Test that ids restart after clear."""
        manager.create_comment("A", "x")
        manager.clear()
        assert manager.is_empty()
        assert manager.create_comment("A", "y").id == 0


class TestCommentXml:
    """Test cases for comments.xml and commentsExtended.xml."""

    def test_empty_part(self, manager):
        """Test that an empty store still writes the root."""
        root = manager.to_xml()
        assert root.name == "w:comments"
        assert root.element_children() == []
        assert not manager.has_threads()

    def test_extended_threading(self, manager):
        """Test paraIdParent for replies."""
        parent = manager.create_comment("A", "Q")
        manager.create_reply(parent.id, "B", "A")
        entries = manager.to_extended_xml().find_all("w15:commentEx")
        assert entries[0].get("w15:paraIdParent") is None
        assert entries[1].get("w15:paraIdParent") == entries[0].get("w15:paraId")
        assert manager.has_threads()

    def test_round_trip(self, manager):
        """Test that ids, threading and resolved state survive."""
        parent = manager.create_comment("Ada", "Question")
        parent.done = True
        manager.create_reply(parent.id, "Bob", "Answer")

        loaded = CommentManager()
        loaded.load_xml(parse(manager.generate_comments_xml()),
                        parse(build(manager.to_extended_xml())))
        assert loaded.get_count() == 2
        restored = loaded.get_comment(0)
        assert restored.author == "Ada"
        assert restored.text == "Question"
        assert restored.done is True
        assert [r.text for r in loaded.get_replies(0)] == ["Answer"]
        assert loaded.create_comment("C", "new").id == 2

    def test_load_without_extended(self):
        """Test loading comments.xml alone."""
        xml = (
            '<w:comments xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
            '<w:comment w:id="3" w:author="Ada"><w:p><w:r><w:t>Hi</w:t></w:r></w:p></w:comment>'
            '</w:comments>'
        )
        loaded = CommentManager()
        loaded.load_xml(parse(xml))
        comment = loaded.get_comment(3)
        assert comment.text == "Hi"
        assert comment.date is None
        assert loaded.create_comment("B", "x").id == 4

    def test_para_ids_unique_after_load(self):
        """Test that a comment without a paraId does not take one another comment carries."""
        xml = (
            f'<w:comments xmlns:w="{NAMESPACES["w"]}" xmlns:w14="{NAMESPACES["w14"]}">'
            '<w:comment w:id="0" w:author="Ada"><w:p><w:r><w:t>plain</w:t></w:r></w:p></w:comment>'
            '<w:comment w:id="3" w:author="Bob"><w:p w14:paraId="00000001"><w:r><w:t>tagged</w:t></w:r>'
            '</w:p></w:comment></w:comments>'
        )
        loaded = CommentManager()
        loaded.load_xml(parse(xml))
        assert loaded.get_comment(3).para_id == "00000001"
        assert loaded.get_comment(0).para_id != "00000001"
        fresh = loaded.create_comment("C", "new")
        para_ids = [c.para_id for c in loaded.get_all_comments_with_replies()]
        assert len(set(para_ids)) == 3
        assert fresh.para_id not in {"00000001", loaded.get_comment(0).para_id}

    def test_new_comment_skips_loaded_para_id(self, manager):
        """Test that a minted paraId avoids one already held by a loaded comment."""
        xml = (
            f'<w:comments xmlns:w="{NAMESPACES["w"]}" xmlns:w14="{NAMESPACES["w14"]}">'
            '<w:comment w:id="0" w:author="Ada"><w:p w14:paraId="00000002"/></w:comment></w:comments>'
        )
        manager.load_xml(parse(xml))
        fresh = manager.create_comment("B", "x")
        assert fresh.id == 1
        assert fresh.para_id == "00000003"
        entries = manager.to_extended_xml().find_all("w15:commentEx")
        assert [e.get("w15:paraId") for e in entries] == ["00000002", "00000003"]

    def test_repeated_para_id_rewritten(self, caplog):
        """Test that two loaded comments sharing a paraId end up distinct."""
        xml = (
            f'<w:comments xmlns:w="{NAMESPACES["w"]}" xmlns:w14="{NAMESPACES["w14"]}">'
            '<w:comment w:id="0" w:author="Ada"><w:p w14:paraId="0000000A"/></w:comment>'
            '<w:comment w:id="1" w:author="Bob"><w:p w14:paraId="0000000A"/></w:comment></w:comments>'
        )
        loaded = CommentManager()
        loaded.load_xml(parse(xml))
        assert loaded.get_comment(0).para_id == "0000000A"
        assert loaded.get_comment(1).para_id != "0000000A"
        assert "repeats paraId" in caplog.text
