"""Unit tests for ConsistencySynchronizer."""

import pytest

from memoapp.exc import AttachmentNotFound, AttachmentRejected, DuplicateTag
from memoapp.models.attachment import MediaKind
from memoapp.services.markers import MarkerSegment, parse
from tests.conftest import create_test_note


def resolved_tags(synchronizer, note):
    """Get (tag name, index) for every marker in the note."""
    return [
        (marker.token.tag_name, marker.index) for marker in synchronizer.resolve(note)
    ]


class TestResolution:
    """Test cases for marker resolution."""

    def test_resolve_marks_broken_markers(self, synchronizer):
        """Test markers without an attachment resolve to None."""
        note = create_test_note(content="[📷a] [📷gone] [📎a]", images=["a"])
        assert resolved_tags(synchronizer, note) == [
            ("a", 0),
            ("gone", None),
            ("a", None),
        ]

    def test_require_raises_for_broken_marker(self, synchronizer):
        """Test require() raises AttachmentNotFound for a broken marker."""
        note = create_test_note(images=["a"])
        assert synchronizer.require(note, MediaKind.IMAGE, "a") is note.images[0]
        with pytest.raises(AttachmentNotFound) as exc_info:
            synchronizer.require(note, MediaKind.IMAGE, "b")
        assert exc_info.value.tag_name == "b"

    def test_attachment_for_resolves_again_when_out_of_range(self, synchronizer):
        """Test a stale segment index past the end is resolved again."""
        note = create_test_note(content="[📷b]", images=["a", "b"])
        segment = synchronizer.render(note)[0]
        assert isinstance(segment, MarkerSegment)
        assert segment.index == 1
        synchronizer.registry.remove_at(note, MediaKind.IMAGE, 0)
        assert synchronizer.attachment_for(note, segment) is note.images[0]

    def test_attachment_for_resolves_again_on_mismatch(self, synchronizer):
        """Test a stale segment index pointing elsewhere is resolved again."""
        note = create_test_note(content="[📷b]", images=["a", "b"])
        segment = synchronizer.render(note)[0]
        note.images.reverse()
        attachment = synchronizer.attachment_for(note, segment)
        assert attachment.tag_name == "b"

    def test_attachment_for_missing_attachment(self, synchronizer):
        """Test a segment whose attachment is gone gives None."""
        note = create_test_note(content="[📷b]", images=["b"])
        segment = synchronizer.render(note)[0]
        note.images.clear()
        assert synchronizer.attachment_for(note, segment) is None

    def test_check_reports_both_directions(self, synchronizer):
        """Test check() reports broken markers and orphaned attachments."""
        note = create_test_note(
            content="[📷a] [📷gone]", images=["a", "b"], files=["f"]
        )
        report = synchronizer.check(note)
        assert report.marker_count == 2
        assert [token.tag_name for token in report.orphan_markers] == ["gone"]
        assert [
            (orphan.kind, orphan.index) for orphan in report.orphan_attachments
        ] == [(MediaKind.IMAGE, 1), (MediaKind.FILE, 0)]
        assert report.image_count == 2
        assert report.file_count == 1
        assert not report.is_consistent

    def test_check_consistent_note(self, synchronizer):
        """Test a note where every marker and attachment match is consistent."""
        note = create_test_note(content="[📷a] [📎f]", images=["a"], files=["f"])
        assert synchronizer.check(note).is_consistent


class TestAttach:
    """Test cases for attach()."""

    def test_attach_inserts_marker_at_anchor(self, synchronizer):
        """Test the marker and a space go in at the anchor."""
        note = create_test_note(content="hello")
        attachment = synchronizer.attach(
            note, MediaKind.IMAGE, "payload", "cat.png", size_bytes=10, text_anchor=2
        )
        assert note.content == "he[📷cat.png] llo"
        assert note.images == [attachment]

    def test_attach_duplicate_name_gets_own_marker(self, synchronizer):
        """Test a second upload with the same name gets its own marker."""
        note = create_test_note()
        synchronizer.attach(note, MediaKind.FILE, "p", "a.txt")
        synchronizer.attach(note, MediaKind.FILE, "p", "a.txt")
        assert note.content == "[📎a.txt] [📎a (2).txt] "
        assert resolved_tags(synchronizer, note) == [("a.txt", 0), ("a (2).txt", 1)]

    def test_attach_rejected_leaves_note_unchanged(self, synchronizer):
        """Test a rejected upload changes neither the content nor the lists."""
        note = create_test_note(content="hello")
        with pytest.raises(AttachmentRejected):
            synchronizer.attach(
                note, MediaKind.IMAGE, "p", "huge.png", size_bytes=50 * 1024 * 1024
            )
        assert note.content == "hello"
        assert note.images == []


class TestDeleteAttachment:
    """Test cases for delete_attachment()."""

    def test_delete_removes_marker_and_space(self, synchronizer):
        """Test deleting the only image leaves the surrounding text intact."""
        note = create_test_note(content="see [📷cat.png] here", images=["cat.png"])
        synchronizer.delete_attachment(note, MediaKind.IMAGE, 0)
        assert note.content == "see here"
        assert note.images == []

    def test_delete_shifts_later_markers(self, synchronizer):
        """Test markers of later attachments resolve one index lower."""
        note = create_test_note(
            content="[📷a] [📷b] [📷c] [📎b]", images=["a", "b", "c"], files=["b"]
        )
        removed = synchronizer.delete_attachment(note, MediaKind.IMAGE, 1)
        assert removed.tag_name == "b"
        assert note.content == "[📷a] [📷c] [📎b]"
        assert resolved_tags(synchronizer, note) == [("a", 0), ("c", 1), ("b", 0)]

    def test_delete_removes_every_marker_of_attachment(self, synchronizer):
        """Test repeated markers of the deleted attachment all go."""
        note = create_test_note(content="[📷a] x\n\n\n\n[📷a] y", images=["a"])
        synchronizer.delete_attachment(note, MediaKind.IMAGE, 0)
        assert note.content == "x\n\ny"
        assert parse(note.content) == []

    def test_delete_without_markers(self, synchronizer):
        """Test deleting an attachment with no marker leaves content alone."""
        note = create_test_note(content="plain\n\n\n\ntext", images=["a"])
        synchronizer.delete_attachment(note, MediaKind.IMAGE, 0)
        assert note.content == "plain\n\n\n\ntext"


class TestRenameAttachment:
    """Test cases for rename_attachment()."""

    def test_rename_rewrites_markers_of_same_kind(self, synchronizer):
        """Test every marker of the renamed attachment is rewritten."""
        note = create_test_note(
            content="[📷a] and [📷a] and [📎a]", images=["a"], files=["a"]
        )
        assert synchronizer.rename_attachment(note, MediaKind.IMAGE, 0, "b")
        assert note.content == "[📷b] and [📷b] and [📎a]"
        assert resolved_tags(synchronizer, note) == [("b", 0), ("b", 0), ("a", 0)]

    def test_rename_duplicate_leaves_note_unchanged(self, synchronizer):
        """Test a duplicate name changes neither the content nor the lists."""
        note = create_test_note(content="[📷a] [📷b]", images=["a", "b"])
        with pytest.raises(DuplicateTag):
            synchronizer.rename_attachment(note, MediaKind.IMAGE, 0, "b")
        assert note.content == "[📷a] [📷b]"
        assert note.images[0].tag_name == "a"

    def test_rename_to_same_name(self, synchronizer):
        """Test renaming to the current name reports no change."""
        note = create_test_note(content="[📷a]", images=["a"])
        assert not synchronizer.rename_attachment(note, MediaKind.IMAGE, 0, "a")
        assert note.content == "[📷a]"


class TestBulkOperations:
    """Test cases for sorting, clearing and cleanup."""

    def test_sort_groups_and_orders_markers(self, synchronizer):
        """Test markers move to the end, images first, then files."""
        note = create_test_note(
            content="Hello [📷b.png] world [📎z.pdf] [📷a.png]",
            images=["a.png", "b.png"],
            files=["z.pdf"],
        )
        assert synchronizer.sort_markers(note)
        assert note.content == "Hello world\n\n[📷a.png] [📷b.png] \n[📎z.pdf] "

    def test_sort_is_idempotent(self, synchronizer):
        """Test sorting sorted content changes nothing."""
        note = create_test_note(content="x [📎b] y [📎a] [📷c]")
        synchronizer.sort_markers(note)
        once = note.content
        synchronizer.sort_markers(note)
        assert note.content == once

    def test_sort_files_only(self, synchronizer):
        """Test files go straight after the blank line when there are no images."""
        note = create_test_note(content="[📎b] text [📎a]")
        synchronizer.sort_markers(note)
        assert note.content == "text\n\n[📎a] [📎b] "

    def test_sort_without_markers(self, synchronizer):
        """Test content without markers is left alone."""
        note = create_test_note(content="  nothing here  ")
        assert not synchronizer.sort_markers(note)
        assert note.content == "  nothing here  "

    def test_clear_keeps_attachments(self, synchronizer):
        """Test clearing markers leaves the attachment lists alone."""
        note = create_test_note(content="a [📷x] b [📎y]", images=["x"], files=["y"])
        assert synchronizer.clear_markers(note) == 2
        assert note.content == "a b"
        assert len(note.images) == 1
        assert len(note.files) == 1

    def test_broken_markers_stay_until_cleanup(self, synchronizer):
        """Test broken markers survive other edits and go only on cleanup."""
        note = create_test_note(content="[📷a] [📷gone] text", images=["a", "b"])
        synchronizer.delete_attachment(note, MediaKind.IMAGE, 1)
        assert "[📷gone]" in note.content
        assert synchronizer.cleanup_broken_markers(note) == 1
        assert note.content == "[📷a] text"

    def test_orphans_need_confirmation(self, synchronizer):
        """Test orphaned attachments are only deleted when confirmed."""
        note = create_test_note(content="[📷a]", images=["a", "b"], files=["f"])
        assert synchronizer.delete_orphan_attachments(note) == []
        assert len(note.images) == 2

        deleted = synchronizer.delete_orphan_attachments(note, confirmed=True)
        assert sorted(attachment.tag_name for attachment in deleted) == ["b", "f"]
        assert [image.tag_name for image in note.images] == ["a"]
        assert note.files == []
        assert note.content == "[📷a]"
