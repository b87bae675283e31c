"""Unit tests for AttachmentRegistry."""

import pytest

from memoapp.exc import AttachmentRejected, DuplicateTag, RegistryOutOfSync
from memoapp.models.attachment import MediaKind
from memoapp.models.note import Note
from memoapp.services.registry import deduplicate_tags
from tests.conftest import create_test_attachment, create_test_note


class TestAttachmentRegistry:
    """Test cases for AttachmentRegistry."""

    def test_limits_default(self, registry):
        """Test the upload limits default to 5 MB, 10 MB and 10 files."""
        assert registry.get_max_bytes(MediaKind.IMAGE) == 5 * 1024 * 1024
        assert registry.get_max_bytes(MediaKind.FILE) == 10 * 1024 * 1024
        assert registry.get_max_files_per_note() == 10

    def test_limits_from_settings(self, registry, settings):
        """Test the upload limits are read from settings."""
        settings.setValue("attachments/max_image_mb", 1)
        settings.setValue("attachments/max_files_per_note", 2)
        assert registry.get_max_bytes(MediaKind.IMAGE) == 1024 * 1024
        assert registry.get_max_files_per_note() == 2

    def test_add_appends_with_original_name_as_tag(self, registry):
        """Test add() appends and starts the tag name as the original name."""
        note = create_test_note(images=["first.png"])
        attachment = registry.add(
            note, MediaKind.IMAGE, "payload", "cat.png", size_bytes=42, text_anchor=3
        )
        assert note.images[1] is attachment
        assert attachment.tag_name == "cat.png"
        assert attachment.original_name == "cat.png"
        assert attachment.size_bytes == 42
        assert attachment.text_anchor == 3
        assert attachment.media_kind is MediaKind.IMAGE

    def test_add_keeps_tags_unique(self, registry):
        """Test adding a second upload with the same name gets a numbered tag."""
        note = Note()
        registry.add(note, MediaKind.IMAGE, "p", "cat.png")
        second = registry.add(note, MediaKind.IMAGE, "p", "cat.png")
        third = registry.add(note, MediaKind.IMAGE, "p", "cat.png")
        assert second.tag_name == "cat (2).png"
        assert third.tag_name == "cat (3).png"
        assert second.original_name == "cat.png"

    def test_add_replaces_square_brackets(self, registry):
        """Test bracketed upload names still make usable markers."""
        note = Note()
        attachment = registry.add(note, MediaKind.FILE, "p", "report[final].pdf")
        assert attachment.tag_name == "report(final).pdf"
        assert attachment.original_name == "report[final].pdf"

    def test_add_same_name_in_other_kind(self, registry):
        """Test tag uniqueness is per list, not per note."""
        note = create_test_note(images=["doc"])
        attachment = registry.add(note, MediaKind.FILE, "p", "doc")
        assert attachment.tag_name == "doc"

    def test_find_returns_first_match(self, registry):
        """Test find() resolves a tag name to its index."""
        note = create_test_note(images=["a.png", "b.png"])
        assert registry.find(note, MediaKind.IMAGE, "b.png") == 1
        assert registry.find(note, MediaKind.IMAGE, "c.png") is None
        assert registry.find(note, MediaKind.FILE, "a.png") is None

    def test_find_falls_back_to_original_then_synthetic_name(self, registry):
        """Test an attachment without a tag resolves by original, then fallback name."""
        note = Note()
        untagged = create_test_attachment("", original_name="orig.png")
        unnamed = create_test_attachment("", original_name="")
        note.images.extend([untagged, unnamed])
        assert registry.find(note, MediaKind.IMAGE, "orig.png") == 0
        assert registry.find(note, MediaKind.IMAGE, "图片2") == 1

    def test_remove_at_shifts_later_indices(self, registry):
        """Test remove_at() moves every later attachment down one index."""
        note = create_test_note(images=["a", "b", "c"])
        removed = registry.remove_at(note, MediaKind.IMAGE, 1)
        assert removed.tag_name == "b"
        assert [image.tag_name for image in note.images] == ["a", "c"]
        assert registry.find(note, MediaKind.IMAGE, "c") == 1

    def test_remove_at_out_of_range(self, registry):
        """Test remove_at() raises RegistryOutOfSync for a bad index."""
        note = create_test_note(images=["a"])
        with pytest.raises(RegistryOutOfSync) as exc_info:
            registry.remove_at(note, MediaKind.IMAGE, 5)
        assert exc_info.value.index == 5
        assert exc_info.value.size == 1
        assert len(note.images) == 1

    def test_rename_changes_tag_only(self, registry):
        """Test rename() changes the tag and never the original name."""
        note = create_test_note(images=["cat.png"])
        old = registry.rename(note, MediaKind.IMAGE, 0, "  kitty  ")
        assert old == "cat.png"
        assert note.images[0].tag_name == "kitty"
        assert note.images[0].original_name == "cat.png"

    def test_rename_rejects_duplicate(self, registry):
        """Test rename() rejects a name used by another attachment in the list."""
        note = create_test_note(images=["a", "b"])
        with pytest.raises(DuplicateTag) as exc_info:
            registry.rename(note, MediaKind.IMAGE, 0, "b")
        assert exc_info.value.tag_name == "b"
        assert [image.tag_name for image in note.images] == ["a", "b"]

    def test_rename_is_case_sensitive(self, registry):
        """Test names differing only in case do not collide."""
        note = create_test_note(images=["a", "B"])
        assert registry.rename(note, MediaKind.IMAGE, 0, "b") == "a"

    def test_rename_no_change(self, registry):
        """Test renaming to an empty or identical name does nothing."""
        note = create_test_note(images=["a"])
        assert registry.rename(note, MediaKind.IMAGE, 0, "   ") is None
        assert registry.rename(note, MediaKind.IMAGE, 0, "a") is None
        assert note.images[0].tag_name == "a"

    def test_rename_rejects_closing_bracket(self, registry):
        """Test tag names containing ] are rejected."""
        note = create_test_note(images=["a"])
        with pytest.raises(ValueError, match="cannot contain"):
            registry.rename(note, MediaKind.IMAGE, 0, "x]y")
        assert note.images[0].tag_name == "a"

    def test_validate_upload_rejects_large_image(self, registry):
        """Test images over the limit are rejected."""
        note = Note()
        with pytest.raises(AttachmentRejected) as exc_info:
            registry.validate_upload(
                note, MediaKind.IMAGE, 5 * 1024 * 1024 + 1, "huge.png"
            )
        assert exc_info.value.name == "huge.png"
        assert "too large" in exc_info.value.reason

    def test_validate_upload_accepts_limit(self, registry):
        """Test an upload exactly at the limit is accepted."""
        registry.validate_upload(Note(), MediaKind.FILE, 10 * 1024 * 1024, "ok.zip")

    def test_validate_upload_rejects_too_many_files(self, registry, settings):
        """Test a note cannot hold more files than the limit."""
        settings.setValue("attachments/max_files_per_note", 2)
        note = create_test_note(files=["a", "b"])
        with pytest.raises(AttachmentRejected, match="at most 2 files"):
            registry.validate_upload(note, MediaKind.FILE, 10, "c")
        # Images are not counted against the file limit
        registry.validate_upload(note, MediaKind.IMAGE, 10, "c.png")


class TestDeduplicateTags:
    """Test cases for deduplicate_tags()."""

    def test_unique_tags_untouched(self):
        """Test a note without shared tags is left alone."""
        note = create_test_note(content="[📷a] [📷b]", images=["a", "b"], files=["a"])
        assert deduplicate_tags(note) == []
        assert note.content == "[📷a] [📷b]"

    def test_markers_are_handed_out_in_order(self):
        """Test the nth marker of a shared tag goes to the nth attachment."""
        note = create_test_note(
            content="[📷x] [📷x] [📷x] [📷x] [📎x]",
            images=["x", "x (2)", "x"],
            files=["x"],
        )
        renamed = deduplicate_tags(note)
        assert renamed == [(MediaKind.IMAGE, "x", "x (3)")]
        assert [image.tag_name for image in note.images] == ["x", "x (2)", "x (3)"]
        # Markers beyond the attachments sharing the tag stay with the first
        assert note.content == "[📷x] [📷x (3)] [📷x] [📷x] [📎x]"

    def test_untagged_duplicates(self):
        """Test attachments sharing an original name get distinct tags."""
        note = Note()
        note.files.extend(
            [
                create_test_attachment("", MediaKind.FILE, original_name="r.pdf"),
                create_test_attachment("", MediaKind.FILE, original_name="r.pdf"),
            ]
        )
        deduplicate_tags(note)
        assert [file.label(i) for i, file in enumerate(note.files)] == [
            "r.pdf",
            "r (2).pdf",
        ]
