"""
Marker codec.

A marker is ``"[" ICON TAGNAME "]"`` embedded in note content, where ICON is
:data:`IMAGE_ICON` or :data:`FILE_ICON` and TAGNAME is one or more characters
other than ``]``.  A single space right after a marker belongs to the marker's
footprint when the marker is removed, but is not part of the marker itself.

The content string is canonical.  :func:`render` projects it into segments
for display, and :func:`serialize` turns an edited segment tree back into the
canonical string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from memoapp.models.attachment import MediaKind
from memoapp.utils import smart_display_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

#: The icon marking an image marker.
IMAGE_ICON: Final[str] = "\U0001f4f7"  # 📷
#: The icon marking a file marker.
FILE_ICON: Final[str] = "\U0001f4ce"  # 📎

#: Icon for each attachment kind.
ICONS: Final[dict[MediaKind, str]] = {
    MediaKind.IMAGE: IMAGE_ICON,
    MediaKind.FILE: FILE_ICON,
}
#: Attachment kind for each icon.
KINDS: Final[dict[str, MediaKind]] = {icon: kind for kind, icon in ICONS.items()}

#: Matches one marker.
MARKER_RE: Final[re.Pattern[str]] = re.compile(
    rf"\[({IMAGE_ICON}|{FILE_ICON})([^\]]+)\]"
)
#: Matches one marker plus its footprint (a single following space).
MARKER_FOOTPRINT_RE: Final[re.Pattern[str]] = re.compile(
    rf"\[({IMAGE_ICON}|{FILE_ICON})([^\]]+)\] ?"
)
#: Runs of three or more newlines.
BLANK_LINES_RE: Final[re.Pattern[str]] = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class MarkerToken:
    """A marker found in content. Always derived, never stored."""

    #: The attachment kind.
    kind: MediaKind
    #: The tag name between the icon and the closing bracket.
    tag_name: str
    #: Offset of the opening bracket in the content.
    offset: int

    @property
    def text(self) -> str:
        """The marker as it appears in content."""
        return format_marker(self.kind, self.tag_name)

    @property
    def end(self) -> int:
        """Offset just past the closing bracket."""
        return self.offset + len(self.text)


@dataclass(frozen=True)
class TextSegment:
    """Plain text between markers."""

    text: str
    type: str = field(default="text", init=False)


@dataclass(frozen=True)
class MarkerSegment:
    """A marker that resolves to an attachment."""

    kind: MediaKind
    tag_name: str
    #: The attachment index the marker resolved to.
    index: int
    #: The short label to show instead of the full tag name.
    display_name: str
    type: str = field(default="marker", init=False)


@dataclass(frozen=True)
class BrokenMarkerSegment:
    """
    A marker with no matching attachment.

    Shown struck through and not interactive. It stays in the content until
    the user runs an explicit cleanup.
    """

    kind: MediaKind
    tag_name: str
    type: str = field(default="brokenMarker", init=False)

    @property
    def text(self) -> str:
        """The marker text exactly as it appears in content."""
        return format_marker(self.kind, self.tag_name)


@dataclass(frozen=True)
class LineBreak:
    """An explicit line break in an edited tree."""


@dataclass(frozen=True)
class Block:
    """A block (paragraph) in an edited tree; siblings are newline separated."""

    children: tuple[Node, ...] = ()


#: A rendered segment.
Segment = TextSegment | MarkerSegment | BrokenMarkerSegment
#: Any node :func:`serialize` understands.
Node = TextSegment | MarkerSegment | BrokenMarkerSegment | LineBreak | Block


def format_marker(kind: MediaKind, tag_name: str) -> str:
    """
    Build the marker text for an attachment.

    Args:
        kind: The attachment kind
        tag_name: The tag name

    Returns:
        The marker text

    Raises:
        ValueError: If the tag name is empty or contains ``]``

    """
    if not tag_name or "]" in tag_name:
        msg = f"Invalid marker tag name: {tag_name!r}"
        raise ValueError(msg)
    return f"[{ICONS[kind]}{tag_name}]"


def parse(content: str) -> list[MarkerToken]:
    """
    Find every marker in ``content``, in order.

    Args:
        content: Note content

    Returns:
        The marker tokens

    """
    return [
        MarkerToken(
            kind=KINDS[match.group(1)], tag_name=match.group(2), offset=match.start()
        )
        for match in MARKER_RE.finditer(content or "")
    ]


def render(
    content: str, lookup: Callable[[MediaKind, str], int | None]
) -> list[Segment]:
    """
    Split content into text, resolved marker and broken marker segments.

    Args:
        content: Note content
        lookup: Resolves (kind, tag name) to an attachment index, or None

    Returns:
        The segments, in content order

    """
    segments: list[Segment] = []
    if not content:
        return segments
    last = 0
    for token in parse(content):
        if token.offset > last:
            segments.append(TextSegment(content[last : token.offset]))
        index = lookup(token.kind, token.tag_name)
        if index is None:
            segments.append(BrokenMarkerSegment(token.kind, token.tag_name))
        else:
            segments.append(
                MarkerSegment(
                    kind=token.kind,
                    tag_name=token.tag_name,
                    index=index,
                    display_name=smart_display_name(token.tag_name, index),
                )
            )
        last = token.end
    if last < len(content):
        segments.append(TextSegment(content[last:]))
    return segments


def serialize(nodes: Iterable[Node]) -> str:
    """
    Turn a rendered or edited tree back into canonical content.

    Markers (resolved or broken) are written as marker text, line breaks as
    ``\\n``, and every block except the last among its siblings is followed by
    a newline.

    Args:
        nodes: The nodes

    Returns:
        The content string

    """
    nodes = list(nodes)
    parts: list[str] = []
    for position, node in enumerate(nodes):
        if isinstance(node, TextSegment):
            parts.append(node.text)
        elif isinstance(node, (MarkerSegment, BrokenMarkerSegment)):
            parts.append(format_marker(node.kind, node.tag_name))
        elif isinstance(node, LineBreak):
            parts.append("\n")
        elif isinstance(node, Block):
            parts.append(serialize(node.children))
            if position < len(nodes) - 1:
                parts.append("\n")
        else:
            msg = f"Cannot serialize node: {node!r}"
            raise TypeError(msg)
    return "".join(parts)


def collapse_blank_lines(text: str) -> str:
    """
    Collapse runs of 3+ newlines to exactly two and strip the ends.

    Args:
        text: Text to normalize

    Returns:
        The normalized text

    """
    return BLANK_LINES_RE.sub("\n\n", text).strip()


def remove_markers(
    content: str, predicate: Callable[[MarkerToken], bool] | None = None
) -> str:
    """
    Remove markers, each with its footprint, from content.

    Args:
        content: Note content

    Keyword Args:
        predicate: Selects the markers to remove; all markers if None

    Returns:
        The content without the selected markers

    """

    def repl(match: re.Match[str]) -> str:
        token = MarkerToken(
            kind=KINDS[match.group(1)], tag_name=match.group(2), offset=match.start()
        )
        if predicate is None or predicate(token):
            return ""
        return match.group(0)

    return MARKER_FOOTPRINT_RE.sub(repl, content or "")


def replace_marker(
    content: str, kind: MediaKind, old_tag_name: str, new_tag_name: str
) -> str:
    """
    Rewrite every literal ``[icon+old]`` to ``[icon+new]``.

    Args:
        content: Note content
        kind: The attachment kind
        old_tag_name: The current tag name
        new_tag_name: The replacement tag name

    Returns:
        The rewritten content

    """
    if "]" in old_tag_name:
        # No marker can carry this name
        return content or ""
    return (content or "").replace(
        format_marker(kind, old_tag_name), format_marker(kind, new_tag_name)
    )


def insert_marker(
    content: str, kind: MediaKind, tag_name: str, offset: int | None = None
) -> str:
    """
    Insert a marker followed by a space.

    Args:
        content: Note content
        kind: The attachment kind
        tag_name: The tag name

    Keyword Args:
        offset: Where to insert (clamped to the content); the end if None

    Returns:
        The new content

    """
    content = content or ""
    if offset is None or offset > len(content):
        offset = len(content)
    offset = max(offset, 0)
    return content[:offset] + format_marker(kind, tag_name) + " " + content[offset:]
