"""Text helpers shared by mappers."""

import re
from typing import List, Optional, Tuple

_LEADING_NUMBERING = re.compile(r"^[\d.\s]+")
_LEADING_CODE = re.compile(r"^\[[A-Z]+-[^\]]+\]\s*")
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC = re.compile(r"\*([^*]+)\*")
_UNDERLINE = re.compile(r"__([^_]+)__")
_STRIKE = re.compile(r"~~([^~]+)~~")
_LIST_MARKER = re.compile(r"^[.*]+ ", re.MULTILINE)
_BRACKETED_CODE = re.compile(r"^\[([^\]]+)\]")
_ANNOTATED = re.compile(r"^([^\[]+?)(?:\s*\[(.+)\])?$")


def strip_numbering(title: Optional[str]) -> str:
    """Remove leading section numbering and an ``[XX-123]`` code prefix."""
    if not title:
        return ""
    stripped = _LEADING_NUMBERING.sub("", title).strip()
    return _LEADING_CODE.sub("", stripped).strip()


def extract_plain_text(text: Optional[str]) -> str:
    """Drop style markers and list prefixes, keeping the words."""
    if not text:
        return ""
    plain = _BOLD.sub(r"\1", text)
    plain = _ITALIC.sub(r"\1", plain)
    plain = _UNDERLINE.sub(r"\1", plain)
    plain = _STRIKE.sub(r"\1", plain)
    plain = _LIST_MARKER.sub("", plain)
    return plain.strip()


def extract_list_items(text: Optional[str]) -> List[str]:
    """Item texts of every ``. ``/``* `` prefixed line, at any depth."""
    if not text:
        return []
    items = []
    for line in text.split("\n"):
        stripped = line.lstrip()
        marker_end = 0
        while marker_end < len(stripped) and stripped[marker_end] in ".*":
            marker_end += 1
        if marker_end and stripped[marker_end:marker_end + 1] == " ":
            item = stripped[marker_end + 1:].strip()
            if item:
                items.append(item)
    return items


def parse_code_reference(item: str) -> str:
    """``[CODE] Title`` gives ``CODE``; anything else is returned trimmed."""
    match = _BRACKETED_CODE.match(item)
    if match:
        return match.group(1).strip()
    return item.strip()


def parse_annotated_reference(item: str) -> Tuple[str, str]:
    """``identifier [note]`` gives ``(identifier, note)``; the note may be empty."""
    match = _ANNOTATED.match(item.strip())
    if match:
        return match.group(1).strip(), (match.group(2) or "").strip()
    return item.strip(), ""
