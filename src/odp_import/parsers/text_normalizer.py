"""
Markup to flat semantic text.

The normalizer walks the token stream once, keeping an explicit stack of
open frames. Styles become paired markers (``**`` bold, ``*`` italic,
``__`` underline, ``~~`` strike), list items become prefixed lines and
images become inline ``image:data:...[]`` tokens. Malformed markup is
repaired and reported; normalization never raises.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from ..models.enums import ListType
from .exceptions import ErrorHandler
from .markup import Token, tokenize

logger = logging.getLogger(__name__)

STYLE_MARKERS = {
    "strong": "**",
    "b": "**",
    "em": "*",
    "i": "*",
    "u": "__",
    "s": "~~",
    "strike": "~~",
    "del": "~~",
}
LIST_CHARS = {"ol": ListType.ORDERED.value, "ul": ListType.BULLET.value}
BLOCK_TAGS = frozenset({"p", "h1", "h2", "h3", "h4", "h5", "h6", "h7", "h8", "h9"})
TABLE_TAGS = frozenset({"table", "thead", "tbody", "tfoot", "tr"})
CELL_TAGS = frozenset({"td", "th"})

IMAGE_TOKEN_TEMPLATE = "image:data:{content_type};base64,{payload}[]"

_HORIZONTAL_WS = re.compile(r"[ \t\u00a0\f\v]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_TAG_OPENER = re.compile(r"<(?=[^\W\d_]|[/!?])")
_ENTITY_LIKE = re.compile(r"&(?=#\d+;|#[xX][0-9A-Fa-f]+;|[A-Za-z][A-Za-z0-9]*;)")


@dataclass
class _Frame:
    tag: str
    out_index: int
    marker: str = ""
    list_char: str = ""
    prefix: str = ""
    paragraphs: int = 0


def format_image_token(content_type: str, payload: str) -> str:
    return IMAGE_TOKEN_TEMPLATE.format(content_type=content_type, payload=payload)


def decode_text(text: str) -> str:
    """
    Decode the entities of one text run.

    Decoded characters that would read as a tag or an entity on a later
    pass are escaped again, so normalized text normalizes to itself.
    """
    text = html.unescape(text)
    text = _ENTITY_LIKE.sub("&amp;", text)
    return _TAG_OPENER.sub("&lt;", text)


class TextNormalizer:
    """
    Converts a markup fragment to flat text.

    Args:
        max_list_depth: Maximum number of marker characters in a list prefix.
        image_transcoder: Optional object with a ``transcode(content_type,
            payload)`` method applied to every embedded image.
    """

    def __init__(self, max_list_depth: int = 3, image_transcoder=None):
        if max_list_depth < 1:
            raise ValueError("max_list_depth must be at least 1")
        self.max_list_depth = max_list_depth
        self.image_transcoder = image_transcoder

    def normalize(self, markup: str, error_handler: Optional[ErrorHandler] = None) -> str:
        """Normalize ``markup``; recoverable problems go to ``error_handler``."""
        if not markup:
            return ""
        return self.normalize_tokens(tokenize(markup), error_handler)

    def normalize_tokens(
        self,
        tokens: List[Token],
        error_handler: Optional[ErrorHandler] = None,
    ) -> str:
        out: List[str] = []
        stack: List[_Frame] = []

        for token in tokens:
            if token.is_text:
                self._on_text(token, out, stack)
            elif token.is_start:
                self._on_start(token, out, stack, error_handler)
                if token.self_closing and token.name not in ("img", "br", "hr"):
                    self._on_end(token.name, token.start, out, stack, error_handler)
            else:
                self._on_end(token.name, token.start, out, stack, error_handler)

        while stack:
            frame = stack.pop()
            self._warn(error_handler, f"Unterminated <{frame.tag}> closed at end of input")
            self._close(frame, out, stack)

        return self._post_process("".join(out))

    # Token handlers

    def _on_text(self, token: Token, out: List[str], stack: List[_Frame]) -> None:
        if stack and (stack[-1].tag in LIST_CHARS or stack[-1].tag in TABLE_TAGS):
            if not token.text.strip():
                return
        out.append(decode_text(token.text))

    def _on_start(
        self,
        token: Token,
        out: List[str],
        stack: List[_Frame],
        error_handler: Optional[ErrorHandler],
    ) -> None:
        name = token.name
        if name in STYLE_MARKERS:
            marker = STYLE_MARKERS[name]
            stack.append(_Frame(tag=name, out_index=len(out), marker=marker))
            out.append(marker)
        elif name in LIST_CHARS:
            if out and not self._ends_with_newline(out):
                out.append("\n")
            stack.append(_Frame(tag=name, out_index=len(out), list_char=LIST_CHARS[name]))
        elif name == "li":
            self._open_item(out, stack)
        elif name in BLOCK_TAGS:
            item = self._innermost_item(stack)
            if item is not None:
                if item.paragraphs > 0:
                    out.append("\n" + item.prefix)
                item.paragraphs += 1
            elif out and not self._ends_with(out, "\n\n"):
                out.append("\n\n")
            stack.append(_Frame(tag=name, out_index=len(out)))
        elif name == "br":
            out.append(" " if self._innermost_item(stack) is not None else "\n")
        elif name == "img":
            out.append(self._image(token, error_handler))
        elif name == "table":
            if out and not self._ends_with_newline(out):
                out.append("\n")
            stack.append(_Frame(tag=name, out_index=len(out)))
        elif not token.self_closing:
            stack.append(_Frame(tag=name, out_index=len(out)))

    def _on_end(
        self,
        name: str,
        position: int,
        out: List[str],
        stack: List[_Frame],
        error_handler: Optional[ErrorHandler],
    ) -> None:
        if name in ("img", "br", "hr"):
            return
        if stack and stack[-1].tag == name:
            self._close(stack.pop(), out, stack)
            return
        if any(frame.tag == name for frame in stack):
            self._warn(error_handler, f"Mismatched closing tag </{name}>", f"offset {position}")
            while stack:
                frame = stack.pop()
                self._close(frame, out, stack)
                if frame.tag == name:
                    break
            return
        self._warn(error_handler, f"Ignoring closing tag </{name}> with no open element", f"offset {position}")

    def _close(self, frame: _Frame, out: List[str], stack: List[_Frame]) -> None:
        if frame.marker:
            inner = "".join(out[frame.out_index + 1:])
            core = inner.strip()
            if core:
                # edge whitespace goes outside the markers
                leading = inner[:len(inner) - len(inner.lstrip())]
                trailing = inner[len(inner.rstrip()):]
                out[frame.out_index:] = [leading, frame.marker, core, frame.marker, trailing]
            else:
                out[frame.out_index] = ""
        elif frame.tag in LIST_CHARS:
            if not any(f.tag in LIST_CHARS for f in stack):
                if not self._ends_with(out, "\n\n"):
                    out.append("\n" if self._ends_with_newline(out) else "\n\n")
        elif frame.tag == "li":
            if not self._ends_with_newline(out):
                out.append("\n")
        elif frame.tag in BLOCK_TAGS:
            if self._innermost_item(stack) is None:
                out.append("\n\n")
        elif frame.tag in CELL_TAGS:
            out.append(" ")
        elif frame.tag == "tr":
            out.append("\n")
        elif frame.tag == "table":
            if not self._ends_with(out, "\n\n"):
                out.append("\n")

    def _open_item(self, out: List[str], stack: List[_Frame]) -> None:
        lists = [frame for frame in stack if frame.tag in LIST_CHARS]
        if lists:
            char = lists[-1].list_char
            depth = len(lists)
        else:
            char = LIST_CHARS["ul"]
            depth = 1
        prefix = char * min(depth, self.max_list_depth) + " "
        if out and not self._ends_with_newline(out):
            out.append("\n")
        out.append(prefix)
        stack.append(_Frame(tag="li", out_index=len(out), prefix=prefix))

    def _image(self, token: Token, error_handler: Optional[ErrorHandler]) -> str:
        src = token.attrs.get("src", "")
        if not src.startswith("data:") or ";base64," not in src:
            self._warn(error_handler, "Skipping image without inline data", f"offset {token.start}")
            return ""
        header, payload = src[len("data:"):].split(";base64,", 1)
        content_type = header.strip().lower() or "application/octet-stream"
        payload = "".join(payload.split())
        if self.image_transcoder is not None:
            content_type, payload = self.image_transcoder.transcode(content_type, payload)
        return format_image_token(content_type, payload)

    # Helpers

    @staticmethod
    def _innermost_item(stack: List[_Frame]) -> Optional[_Frame]:
        for frame in reversed(stack):
            if frame.tag == "li":
                return frame
            if frame.tag in LIST_CHARS or frame.tag in CELL_TAGS:
                return None
        return None

    @staticmethod
    def _ends_with(out: List[str], suffix: str) -> bool:
        tail = ""
        for piece in reversed(out):
            tail = piece + tail
            if len(tail) >= len(suffix):
                break
        return tail.endswith(suffix)

    @classmethod
    def _ends_with_newline(cls, out: List[str]) -> bool:
        return cls._ends_with(out, "\n")

    @staticmethod
    def _warn(error_handler: Optional[ErrorHandler], message: str, location: Optional[str] = None) -> None:
        logger.debug(f"{message} ({location})" if location else message)
        if error_handler is not None:
            error_handler.add_warning(message, location)

    @staticmethod
    def _post_process(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _HORIZONTAL_WS.sub(" ", text)
        text = _SPACE_AROUND_NEWLINE.sub("\n", text)
        text = _EXCESS_NEWLINES.sub("\n\n", text)
        return text.strip()
