"""
Markup tokenizer.

A single forward scan over the markup produced by the binary converter.
Tags are recognized structurally: ``<`` only opens a tag when followed by a
letter, ``/`` or ``!``; quoted attribute values may contain ``>``. Comments
and declarations are dropped. Every token records its character offsets so
callers can slice the original markup.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "wbr",
})

START = "start"
END = "end"
TEXT = "text"


@dataclass
class Token:
    """A start tag, end tag, or run of text."""
    kind: str
    start: int
    end: int
    name: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    self_closing: bool = False

    @property
    def is_start(self) -> bool:
        return self.kind == START

    @property
    def is_end(self) -> bool:
        return self.kind == END

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT

    def opens(self, *names: str) -> bool:
        return self.kind == START and self.name in names

    def closes(self, *names: str) -> bool:
        return self.kind == END and self.name in names


def _read_name(markup: str, pos: int) -> Tuple[str, int]:
    start = pos
    n = len(markup)
    while pos < n and (markup[pos].isalnum() or markup[pos] in "-_:"):
        pos += 1
    return markup[start:pos].lower(), pos


def _skip_space(markup: str, pos: int) -> int:
    n = len(markup)
    while pos < n and markup[pos].isspace():
        pos += 1
    return pos


def _scan_attributes(markup: str, pos: int) -> Tuple[Dict[str, str], bool, int]:
    """
    Read attributes up to the closing ``>``.

    Returns the attributes, whether the tag was self-closing, and the
    offset just past ``>``; the offset is -1 when the tag never closes.
    """
    attrs: Dict[str, str] = {}
    self_closing = False
    n = len(markup)
    while True:
        pos = _skip_space(markup, pos)
        if pos >= n:
            return attrs, self_closing, -1
        char = markup[pos]
        if char == ">":
            return attrs, self_closing, pos + 1
        if char == "/":
            self_closing = True
            pos += 1
            continue
        self_closing = False
        name_start = pos
        while pos < n and not markup[pos].isspace() and markup[pos] not in "=>/":
            pos += 1
        name = markup[name_start:pos].lower()
        pos = _skip_space(markup, pos)
        value = ""
        if pos < n and markup[pos] == "=":
            pos = _skip_space(markup, pos + 1)
            if pos < n and markup[pos] in "\"'":
                quote = markup[pos]
                close = markup.find(quote, pos + 1)
                if close == -1:
                    return attrs, self_closing, -1
                value = markup[pos + 1:close]
                pos = close + 1
            else:
                value_start = pos
                while pos < n and not markup[pos].isspace() and markup[pos] != ">":
                    pos += 1
                value = markup[value_start:pos]
        if name:
            attrs[name] = value


def _scan_tag(markup: str, lt: int) -> Tuple[Optional[Token], int]:
    """Scan the construct starting at ``lt``; returns (token or None, next offset)."""
    if markup.startswith("<!--", lt):
        close = markup.find("-->", lt + 4)
        return None, len(markup) if close == -1 else close + 3
    if markup.startswith("<!", lt) or markup.startswith("<?", lt):
        close = markup.find(">", lt)
        return None, len(markup) if close == -1 else close + 1
    if markup.startswith("</", lt):
        name, pos = _read_name(markup, lt + 2)
        close = markup.find(">", pos)
        if close == -1:
            return None, -1
        return Token(kind=END, start=lt, end=close + 1, name=name), close + 1
    name, pos = _read_name(markup, lt + 1)
    attrs, self_closing, after = _scan_attributes(markup, pos)
    if after == -1:
        return None, -1
    token = Token(
        kind=START,
        start=lt,
        end=after,
        name=name,
        attrs=attrs,
        self_closing=self_closing or name in VOID_TAGS,
    )
    return token, after


def tokenize(markup: str) -> List[Token]:
    """Split markup into tokens in document order."""
    tokens: List[Token] = []
    if not markup:
        return tokens
    n = len(markup)
    pos = 0
    text_start = 0
    while pos < n:
        lt = markup.find("<", pos)
        if lt == -1:
            break
        following = markup[lt + 1:lt + 2]
        if not following or not (following.isalpha() or following in "/!?"):
            pos = lt + 1
            continue
        token, after = _scan_tag(markup, lt)
        if after == -1:
            # unclosed tag: the remainder is plain text
            break
        if lt > text_start:
            tokens.append(Token(kind=TEXT, start=text_start, end=lt, text=markup[text_start:lt]))
        if token is not None:
            tokens.append(token)
        pos = after
        text_start = after
    if text_start < n:
        tokens.append(Token(kind=TEXT, start=text_start, end=n, text=markup[text_start:]))
    return tokens


def find_matching_end(tokens: List[Token], index: int, names: Tuple[str, ...]) -> int:
    """
    Find the token closing the element opened at ``index``.

    Depth is tracked over every tag in ``names`` so that nested lists or
    tables are skipped as a whole. Returns -1 when the element is never
    closed.
    """
    depth = 0
    for i in range(index, len(tokens)):
        token = tokens[i]
        if token.kind == START and token.name in names and not token.self_closing:
            depth += 1
        elif token.kind == END and token.name in names:
            depth -= 1
            if depth == 0:
                return i
    return -1
