"""
Element extraction from document markup.

The converter emits one top-level block per element. This module removes a
table of contents and then walks the top-level token stream, producing
headings, paragraphs, list blocks and tables in source order. Every
decision is made on tokens, never on the text of the document.
"""

import logging
from typing import List, Optional, Tuple

from ..models.document import ContentElement, TableData
from ..models.enums import ElementType
from .exceptions import ErrorHandler
from .markup import Token, find_matching_end, tokenize
from .text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

HEADING_TAGS = tuple(f"h{level}" for level in range(1, 10))
LIST_TAGS = ("ol", "ul")
CELL_TAGS = ("td", "th")


def _top_level_blocks(tokens: List[Token]) -> List[Tuple[int, int]]:
    """Return (first, last) token indexes of every top-level element."""
    blocks = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.is_start:
            if token.self_closing:
                blocks.append((i, i))
                i += 1
                continue
            names = LIST_TAGS if token.name in LIST_TAGS else (token.name,)
            j = find_matching_end(tokens, i, names)
            if j == -1:
                blocks.append((i, len(tokens) - 1))
                break
            blocks.append((i, j))
            i = j + 1
        else:
            i += 1
    return blocks


def _is_toc_entry(tokens: List[Token], first: int, last: int) -> bool:
    """A paragraph holding exactly one internal link and nothing else."""
    if not tokens[first].opens("p") or not tokens[last].closes("p"):
        return False
    inner = tokens[first + 1:last]
    anchors = [t for t in inner if t.opens("a")]
    if len(anchors) != 1 or not anchors[0].attrs.get("href", "").startswith("#"):
        return False
    open_index = inner.index(anchors[0])
    close_index = next((k for k in range(open_index + 1, len(inner)) if inner[k].closes("a")), -1)
    if close_index == -1:
        return False
    outside = inner[:open_index] + inner[close_index + 1:]
    return all(t.is_text and not t.text.strip() for t in outside)


def remove_toc(markup: str, error_handler: Optional[ErrorHandler] = None) -> str:
    """
    Remove table-of-contents paragraphs from ``markup``.

    A TOC entry is a top-level paragraph containing exactly one link whose
    target starts with ``#`` and no other content. Every maximal run of
    such paragraphs is cut out together with the line break ending each
    entry; everything else is returned unchanged.
    """
    if not markup:
        return markup
    tokens = tokenize(markup)
    cuts: List[Tuple[int, int]] = []
    for first, last in _top_level_blocks(tokens):
        if _is_toc_entry(tokens, first, last):
            start, end = tokens[first].start, tokens[last].end
            if markup.startswith("\r\n", end):
                end += 2
            elif markup.startswith("\n", end):
                end += 1
            cuts.append((start, end))
    if not cuts:
        return markup

    removed = len(cuts)
    logger.debug(f"Removing {removed} table of contents entries")
    if error_handler is not None:
        error_handler.add_warning(f"Removed table of contents ({removed} entries)")

    pieces = []
    position = 0
    for start, end in cuts:
        pieces.append(markup[position:start])
        position = end
    pieces.append(markup[position:])
    return "".join(pieces)


class ElementExtractor:
    """
    Turns document markup into an ordered sequence of ContentElements.

    Args:
        normalizer: TextNormalizer used for every text-bearing element.
        excluded_anchor_prefix: Bookmark ids with this prefix (Word's TOC
            bookmarks) are never used as heading anchors.
    """

    def __init__(self, normalizer: Optional[TextNormalizer] = None, excluded_anchor_prefix: str = "_Toc"):
        self.normalizer = normalizer or TextNormalizer()
        self.excluded_anchor_prefix = excluded_anchor_prefix

    def extract(self, markup: str, error_handler: Optional[ErrorHandler] = None) -> List[ContentElement]:
        """Extract elements from ``markup`` after TOC removal."""
        markup = remove_toc(markup, error_handler)
        tokens = tokenize(markup)
        elements: List[ContentElement] = []

        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.is_text:
                if token.text.strip():
                    text = self.normalizer.normalize(token.text, error_handler)
                    if text:
                        elements.append(ContentElement(
                            type=ElementType.PARAGRAPH, text=text, source_position=token.start,
                        ))
                i += 1
            elif token.opens(*HEADING_TAGS) and not token.self_closing:
                i = self._heading(markup, tokens, i, elements, error_handler)
            elif token.opens("p") and not token.self_closing:
                i = self._paragraph(markup, tokens, i, elements, error_handler)
            elif token.opens(*LIST_TAGS) and not token.self_closing:
                i = self._list(markup, tokens, i, elements, error_handler)
            elif token.opens("table") and not token.self_closing:
                i = self._table(markup, tokens, i, elements, error_handler)
            elif token.opens("img"):
                text = self.normalizer.normalize_tokens([token], error_handler)
                if text:
                    elements.append(ContentElement(
                        type=ElementType.PARAGRAPH, text=text,
                        source_position=token.start, has_image=True,
                    ))
                i += 1
            else:
                # containers and stray closers: descend
                i += 1

        elements.sort(key=lambda element: element.source_position)
        logger.debug(f"Extracted {len(elements)} content elements")
        return elements

    def _close_index(
        self,
        tokens: List[Token],
        index: int,
        names: Tuple[str, ...],
        error_handler: Optional[ErrorHandler],
    ) -> Tuple[int, bool]:
        """Matching close index, or end of input with a warning when missing."""
        j = find_matching_end(tokens, index, names)
        if j == -1:
            token = tokens[index]
            message = f"Unterminated <{token.name}> truncated at end of document"
            logger.warning(message)
            if error_handler is not None:
                error_handler.add_warning(message, f"offset {token.start}")
            return len(tokens) - 1, False
        return j, True

    @staticmethod
    def _slice(markup: str, tokens: List[Token], first: int, last: int, closed: bool) -> str:
        """Inner markup of the element spanning tokens[first..last]."""
        start = tokens[first].end
        end = tokens[last].start if closed else tokens[last].end
        return markup[start:end] if end > start else ""

    def _heading(self, markup, tokens, i, elements, error_handler) -> int:
        token = tokens[i]
        j, closed = self._close_index(tokens, i, (token.name,), error_handler)
        anchor_id = None
        for inner in tokens[i + 1:j + 1]:
            if inner.opens("a"):
                candidate = inner.attrs.get("id") or inner.attrs.get("name")
                if candidate and not candidate.startswith(self.excluded_anchor_prefix):
                    anchor_id = candidate
                    break
        text = self.normalizer.normalize(self._slice(markup, tokens, i, j, closed), error_handler)
        if text:
            elements.append(ContentElement(
                type=ElementType.HEADING,
                text=text,
                level=int(token.name[1:]),
                anchor_id=anchor_id,
                source_position=token.start,
            ))
        return j + 1

    def _paragraph(self, markup, tokens, i, elements, error_handler) -> int:
        j, closed = self._close_index(tokens, i, ("p",), error_handler)
        text = self.normalizer.normalize(self._slice(markup, tokens, i, j, closed), error_handler)
        if text:
            elements.append(ContentElement(
                type=ElementType.PARAGRAPH,
                text=text,
                source_position=tokens[i].start,
                has_image=any(t.opens("img") for t in tokens[i:j + 1]),
            ))
        return j + 1

    def _list(self, markup, tokens, i, elements, error_handler) -> int:
        j, closed = self._close_index(tokens, i, LIST_TAGS, error_handler)
        end = tokens[j].end
        text = self.normalizer.normalize(markup[tokens[i].start:end], error_handler)
        if text:
            elements.append(ContentElement(
                type=ElementType.PARAGRAPH,
                text=text,
                source_position=tokens[i].start,
                has_image=any(t.opens("img") for t in tokens[i:j + 1]),
                is_list=True,
            ))
        return j + 1

    def _table(self, markup, tokens, i, elements, error_handler) -> int:
        j, closed = self._close_index(tokens, i, ("table",), error_handler)
        rows: List[List[str]] = []
        row: Optional[List[str]] = None
        cell_start: Optional[int] = None
        depth = 0

        def finish_cell(end: int) -> None:
            nonlocal cell_start, row
            if cell_start is None:
                return
            if row is None:
                row = []
            row.append(self.normalizer.normalize(markup[cell_start:end], error_handler))
            cell_start = None

        def finish_row() -> None:
            nonlocal row
            if row is not None:
                rows.append(row)
                row = None

        for k in range(i, j + 1):
            token = tokens[k]
            if token.opens("table") and not token.self_closing:
                depth += 1
                continue
            if token.closes("table"):
                depth -= 1
                continue
            if depth != 1:
                continue
            if token.opens("tr"):
                finish_cell(token.start)
                finish_row()
                row = []
            elif token.closes("tr"):
                finish_cell(token.start)
                finish_row()
            elif token.opens(*CELL_TAGS):
                finish_cell(token.start)
                cell_start = token.end
            elif token.closes(*CELL_TAGS):
                finish_cell(token.start)
        finish_cell(tokens[j].start if closed else tokens[j].end)
        finish_row()

        table = TableData(rows=rows)
        elements.append(ContentElement(
            type=ElementType.TABLE,
            text="\n".join(" | ".join(cells) for cells in rows),
            source_position=tokens[i].start,
            has_image=any(t.opens("img") for t in tokens[i:j + 1]),
            table=table,
        ))
        return j + 1
