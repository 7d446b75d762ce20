"""Word (.docx) to markup conversion with python-docx."""

import base64
import html
import io
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from .exceptions import DocumentCorruptedError

logger = logging.getLogger(__name__)

HEADING_STYLE_PATTERN = re.compile(r"^heading\s*([1-9])$", re.IGNORECASE)
LIST_STYLE_PATTERN = re.compile(r"^list\s+(bullet|number)(?:\s+([2-9]))?$", re.IGNORECASE)
IGNORED_BOOKMARKS = ("_GoBack",)


@dataclass
class ConversionResult:
    """Markup produced from a Word document plus converter messages."""
    html: str
    messages: List[str] = field(default_factory=list)


class DocxHtmlConverter:
    """
    Renders the body of a Word document as simple markup.

    Output vocabulary: ``h1``-``h9``, ``p``, ``strong``/``em``/``u``/``s``,
    ``ol``/``ul``/``li``, ``a`` (bookmarks as ``id``, internal links as
    ``href="#..."``), ``img`` with data URIs, ``br`` and tables. Every
    top-level block is written on its own line. Nested lists are emitted
    as sibling lists inside their parent list.
    """

    def convert(self, data: bytes, filename: Optional[str] = None) -> ConversionResult:
        """
        Convert ``data`` (the bytes of a .docx file).

        Raises:
            DocumentCorruptedError: If the bytes are not a readable Word package.
        """
        try:
            document = Document(io.BytesIO(data))
        except (BadZipFile, PackageNotFoundError, KeyError, ValueError) as e:
            raise DocumentCorruptedError(
                message="Document is corrupted or not a valid Word file",
                file_path=filename,
                location="file header",
                details={"original_error": str(e)},
            ) from e

        state = _ConversionState(document)
        blocks = self._render_blocks(document.element.body, state)
        logger.debug(f"Converted {filename or 'document'} into {len(blocks)} blocks")
        return ConversionResult(html="\n".join(blocks), messages=state.messages)

    # Block level

    def _render_blocks(self, container, state: "_ConversionState") -> List[str]:
        blocks: List[str] = []
        lists = _ListBuilder()

        for child in self._iter_block_elements(container):
            if child.tag == qn("w:p"):
                paragraph = Paragraph(child, state.document)
                list_info = self._list_info(paragraph, state)
                if list_info is not None:
                    level, tag = list_info
                    lists.add_item(level, tag, self._render_inline(paragraph, state))
                    continue
                if lists.is_open:
                    blocks.append(lists.close())
                block = self._render_paragraph(paragraph, state)
                if block:
                    blocks.append(block)
            elif child.tag == qn("w:tbl"):
                if lists.is_open:
                    blocks.append(lists.close())
                blocks.append(self._render_table(child, state))

        if lists.is_open:
            blocks.append(lists.close())
        return blocks

    @staticmethod
    def _iter_block_elements(container):
        """Paragraphs and tables in order, looking through content controls."""
        stack = [iter(container.iterchildren())]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            if child.tag in (qn("w:p"), qn("w:tbl")):
                yield child
            elif child.tag == qn("w:sdt"):
                for content in child.iterchildren(qn("w:sdtContent")):
                    stack.append(iter(content.iterchildren()))

    def _render_paragraph(self, paragraph: Paragraph, state: "_ConversionState") -> str:
        inner = self._render_inline(paragraph, state)
        level = self._heading_level(paragraph)
        if level is not None:
            return f"<h{level}>{inner}</h{level}>"
        if not inner:
            return ""
        return f"<p>{inner}</p>"

    def _render_table(self, tbl, state: "_ConversionState") -> str:
        rows = []
        for tr in tbl.iterchildren(qn("w:tr")):
            cells = []
            for tc in tr.iterchildren(qn("w:tc")):
                cells.append(f"<td>{''.join(self._render_blocks(tc, state))}</td>")
            rows.append(f"<tr>{''.join(cells)}</tr>")
        return f"<table>{''.join(rows)}</table>"

    # Paragraph classification

    @staticmethod
    def _style_name(paragraph: Paragraph) -> str:
        try:
            style = paragraph.style
        except (KeyError, ValueError):
            return ""
        return style.name if style is not None and style.name else ""

    def _heading_level(self, paragraph: Paragraph) -> Optional[int]:
        name = self._style_name(paragraph)
        if name.lower() == "title":
            return 1
        match = HEADING_STYLE_PATTERN.match(name)
        return int(match.group(1)) if match else None

    def _list_info(self, paragraph: Paragraph, state: "_ConversionState") -> Optional[Tuple[int, str]]:
        """(nesting level, list tag) for list paragraphs, None otherwise."""
        if self._heading_level(paragraph) is not None:
            return None
        num_pr = paragraph._p.find(f"{qn('w:pPr')}/{qn('w:numPr')}")
        if num_pr is not None:
            ilvl = num_pr.find(qn("w:ilvl"))
            num_id = num_pr.find(qn("w:numId"))
            level = int(ilvl.get(qn("w:val"), "0")) if ilvl is not None else 0
            num_id_value = num_id.get(qn("w:val")) if num_id is not None else None
            if num_id_value == "0":
                return None
            fmt = state.number_format(num_id_value, level)
            return level, "ul" if fmt == "bullet" else "ol"

        match = LIST_STYLE_PATTERN.match(self._style_name(paragraph))
        if match:
            level = int(match.group(2)) - 1 if match.group(2) else 0
            return level, "ul" if match.group(1).lower() == "bullet" else "ol"
        return None

    # Inline level

    def _render_inline(self, paragraph: Paragraph, state: "_ConversionState") -> str:
        pieces: List[str] = []
        for child in paragraph._p.iterchildren():
            if child.tag == qn("w:r"):
                pieces.append(self._render_runs([Run(child, paragraph)], state))
            elif child.tag == qn("w:hyperlink"):
                pieces.append(self._render_hyperlink(Hyperlink(child, paragraph), state))
            elif child.tag == qn("w:bookmarkStart"):
                name = child.get(qn("w:name"))
                if name and name not in IGNORED_BOOKMARKS:
                    pieces.append(f'<a id="{html.escape(name)}"></a>')
            elif child.tag in (qn("w:ins"), qn("w:smartTag"), qn("w:fldSimple")):
                runs = [Run(r, paragraph) for r in child.iterchildren(qn("w:r"))]
                pieces.append(self._render_runs(runs, state))
        return "".join(pieces)

    def _render_hyperlink(self, hyperlink: Hyperlink, state: "_ConversionState") -> str:
        inner = self._render_runs(list(hyperlink.runs), state)
        if hyperlink.fragment:
            href = f"#{hyperlink.fragment}"
        elif hyperlink.address:
            href = hyperlink.address
        else:
            return inner
        return f'<a href="{html.escape(href)}">{inner}</a>'

    def _render_runs(self, runs: List[Run], state: "_ConversionState") -> str:
        """Render runs, merging neighbours that share the same formatting."""
        groups: List[Tuple[Tuple[bool, bool, bool, bool], List[str]]] = []
        for run in runs:
            text = run.text
            if text:
                styles = (
                    bool(run.bold),
                    bool(run.italic),
                    bool(run.underline),
                    bool(run.font.strike),
                )
                fragment = html.escape(text.replace("\t", " "), quote=False).replace("\n", "<br>")
                if groups and groups[-1][0] == styles:
                    groups[-1][1].append(fragment)
                else:
                    groups.append((styles, [fragment]))
            for image in self._render_images(run, state):
                groups.append(((False, False, False, False), [image]))

        rendered = []
        for (bold, italic, underline, strike), fragments in groups:
            text = "".join(fragments)
            if strike:
                text = f"<s>{text}</s>"
            if underline:
                text = f"<u>{text}</u>"
            if italic:
                text = f"<em>{text}</em>"
            if bold:
                text = f"<strong>{text}</strong>"
            rendered.append(text)
        return "".join(rendered)

    @staticmethod
    def _render_images(run: Run, state: "_ConversionState") -> List[str]:
        images = []
        for blip in run._r.xpath(".//a:blip"):
            r_id = blip.get(qn("r:embed"))
            if not r_id:
                continue
            part = state.document.part.related_parts.get(r_id)
            if part is None:
                state.messages.append(f"Image relationship {r_id} not found")
                continue
            payload = base64.b64encode(part.blob).decode("ascii")
            images.append(f'<img src="data:{part.content_type};base64,{payload}" />')
        return images


class _ConversionState:
    """Per-document lookups shared by the rendering methods."""

    def __init__(self, document):
        self.document = document
        self.messages: List[str] = []
        self._formats = {}
        self._numbering = None
        try:
            self._numbering = document.part.numbering_part.element
        except (KeyError, NotImplementedError):
            self._numbering = None

    def number_format(self, num_id: Optional[str], level: int) -> str:
        """The ``w:numFmt`` of a numbering definition level, ``decimal`` if unknown."""
        key = (num_id, level)
        if key in self._formats:
            return self._formats[key]
        fmt = "decimal"
        if self._numbering is not None and num_id is not None:
            abstract_ids = self._numbering.xpath(
                f'./w:num[@w:numId="{num_id}"]/w:abstractNumId/@w:val'
            )
            if abstract_ids:
                formats = self._numbering.xpath(
                    f'./w:abstractNum[@w:abstractNumId="{abstract_ids[0]}"]'
                    f'/w:lvl[@w:ilvl="{level}"]/w:numFmt/@w:val'
                )
                if formats:
                    fmt = str(formats[0])
        self._formats[key] = fmt
        return fmt


class _ListBuilder:
    """Accumulates consecutive list paragraphs into one nested list block."""

    def __init__(self):
        self._parts: List[str] = []
        self._stack: List[str] = []

    @property
    def is_open(self) -> bool:
        return bool(self._stack)

    def add_item(self, level: int, tag: str, inner: str) -> None:
        while len(self._stack) > level + 1:
            self._parts.append(f"</{self._stack.pop()}>")
        if len(self._stack) == level + 1 and self._stack[-1] != tag:
            self._parts.append(f"</{self._stack.pop()}>")
        while len(self._stack) < level + 1:
            self._parts.append(f"<{tag}>")
            self._stack.append(tag)
        self._parts.append(f"<li>{inner}</li>")

    def close(self) -> str:
        while self._stack:
            self._parts.append(f"</{self._stack.pop()}>")
        block = "".join(self._parts)
        self._parts = []
        return block
