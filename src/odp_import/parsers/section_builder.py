"""Section tree construction from an ordered element sequence."""

import logging
import re
from typing import List, Optional, Tuple

from ..models.document import ContentElement, ImageData, Section, SectionContent
from ..models.enums import ElementType
from .exceptions import ErrorHandler

logger = logging.getLogger(__name__)

MAX_HEADING_LEVEL = 9

IMAGE_TOKEN_PATTERN = re.compile(r"image:data:([^;\s\[\]]+);base64,([A-Za-z0-9+/=]*)\[\]")
BOLD_RUN_PATTERN = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)


def split_images(text: str) -> Tuple[str, List[ImageData]]:
    """Lift inline image tokens out of ``text``."""
    images = [
        ImageData(content_type=match.group(1), data=match.group(2))
        for match in IMAGE_TOKEN_PATTERN.finditer(text)
    ]
    if not images:
        return text, images
    remaining = IMAGE_TOKEN_PATTERN.sub("", text)
    lines = [line.strip() for line in remaining.split("\n")]
    return "\n".join(line for line in lines if line).strip(), images


class SectionTreeBuilder:
    """
    Builds the numbered section tree.

    Sections live in an index arena while the tree is being built; the
    stack holds arena indexes of the currently open sections, shallowest
    first. Counters for skipped heading levels stay at zero, so an ``h3``
    directly below an ``h1`` numbers as ``1.0.1``.

    Args:
        default_title: Title of the synthesized root when nothing better
            is found in the content.
        max_default_title_length: Longest paragraph usable as that title.
    """

    def __init__(self, default_title: str = "Content", max_default_title_length: int = 100):
        self.default_title = default_title
        self.max_default_title_length = max_default_title_length

    def build(
        self,
        elements: List[ContentElement],
        error_handler: Optional[ErrorHandler] = None,
    ) -> List[Section]:
        """Return the root sections built from ``elements``."""
        arena: List[Section] = []
        roots: List[int] = []
        stack: List[int] = []
        counters = [0] * (MAX_HEADING_LEVEL + 1)
        preamble: List[ContentElement] = []

        for element in elements:
            if element.type == ElementType.HEADING:
                level = min(max(element.level or 1, 1), MAX_HEADING_LEVEL)
                counters[level] += 1
                for deeper in range(level + 1, MAX_HEADING_LEVEL + 1):
                    counters[deeper] = 0
                number = ".".join(str(counters[k]) for k in range(1, level + 1))

                while stack and arena[stack[-1]].level >= level:
                    stack.pop()
                parent_path = arena[stack[-1]].path if stack else ()
                section = Section(
                    level=level,
                    section_number=number,
                    title=element.text,
                    path=parent_path + (element.text,),
                    anchor_id=element.anchor_id,
                )
                arena.append(section)
                index = len(arena) - 1
                if stack:
                    arena[stack[-1]].subsections.append(section)
                else:
                    roots.append(index)
                stack.append(index)
            elif stack:
                self._attach(arena[stack[-1]].content, element)
            else:
                preamble.append(element)

        if not arena:
            if not elements:
                return []
            return [self._synthesize_root(elements)]

        if preamble:
            message = f"Dropped {len(preamble)} content elements before the first heading"
            logger.warning(message)
            if error_handler is not None:
                error_handler.add_warning(message)

        logger.debug(f"Built {len(arena)} sections under {len(roots)} roots")
        return [arena[index] for index in roots]

    def _synthesize_root(self, elements: List[ContentElement]) -> Section:
        title = self._default_title(elements)
        logger.info(f"No headings found, synthesizing root section '{title}'")
        root = Section(level=1, section_number="1", title=title, path=(title,))
        for element in elements:
            self._attach(root.content, element)
        return root

    def _default_title(self, elements: List[ContentElement]) -> str:
        for element in elements:
            if element.type != ElementType.TABLE:
                match = BOLD_RUN_PATTERN.search(element.text)
                if match and match.group(1).strip():
                    return match.group(1).strip()
        for element in elements:
            if element.type == ElementType.PARAGRAPH and not element.is_list:
                text, _ = split_images(element.text)
                if text and len(text) <= self.max_default_title_length:
                    return text
        return self.default_title

    @staticmethod
    def _attach(content: SectionContent, element: ContentElement) -> None:
        if element.type == ElementType.TABLE:
            if element.table is not None:
                content.tables.append(element.table)
            return
        text, images = split_images(element.text)
        content.images.extend(images)
        if text:
            content.paragraphs.append(text)
