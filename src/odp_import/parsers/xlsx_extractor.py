"""Excel workbook extraction into RawExtractedData."""

import io
import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

from openpyxl import load_workbook

from ..interfaces.extractor import IDocumentExtractor
from ..models.document import ExtractionMetadata, RawExtractedData, SheetData
from ..models.enums import DocumentType
from .exceptions import DocumentCorruptedError
from .word_extractor import utc_timestamp

logger = logging.getLogger(__name__)

EMPTY_HEADER = "__EMPTY"


def cell_text(value: Any) -> str:
    """Formatted text of one cell value; empty cells give ``""``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def header_names(cells: Iterable[Any]) -> List[str]:
    """
    Column names taken from the first row of a sheet.

    Blank headers are named ``__EMPTY``, ``__EMPTY_1``... and repeated
    headers get a ``_1``, ``_2``... suffix so that no column is lost.
    """
    names: List[str] = []
    seen: Dict[str, int] = {}
    for cell in cells:
        base = cell_text(cell).strip() or EMPTY_HEADER
        name = base
        while name in seen:
            seen[base] += 1
            name = f"{base}_{seen[base]}"
        seen.setdefault(name, 0)
        names.append(name)
    return names


class XlsxExtractor(IDocumentExtractor):
    """
    Reads every worksheet of an ``.xlsx`` workbook as a list of rows.

    The first row of a sheet holds the column names; each following
    non-blank row becomes a dict of column name to cell text. Formulas
    are read as their cached values.
    """

    def extract(self, data: bytes, filename: str) -> RawExtractedData:
        """
        Extract the sheets of a workbook.

        Raises:
            DocumentCorruptedError: If the file is not a readable workbook.
        """
        logger.info(f"Extracting Excel document {filename}")
        try:
            workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except Exception as e:
            raise DocumentCorruptedError(
                message="Failed to extract Excel document",
                file_path=filename,
                location="workbook",
                details={"original_error": str(e)},
            ) from e

        try:
            sheets = tuple(self._read_sheet(ws.title, ws.iter_rows(values_only=True)) for ws in workbook.worksheets)
        except Exception as e:
            raise DocumentCorruptedError(
                message="Failed to extract Excel document",
                file_path=filename,
                location="worksheet",
                details={"original_error": str(e)},
            ) from e
        finally:
            workbook.close()

        for sheet in sheets:
            logger.info(f"Sheet '{sheet.name}': {len(sheet.rows)} rows")

        return RawExtractedData(
            document_type=DocumentType.EXCEL,
            metadata=ExtractionMetadata(
                filename=filename,
                parsed_at=utc_timestamp(),
                sheet_count=len(sheets),
            ),
            sheets=sheets,
        )

    @staticmethod
    def _read_sheet(name: str, rows: Iterable[tuple]) -> SheetData:
        iterator = iter(rows)
        first: Optional[tuple] = next(iterator, None)
        if first is None:
            return SheetData(name=name)
        headers = header_names(first)
        records = []
        for values in iterator:
            texts = [cell_text(v) for v in values]
            if not any(t.strip() for t in texts):
                continue
            texts += [""] * (len(headers) - len(texts))
            records.append(dict(zip(headers, texts)))
        return SheetData(name=name, rows=tuple(records))
