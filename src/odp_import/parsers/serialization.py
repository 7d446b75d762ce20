"""Serialization and deserialization of extracted documents."""

import json
from typing import Any, Dict

from ..models.document import (
    ExtractionMetadata,
    ImageData,
    RawExtractedData,
    Section,
    SectionContent,
    SheetData,
    TableData,
)
from ..models.enums import DocumentType


class RawDataSerializer:
    """
    Converts RawExtractedData to and from its JSON wire form.

    Wire keys are camelCase (``documentType``, ``sectionNumber``,
    ``parsedAt``...). Optional section attributes are only written when set.
    """

    @staticmethod
    def serialize(raw: RawExtractedData) -> str:
        return json.dumps(RawDataSerializer.to_dict(raw), ensure_ascii=False, indent=2)

    @staticmethod
    def deserialize(json_str: str) -> RawExtractedData:
        """
        Rebuild RawExtractedData from JSON.

        Raises:
            ValueError: If the JSON is invalid or malformed.
        """
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {str(e)}")
        return RawDataSerializer.from_dict(data)

    @staticmethod
    def to_dict(raw: RawExtractedData) -> Dict[str, Any]:
        result = {
            "documentType": raw.document_type.value,
            "metadata": {
                "filename": raw.metadata.filename,
                "parsedAt": raw.metadata.parsed_at,
                "messages": list(raw.metadata.messages),
            },
            "sections": [RawDataSerializer._section_to_dict(s) for s in raw.sections],
        }
        if raw.metadata.sheet_count is not None:
            result["metadata"]["sheetCount"] = raw.metadata.sheet_count
        if raw.sheets:
            result["sheets"] = [{"name": s.name, "rows": [dict(r) for r in s.rows]} for s in raw.sheets]
        return result

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> RawExtractedData:
        if not isinstance(data, dict):
            raise ValueError("Expected dictionary for RawExtractedData")
        for required in ("documentType", "metadata"):
            if required not in data:
                raise ValueError(f"Missing required field: {required}")
        metadata = data["metadata"] or {}
        return RawExtractedData(
            document_type=DocumentType(data["documentType"]),
            metadata=ExtractionMetadata(
                filename=metadata.get("filename", ""),
                parsed_at=metadata.get("parsedAt", ""),
                messages=tuple(metadata.get("messages", [])),
                sheet_count=metadata.get("sheetCount"),
            ),
            sections=tuple(RawDataSerializer._dict_to_section(s) for s in data.get("sections", [])),
            sheets=tuple(
                SheetData(name=s["name"], rows=tuple(dict(r) for r in s.get("rows", [])))
                for s in data.get("sheets", [])
            ),
        )

    @staticmethod
    def _section_to_dict(section: Section) -> Dict[str, Any]:
        result = {
            "level": section.level,
            "sectionNumber": section.section_number,
            "title": section.title,
            "path": list(section.path),
            "content": {
                "paragraphs": list(section.content.paragraphs),
                "tables": [{"rows": table.rows} for table in section.content.tables],
                "images": [
                    {"contentType": image.content_type, "data": image.data, "encoding": image.encoding}
                    for image in section.content.images
                ],
            },
            "subsections": [RawDataSerializer._section_to_dict(s) for s in section.subsections],
        }
        if section.anchor_id:
            result["anchorId"] = section.anchor_id
        if section.identifier:
            result["identifier"] = section.identifier
        if section.is_organizational:
            result["isOrganizational"] = True
        return result

    @staticmethod
    def _dict_to_section(data: Dict[str, Any]) -> Section:
        if not isinstance(data, dict):
            raise ValueError("Expected dictionary for Section")
        if "title" not in data:
            raise ValueError("Missing required field 'title' in Section")
        content = data.get("content") or {}
        return Section(
            level=data.get("level", 1),
            section_number=data.get("sectionNumber", ""),
            title=data["title"],
            path=tuple(data.get("path") or [data["title"]]),
            subsections=[RawDataSerializer._dict_to_section(s) for s in data.get("subsections", [])],
            content=SectionContent(
                paragraphs=list(content.get("paragraphs", [])),
                tables=[TableData(rows=t.get("rows", [])) for t in content.get("tables", [])],
                images=[
                    ImageData(
                        content_type=i["contentType"],
                        data=i["data"],
                        encoding=i.get("encoding", "base64"),
                    )
                    for i in content.get("images", [])
                ],
            ),
            anchor_id=data.get("anchorId"),
            identifier=data.get("identifier"),
            is_organizational=bool(data.get("isOrganizational", False)),
        )


def serialize_raw_data(raw: RawExtractedData) -> str:
    """Convenience function to serialize RawExtractedData."""
    return RawDataSerializer.serialize(raw)


def deserialize_raw_data(json_str: str) -> RawExtractedData:
    """Convenience function to deserialize RawExtractedData."""
    return RawDataSerializer.deserialize(json_str)
