"""Structured import data produced by mappers and consumed by the importer.

Every entity carries a caller-facing ``external_id``. Reference fields hold
external identifiers that are still unresolved; the resolution engine turns
them into internal ids while importing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


@dataclass
class DocumentReferenceData:
    """Reference to a document by external id (or name) with an optional note."""
    document_external_id: str
    note: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentReferenceData":
        return cls(
            document_external_id=data.get("documentExternalId") or "",
            note=data.get("note") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"documentExternalId": self.document_external_id}
        if self.note:
            result["note"] = self.note
        return result


@dataclass
class DocumentData:
    """Reference document (regulation, CONOPS, ...)."""
    external_id: str
    title: str
    version: str = ""
    description: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentData":
        return cls(
            external_id=data["externalId"],
            title=data.get("title") or data.get("name") or data["externalId"],
            version=data.get("version") or "",
            description=data.get("description") or "",
            url=data.get("url") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "title": self.title,
            "version": self.version,
            "description": self.description,
            "url": self.url,
        }


@dataclass
class SetupEntityData:
    """
    Hierarchical reference data item.

    Used for stakeholder categories, data categories and services, which
    all form trees through ``parent_external_id``.
    """
    external_id: str
    title: str
    description: str = ""
    parent_external_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetupEntityData":
        return cls(
            external_id=data["externalId"],
            title=data.get("title") or data.get("name") or data["externalId"],
            description=data.get("description") or "",
            parent_external_id=data.get("parentExternalId") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "title": self.title,
            "description": self.description,
            "parentExternalId": self.parent_external_id,
        }


@dataclass
class WaveData:
    """Deployment time period."""
    external_id: str
    title: str
    year: Optional[int] = None
    quarter: Optional[int] = None
    date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaveData":
        return cls(
            external_id=data["externalId"],
            title=data.get("title") or data.get("name") or data["externalId"],
            year=data.get("year"),
            quarter=data.get("quarter"),
            date=data.get("date"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "title": self.title,
            "year": self.year,
            "quarter": self.quarter,
            "date": self.date,
        }


@dataclass
class MilestoneData:
    """Milestone of an operational change, targeting a wave."""
    wave: Optional[str] = None
    event_type: Optional[str] = None
    title: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MilestoneData":
        return cls(
            wave=data.get("wave"),
            event_type=data.get("eventType"),
            title=data.get("title") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"wave": self.wave, "eventType": self.event_type, "title": self.title}


@dataclass
class RequirementData:
    """Operational Need or Operational Requirement awaiting import."""
    external_id: str
    title: str
    type: str = "OR"
    drg: Optional[str] = None
    statement: str = ""
    rationale: str = ""
    flows: str = ""
    private_notes: str = ""
    path: List[str] = field(default_factory=list)
    refines: Optional[str] = None
    implemented_ons: List[str] = field(default_factory=list)
    impacts_stakeholder_categories: List[str] = field(default_factory=list)
    impacts_data: List[str] = field(default_factory=list)
    impacts_services: List[str] = field(default_factory=list)
    document_references: List[DocumentReferenceData] = field(default_factory=list)
    depends_on_requirements: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequirementData":
        refines = data.get("refines") or data.get("parentExternalId")
        if isinstance(refines, list):
            refines = refines[0] if refines else None
        return cls(
            external_id=data["externalId"],
            title=data.get("title") or data["externalId"],
            type=data.get("type") or "OR",
            drg=data.get("drg"),
            statement=data.get("statement") or "",
            rationale=data.get("rationale") or "",
            flows=data.get("flows") or "",
            private_notes=data.get("privateNotes") or "",
            path=_str_list(data.get("path")),
            refines=refines or None,
            implemented_ons=_str_list(data.get("implementedONs")),
            impacts_stakeholder_categories=_str_list(data.get("impactsStakeholderCategories")),
            impacts_data=_str_list(data.get("impactsData")),
            impacts_services=_str_list(data.get("impactsServices")),
            document_references=[
                DocumentReferenceData.from_dict(ref) for ref in data.get("documentReferences") or []
            ],
            depends_on_requirements=_str_list(data.get("dependsOnRequirements")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "title": self.title,
            "type": self.type,
            "drg": self.drg,
            "statement": self.statement,
            "rationale": self.rationale,
            "flows": self.flows,
            "privateNotes": self.private_notes,
            "path": list(self.path),
            "refines": self.refines,
            "implementedONs": list(self.implemented_ons),
            "impactsStakeholderCategories": list(self.impacts_stakeholder_categories),
            "impactsData": list(self.impacts_data),
            "impactsServices": list(self.impacts_services),
            "documentReferences": [ref.to_dict() for ref in self.document_references],
            "dependsOnRequirements": list(self.depends_on_requirements),
        }


@dataclass
class ChangeData:
    """Operational Change awaiting import."""
    external_id: str
    title: str
    drg: Optional[str] = None
    purpose: str = ""
    initial_state: str = ""
    final_state: str = ""
    details: str = ""
    private_notes: str = ""
    path: List[str] = field(default_factory=list)
    visibility: Optional[str] = None
    satisfied_ors: List[str] = field(default_factory=list)
    superseded_ors: List[str] = field(default_factory=list)
    document_references: List[DocumentReferenceData] = field(default_factory=list)
    depends_on_changes: List[str] = field(default_factory=list)
    milestones: List[MilestoneData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeData":
        return cls(
            external_id=data["externalId"],
            title=data.get("title") or data["externalId"],
            drg=data.get("drg"),
            purpose=data.get("purpose") or "",
            initial_state=data.get("initialState") or "",
            final_state=data.get("finalState") or "",
            details=data.get("details") or "",
            private_notes=data.get("privateNotes") or "",
            path=_str_list(data.get("path")),
            visibility=data.get("visibility"),
            satisfied_ors=_str_list(data.get("satisfiedORs")),
            superseded_ors=_str_list(data.get("supersededORs")),
            document_references=[
                DocumentReferenceData.from_dict(ref) for ref in data.get("documentReferences") or []
            ],
            depends_on_changes=_str_list(data.get("dependsOnChanges")),
            milestones=[MilestoneData.from_dict(m) for m in data.get("milestones") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "title": self.title,
            "drg": self.drg,
            "purpose": self.purpose,
            "initialState": self.initial_state,
            "finalState": self.final_state,
            "details": self.details,
            "privateNotes": self.private_notes,
            "path": list(self.path),
            "visibility": self.visibility,
            "satisfiedORs": list(self.satisfied_ors),
            "supersededORs": list(self.superseded_ors),
            "documentReferences": [ref.to_dict() for ref in self.document_references],
            "dependsOnChanges": list(self.depends_on_changes),
            "milestones": [m.to_dict() for m in self.milestones],
        }


@dataclass
class StructuredImportData:
    """Mapper output: every entity class, not yet linked."""
    documents: List[DocumentData] = field(default_factory=list)
    stakeholder_categories: List[SetupEntityData] = field(default_factory=list)
    data_categories: List[SetupEntityData] = field(default_factory=list)
    services: List[SetupEntityData] = field(default_factory=list)
    waves: List[WaveData] = field(default_factory=list)
    requirements: List[RequirementData] = field(default_factory=list)
    changes: List[ChangeData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredImportData":
        return cls(
            documents=[DocumentData.from_dict(d) for d in data.get("documents") or []],
            stakeholder_categories=[
                SetupEntityData.from_dict(d) for d in data.get("stakeholderCategories") or []
            ],
            data_categories=[SetupEntityData.from_dict(d) for d in data.get("dataCategories") or []],
            services=[SetupEntityData.from_dict(d) for d in data.get("services") or []],
            waves=[WaveData.from_dict(d) for d in data.get("waves") or []],
            requirements=[RequirementData.from_dict(d) for d in data.get("requirements") or []],
            changes=[ChangeData.from_dict(d) for d in data.get("changes") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": [d.to_dict() for d in self.documents],
            "stakeholderCategories": [d.to_dict() for d in self.stakeholder_categories],
            "dataCategories": [d.to_dict() for d in self.data_categories],
            "services": [d.to_dict() for d in self.services],
            "waves": [d.to_dict() for d in self.waves],
            "requirements": [d.to_dict() for d in self.requirements],
            "changes": [d.to_dict() for d in self.changes],
        }

    def is_empty(self) -> bool:
        return not any((
            self.documents,
            self.stakeholder_categories,
            self.data_categories,
            self.services,
            self.waves,
            self.requirements,
            self.changes,
        ))


@dataclass
class ImportSummary:
    """Per-class creation counts plus every diagnostic raised during an import."""
    documents: int = 0
    stakeholder_categories: int = 0
    data_categories: int = 0
    services: int = 0
    waves: int = 0
    requirements: int = 0
    changes: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def is_partial(self) -> bool:
        """True when the import succeeded only partially."""
        return bool(self.errors or self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": self.documents,
            "stakeholderCategories": self.stakeholder_categories,
            "dataCategories": self.data_categories,
            "services": self.services,
            "waves": self.waves,
            "requirements": self.requirements,
            "changes": self.changes,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class StandardImportSummary(ImportSummary):
    """
    Summary of re-importing a standard export.

    The per-class counts are entities created by this import; ``updated``
    and ``skipped`` name the existing entities that were changed or left
    untouched.
    """
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["updated"] = list(self.updated)
        result["skipped"] = list(self.skipped)
        return result
