"""Integration tests for the end-to-end import pipeline."""

import io
import json

import pytest
from openpyxl import Workbook
from typer.testing import CliRunner

from odp_import.cli import app
from odp_import.config import StoreSettings, SystemConfiguration
from odp_import.models.import_data import RequirementData, StructuredImportData
from odp_import.service import ImportService


@pytest.fixture
def sql_service(tmp_path):
    """Import service over a fresh SQLite store."""
    configuration = SystemConfiguration(store=StoreSettings(database_url=f"sqlite:///{tmp_path / 'odp.db'}"))
    service = ImportService(configuration)
    yield service
    service.close()


class TestDocumentImport:
    """Tests for extract, map and import of a Word upload."""

    def test_standard_export_round_trip(self, entity_services, standard_export_docx):
        """Test every reference in the exported document resolves."""
        service = ImportService(entity_services=entity_services)

        summary = service.import_document(standard_export_docx, "export.docx", "STANDARD")

        requirements = entity_services.requirements
        on_1 = requirements.find("ON-1")
        or_1 = requirements.find("OR-1")
        or_2 = requirements.find("OR-2")
        assert summary.requirements == 3
        assert summary.changes == 1
        assert summary.errors == []
        assert or_1.get("implementedONs") == [on_1.id]
        assert or_1.get("path") == ["Airspace"]
        assert or_2.get("refinesParents") == [or_1.id]
        assert or_2.get("dependsOnRequirements") == [or_1.id]
        assert on_1.get("type") == "ON"
        change = entity_services.changes.find("OC-1")
        assert change.get("satisfiesRequirements") == [or_1.id, or_2.id]
        assert change.get("visibility") == "NETWORK"

    def test_unknown_group(self, entity_services, standard_export_docx):
        service = ImportService(entity_services=entity_services)

        summary = service.import_document(standard_export_docx, "export.docx", "UNKNOWN")

        assert summary.errors == ["Import failed: No mapper registered for key 'UNKNOWN'"]
        assert entity_services.requirements.records == {}

    def test_corrupted_upload(self, entity_services):
        service = ImportService(entity_services=entity_services)

        summary = service.import_document(b"not a document", "broken.docx", "STANDARD")

        assert len(summary.errors) == 1
        assert summary.errors[0].startswith("Import failed:")

    def test_extraction_metrics_are_recorded(self, entity_services, standard_export_docx):
        service = ImportService(entity_services=entity_services)

        raw = service.extract_word_document(standard_export_docx, "export.docx")

        assert raw.sections[0].title == "Operational Needs and Requirements"
        stats = service.performance_monitor.stats("extract_word_document")
        assert stats.count == 1
        assert stats.success_rate == 1.0

    def test_standard_export_reimport(self, entity_services, standard_export_docx):
        """Test importing the same standard export twice creates no duplicates."""
        service = ImportService(entity_services=entity_services)
        first = service.import_document(standard_export_docx, "export.docx", "STANDARD")

        second = service.import_document(standard_export_docx, "export.docx", "STANDARD")

        assert first.requirements == 3
        assert second.errors == []
        assert second.requirements == 0
        assert second.changes == 0
        assert second.updated == []
        assert second.skipped == ["ON-1", "OR-1", "OR-2", "OC-1"]
        assert len(entity_services.requirements.records) == 3
        assert len(entity_services.changes.records) == 1

    def test_excel_extraction_is_tracked(self, entity_services):
        workbook = Workbook()
        workbook.active.append(["Code", "Title"])
        workbook.active.append(["OR-1", "First"])
        buffer = io.BytesIO()
        workbook.save(buffer)
        service = ImportService(entity_services=entity_services)

        raw = service.extract_excel_document(buffer.getvalue(), "plan.xlsx")

        assert raw.sheets[0].rows == ({"Code": "OR-1", "Title": "First"},)
        assert service.performance_monitor.stats("extract_excel_document").count == 1


class TestSqlStoreImport:
    """Tests for imports persisted through SQLAlchemy."""

    def test_refinement_sets_parent(self, sql_service):
        """Test the stored child points at its parent after resolution."""
        data = StructuredImportData(requirements=[
            RequirementData("or:b", "Child", refines="or:a"),
            RequirementData("or:a", "Parent"),
        ])

        summary = sql_service.import_structured_data(data)

        records = {r.external_id: r for r in sql_service.entity_services.requirements.get_all("tester")}
        assert summary.errors == []
        assert records["or:b"].parent_id == records["or:a"].id
        assert records["or:b"].version_id == 2

    def test_second_import_sees_first(self, sql_service):
        """Test persisted requirements are seeded by title path."""
        sql_service.import_structured_data(StructuredImportData(requirements=[
            RequirementData("ON-1", "Need", type="ON"),
            RequirementData("ON-2", "Detail", type="ON", refines="ON-1"),
        ]))

        summary = sql_service.import_structured_data(StructuredImportData(requirements=[
            RequirementData("OR-1", "Req", implemented_ons=["Need/Detail"]),
        ]))

        records = {r.external_id: r for r in sql_service.entity_services.requirements.get_all("tester")}
        assert summary.warnings == []
        assert records["OR-1"].get("implementedONs") == [records["ON-2"].id]

    def test_in_memory_store(self):
        """Test an in-memory SQLite store is shared by every seed load."""
        service = ImportService(SystemConfiguration(store=StoreSettings(database_url="sqlite://")))
        data = StructuredImportData(requirements=[
            RequirementData("or:b", "Child", refines="or:a"),
            RequirementData("or:a", "Parent"),
        ])

        try:
            summary = service.import_structured_data(data)
            records = {r.external_id: r for r in service.entity_services.requirements.get_all("tester")}
        finally:
            service.close()

        assert summary.errors == []
        assert records["or:b"].parent_id == records["or:a"].id

    def test_standard_reimport_updates_stored_rows(self, sql_service, standard_export_docx):
        """Test a standard re-import against SQLite creates nothing new."""
        sql_service.import_document(standard_export_docx, "export.docx", "STANDARD")

        summary = sql_service.import_document(standard_export_docx, "export.docx", "STANDARD")

        stored = sql_service.entity_services.requirements.get_all("tester")
        assert summary.errors == []
        assert summary.requirements == 0
        assert sorted(r.external_id for r in stored) == ["ON-1", "OR-1", "OR-2"]


class TestCli:
    """Tests for the command-line interface."""

    def test_extract_then_map(self, tmp_path, standard_export_docx):
        runner = CliRunner()
        source = tmp_path / "export.docx"
        source.write_bytes(standard_export_docx)
        extracted = tmp_path / "extracted.json"
        mapped = tmp_path / "mapped.json"

        first = runner.invoke(app, ["extract", str(source), "-o", str(extracted)])
        second = runner.invoke(app, ["map", str(extracted), "-g", "STANDARD", "-o", str(mapped)])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        data = json.loads(mapped.read_text(encoding="utf-8"))
        assert [r["externalId"] for r in data["requirements"]] == ["ON-1", "OR-1", "OR-2"]

    def test_run_against_sqlite(self, tmp_path, standard_export_docx):
        runner = CliRunner()
        source = tmp_path / "export.docx"
        source.write_bytes(standard_export_docx)

        result = runner.invoke(app, [
            "run", str(source), "--database-url", f"sqlite:///{tmp_path / 'cli.db'}",
        ])

        assert result.exit_code == 0, result.output
        assert "Import summary" in result.output

    def test_run_missing_file(self, tmp_path):
        result = CliRunner().invoke(app, ["run", str(tmp_path / "missing.docx")])

        assert result.exit_code == 1
