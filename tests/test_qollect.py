"""Tests for the Qollect orchestrator"""

import pytest

from qollect.core.config import Config
from qollect.core.qollect import Qollect
from qollect.engine.provider import MissingDocumentError, SnapshotEngineClient
from qollect.objects.summary import ItemsSummaryBuilder
from qollect.report.script import SCRIPT_UNAVAILABLE


@pytest.fixture
def qollect(client):
    return Qollect(client)


class TestQollect:
    """Test Qollect.collect"""

    @pytest.mark.asyncio
    async def test_overview(self, qollect):
        report = await qollect.collect(["overview"])
        overview = report.overview
        assert overview.app_name == "Sales Analysis"
        assert overview.app_id == "app-1"
        assert (overview.dimensions, overview.measures, overview.fields) == (2, 2, 9)
        assert (overview.sheets, overview.charts, overview.variables) == (1, 2, 2)
        assert list(report.to_dict()) == ["overview"]

    @pytest.mark.asyncio
    async def test_master_items_with_used_counts(self, qollect):
        report = await qollect.collect(["dimensions", "measures"])
        assert [(d.title, d.used_count) for d in report.dimensions] == [("Geography", 0), ("Region", 1)]
        assert [(m.title, m.used_count) for m in report.measures] == [("margin", 0), ("Sales", 1)]
        assert report.dimensions[0].fields == "Region, Country"
        assert report.measures[1].label == "Total Sales"

    @pytest.mark.asyncio
    async def test_fields(self, qollect):
        report = await qollect.collect(["fields"])
        rows = {row.name: row for row in report.fields}
        assert report.unused_fields == ["Unused Field"]
        assert rows["Unused Field"].usage_state == "UNUSED"
        assert rows["CustomerID"].usage_state == "USED"
        assert rows["CustomerID"].used_in == "Key"
        assert rows["CustomerID"].source_tables == "Sales, Customers"
        assert rows["Country"].used_in == "Chart, Set analysis, Dimension"
        assert [row.name for row in report.fields][0] == "Country"

    @pytest.mark.asyncio
    async def test_sheets_and_variables(self, qollect):
        report = await qollect.collect(["sheets", "variables"])
        assert [(s.id, s.title, s.owner) for s in report.sheets] == [("sheet-1", "Overview", "ana")]
        assert [(v.name, v.is_script_created, v.is_reserved) for v in report.variables] == [
            ("vSalesExpr", "N", ""), ("vThreshold", "Y", "")
        ]

    @pytest.mark.asyncio
    async def test_charts(self, qollect):
        report = await qollect.collect(["charts"])
        assert [c.object_id for c in report.charts] == ["container-1", "chart-1"]
        chart = report.charts[1]
        assert chart.title == "Sales by Region"
        assert chart.sheet_title == "Overview"
        assert chart.is_extension == "N"
        assert chart.is_master == "N"
        assert chart.items.startswith("Dimensions (1)")
        assert report.charts[0].items.startswith("Container items (1)")

    @pytest.mark.asyncio
    async def test_script(self, qollect):
        report = await qollect.collect(["script"])
        assert [t.tab for t in report.script] == ["Main", "Transform"]

    @pytest.mark.asyncio
    async def test_script_unavailable(self, app_snapshot):
        app_snapshot["script"] = None
        report = await Qollect(SnapshotEngineClient(app_snapshot)).collect(["script"])
        assert not report.script_available
        assert report.to_dict() == {"script": {"info": SCRIPT_UNAVAILABLE}}

    @pytest.mark.asyncio
    async def test_default_sections_from_config(self, client):
        config = Config(report={"sections": ["sheets"]})
        report = await Qollect(client, config=config).collect()
        assert report.sections == ["sheets"]
        assert report.fields == []
        assert len(report.sheets) == 1

    @pytest.mark.asyncio
    async def test_failed_section_degrades(self, app_snapshot):
        """A failing list fetch empties its own section only"""

        class NoFields(SnapshotEngineClient):
            async def list_fields(self):
                raise RuntimeError("denied")

        report = await Qollect(NoFields(app_snapshot)).collect(["fields", "sheets"])
        assert report.fields == []
        assert len(report.sheets) == 1

    @pytest.mark.asyncio
    async def test_malformed_object_degrades(self, app_snapshot):
        """An object with non-mapping qDef values does not stop the fields and charts export"""
        app_snapshot["objects"]["sheet-1"]["children"].append("odd-1")
        app_snapshot["objects"]["odd-1"] = {
            "properties": {
                "visualization": "my-extension",
                "title": "Odd",
                "qHyperCubeDef": {"qDimensions": [{"qDef": "oops"}], "qMeasures": [{"qDef": "Sum(Margin)"}]}
            },
            "layout": {}
        }
        report = await Qollect(SnapshotEngineClient(app_snapshot)).collect(["fields", "charts"])
        assert report.unused_fields == ["Unused Field"]
        charts = {c.object_id: c for c in report.charts}
        assert set(charts) == {"chart-1", "container-1", "odd-1"}
        assert charts["odd-1"].is_extension == "Y"
        assert charts["odd-1"].items.startswith("Dimensions (1)")

    @pytest.mark.asyncio
    async def test_failed_items_summary_keeps_the_row(self, qollect, monkeypatch):
        """An items summary failure leaves that chart row with empty items"""
        original = ItemsSummaryBuilder.build_for_object

        async def build_for_object(self, obj, inventory):
            if obj.object_id == "chart-1":
                raise ValueError("unexpected shape")
            return await original(self, obj, inventory)

        monkeypatch.setattr(ItemsSummaryBuilder, "build_for_object", build_for_object)
        report = await qollect.collect(["charts"])
        charts = {c.object_id: c for c in report.charts}
        assert charts["chart-1"].items == ""
        assert charts["container-1"].items.startswith("Container items (1)")

    @pytest.mark.asyncio
    async def test_missing_document(self):
        with pytest.raises(MissingDocumentError):
            await Qollect(SnapshotEngineClient(None)).collect()

    @pytest.mark.asyncio
    async def test_unknown_section(self, qollect):
        with pytest.raises(ValueError):
            await qollect.collect(["bogus"])

    @pytest.mark.asyncio
    async def test_full_report_to_dict(self, qollect):
        data = (await qollect.collect()).to_dict()
        assert list(data) == ["overview", "dimensions", "measures", "variables", "fields", "sheets", "charts", "script"]
        assert data["fields"][0]["usage_state"] in ("USED", "UNUSED")

    @pytest.mark.asyncio
    async def test_repeated_runs_identical(self, qollect):
        first = (await qollect.collect()).to_dict()
        second = (await qollect.collect()).to_dict()
        assert first == second

    def test_log_file(self, client, tmp_path):
        log_file = tmp_path / "logs" / "qollect.log"
        Qollect(client, config=Config(system={"log_file": str(log_file)}))
        assert log_file.parent.exists()
