"""Tests for object items summaries"""

import pytest

from qollect.engine.models import VisualizationObject
from qollect.engine.provider import SnapshotEngineClient
from qollect.objects.inventory import ObjectInventory
from qollect.objects.summary import (
    ItemsSummaryBuilder, dedupe_slots, display_title, format_expression, format_field, format_master, is_guid_like,
    pretty_visualization_name, title_from_properties, truncate
)
from qollect.usage.master_cache import MasterItemCache


class TestFormatting:
    """Test summary formatting helpers"""

    def test_truncate(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcdefgh", 5) == "abcd…"
        assert truncate(None) == ""

    def test_format_master(self):
        assert format_master(" Region ") == "[Master Item: Region]"
        assert format_master("") == "[Master Item: (no title)]"

    def test_format_field(self):
        assert format_field("Region") == "[Field: Region]"
        assert format_field("Region", "Region") == "[Field: Region]"
        assert format_field("Region→Country", "Geo") == "[Field: Region→Country, Label: Geo]"

    def test_format_expression(self):
        assert format_expression("Sum(Sales)") == "[Expression: Sum(Sales)]"
        assert format_expression("Sum(Sales)", "Total") == "[Expression: Sum(Sales), Label: Total]"
        assert format_expression("x" * 200, length=10) == "[Expression: xxxxxxxxx…]"

    def test_guid_and_names(self):
        assert is_guid_like("3f2504e0-4f89-11d3-9a0c-0305e82c3301")
        assert not is_guid_like("Sales chart")
        assert pretty_visualization_name("barchart") == "Bar chart"
        assert pretty_visualization_name("my-customViz") == "My custom viz"
        assert pretty_visualization_name("") == "Chart"

    def test_display_title(self):
        assert display_title("Sales", "barchart", "c1") == ("Sales", False)
        assert display_title("", "barchart", "c1") == ("Container > Bar chart", True)
        assert display_title("c1", "kpi", "c1") == ("Container > KPI", True)

    def test_title_from_properties(self):
        assert title_from_properties({"title": "Plain"}) == "Plain"
        assert title_from_properties({"title": {"qStringExpression": "='Dyn'"}}) == "='Dyn'"
        assert title_from_properties({"qMetaDef": {"title": "Meta"}}) == "Meta"
        assert title_from_properties(None) == ""

    def test_dedupe_slots(self):
        slots = [{"qLibraryId": "a"}, {"qLibraryId": "a"}, {"qDef": {"qDef": "x"}}, {"qDef": {"qDef": "x"}}, "junk"]
        assert dedupe_slots(slots) == [{"qLibraryId": "a"}, {"qDef": {"qDef": "x"}}]


class TestItemsSummaryBuilder:
    """Test ItemsSummaryBuilder"""

    @pytest.mark.asyncio
    async def test_chart_summary(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        inventory = await ObjectInventory(client).enumerate()
        chart = next(o for o in inventory if o.object_id == "chart-1")
        summary = await builder.build_for_object(chart, inventory)
        assert summary.split("\r\n") == [
            "Dimensions (1)",
            "   • [Master Item: Region]",
            "Measures (2)",
            "   • [Master Item: Total Sales]",
            "   • [Expression: $(vSalesExpr), Label: Qty]",
        ]

    @pytest.mark.asyncio
    async def test_master_titles_resolved_without_layout(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        properties = {"qHyperCubeDef": {"qDimensions": [{"qLibraryId": "dim-geo"}], "qMeasures": [{"qLibraryId": "msr-sales"}]}}
        summary = await builder.build(properties, {})
        assert "   • [Master Item: Geography]" in summary.split("\r\n")
        assert "   • [Master Item: Total Sales]" in summary.split("\r\n")

    @pytest.mark.asyncio
    async def test_alternates_from_properties_and_layout(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        properties = {
            "qHyperCubeDef": {"qDimensions": [], "qMeasures": []},
            "qLayoutExclude": {"qHyperCubeDef": {
                "qDimensions": [{"qDef": {"qFieldDefs": ["Country"], "qLabel": "Land"}}],
                "qMeasures": [{"qLibraryId": "msr-sales"}]
            }}
        }
        layout = {"qLayoutExclude": {"qHyperCubeDef": {"qMeasures": [{"qLibraryId": "msr-sales"}, {"qLibraryId": "msr-margin"}]}}}
        lines = (await builder.build(properties, layout)).split("\r\n")
        assert lines == [
            "Alternate Dimensions (1)",
            "   • Alt: [Field: Country, Label: Land]",
            "Alternate Measures (2)",
            "   • Alt: [Master Item: Total Sales]",
            "   • Alt: [Master Item: margin]",
        ]

    @pytest.mark.asyncio
    async def test_nested_hypercube(self, client):
        """A hypercube under an extension wrapper is found"""
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        properties = {"ext": {"qHyperCubeDef": {"qDimensions": [{"qDef": {"qFieldDefs": ["Region", "Country"]}}]}}}
        layout = {"ext": {"qHyperCube": {"qDimensionInfo": [{"qFallbackTitle": "Geo"}]}}}
        summary = await builder.build(properties, layout)
        assert summary == "Dimensions (1)\r\n   • [Field: Region→Country, Label: Geo]"

    @pytest.mark.asyncio
    async def test_malformed_slots(self, client):
        """Slots whose qDef is not a mapping still get a bullet"""
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        properties = {"qHyperCubeDef": {"qDimensions": [{"qDef": "oops"}], "qMeasures": [{"qDef": "Sum(B)"}]}}
        summary = await builder.build(properties, {})
        assert summary.split("\r\n") == [
            "Dimensions (1)",
            "   • [Field: Field]",
            "Measures (1)",
            "   • [Expression: ]",
        ]

    @pytest.mark.asyncio
    async def test_empty_object(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        assert await builder.build({"visualization": "textimage"}, {}) == ""

    @pytest.mark.asyncio
    async def test_container_summary(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        inventory = await ObjectInventory(client).enumerate()
        container = next(o for o in inventory if o.object_id == "container-1")
        lines = (await builder.build_for_object(container, inventory)).split("\r\n")
        assert lines == [
            "Container items (1)",
            "• Yearly (linechart)",
            "   Dimensions (1)",
            "      • [Field: OrderDate.autoCalendar.Year]",
            "   Measures (1)",
            "      • [Expression: Sum({<Country={'DK'}>} Sales)]",
        ]

    @pytest.mark.asyncio
    async def test_nested_containers_are_bounded(self):
        client = SnapshotEngineClient({
            "sheets": [{"qInfo": {"qId": "s1"}}],
            "objects": {
                "s1": {"properties": {}, "children": ["box-0"]},
                **{
                    f"box-{i}": {"properties": {"visualization": "container"}, "layout": {}, "children": [f"box-{i + 1}"]}
                    for i in range(6)
                },
                "box-6": {"properties": {"visualization": "container"}, "layout": {}},
            }
        })
        inventory = await ObjectInventory(client).enumerate()
        builder = ItemsSummaryBuilder(MasterItemCache(client), max_container_depth=1)
        summary = await builder.build_for_object(inventory[0], inventory)
        assert summary.count("Container items") == 2

    @pytest.mark.asyncio
    async def test_guid_child_title_falls_back(self, client):
        builder = ItemsSummaryBuilder(MasterItemCache(client))
        container = VisualizationObject(object_id="box", sheet_id="s1", parent_id="s1", properties={"visualization": "container"})
        child = VisualizationObject(
            object_id="3f2504e0-4f89-11d3-9a0c-0305e82c3301", sheet_id="s1", parent_id="box",
            properties={"visualization": "piechart", "title": "3f2504e0-4f89-11d3-9a0c-0305e82c3301"}
        )
        summary = await builder.build_for_object(container, [container, child])
        assert summary.split("\r\n") == ["Container items (1)", "• Container > Pie chart"]
