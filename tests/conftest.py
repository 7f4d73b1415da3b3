"""Shared fixtures: a small app snapshot exercising most object shapes."""

import copy
import json

import pytest

from qollect.engine.provider import SnapshotEngineClient

SCRIPT = """///$tab Main
SET vThreshold = 10;
Sales:
LOAD * FROM [lib://Data/sales.qvd] (qvd);
///$tab Transform
// LOAD commented out
Orders:
LOAD OrderID RESIDENT Sales;
STORE Orders INTO 'lib://Out/orders.qvd' (qvd);
"""

APP_SNAPSHOT = {
    "app": {"id": "app-1", "qTitle": "Sales Analysis"},
    "sheets": [
        {"qInfo": {"qId": "sheet-1"}, "qMeta": {"title": "Overview", "description": "Main sheet", "owner": {"name": "ana"}}}
    ],
    "objects": {
        "sheet-1": {
            "properties": {"qInfo": {"qId": "sheet-1"}, "cells": [{"name": "chart-1"}, {"name": "container-1"}]},
            "layout": {},
            "children": ["chart-1", "container-1"]
        },
        "chart-1": {
            "properties": {
                "qInfo": {"qId": "chart-1"},
                "visualization": "barchart",
                "title": "Sales by Region",
                "qHyperCubeDef": {
                    "qDimensions": [{"qLibraryId": "dim-region", "qDef": {}}],
                    "qMeasures": [
                        {"qLibraryId": "msr-sales", "qDef": {}},
                        {"qDef": {"qDef": "$(vSalesExpr)", "qLabel": "Qty"}}
                    ]
                }
            },
            "layout": {
                "qHyperCube": {
                    "qDimensionInfo": [{"qFallbackTitle": "Region"}],
                    "qMeasureInfo": [{"qFallbackTitle": "Total Sales"}, {"qFallbackTitle": "Qty"}]
                }
            }
        },
        "container-1": {
            "properties": {"qInfo": {"qId": "container-1"}, "visualization": "container", "title": ""},
            "layout": {"qChildList": {"qItems": [{"qInfo": {"qId": "chart-2"}, "qData": {"title": "Yearly"}}]}},
            "children": ["chart-2"]
        },
        "chart-2": {
            "properties": {
                "qInfo": {"qId": "chart-2"},
                "visualization": "linechart",
                "title": "Yearly",
                "qHyperCubeDef": {
                    "qDimensions": [{"qDef": {"qFieldDefs": ["OrderDate.autoCalendar.Year"]}}],
                    "qMeasures": [{"qDef": {"qDef": "Sum({<Country={'DK'}>} Sales)"}}]
                }
            }
        }
    },
    "dimensions": {
        "dim-region": {"qDim": {"qFieldDefs": ["Region"]}, "qMetaDef": {"title": "Region", "tags": ["geo"]}},
        "dim-geo": {
            "qDim": {"qFieldDefs": [], "qDrillDownFieldDefs": ["Region", "Country"]},
            "qMetaDef": {"title": "Geography", "description": "Drill-down"}
        }
    },
    "measures": {
        "msr-sales": {"qMeasure": {"qDef": "Sum(Sales)", "qLabel": "Total Sales"}, "qMetaDef": {"title": "Sales"}},
        "msr-margin": {"qMeasure": {"qDef": "Sum([Margin])"}, "qMetaDef": {"title": "margin"}}
    },
    "variables": [
        {"qName": "vThreshold", "qDefinition": "10", "qIsScriptCreated": True},
        {"qName": "vSalesExpr", "qDefinition": "Sum([Quantity])", "qComment": "quantity total", "qIsScriptCreated": False}
    ],
    "fields": [
        {"qName": "Region", "qTags": ["$ascii", "$text"], "qSrcTables": ["Sales"]},
        {"qName": "Country", "qTags": ["$text"], "qSrcTables": ["Sales"]},
        {"qName": "OrderDate", "qTags": ["$date"], "qSrcTables": ["Orders"]},
        {"qName": "OrderDate.autoCalendar.Year", "qTags": ["$derived"], "qSrcTables": []},
        {"qName": "Sales", "qTags": ["$numeric"], "qSrcTables": ["Sales"]},
        {"qName": "Quantity", "qTags": ["$numeric"], "qSrcTables": ["Sales"]},
        {"qName": "Margin", "qTags": ["$numeric"], "qSrcTables": ["Sales"]},
        {"qName": "CustomerID", "qTags": ["$key", "$numeric"], "qSrcTables": ["Sales", "Customers"]},
        {"qName": "Unused Field", "qTags": [], "qSrcTables": ["Customers"]}
    ],
    "extensions": ["my-extension"],
    "script": SCRIPT
}


@pytest.fixture
def app_snapshot():
    """A fresh copy of the sample snapshot."""
    return copy.deepcopy(APP_SNAPSHOT)


@pytest.fixture
def client(app_snapshot):
    return SnapshotEngineClient(app_snapshot)


@pytest.fixture
def snapshot_file(tmp_path, app_snapshot):
    """The sample snapshot written as JSON."""
    path = tmp_path / "app.json"
    path.write_text(json.dumps(app_snapshot), encoding="utf-8")
    return path
