"""Unit tests for the traceability report model."""

from __future__ import annotations

import json

import pytest

from tests.helpers.reports import CONTAINER_ID
from tests.helpers.reports import HOST_ID
from tests.helpers.reports import IMAGE_ID
from tests.helpers.reports import make_report
from tests.helpers.reports import OTHER_IMAGE_ID
from tests.helpers.reports import report_payload
from traceledger.errors import MalformedReport
from traceledger.models.events import EventType
from traceledger.models.report import fix_empty
from traceledger.models.report import TraceabilityReport


class TestFixEmpty:
    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_blank_becomes_none(self, value):
        assert fix_empty(value) is None

    def test_value_is_stripped(self):
        assert fix_empty("  web  ") == "web"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_parses_wire_field_names(self):
        report = make_report(status="die", time=1432116999)
        assert report.event.status == "die"
        assert report.event.event_type is EventType.DIE
        assert report.event.time == 1432116999
        assert report.host_info.id == HOST_ID
        assert report.container is not None
        assert report.container.id == CONTAINER_ID
        assert report.container.state["Running"] is True
        assert report.image_name == "acme/web:1.0"
        assert report.environment == "production"
        assert report.parents == ()

    def test_container_id(self):
        assert make_report().container_id == CONTAINER_ID
        assert make_report(container_id=None).container_id is None

    def test_rejects_invalid_json(self):
        with pytest.raises(MalformedReport, match="Invalid JSON"):
            TraceabilityReport.from_json("{not json")

    def test_rejects_missing_event(self):
        payload = report_payload()
        del payload["event"]
        with pytest.raises(MalformedReport, match="event"):
            TraceabilityReport.from_payload(payload)

    def test_rejects_missing_event_time(self):
        payload = report_payload()
        del payload["event"]["time"]
        with pytest.raises(MalformedReport):
            TraceabilityReport.from_json(json.dumps(payload))

    def test_rejects_non_object_payload(self):
        with pytest.raises(MalformedReport):
            TraceabilityReport.from_json("[1, 2, 3]")

    def test_unknown_top_level_fields_are_ignored(self):
        report = TraceabilityReport.from_payload(report_payload(pluginVersion="1.2"))
        assert "pluginVersion" not in report.to_json()


# ---------------------------------------------------------------------------
# Image ID resolution
# ---------------------------------------------------------------------------


class TestImageIdResolution:
    def test_explicit_image_id_wins(self):
        report = make_report(
            image_id=IMAGE_ID, container_image=OTHER_IMAGE_ID, with_image=True
        )
        assert report.image_id == IMAGE_ID

    def test_falls_back_to_image_snapshot(self):
        payload = report_payload(image_id=None, with_image=True)
        report = TraceabilityReport.from_payload(payload)
        assert report.image is not None
        assert report.image_id == report.image.id == OTHER_IMAGE_ID

    def test_falls_back_to_container_image(self):
        report = make_report(image_id=None, container_image=OTHER_IMAGE_ID)
        assert report.image_id == OTHER_IMAGE_ID

    def test_none_when_nothing_is_known(self):
        report = make_report(image_id=None)
        assert report.image_id is None

    @pytest.mark.parametrize("blank", ["", "  "])
    def test_blank_explicit_image_id_falls_back(self, blank):
        assert make_report(image_id=None, imageId=blank).image_id is None
        report = make_report(image_id=None, imageId=blank, container_image=IMAGE_ID)
        assert report.image_id == IMAGE_ID


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_uses_wire_field_names(self):
        data = json.loads(make_report(with_image=True).to_json())
        assert set(data) >= {"event", "hostInfo", "container", "image", "imageId"}
        assert data["event"]["from"] == "acme/web:1.0"
        assert data["container"]["Id"] == CONTAINER_ID

    def test_opaque_snapshot_fields_are_preserved(self):
        data = json.loads(make_report(with_image=True).to_json())
        assert data["container"]["Config"] == {
            "Hostname": "web",
            "Env": ["PATH=/usr/bin"],
        }
        assert data["image"]["Architecture"] == "amd64"
        assert data["hostInfo"]["Containers"] == 3

    def test_serialization_is_stable(self):
        first = make_report(with_image=True, parents=[OTHER_IMAGE_ID]).to_json()
        second = TraceabilityReport.from_json(first).to_json()
        third = TraceabilityReport.from_json(second).to_json()
        assert first == second == third

    def test_describe_mentions_status_and_origin(self):
        line = make_report(status="start", time=0).event.describe()
        assert line.startswith("1970-01-01T00:00:00+00:00")
        assert "START" in line
        assert "acme/web:1.0" in line
