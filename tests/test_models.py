"""
Model and Readout Tests
=======================

Tests for the annotation schema, state enums and status readouts.
"""

import pytest
from pydantic import ValidationError

from annotator_client.models.annotation import DEFAULT_COLOR, UNAVAILABLE, Annotation
from annotator_client.models.frame import OutboundFrame
from annotator_client.models.state import ConnectionState, RateState
from annotator_client.status import (
    LoggingStatusSink,
    format_bounding_box_readout,
    format_latency_readout,
)


class TestAnnotation:
    """Tests for annotation message parsing."""

    def test_parses_wire_aliases(self, sample_annotation_message):
        """Verify camelCase wire names map to model fields."""
        annotation = Annotation.model_validate(sample_annotation_message)
        assert annotation.x == 100
        assert annotation.h == 20
        assert annotation.rgb == (255, 0, 0)
        assert annotation.orientation_text == "frontal"
        assert annotation.text4user_text == "Move closer"
        assert annotation.text_fac_dis_text == "Face distance OK"

    def test_missing_optional_fields_use_marker(self):
        """Verify absent text fields read as the unavailable marker."""
        annotation = Annotation.model_validate({"x": 1, "y": 2, "w": 3, "h": 4})
        assert annotation.orientation_text == UNAVAILABLE
        assert annotation.text4user_text == UNAVAILABLE
        assert annotation.text_fac_dis_text == UNAVAILABLE
        assert annotation.rgb == DEFAULT_COLOR

    def test_empty_text_uses_marker(self):
        annotation = Annotation.model_validate(
            {"x": 1, "y": 2, "w": 3, "h": 4, "orientation": ""}
        )
        assert annotation.orientation_text == "N/A"

    def test_rectangle_is_required(self):
        with pytest.raises(ValidationError):
            Annotation.model_validate({"x": 1, "y": 2, "w": 3})

    def test_negative_size_accepted(self):
        """Sizes are plain numbers; the transform copes with negatives."""
        annotation = Annotation.model_validate({"x": 1, "y": 2, "w": -3, "h": 4})
        assert annotation.w == -3

    @pytest.mark.parametrize(
        "colour",
        [[1, 2], [1, 2, 3, 4], "red", [1, "g", 3], [True, 0, 0], 7],
    )
    def test_malformed_colour_falls_back(self, colour):
        annotation = Annotation.model_validate(
            {"x": 1, "y": 2, "w": 3, "h": 4, "colorRectangle": colour}
        )
        assert annotation.color_rectangle is None
        assert annotation.rgb == DEFAULT_COLOR

    def test_colour_is_clamped(self):
        annotation = Annotation.model_validate(
            {"x": 0, "y": 0, "w": 1, "h": 1, "colorRectangle": [300, -5, 12.7]}
        )
        assert annotation.rgb == (255, 0, 12)

    def test_dump_uses_wire_names(self, sample_annotation_message):
        annotation = Annotation.model_validate(sample_annotation_message)
        dumped = annotation.model_dump(by_alias=True)
        assert "text4User" in dumped
        assert "colorRectangle" in dumped


class TestStates:
    """Tests for state enums."""

    def test_rate_values(self):
        assert [r.fps for r in RateState] == [15, 20, 30]
        assert RateState.FULL.period == pytest.approx(1 / 30)

    def test_connection_state_values(self):
        assert ConnectionState.CONNECTED.value == "CONNECTED"
        assert ConnectionState.FAILED == "FAILED"


class TestOutboundFrame:
    """Tests for the outbound wire message."""

    def test_message_contains_only_frame(self):
        frame = OutboundFrame(payload="abc", sent_at=1.0, width=320, height=240)
        assert frame.to_message() == {"frame": "abc"}

    def test_repr_omits_payload(self):
        frame = OutboundFrame(payload="x" * 1000, sent_at=1.0, width=320, height=240)
        assert "xxxx" not in repr(frame)
        assert "320x240" in repr(frame)


class TestReadouts:
    """Tests for human-readable status lines."""

    def test_latency_readout_format(self):
        assert format_latency_readout(12.3456, 20.0) == "Last=12.346 ms, Avg=20.000 ms"

    def test_bounding_box_readout_integers(self, sample_annotation_message):
        annotation = Annotation.model_validate(sample_annotation_message)
        assert (
            format_bounding_box_readout(annotation)
            == "x: 100, y: 50, width: 40, height: 20"
        )

    def test_bounding_box_readout_fractions(self):
        annotation = Annotation.model_validate({"x": 1.5, "y": 2, "w": 3.25, "h": 4})
        assert format_bounding_box_readout(annotation) == "x: 1.5, y: 2, width: 3.25, height: 4"

    def test_logging_sink_snapshot(self):
        sink = LoggingStatusSink()
        sink.set_orientation("frontal")
        sink.set_advisory("Move closer", UNAVAILABLE)
        sink.set_latency_readout("Last=1.000 ms, Avg=1.000 ms")
        sink.set_bounding_box_readout("x: 1, y: 2, width: 3, height: 4")

        snapshot = sink.snapshot()
        assert snapshot["orientation"] == "frontal"
        assert snapshot["text4User"] == "Move closer"
        assert snapshot["textFacDis"] == "N/A"
        assert snapshot["boundingBoxInfo"].startswith("x: 1")
