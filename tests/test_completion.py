"""Completion detector tests."""

from maraum.services.completion import COMPLETION_MARKER, detect_completion


def test_marker_is_detected_and_stripped():
    result = detect_completion(f"Tschüss, bis bald! {COMPLETION_MARKER}", main_message_count=5)
    assert result.marker_detected
    assert result.should_complete
    assert result.text == "Tschüss, bis bald!"


def test_every_marker_occurrence_is_stripped():
    result = detect_completion(f"{COMPLETION_MARKER} Tschüss! {COMPLETION_MARKER}", main_message_count=1)
    assert result.text == "Tschüss!"
    assert COMPLETION_MARKER not in result.text


def test_no_marker_below_ceiling_does_not_complete():
    result = detect_completion("  Noch etwas?  ", main_message_count=29)
    assert not result.marker_detected
    assert not result.ceiling_reached
    assert not result.should_complete
    assert result.text == "Noch etwas?"


def test_ceiling_completes_without_marker():
    result = detect_completion("Noch etwas?", main_message_count=30)
    assert result.ceiling_reached
    assert not result.marker_detected
    assert result.should_complete


def test_count_past_ceiling_completes():
    assert detect_completion("Hallo", main_message_count=31).should_complete


def test_custom_ceiling():
    assert detect_completion("Hallo", main_message_count=3, ceiling=3).should_complete
    assert not detect_completion("Hallo", main_message_count=2, ceiling=3).should_complete


def test_partial_marker_is_not_a_marker():
    result = detect_completion("[SCENARIO_COMPLETE", main_message_count=1)
    assert not result.marker_detected
    assert result.text == "[SCENARIO_COMPLETE"
