"""Narrative completion detection for main-channel assistant turns."""

from dataclasses import dataclass

COMPLETION_MARKER = "[SCENARIO_COMPLETE]"
DEFAULT_MESSAGE_CEILING = 30


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of inspecting one assistant turn."""

    text: str
    marker_detected: bool
    ceiling_reached: bool

    @property
    def should_complete(self) -> bool:
        return self.marker_detected or self.ceiling_reached


def detect_completion(
    text: str,
    main_message_count: int,
    ceiling: int = DEFAULT_MESSAGE_CEILING,
) -> CompletionResult:
    """Check an assistant turn for the completion marker or the hard ceiling.

    ``main_message_count`` is the session's main-channel count including the
    exchange being processed. Every marker occurrence is stripped from the
    returned text.
    """
    marker_detected = COMPLETION_MARKER in text
    if marker_detected:
        text = text.replace(COMPLETION_MARKER, "")
    return CompletionResult(
        text=text.strip(),
        marker_detected=marker_detected,
        ceiling_reached=main_message_count >= ceiling,
    )
