"""
Events emitted by the stream decoder.
"""

from dataclasses import dataclass
from typing import Literal, Union


@dataclass(frozen=True)
class StreamOpenedEvent:
    """Provider assigned an id to the generation (first payload carrying one)."""

    external_id: str


@dataclass(frozen=True)
class ProgressEvent:
    """Progress percentage reported in the text stream, rounded to an int."""

    progress: int


@dataclass(frozen=True)
class CompletionEvent:
    """Artifact URL is final.

    trigger is "success_marker" when the success confirmation was seen, or
    "finish_reason" for the fallback fired by finish_reason == "stop".
    """

    url: str
    trigger: Literal["success_marker", "finish_reason"]


@dataclass(frozen=True)
class FinishEvent:
    """Provider closed the choice with a finish_reason."""

    reason: str


StreamEvent = Union[StreamOpenedEvent, ProgressEvent, CompletionEvent, FinishEvent]
