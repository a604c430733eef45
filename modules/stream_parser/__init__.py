"""
Stream Parser module.

Decodes the provider's server-sent-event byte stream into typed events.
"""

from modules.stream_parser.decoder import StreamDecoder
from modules.stream_parser.events import (
    CompletionEvent,
    FinishEvent,
    ProgressEvent,
    StreamEvent,
    StreamOpenedEvent,
)
from modules.stream_parser.rules import DEFAULT_DELTA_RULES, DecoderState

__all__ = [
    "StreamDecoder",
    "StreamEvent",
    "ProgressEvent",
    "CompletionEvent",
    "StreamOpenedEvent",
    "FinishEvent",
    "DecoderState",
    "DEFAULT_DELTA_RULES",
]
