"""
Incremental decoder for the provider's server-sent-event stream.

Bytes may be split anywhere, including inside a multi-byte character or a
JSON payload. Only complete lines are processed; the trailing partial line is
buffered until the next chunk or close().
"""

import codecs
import json
from typing import Any, Dict, Iterable, List, Optional

from shared.logging import get_logger
from modules.stream_parser.events import CompletionEvent, FinishEvent, StreamEvent, StreamOpenedEvent
from modules.stream_parser.rules import DEFAULT_DELTA_RULES, DecoderState

logger = get_logger("stream_parser")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """
    Turns raw stream bytes into StreamEvents.

    Never raises on malformed input: undecodable bytes are replaced, and
    payloads that are not valid JSON are logged and skipped.

    Usage:
        decoder = StreamDecoder()
        async for chunk in response.aiter_bytes():
            for event in decoder.feed(chunk):
                ...
        for event in decoder.close():
            ...
    """

    def __init__(self, rules: Optional[Iterable] = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_DELTA_RULES
        self.state = DecoderState()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def captured_url(self) -> Optional[str]:
        return self.state.captured_url

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """Decode a chunk and return events from every line it completed."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")

        events: List[StreamEvent] = []
        for line in lines:
            events.extend(self._process_line(line))
        return events

    def close(self) -> List[StreamEvent]:
        """Flush the final unterminated line at end of stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        return self._process_line(line)

    def _process_line(self, line: str) -> List[StreamEvent]:
        line = line.strip()
        if not line or not line.startswith(DATA_PREFIX):
            # Blank separators, SSE comments and event:/id: fields
            return []

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            return []

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(
                "Skipping malformed stream payload",
                extra={"error": str(e), "payload": data[:200]}
            )
            return []

        if not isinstance(payload, dict):
            logger.warning("Skipping non-object stream payload", extra={"payload": data[:200]})
            return []

        return self._process_payload(payload)

    def _process_payload(self, payload: Dict[str, Any]) -> List[StreamEvent]:
        events: List[StreamEvent] = []

        external_id = payload.get("id")
        if external_id and not self.state.external_id_seen:
            self.state.external_id_seen = True
            events.append(StreamOpenedEvent(external_id=str(external_id)))

        choice = _first_choice(payload)

        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            for rule in self.rules:
                event = rule.apply(content, self.state)
                if event is not None:
                    events.append(event)

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            if (
                finish_reason == "stop"
                and self.state.captured_url
                and not self.state.completion_emitted
            ):
                self.state.completion_emitted = True
                events.append(CompletionEvent(url=self.state.captured_url, trigger="finish_reason"))
            events.append(FinishEvent(reason=str(finish_reason)))

        return events


def _first_choice(payload: Dict[str, Any]) -> Dict[str, Any]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}
