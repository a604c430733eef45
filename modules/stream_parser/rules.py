"""
Ordered extraction rules applied to each text delta.

Rules run in list order against the same delta and share one DecoderState,
so a link captured by an earlier rule is visible to a later one. Supporting a
different provider means passing a different rule list to StreamDecoder.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from modules.stream_parser.events import CompletionEvent, ProgressEvent, StreamEvent

PROGRESS_PATTERN = re.compile(r"进度[：:]\s*(\d+(?:\.\d+)?)\s*%")
ARTIFACT_LINK_PATTERN = re.compile(r"\[点击这里\]\((https?://[^)]+)\)")
SUCCESS_GLYPH = "✅"
SUCCESS_PHRASE = "视频生成成功"


@dataclass
class DecoderState:
    """Mutable state carried across deltas of one stream."""

    captured_url: Optional[str] = None
    completion_emitted: bool = False
    external_id_seen: bool = False


def round_half_up(value: float) -> int:
    """Round to the nearest int, .5 going up (44.5 -> 45)."""
    return int(math.floor(value + 0.5))


class ProgressRule:
    """Progress phrase such as 进度：45% -> ProgressEvent(45)."""

    name = "progress"

    def apply(self, text: str, state: DecoderState) -> Optional[StreamEvent]:
        match = PROGRESS_PATTERN.search(text)
        if not match:
            return None
        return ProgressEvent(progress=round_half_up(float(match.group(1))))


class ArtifactLinkRule:
    """Markdown link to the artifact; captured, no event."""

    name = "artifact_link"

    def apply(self, text: str, state: DecoderState) -> Optional[StreamEvent]:
        match = ARTIFACT_LINK_PATTERN.search(text)
        if match:
            state.captured_url = match.group(1)
        return None


class SuccessRule:
    """Success glyph plus phrase, with a URL already captured -> CompletionEvent.

    Fires every time the confirmation is seen; consumers must be idempotent.
    """

    name = "success"

    def apply(self, text: str, state: DecoderState) -> Optional[StreamEvent]:
        if SUCCESS_GLYPH not in text or SUCCESS_PHRASE not in text:
            return None
        if not state.captured_url:
            return None
        state.completion_emitted = True
        return CompletionEvent(url=state.captured_url, trigger="success_marker")


DEFAULT_DELTA_RULES: Tuple = (ProgressRule(), ArtifactLinkRule(), SuccessRule())
