"""Half-open time windows and schedule text parsing."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from releasegate.core.errors import ValidationError

logger = logging.getLogger(__name__)

# "2024-06-01 23:00 ~ 2024-06-02 00:30", also with -, – or — separators
SCHEDULE_PATTERN = re.compile(
    r"(20\d{2}-\d{2}-\d{2})\s+(\d{2}:\d{2})\s*[~\-–—]\s*(20\d{2}-\d{2}-\d{2})\s+(\d{2}:\d{2})"
)

_HTML_BLOCKS = re.compile(r"(?is)<(style|script)[^>]*>.*?</\1>")
_HTML_TAGS = re.compile(r"(?is)<[^>]+>")
_ENTITIES = {
    "&nbsp;": " ",
    "&ensp;": " ",
    "&emsp;": " ",
    "&ndash;": "-",
    "&minus;": "-",
    "&mdash;": "-",
}


@dataclass(frozen=True)
class TimeWindow:
    """A half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValidationError(
                f"Window end {self.end.isoformat()} must be after start {self.start.isoformat()}",
                details={"code": "INVALID_TIME_RANGE"},
            )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        """Touching endpoints do not overlap."""
        return self.start < other.end and self.end > other.start

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def window_or_none(start: Optional[datetime], end: Optional[datetime]) -> Optional[TimeWindow]:
    """Build a window from nullable columns."""
    if start is None or end is None:
        return None
    return TimeWindow(start, end)


def _strip_markup(content: str) -> str:
    text = _HTML_BLOCKS.sub(" ", content)
    text = _HTML_TAGS.sub(" ", text)
    for entity, replacement in _ENTITIES.items():
        text = text.replace(entity, replacement)
    return re.sub(r"\s+", " ", text).strip()


def parse_window_from_content(content: Optional[str]) -> Optional[TimeWindow]:
    """
    Extract the first schedule range written in a document body.

    Args:
        content: Document body, plain text or HTML

    Returns:
        TimeWindow, or None when no valid non-empty range is found
    """
    if not content or not content.strip():
        return None

    match = SCHEDULE_PATTERN.search(_strip_markup(content))
    if not match:
        return None

    try:
        start = datetime.strptime(f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M")
        end = datetime.strptime(f"{match.group(3)} {match.group(4)}", "%Y-%m-%d %H:%M")
    except ValueError as e:
        logger.debug("Schedule parse failed: %s", e)
        return None

    if end <= start:
        return None
    return TimeWindow(start, end)
