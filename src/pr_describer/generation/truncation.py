"""Input-size policy: bound an oversized diff, preferring a line boundary near the cut."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

TRUNCATION_MARKER: Final[str] = "\n\n[... diff truncated due to size limit ...]"

# A newline at or beyond this fraction of the limit becomes the cut point.
LINE_BREAK_THRESHOLD: Final[float] = 0.8


@dataclass(frozen=True, slots=True)
class TruncationResult:
    """Bounded text plus the bookkeeping the generation result reports."""

    text: str
    was_truncated: bool
    original_size: int

    @property
    def truncated_size(self) -> int:
        return len(self.text)


def truncate_text(text: str, limit: int) -> TruncationResult:
    """Return ``text`` unchanged when it fits, otherwise cut it and append ``TRUNCATION_MARKER``.

    The result length never exceeds ``limit + len(TRUNCATION_MARKER)``.
    """

    if not isinstance(text, str):
        raise TypeError(f"text must be a string, got {type(text).__name__}")
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise TypeError(f"limit must be an int, got {type(limit).__name__}")
    if limit < 0:
        raise ValueError("limit must be >= 0")

    original_size = len(text)
    if original_size <= limit:
        return TruncationResult(text=text, was_truncated=False, original_size=original_size)

    cut = text[:limit]
    last_newline = cut.rfind("\n")
    if last_newline >= 0 and last_newline >= limit * LINE_BREAK_THRESHOLD:
        cut = cut[:last_newline]

    return TruncationResult(
        text=cut + TRUNCATION_MARKER,
        was_truncated=True,
        original_size=original_size,
    )


__all__ = ["LINE_BREAK_THRESHOLD", "TRUNCATION_MARKER", "TruncationResult", "truncate_text"]
