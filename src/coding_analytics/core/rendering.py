"""Split a source text into highlighted segments for display.

Annotations on one target may overlap.  :func:`merge_segments` cuts the text
at every span start and end, so each resulting segment is covered by the same
set of annotations along its whole length.  That set is carried as a tuple
(``layers``); plain text has no layers.  For non-overlapping spans every
segment has at most one layer, which is the classic flat
``{text, annotation?}`` sequence.

The segments cover the text exactly once and in order, so joining their
``text`` always gives back the original string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


class Span(Protocol):
    """Anything with a half-open character range, e.g. an ``Annotation``."""

    start_index: int
    end_index: int


@dataclass(frozen=True)
class Segment:
    """A run of text covered by a constant set of annotations.

    Attributes:
        text: The slice of the source text.
        start: Offset of the slice in the source text.
        layers: Annotations covering the slice, outermost (earliest start) first.
    """

    text: str
    start: int
    layers: tuple = ()

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def annotation(self) -> Optional[Span]:
        """The first covering annotation, or None for plain text."""
        return self.layers[0] if self.layers else None


def merge_segments(text: str, annotations: Sequence[Span]) -> list[Segment]:
    """Return the layered segmentation of *text* under *annotations*.

    Spans are clipped to ``[0, len(text)]``; spans left empty by clipping are
    ignored.  The order of *annotations* does not matter, but within a
    segment the layers follow ``(start_index, end_index)`` and then the input
    order.

    Args:
        text: The full source text of one document or transcription.
        annotations: The target's annotations.

    Returns:
        Consecutive segments covering the whole of *text*.  An empty text
        yields an empty list.
    """
    length = len(text)
    clipped = []
    for position, ann in enumerate(annotations):
        start = max(0, min(ann.start_index, length))
        end = max(0, min(ann.end_index, length))
        if start < end:
            clipped.append((start, end, position, ann))
    clipped.sort(key=lambda item: (item[0], item[1], item[2]))

    cuts = {0, length}
    for start, end, _, _ in clipped:
        cuts.add(start)
        cuts.add(end)
    bounds = sorted(cuts)

    segments: list[Segment] = []
    for left, right in zip(bounds, bounds[1:]):
        layers = tuple(ann for start, end, _, ann in clipped if start <= left and right <= end)
        segments.append(Segment(text=text[left:right], start=left, layers=layers))
    return segments
