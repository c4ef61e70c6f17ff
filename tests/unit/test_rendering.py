"""Unit tests for the layered render-merge (core/rendering.py).

Tests cover:
- Non-overlapping spans give the flat ``{text, annotation?}`` sequence.
- Overlapping and nested spans produce stacked layers.
- Segments always cover the text exactly once, in order.
- Spans beyond the text are clipped; empty text yields no segments.
"""

from __future__ import annotations

from dataclasses import dataclass

from coding_analytics.core.rendering import merge_segments


@dataclass
class Span:
    start_index: int
    end_index: int
    label: str = ""


TEXT = "The quick brown fox jumps"


def _texts(segments) -> list[str]:
    return [s.text for s in segments]


class TestNonOverlapping:
    def test_gaps_and_spans_alternate(self) -> None:
        quick = Span(4, 9, "quick")
        fox = Span(16, 19, "fox")
        segments = merge_segments(TEXT, [quick, fox])

        assert _texts(segments) == ["The ", "quick", " brown ", "fox", " jumps"]
        assert [s.annotation for s in segments] == [None, quick, None, fox, None]

    def test_input_order_does_not_matter(self) -> None:
        a, b = Span(0, 3), Span(10, 15)
        assert _texts(merge_segments(TEXT, [b, a])) == _texts(merge_segments(TEXT, [a, b]))

    def test_span_covering_everything(self) -> None:
        whole = Span(0, len(TEXT))
        segments = merge_segments(TEXT, [whole])
        assert len(segments) == 1
        assert segments[0].layers == (whole,)

    def test_no_annotations_gives_one_plain_segment(self) -> None:
        segments = merge_segments(TEXT, [])
        assert _texts(segments) == [TEXT]
        assert segments[0].annotation is None


class TestOverlapping:
    def test_partial_overlap_is_split_into_three_runs(self) -> None:
        left = Span(4, 15, "quick brown")
        right = Span(10, 19, "brown fox")
        segments = merge_segments(TEXT, [left, right])

        assert _texts(segments) == ["The ", "quick ", "brown", " fox", " jumps"]
        assert segments[1].layers == (left,)
        assert segments[2].layers == (left, right)
        assert segments[3].layers == (right,)

    def test_nested_span_is_stacked_on_its_container(self) -> None:
        outer = Span(4, 19)
        inner = Span(10, 15)
        segments = merge_segments(TEXT, [inner, outer])

        brown = next(s for s in segments if s.text == "brown")
        assert brown.layers == (outer, inner)
        assert brown.annotation is outer

    def test_identical_spans_both_appear(self) -> None:
        a, b = Span(4, 9, "a"), Span(4, 9, "b")
        quick = next(s for s in merge_segments(TEXT, [a, b]) if s.text == "quick")
        assert quick.layers == (a, b)


class TestCoverage:
    def test_segments_reassemble_the_text(self) -> None:
        spans = [Span(0, 5), Span(3, 12), Span(20, 25), Span(7, 9)]
        segments = merge_segments(TEXT, spans)
        assert "".join(_texts(segments)) == TEXT

    def test_segments_are_contiguous(self) -> None:
        segments = merge_segments(TEXT, [Span(2, 6), Span(4, 11)])
        for prev, nxt in zip(segments, segments[1:]):
            assert prev.end == nxt.start

    def test_spans_past_the_end_are_clipped(self) -> None:
        tail = Span(20, 500)
        segments = merge_segments(TEXT, [tail])
        assert segments[-1].text == "jumps"
        assert segments[-1].layers == (tail,)

    def test_spans_entirely_outside_are_ignored(self) -> None:
        segments = merge_segments(TEXT, [Span(100, 120)])
        assert _texts(segments) == [TEXT]

    def test_empty_text_yields_no_segments(self) -> None:
        assert merge_segments("", [Span(0, 3)]) == []
