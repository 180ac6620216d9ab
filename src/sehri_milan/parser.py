from __future__ import annotations
import re
from sehri_milan.models import DayBlock, PlanSpan

# "# Day 1", "## Day: 12", "# day 3 - Monday". Three or more '#' is a sub-heading, not a day.
DAY_HEADING = re.compile(r"^#{1,2}[ \t]+day:?[ \t]*(\d+)", re.IGNORECASE | re.MULTILINE)


def partition_plan(raw: str) -> list[PlanSpan]:
    """Split raw plan text into contiguous spans, one per day heading.

    Text before the first day heading becomes a leading non-day span, so joining
    every span's text always gives back ``raw`` unchanged.
    """
    starts = [m.start() for m in DAY_HEADING.finditer(raw)]
    spans: list[PlanSpan] = []

    preamble_end = starts[0] if starts else len(raw)
    if preamble_end > 0:
        spans.append(PlanSpan(text=raw[:preamble_end], start=0, end=preamble_end, is_day=False))

    bounds = starts + [len(raw)]
    for start, end in zip(bounds, bounds[1:]):
        spans.append(PlanSpan(text=raw[start:end], start=start, end=end, is_day=True))
    return spans


def split_days(raw: str) -> list[DayBlock]:
    """Return the day blocks of a plan in the order they appear in the text.

    Blocks are never re-sorted by the day number printed in their heading, and
    text with no day heading at all yields no blocks.
    """
    blocks: list[DayBlock] = []
    for span in partition_plan(raw):
        if not span.is_day or "day" not in span.text.lower():
            continue
        match = DAY_HEADING.match(span.text)
        heading = span.text.splitlines()[0].strip()
        blocks.append(
            DayBlock(
                index=len(blocks) + 1,
                text=span.text,
                heading=heading,
                day_number=int(match.group(1)) if match else None,
                start=span.start,
                end=span.end,
            )
        )
    return blocks
