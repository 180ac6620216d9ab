from __future__ import annotations
import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional
from sehri_milan.models import Category, ShoppingEntry

GLOBAL_DAY = "Global"
MANUAL_DAY = "Manual"

# Section words that leak into shopping bullets when the AI skips a heading.
EXCLUDED_WORDS = ("step", "suhoor", "iftar", "preparation")

# Same space rule as parser.DAY_HEADING. Any heading level counts here, so a
# "### Day 2" sub-heading still sets the day label of the items under it.
_DAY_MARKDOWN = re.compile(r"^#+[ \t]+day\b", re.IGNORECASE)
_DAY_LABEL = re.compile(r"^day\b.*:", re.IGNORECASE)
_TOP_HEADING = re.compile(r"^#{1,2}(?!#)")


class LineKind(Enum):
    DAY_HEADING = "day_heading"
    SHOPPING_HEADING = "shopping_heading"
    SECTION_HEADING = "section_heading"
    BULLET = "bullet"
    OTHER = "other"


class ScanState(Enum):
    SEEKING = "seeking"
    IN_DAY = "in_day"
    IN_SHOPPING_SECTION = "in_shopping_section"


def classify_line(line: str) -> LineKind:
    """Classify one stripped line of plan text."""
    lowered = line.lower()
    if _DAY_MARKDOWN.match(line) or _DAY_LABEL.match(line):
        return LineKind.DAY_HEADING
    if line.startswith(("#", "*")) and "shopping" in lowered:
        return LineKind.SHOPPING_HEADING
    if _TOP_HEADING.match(line):
        return LineKind.SECTION_HEADING
    if line.startswith("-") and len(line) > 2:
        return LineKind.BULLET
    return LineKind.OTHER


def day_label(line: str) -> str:
    return line.replace("#", "").replace(":", "").strip()


def categorize(label: str) -> Category:
    lowered = label.lower()
    if "fruit" in lowered or "veg" in lowered:
        return Category.PRODUCE
    if "meat" in lowered or "chicken" in lowered:
        return Category.MEAT
    return Category.GROCERY


def is_excluded(label: str) -> bool:
    lowered = label.lower()
    return any(word in lowered for word in EXCLUDED_WORDS)


def normalize_label(label: str) -> str:
    return label.strip().lower()


def dedupe_entries(entries: Iterable[ShoppingEntry]) -> list[ShoppingEntry]:
    """Drop entries whose trimmed, case-folded label was already seen. First one wins."""
    seen: set[str] = set()
    unique: list[ShoppingEntry] = []
    for entry in entries:
        key = normalize_label(entry.label)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


class ShoppingScanner:
    """Line-by-line state machine over plan text.

    A day heading always moves to IN_DAY and records the day. A shopping heading
    moves to IN_SHOPPING_SECTION. Bullets are only collected in that state.

    By default a later non-shopping heading does not leave the shopping section;
    only the next day heading does. With ``strict_sections`` a level 1 or 2
    heading without "shopping" in it ends the section.
    """

    def __init__(self, strict_sections: bool = False):
        self.strict_sections = strict_sections
        self.state = ScanState.SEEKING
        self.current_day = GLOBAL_DAY

    def feed(self, line: str) -> Optional[str]:
        """Advance on one line. Returns the candidate label if the line is a shopping item."""
        line = line.strip()
        kind = classify_line(line)

        if kind is LineKind.DAY_HEADING:
            self.current_day = day_label(line)
            self.state = ScanState.IN_DAY
        elif kind is LineKind.SHOPPING_HEADING:
            self.state = ScanState.IN_SHOPPING_SECTION
        elif kind is LineKind.SECTION_HEADING:
            if self.strict_sections and self.state is ScanState.IN_SHOPPING_SECTION:
                self.state = ScanState.SEEKING if self.current_day == GLOBAL_DAY else ScanState.IN_DAY
        elif kind is LineKind.BULLET and self.state is ScanState.IN_SHOPPING_SECTION:
            label = line[1:].strip()
            return label or None
        return None


def extract_shopping_list(
    raw: str,
    *,
    strict_sections: bool = False,
    now: datetime | None = None,
) -> list[ShoppingEntry]:
    """Pull a deduplicated, categorized shopping list out of plan Markdown."""
    stamp = int((now or datetime.now(tz=timezone.utc)).timestamp() * 1000)
    scanner = ShoppingScanner(strict_sections=strict_sections)
    found: list[ShoppingEntry] = []

    for index, line in enumerate(raw.split("\n")):
        label = scanner.feed(line)
        if label is None or is_excluded(label):
            continue
        found.append(
            ShoppingEntry(
                identity=f"item-{index}-{stamp}",
                label=label,
                completed=False,
                source_day=scanner.current_day,
                category=categorize(label),
            )
        )
    return dedupe_entries(found)


def make_manual_entry(label: str) -> ShoppingEntry:
    label = label.strip()
    if not label:
        raise ValueError("Item name cannot be empty.")
    stamp = int(datetime.now(tz=timezone.utc).timestamp() * 1000)
    return ShoppingEntry(
        identity=f"manual-{stamp}-{uuid.uuid4().hex[:6]}",
        label=label,
        completed=False,
        source_day=MANUAL_DAY,
        category=Category.PERSONAL,
    )


def toggle_entry(entries: list[ShoppingEntry], identity: str) -> list[ShoppingEntry]:
    if not any(e.identity == identity for e in entries):
        raise KeyError(identity)
    return [
        e.model_copy(update={"completed": not e.completed}) if e.identity == identity else e
        for e in entries
    ]


def remove_entry(entries: list[ShoppingEntry], identity: str) -> list[ShoppingEntry]:
    remaining = [e for e in entries if e.identity != identity]
    if len(remaining) == len(entries):
        raise KeyError(identity)
    return remaining
