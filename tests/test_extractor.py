from datetime import datetime, timezone
import pytest
from sehri_milan.extractor import (
    LineKind,
    ScanState,
    ShoppingScanner,
    categorize,
    classify_line,
    dedupe_entries,
    extract_shopping_list,
    make_manual_entry,
    remove_entry,
    toggle_entry,
)
from sehri_milan.models import Category, ShoppingEntry

NOW = datetime(2026, 2, 20, tzinfo=timezone.utc)


def _entry(identity: str, label: str, completed: bool = False) -> ShoppingEntry:
    return ShoppingEntry(identity=identity, label=label, completed=completed, source_day="Day 1")


def test_duplicate_labels_across_days_keep_first():
    raw = "# Day 1\n## Shopping List\n- Dates\n- dates \n# Day 2\n## Shopping List\n- Rice"
    entries = extract_shopping_list(raw, now=NOW)
    assert [(e.label, e.source_day, e.category) for e in entries] == [
        ("Dates", "Day 1", Category.GROCERY),
        ("Rice", "Day 2", Category.GROCERY),
    ]
    assert all(e.completed is False for e in entries)


@pytest.mark.parametrize("label, category", [
    ("Fresh Chicken Breast", Category.MEAT),
    ("Mixed Vegetables", Category.PRODUCE),
    ("Olive Oil", Category.GROCERY),
    ("Seasonal fruit", Category.PRODUCE),
    ("Minced meat", Category.MEAT),
    ("Veggie chicken nuggets", Category.PRODUCE),
])
def test_categorize(label, category):
    assert categorize(label) is category


def test_bullets_outside_shopping_section_are_ignored():
    raw = "# Day 1\n## Suhoor\n- Oats with milk\n## Shopping List\n- Oats\n"
    assert [e.label for e in extract_shopping_list(raw, now=NOW)] == ["Oats"]


def test_section_words_are_filtered():
    raw = (
        "# Day 1\n## Shopping List\n- Flour\n- Step 1: soak lentils\n"
        "- Suhoor drinks\n- Iftar platter\n- Preparation bowls\n"
    )
    assert [e.label for e in extract_shopping_list(raw, now=NOW)] == ["Flour"]


def test_later_heading_does_not_end_shopping_section_by_default():
    raw = "# Day 1\n## Shopping List\n- Rice\n## Notes\n- Buy early\n# Day 2\n- Not shopping\n"
    labels = [e.label for e in extract_shopping_list(raw, now=NOW)]
    assert labels == ["Rice", "Buy early"]


def test_strict_sections_end_at_next_heading():
    raw = "# Day 1\n## Shopping List\n- Rice\n## Notes\n- Buy early\n"
    labels = [e.label for e in extract_shopping_list(raw, strict_sections=True, now=NOW)]
    assert labels == ["Rice"]


def test_strict_sections_keep_sub_headings_inside_the_list():
    raw = "# Day 1\n## Shopping List\n### Produce\n- Apples\n### Dairy\n- Milk\n"
    labels = [e.label for e in extract_shopping_list(raw, strict_sections=True, now=NOW)]
    assert labels == ["Apples", "Milk"]


def test_plain_day_label_with_colon_sets_day():
    raw = "Day 4: Monday\n**Shopping list**\n- Yogurt\n"
    entries = extract_shopping_list(raw, now=NOW)
    assert entries[0].source_day == "Day 4 Monday"


def test_items_before_any_day_are_global():
    raw = "## Shopping List\n- Dates\n"
    assert extract_shopping_list(raw, now=NOW)[0].source_day == "Global"


def test_short_bullets_are_skipped():
    raw = "# Day 1\n## Shopping List\n- \n-x\n- ab\n"
    assert [e.label for e in extract_shopping_list(raw, now=NOW)] == ["ab"]


def test_identity_uses_line_index_and_timestamp():
    raw = "# Day 1\n## Shopping List\n- Dates\n"
    entry = extract_shopping_list(raw, now=NOW)[0]
    assert entry.identity == f"item-2-{int(NOW.timestamp() * 1000)}"


def test_extraction_is_idempotent():
    raw = "# Day 1\n## Shopping List\n- Dates\n- Chicken\n# Day 2\n## Shopping List\n- DATES\n- Veg mix\n"
    first = extract_shopping_list(raw, now=NOW)
    second = extract_shopping_list(raw, now=NOW)
    assert [(e.label, e.category) for e in first] == [(e.label, e.category) for e in second]


def test_no_plan_text_gives_no_items():
    assert extract_shopping_list("", now=NOW) == []


def test_scanner_states():
    scanner = ShoppingScanner()
    assert scanner.state is ScanState.SEEKING
    scanner.feed("# Day 1")
    assert scanner.state is ScanState.IN_DAY
    scanner.feed("## Shopping List")
    assert scanner.state is ScanState.IN_SHOPPING_SECTION
    assert scanner.feed("- Dates") == "Dates"
    scanner.feed("## Day 2")
    assert scanner.state is ScanState.IN_DAY
    assert scanner.current_day == "Day 2"


def test_strict_scanner_before_any_day_returns_to_seeking():
    scanner = ShoppingScanner(strict_sections=True)
    scanner.feed("## Shopping")
    scanner.feed("## Tips")
    assert scanner.state is ScanState.SEEKING


@pytest.mark.parametrize("line, kind", [
    ("# Day 1", LineKind.DAY_HEADING),
    ("### Day 2: Tuesday", LineKind.DAY_HEADING),
    ("Day 3:", LineKind.DAY_HEADING),
    ("#Day 4", LineKind.SECTION_HEADING),
    ("## Shopping List", LineKind.SHOPPING_HEADING),
    ("**Shopping List**", LineKind.SHOPPING_HEADING),
    ("## Suhoor", LineKind.SECTION_HEADING),
    ("### Produce", LineKind.OTHER),
    ("- Dates", LineKind.BULLET),
    ("Daylight saving note", LineKind.OTHER),
])
def test_classify_line(line, kind):
    assert classify_line(line) is kind


def test_dedupe_entries_keeps_first_case_insensitive():
    entries = [_entry("a", "Dates"), _entry("b", " DATES "), _entry("c", "Rice")]
    assert [e.identity for e in dedupe_entries(entries)] == ["a", "c"]


def test_manual_entry():
    entry = make_manual_entry("  Rose syrup ")
    assert entry.label == "Rose syrup"
    assert entry.source_day == "Manual"
    assert entry.category is Category.PERSONAL
    assert entry.identity.startswith("manual-")


def test_manual_entry_skips_filters():
    assert make_manual_entry("Iftar dates").label == "Iftar dates"


def test_manual_entry_rejects_blank():
    with pytest.raises(ValueError):
        make_manual_entry("   ")


def test_manual_entries_get_distinct_ids():
    assert make_manual_entry("a").identity != make_manual_entry("a").identity


def test_toggle_only_changes_target():
    entries = [_entry("a", "Dates"), _entry("b", "Rice"), _entry("c", "Milk", completed=True)]
    toggled = toggle_entry(entries, "b")
    assert [e.identity for e in toggled] == ["a", "b", "c"]
    assert [e.completed for e in toggled] == [False, True, True]
    assert toggled[0] is entries[0]
    assert entries[1].completed is False


def test_toggle_unknown_raises():
    with pytest.raises(KeyError):
        toggle_entry([_entry("a", "Dates")], "zzz")


def test_remove_entry_keeps_order():
    entries = [_entry("a", "Dates"), _entry("b", "Rice"), _entry("c", "Milk")]
    assert [e.identity for e in remove_entry(entries, "b")] == ["a", "c"]


def test_remove_unknown_raises():
    with pytest.raises(KeyError):
        remove_entry([_entry("a", "Dates")], "zzz")


def test_unspaced_day_heading_keeps_previous_day():
    entries = extract_shopping_list("# Day 1\n## Shopping List\n- Dates\n#Day 2\n- Rice\n")
    assert [(e.label, e.source_day) for e in entries] == [("Dates", "Day 1"), ("Rice", "Day 1")]
