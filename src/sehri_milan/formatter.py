from __future__ import annotations
from collections import defaultdict
from urllib.parse import quote
from sehri_milan.models import Category, ShoppingEntry

CATEGORY_ORDER = [Category.PRODUCE, Category.MEAT, Category.GROCERY, Category.PERSONAL]


def format_shopping_list(entries: list[ShoppingEntry]) -> str:
    by_category: dict[Category, list[ShoppingEntry]] = defaultdict(list)
    for entry in entries:
        by_category[entry.category].append(entry)

    lines: list[str] = []
    for category in CATEGORY_ORDER:
        if category not in by_category:
            continue
        lines.append(f"\n{category.value}")
        lines.append("-" * len(category.value))
        for entry in by_category[category]:
            box = "[x]" if entry.completed else "[ ]"
            lines.append(f"{box} {entry.label} ({entry.source_day})")

    return "\n".join(lines).strip()


def format_share_message(entries: list[ShoppingEntry], display_name: str | None = None) -> str:
    pending = "\n".join(f"• {e.label} ({e.source_day})" for e in entries if not e.completed)
    done = "\n".join(f"✓ {e.label}" for e in entries if e.completed)
    return (
        "*SehriMilan - Ramadan Shopping List* 🌙\n\n"
        f"*Pending Items:*\n{pending or 'None'}\n\n"
        f"*Completed:*\n{done or 'None'}\n\n"
        f"_Generated for {display_name or 'User'} by SehriMilan_"
    )


def share_url(message: str) -> str:
    return f"https://wa.me/?text={quote(message, safe='')}"
