from __future__ import annotations
import logging
from datetime import datetime, timezone
from pydantic import ValidationError
from sehri_milan.auth import AuthError
from sehri_milan.cache import PLAN, PLAN_DAYS, SHOPPING, LocalCache
from sehri_milan.config import Config
from sehri_milan.extractor import (
    dedupe_entries,
    extract_shopping_list,
    make_manual_entry,
    remove_entry,
    toggle_entry,
)
from sehri_milan.generator import CancelToken, generate_plan
from sehri_milan.models import AuthSession, Category, DayBlock, PlanRequest, ShoppingEntry, StoredPlan
from sehri_milan.parser import split_days
from sehri_milan.store import SupabaseStore
from sehri_milan.transport import TextStream

logger = logging.getLogger(__name__)

DEMO_PLAN = """
# Day 1
## Suhoor
- Whole grain oats with milk and honey
- Two boiled eggs
- One fresh apple
## Iftar
- Three dates and a glass of water
- Lentil soup (Shurba)
- Grilled chicken with steamed rice
## Preparation
- Soak oats overnight for quick cooking.
- Prepare lentil soup in bulk for 2 days.
## Shopping List
- Oats, Milk, Honey, Eggs, Apples, Dates, Lentils, Chicken, Rice.

# Day 2
## Suhoor
- Greek yogurt with berries and flaxseeds
- Whole wheat toast with avocado
- Herbal tea
## Iftar
- Dates and fresh orange juice
- Chickpea salad with cucumber and tomatoes
- Baked fish with quinoa
## Preparation
- Chop salad vegetables in advance.
- Season fish 1 hour before baking.
## Shopping List
- Yogurt, Berries, Flaxseeds, Wheat bread, Avocado, Chickpeas, Cucumber, Fish, Quinoa.
""".strip()

DEMO_ITEMS = [
    ShoppingEntry(identity="demo-1", label="Premium Dates (Kimia)", source_day="Day 1", category=Category.GROCERY),
    ShoppingEntry(identity="demo-2", label="Lentils (Red & Yellow)", completed=True, source_day="Day 1", category=Category.GROCERY),
    ShoppingEntry(identity="demo-3", label="Fresh Chicken Breast", source_day="Day 1", category=Category.MEAT),
    ShoppingEntry(identity="demo-4", label="Greek Yogurt", source_day="Day 2", category=Category.GROCERY),
    ShoppingEntry(identity="demo-5", label="Whole Wheat Flour", source_day="Day 2", category=Category.GROCERY),
]


def entries_from_stored(items: list) -> list[ShoppingEntry]:
    """Validate stored item dicts, skipping any that are malformed."""
    entries: list[ShoppingEntry] = []
    for item in items:
        try:
            entries.append(ShoppingEntry.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed shopping item: %r", item)
    return entries


class PlanService:
    def __init__(
        self,
        session: AuthSession,
        store: SupabaseStore | None,
        cache: LocalCache,
        config: Config | None = None,
    ):
        self.session = session
        self.store = store
        self.cache = cache
        self.config = config

    @property
    def _owner(self) -> str:
        return self.session.user.id

    def _require_account(self, action: str) -> None:
        if self.session.is_demo:
            raise AuthError(f"Sign in to {action}. Demo mode only shows a sample plan.")

    def cached(self) -> tuple[int, list[DayBlock]] | None:
        if self.session.is_demo:
            return None
        raw = self.cache.get(self._owner, PLAN)
        if not isinstance(raw, str):
            return None
        days = self.cache.get(self._owner, PLAN_DAYS)
        return (days if isinstance(days, int) else 0), split_days(raw)

    def load(self) -> tuple[int, list[DayBlock]]:
        if self.session.is_demo:
            return 2, split_days(DEMO_PLAN)

        plan = self.store.get_plan(self._owner)
        if plan is None:
            self.cache.invalidate(self._owner, PLAN, PLAN_DAYS)
            return 0, []

        self.cache.put(self._owner, PLAN, plan.full_plan)
        self.cache.put(self._owner, PLAN_DAYS, plan.plan_days)
        return plan.plan_days, split_days(plan.full_plan)

    async def generate(
        self,
        request: PlanRequest,
        transport: TextStream,
        token: CancelToken | None = None,
    ) -> str:
        """Generate a fresh plan, store it, and invalidate the shopping list derived from the old one."""
        self._require_account("generate a plan")
        if request.days > self.config.max_days:
            raise ValueError(f"Plans are limited to {self.config.max_days} days.")

        raw = await generate_plan(
            request,
            transport,
            chunk_size=self.config.chunk_size,
            template=self.config.plan_prompt,
            token=token,
        )
        self.store.save_plan(
            StoredPlan(
                owner_id=self._owner,
                full_plan=raw,
                plan_days=request.days,
                updated_at=datetime.now(tz=timezone.utc),
            )
        )
        self.store.delete_shopping_list(self._owner)

        self.cache.put(self._owner, PLAN, raw)
        self.cache.put(self._owner, PLAN_DAYS, request.days)
        self.cache.invalidate(self._owner, SHOPPING)
        logger.info("Saved %d-day plan for %s", request.days, self._owner)
        return raw

    def clear(self) -> None:
        self._require_account("clear a plan")
        self.store.delete_plan(self._owner)
        self.cache.invalidate(self._owner, PLAN, PLAN_DAYS)


class ShoppingListService:
    def __init__(self, session: AuthSession, store: SupabaseStore | None, cache: LocalCache):
        self.session = session
        self.store = store
        self.cache = cache

    @property
    def _owner(self) -> str:
        return self.session.user.id

    def cached(self) -> list[ShoppingEntry] | None:
        if self.session.is_demo:
            return None
        items = self.cache.get(self._owner, SHOPPING)
        if not isinstance(items, list):
            return None
        return entries_from_stored(items)

    def load(self, force_refresh: bool = False) -> list[ShoppingEntry]:
        """Fetch the saved list, or extract one from the saved plan.

        A saved list that contains duplicate labels is cleaned and written back.
        ``force_refresh`` skips the saved list and always re-extracts.
        """
        if self.session.is_demo:
            return [e.model_copy() for e in DEMO_ITEMS]

        if not force_refresh:
            items = self.store.get_shopping_items(self._owner)
            if items:
                unique = dedupe_entries(entries_from_stored(items))
                if unique:
                    if len(unique) != len(items):
                        logger.info("Removed %d duplicate or malformed items for %s", len(items) - len(unique), self._owner)
                        self.store.save_shopping_items(self._owner, unique)
                    self._write_cache(unique)
                    return unique

        plan = self.store.get_plan(self._owner)
        if plan is None:
            self.cache.invalidate(self._owner, SHOPPING)
            return []

        entries = extract_shopping_list(plan.full_plan)
        self._write_cache(entries)
        if entries:
            self.store.save_shopping_items(self._owner, entries)
        return entries

    def current(self) -> list[ShoppingEntry]:
        cached = self.cached()
        return cached if cached is not None else self.load()

    def _base(self, entries: list[ShoppingEntry] | None) -> list[ShoppingEntry]:
        return entries if entries is not None else self.current()

    def add(self, label: str, entries: list[ShoppingEntry] | None = None) -> list[ShoppingEntry]:
        """Prepend a manual item. ``entries`` is the list to change, loaded if omitted."""
        entries = [make_manual_entry(label)] + self._base(entries)
        self._persist(entries)
        return entries

    def toggle(self, identity: str, entries: list[ShoppingEntry] | None = None) -> list[ShoppingEntry]:
        entries = toggle_entry(self._base(entries), identity)
        self._persist(entries)
        return entries

    def remove(self, identity: str, entries: list[ShoppingEntry] | None = None) -> list[ShoppingEntry]:
        entries = remove_entry(self._base(entries), identity)
        self._persist(entries)
        return entries

    def _write_cache(self, entries: list[ShoppingEntry]) -> None:
        self.cache.put(self._owner, SHOPPING, [e.stored() for e in entries])

    def _persist(self, entries: list[ShoppingEntry]) -> None:
        if self.session.is_demo:
            return
        self._write_cache(entries)
        self.store.save_shopping_items(self._owner, entries)
