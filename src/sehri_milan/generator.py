from __future__ import annotations
import asyncio
import logging
import math
from sehri_milan.models import DayRange, PlanRequest
from sehri_milan.transport import TextStream

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = "\n\n"


class GenerationError(Exception):
    pass


class GenerationCancelled(Exception):
    pass


class CancelToken:
    """Lets the caller abandon a generation; every in-flight segment is cancelled with it."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def chunk_ranges(days: int, chunk_size: int) -> list[DayRange]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    if days < 1:
        return []
    return [
        DayRange(start=i * chunk_size + 1, end=min((i + 1) * chunk_size, days))
        for i in range(math.ceil(days / chunk_size))
    ]


def build_segment_prompt(request: PlanRequest, day_range: DayRange, template: str) -> str:
    extras = [
        f"{label}: {value}."
        for label, value in (
            ("Age groups", request.age_groups),
            ("Kitchen equipment", request.equipment),
            ("Preferred ingredients", request.food_items),
        )
        if value
    ]
    return template.format(
        start=day_range.start,
        end=day_range.end,
        family_size=request.family_size,
        daily_budget=request.daily_budget,
        cuisine=request.cuisine,
        extra_context="".join(f"{line}\n" for line in extras),
    )


async def _generate_segment(transport: TextStream, prompt: str, day_range: DayRange) -> str:
    fragments: list[str] = []
    async for fragment in transport.stream(prompt):
        fragments.append(fragment)
    logger.debug("Segment %d-%d finished (%d fragments)", day_range.start, day_range.end, len(fragments))
    return "".join(fragments)


async def _raise_when_cancelled(token: CancelToken) -> None:
    await token.wait()
    raise GenerationCancelled("Plan generation was cancelled.")


async def generate_plan(
    request: PlanRequest,
    transport: TextStream,
    *,
    chunk_size: int,
    template: str,
    token: CancelToken | None = None,
) -> str:
    """Generate every day range concurrently and join the results in day order.

    All segments must succeed. The first failure cancels the remaining segments
    and surfaces as GenerationError; no partial plan is ever returned.
    """
    ranges = chunk_ranges(request.days, chunk_size)
    if not ranges:
        return ""
    token = token or CancelToken()
    if token.cancelled:
        raise GenerationCancelled("Plan generation was cancelled.")

    logger.info("Generating %d days in %d parallel segments", request.days, len(ranges))
    try:
        async with asyncio.TaskGroup() as tg:
            watcher = tg.create_task(_raise_when_cancelled(token))
            segments = [
                tg.create_task(
                    _generate_segment(transport, build_segment_prompt(request, r, template), r)
                )
                for r in ranges
            ]
            await asyncio.wait(segments)
            watcher.cancel()
    except BaseExceptionGroup as group:
        if group.subgroup(GenerationCancelled) is not None:
            logger.info("Plan generation cancelled by caller")
            raise GenerationCancelled("Plan generation was cancelled.") from None
        first = group.exceptions[0]
        logger.error("Plan generation failed: %s", first)
        raise GenerationError(f"Could not generate the plan: {first}") from first

    return SEGMENT_SEPARATOR.join(task.result() for task in segments)
