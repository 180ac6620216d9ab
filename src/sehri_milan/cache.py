from __future__ import annotations
import json
import logging
import re
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PLAN = "plan"
PLAN_DAYS = "plan_days"
SHOPPING = "shopping"
KINDS = (PLAN, PLAN_DAYS, SHOPPING)


def default_base_dir() -> Path:
    return Path.home() / ".sehrimilan"


class LocalCache:
    """Advisory per-user copies of the plan and shopping list, one JSON file per artifact."""

    def __init__(self, base_dir: Path | None = None):
        self._dir = (base_dir or default_base_dir()) / "cache"
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: str, kind: str) -> Path:
        if kind not in KINDS:
            raise ValueError(f"Unknown cache kind: {kind}")
        safe_id = re.sub(r"[^\w-]", "", user_id)
        return self._dir / f"{safe_id}_{kind}.json"

    def get(self, user_id: str, kind: str) -> Any | None:
        path = self._path(user_id, kind)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Discarding unreadable cache file %s", path.name)
            path.unlink(missing_ok=True)
            return None

    def put(self, user_id: str, kind: str, value: Any) -> None:
        self._path(user_id, kind).write_text(json.dumps(value, indent=2))

    def invalidate(self, user_id: str, *kinds: str) -> None:
        for kind in kinds or KINDS:
            self._path(user_id, kind).unlink(missing_ok=True)

    def clear_all(self) -> None:
        for path in self._dir.glob("*.json"):
            path.unlink(missing_ok=True)
