from __future__ import annotations
import logging
from typing import Any
import httpx
from pydantic import ValidationError
from sehri_milan.config import Config
from sehri_milan.models import ShoppingEntry, StoredPlan

logger = logging.getLogger(__name__)

PLANS = "plans"
SHOPPING_LISTS = "shopping_lists"
UPSERT_HEADERS = {"Prefer": "resolution=merge-duplicates,return=minimal"}


class StoreError(Exception):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("msg") or body.get("error") or str(body)
    return str(body)


class SupabaseStore:
    """Row access to the `plans` and `shopping_lists` tables, keyed by owner id."""

    def __init__(self, config: Config, access_token: str = ""):
        self._base_url = f"{config.supabase_url}/rest/v1"
        self._timeout = config.request_timeout
        self._headers = {
            "apikey": config.supabase_anon_key,
            "Authorization": f"Bearer {access_token or config.supabase_anon_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}/{table}"
        try:
            response = httpx.request(
                method, url, params=params, json=json,
                headers={**self._headers, **(headers or {})}, timeout=self._timeout,
            )
        except httpx.ConnectError:
            logger.warning("%s %s: connection failed", method, url)
            raise StoreError("Could not connect to the cloud store. Check your internet connection.")
        except httpx.TimeoutException:
            logger.warning("%s %s: timed out", method, url)
            raise StoreError("Request to the cloud store timed out.")
        except httpx.TransportError as e:
            logger.warning("%s %s: %s", method, url, e)
            raise StoreError(f"Lost connection to the cloud store: {e}")

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("%s %s failed (%s): %s", method, url, response.status_code, message)
            raise StoreError(f"Cloud store error ({response.status_code}): {message}")
        return response

    def _get_row(self, table: str, owner_id: str) -> dict | None:
        response = self._request("GET", table, params={"id": f"eq.{owner_id}"})
        try:
            rows = response.json()
        except ValueError:
            logger.warning("Non-JSON %s payload for %s; treating as missing", table, owner_id)
            return None
        if not isinstance(rows, list):
            logger.warning("Unexpected %s payload for %s; treating as missing", table, owner_id)
            return None
        if not rows or not isinstance(rows[0], dict):
            return None
        return rows[0]

    def _delete_row(self, table: str, owner_id: str) -> None:
        self._request("DELETE", table, params={"id": f"eq.{owner_id}"})

    def get_plan(self, owner_id: str) -> StoredPlan | None:
        row = self._get_row(PLANS, owner_id)
        if row is None:
            return None
        try:
            return StoredPlan.model_validate(row)
        except ValidationError:
            logger.warning("Stored plan for %s is malformed; treating as missing", owner_id)
            return None

    def save_plan(self, plan: StoredPlan) -> None:
        self._request(
            "POST", PLANS,
            json=plan.model_dump(mode="json", by_alias=True),
            headers=UPSERT_HEADERS,
        )

    def delete_plan(self, owner_id: str) -> None:
        self._delete_row(PLANS, owner_id)

    def get_shopping_items(self, owner_id: str) -> list | None:
        row = self._get_row(SHOPPING_LISTS, owner_id)
        if row is None:
            return None
        items = row.get("items")
        if not isinstance(items, list):
            logger.warning("Stored shopping list for %s is not a list; treating as empty", owner_id)
            return []
        return items

    def save_shopping_items(self, owner_id: str, entries: list[ShoppingEntry]) -> None:
        self._request(
            "POST", SHOPPING_LISTS,
            json={"id": owner_id, "items": [e.stored() for e in entries]},
            headers=UPSERT_HEADERS,
        )

    def delete_shopping_list(self, owner_id: str) -> None:
        self._delete_row(SHOPPING_LISTS, owner_id)
