"""
Plan store: one PlanRecord per (user_id, year).

Backends:
- JsonPlanStore: in-memory map with JSON persistence at data/plans.json
- HostedPlanStore: REST table `mandalas` on the hosted backend (PostgREST API)

Every write bumps `version`. update() takes the version the caller read and
raises ConflictError when the stored record has moved on.
"""
import json
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from mandala.exceptions import ConflictError, RecordNotFoundError, StoreError
from mandala.logger import get_logger
from mandala.models import (
    MUTABLE_FIELDS,
    AISummary,
    PlanRecord,
    record_from_dict,
    record_to_dict,
    utc_now_iso,
)
from mandala.paths import get_data_dir

logger = get_logger("plan_store")

def serialize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate field names and convert values to their stored JSON shape."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key not in MUTABLE_FIELDS:
            raise StoreError(f"Field '{key}' is not updatable", operation="update")
        if isinstance(value, AISummary):
            value = value.to_dict()
        out[key] = value
    return out


class PlanStore(ABC):
    """Store contract consumed by PlanService."""

    @abstractmethod
    def create(self, user_id: str, year: int, marketing_consent: bool = False) -> PlanRecord:
        """Create the record, or return the existing one for (user_id, year)."""

    @abstractmethod
    def get(self, user_id: str, year: int) -> Optional[PlanRecord]:
        pass

    @abstractmethod
    def get_by_id(self, record_id: str) -> Optional[PlanRecord]:
        pass

    @abstractmethod
    def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> PlanRecord:
        """Merge `fields` into the record; conditional on expected_version when given."""

    @abstractmethod
    def list_all(self) -> List[PlanRecord]:
        pass


class JsonPlanStore(PlanStore):
    """In-memory store with JSON persistence at <data dir>/plans.json."""

    def __init__(self, path: Optional[Path] = None):
        self._path = path if path is not None else get_data_dir() / "plans.json"
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise StoreError(f"Cannot read plan store {self._path}: {e}", operation="load")
        records = data.get("records", []) if isinstance(data, dict) else []
        for d in records:
            self._records[str(d["id"])] = d

    def _save(self, records: Dict[str, Dict[str, Any]]) -> None:
        """Write `records` to disk. Callers swap them in only after this succeeds."""
        payload = {"records": list(records.values())}
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self._path)
        except OSError as e:
            logger.error("Failed to write plan store %s: %s", self._path, e)
            raise StoreError(f"Cannot write plan store: {e}", operation="save")

    def _commit(self, record_id: str, data: Dict[str, Any]) -> None:
        staged = dict(self._records)
        staged[record_id] = data
        self._save(staged)
        self._records = staged

    def _find(self, user_id: str, year: int) -> Optional[Dict[str, Any]]:
        for d in self._records.values():
            if d["user_id"] == user_id and int(d["year"]) == int(year):
                return d
        return None

    def create(self, user_id: str, year: int, marketing_consent: bool = False) -> PlanRecord:
        with self._lock:
            existing = self._find(user_id, year)
            if existing is not None:
                return record_from_dict(existing)

            record = PlanRecord(
                id=str(uuid.uuid4()),
                user_id=user_id,
                year=int(year),
                marketing_consent=marketing_consent,
            )
            self._commit(record.id, record_to_dict(record))
            logger.info("Created plan %s for user %s (%s)", record.id, user_id, year)
            return record

    def get(self, user_id: str, year: int) -> Optional[PlanRecord]:
        with self._lock:
            found = self._find(user_id, year)
            return record_from_dict(found) if found else None

    def get_by_id(self, record_id: str) -> Optional[PlanRecord]:
        with self._lock:
            found = self._records.get(record_id)
            return record_from_dict(found) if found else None

    def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> PlanRecord:
        changes = serialize_fields(fields)
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFoundError(record_id)

            stored_version = int(current.get("version") or 1)
            if expected_version is not None and expected_version != stored_version:
                logger.warning(
                    "Stale write to plan %s (expected v%s, stored v%s)",
                    record_id, expected_version, stored_version,
                )
                raise ConflictError(record_id, expected_version, stored_version)

            merged = dict(current)
            merged.update(changes)
            merged["version"] = stored_version + 1
            merged["updated_at"] = utc_now_iso()
            self._commit(record_id, merged)
            return record_from_dict(merged)

    def list_all(self) -> List[PlanRecord]:
        with self._lock:
            records = [record_from_dict(d) for d in self._records.values()]
        return sorted(records, key=lambda r: r.created_at or "", reverse=True)


class HostedPlanStore(PlanStore):
    """
    Store backed by the hosted database's REST endpoint.

    Rows live in the `mandalas` table with a unique (user_id, year) constraint.
    Conditional writes filter on `version` so a stale PATCH matches no row.
    """

    TABLE = "mandalas"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 15.0,
    ):
        if not base_url or not api_key:
            raise StoreError(
                "Hosted store needs MANDALA_STORE_URL and MANDALA_STORE_KEY",
                operation="init",
            )
        self.base_url = base_url.rstrip("/")
        self.endpoint = f"{self.base_url}/rest/v1/{self.TABLE}"
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _request(self, method: str, params: Dict[str, str], operation: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(
                method, self.endpoint, params=params, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("Store %s failed: %s", operation, e)
            raise StoreError(f"Store {operation} failed: {e}", operation=operation)
        return response

    @staticmethod
    def _rows(response: httpx.Response, operation: str) -> List[Dict[str, Any]]:
        if response.status_code >= 400:
            logger.error("Store %s returned %s: %s", operation, response.status_code, response.text)
            raise StoreError(
                f"Store {operation} failed with HTTP {response.status_code}",
                operation=operation,
            )
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return data or []

    def get(self, user_id: str, year: int) -> Optional[PlanRecord]:
        response = self._request(
            "GET",
            {"select": "*", "user_id": f"eq.{user_id}", "year": f"eq.{int(year)}"},
            "get",
        )
        rows = self._rows(response, "get")
        return record_from_dict(rows[0]) if rows else None

    def get_by_id(self, record_id: str) -> Optional[PlanRecord]:
        response = self._request("GET", {"select": "*", "id": f"eq.{record_id}"}, "get")
        rows = self._rows(response, "get")
        return record_from_dict(rows[0]) if rows else None

    def create(self, user_id: str, year: int, marketing_consent: bool = False) -> PlanRecord:
        existing = self.get(user_id, year)
        if existing is not None:
            return existing

        body = {
            "user_id": user_id,
            "year": int(year),
            "marketing_consent": marketing_consent,
            "current_step": 1,
            "completed_steps": [],
            "version": 1,
        }
        response = self._request("POST", {}, "create", json=body)
        if response.status_code == 409:
            # another session created it between our read and insert
            logger.info("Create race for user %s (%s); re-fetching", user_id, year)
            existing = self.get(user_id, year)
            if existing is None:
                raise StoreError("Plan create conflicted but no record found", operation="create")
            return existing

        rows = self._rows(response, "create")
        if not rows:
            raise StoreError("Store returned no row on create", operation="create")
        logger.info("Created plan %s for user %s (%s)", rows[0].get("id"), user_id, year)
        return record_from_dict(rows[0])

    def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> PlanRecord:
        changes = serialize_fields(fields)
        if expected_version is None:
            current = self.get_by_id(record_id)
            if current is None:
                raise RecordNotFoundError(record_id)
            expected_version = current.version

        changes["version"] = expected_version + 1
        changes["updated_at"] = utc_now_iso()
        response = self._request(
            "PATCH",
            {"id": f"eq.{record_id}", "version": f"eq.{expected_version}"},
            "update",
            json=changes,
        )
        rows = self._rows(response, "update")
        if rows:
            return record_from_dict(rows[0])

        current = self.get_by_id(record_id)
        if current is None:
            raise RecordNotFoundError(record_id)
        raise ConflictError(record_id, expected_version, current.version)

    def list_all(self) -> List[PlanRecord]:
        response = self._request("GET", {"select": "*", "order": "created_at.desc"}, "list")
        return [record_from_dict(d) for d in self._rows(response, "list")]


def create_plan_store(store_url: str = "", store_key: str = "", path: Optional[Path] = None) -> PlanStore:
    """Hosted store when credentials are configured, JSON file otherwise."""
    if store_url and store_key:
        return HostedPlanStore(store_url, store_key)
    return JsonPlanStore(path)
