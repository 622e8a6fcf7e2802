import json

import httpx
import pytest

from mandala.exceptions import ConflictError, RecordNotFoundError, StoreError
from mandala.models import AISummary
from mandala.plan_store import HostedPlanStore, JsonPlanStore, create_plan_store


def test_create_is_idempotent(store):
    first = store.create("u1", 2026, marketing_consent=True)
    second = store.create("u1", 2026)
    assert first.id == second.id
    assert second.marketing_consent is True
    assert len(store.list_all()) == 1

    other_year = store.create("u1", 2027)
    assert other_year.id != first.id


def test_update_bumps_version_and_persists(tmp_path):
    path = tmp_path / "plans.json"
    store = JsonPlanStore(path=path)
    record = store.create("u1", 2026)
    assert record.version == 1

    summary = AISummary("r", "g", ["k"], "i", content_hash="abc")
    updated = store.update(record.id, {"center_goal": "Goal", "ai_summary": summary}, expected_version=1)
    assert updated.version == 2
    assert updated.center_goal == "Goal"

    reloaded = JsonPlanStore(path=path).get("u1", 2026)
    assert reloaded.version == 2
    assert reloaded.ai_summary == summary

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["records"][0]["ai_summary"]["keywords"] == ["k"]


def test_stale_version_raises_conflict(store):
    record = store.create("u1", 2026)
    store.update(record.id, {"center_goal": "first"}, expected_version=record.version)

    with pytest.raises(ConflictError) as exc:
        store.update(record.id, {"center_goal": "second"}, expected_version=record.version)
    assert exc.value.expected_version == 1
    assert exc.value.actual_version == 2
    assert store.get("u1", 2026).center_goal == "first"


def test_update_rejects_unknown_fields_and_records(store):
    record = store.create("u1", 2026)
    with pytest.raises(StoreError):
        store.update(record.id, {"user_id": "someone-else"})
    with pytest.raises(RecordNotFoundError):
        store.update("missing", {"center_goal": "x"})


def test_corrupt_store_file_raises(tmp_path):
    path = tmp_path / "plans.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        JsonPlanStore(path=path)


def test_failed_write_leaves_records_unchanged(tmp_path):
    path = tmp_path / "plans.json"
    store = JsonPlanStore(path=path)
    record = store.create("u1", 2026)

    # a directory in place of the file makes every write fail
    path.unlink()
    path.mkdir()
    with pytest.raises(StoreError):
        store.update(record.id, {"center_goal": "X"}, expected_version=1)
    with pytest.raises(StoreError):
        store.create("u2", 2026)

    kept = store.get("u1", 2026)
    assert kept.center_goal is None
    assert kept.version == 1
    assert store.get("u2", 2026) is None

    path.rmdir()
    retried = store.update(record.id, {"center_goal": "X"}, expected_version=1)
    assert retried.version == 2
    assert JsonPlanStore(path=path).get("u1", 2026).center_goal == "X"


def test_create_plan_store_falls_back_to_json(tmp_path):
    assert isinstance(create_plan_store("", "", path=tmp_path / "p.json"), JsonPlanStore)


# ---------------------------------------------------------------------------
# Hosted store
# ---------------------------------------------------------------------------

class FakeTable:
    """In-memory stand-in for the REST table, served through httpx.MockTransport."""

    def __init__(self, race_on_create=False):
        self.rows = []
        self.race_on_create = race_on_create
        self.requests = []

    @staticmethod
    def _eq(params, name):
        value = params.get(name)
        return value[3:] if value and value.startswith("eq.") else None

    def _match(self, params):
        rows = self.rows
        for name in ("id", "user_id", "year", "version"):
            wanted = self._eq(params, name)
            if wanted is not None:
                rows = [r for r in rows if str(r[name]) == wanted]
        return rows

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = dict(request.url.params)
        assert request.headers["apikey"] == "service-key"

        if request.method == "GET":
            return httpx.Response(200, json=self._match(params))

        if request.method == "POST":
            body = json.loads(request.content)
            if self.race_on_create:
                self.race_on_create = False
                self.rows.append(dict(body, id="row-race", created_at="2026-01-01T00:00:00+00:00"))
                return httpx.Response(409, json={"code": "23505"})
            row = dict(body, id=f"row-{len(self.rows) + 1}", created_at="2026-01-01T00:00:00+00:00")
            self.rows.append(row)
            return httpx.Response(201, json=[row])

        if request.method == "PATCH":
            body = json.loads(request.content)
            matched = self._match(params)
            for row in matched:
                row.update(body)
            return httpx.Response(200, json=matched)

        return httpx.Response(405)


def _hosted(table):
    client = httpx.Client(transport=httpx.MockTransport(table.handler))
    return HostedPlanStore("https://db.example.com/", "service-key", client=client)


def test_hosted_create_and_get():
    table = FakeTable()
    store = _hosted(table)

    record = store.create("u1", 2026, marketing_consent=True)
    assert record.id == "row-1"
    assert record.marketing_consent is True
    assert store.create("u1", 2026).id == "row-1"
    assert len(table.rows) == 1

    assert str(table.requests[0].url).startswith("https://db.example.com/rest/v1/mandalas")


def test_hosted_create_race_returns_existing_row():
    table = FakeTable(race_on_create=True)
    record = _hosted(table).create("u1", 2026)
    assert record.id == "row-race"


def test_hosted_update_is_conditional_on_version():
    table = FakeTable()
    store = _hosted(table)
    record = store.create("u1", 2026)

    updated = store.update(record.id, {"center_goal": "Goal"}, expected_version=1)
    assert updated.version == 2
    assert updated.center_goal == "Goal"

    with pytest.raises(ConflictError):
        store.update(record.id, {"center_goal": "Stale"}, expected_version=1)
    assert table.rows[0]["center_goal"] == "Goal"

    with pytest.raises(RecordNotFoundError):
        store.update("nope", {"center_goal": "x"}, expected_version=1)


def test_hosted_http_errors_become_store_errors():
    def handler(request):
        return httpx.Response(500, text="boom")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    store = HostedPlanStore("https://db.example.com", "service-key", client=client)
    with pytest.raises(StoreError):
        store.list_all()


def test_hosted_store_requires_credentials():
    with pytest.raises(StoreError):
        HostedPlanStore("", "")


def test_get_by_id(store):
    record = store.create("u1", 2026)
    assert store.get_by_id(record.id).user_id == "u1"
    assert store.get_by_id("missing") is None
