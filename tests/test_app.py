import uuid
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.schemas import Reading, Threshold
from datastore.mock_dynamodb import MockDynamoDBTable
from services.errors import StorageError
from services.monitor import MonitorService, build_default_service

OPERATOR = {"X-Actor-Id": "operator-1"}
ADMIN = {"X-Actor-Id": "admin-1"}


class FlakyReadingsTable(MockDynamoDBTable):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failing_keys: set[str] = set()

    def update_item(self, key, mutate):
        if key in self.failing_keys:
            raise StorageError(f"simulated write failure for {key}")
        return super().update_item(key, mutate)


@pytest.fixture
def service(tmp_path) -> MonitorService:
    return MonitorService(
        readings_table=FlakyReadingsTable(
            name="test", model=Reading, persistence_path=tmp_path / "water_levels.json"
        ),
        settings_table=MockDynamoDBTable(
            name="test",
            model=Threshold,
            key_attribute="key",
            persistence_path=tmp_path / "settings.json",
        ),
    )


@pytest.fixture
def api_client(service: MonitorService, monkeypatch) -> Iterator[TestClient]:
    def build_test_service() -> MonitorService:
        return service

    build_test_service.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _record(client: TestClient, level: float, **extra) -> dict:
    response = client.post("/water-levels", json={"level": level, **extra}, headers=OPERATOR)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_lifespan_initializes_threshold_and_clears_cache(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("READINGS_PERSISTENCE_PATH", str(tmp_path / "r.json"))
    monkeypatch.setenv("SETTINGS_PERSISTENCE_PATH", str(tmp_path / "s.json"))
    from datastore.mock_dynamodb import build_default_table, build_settings_table
    from settings import get_settings

    for cache in (get_settings, build_default_table, build_settings_table, build_default_service):
        cache.cache_clear()
    app = create_app()

    try:
        with TestClient(app):
            service_during = build_default_service()
            assert service_during.thresholds.table.get_item("critical_threshold") is not None

        service_after = build_default_service()
        assert service_after is not service_during
    finally:
        for cache in (get_settings, build_default_table, build_settings_table, build_default_service):
            cache.cache_clear()


def test_record_and_list_readings(api_client: TestClient) -> None:
    first = _record(api_client, 95, timestamp="2024-01-01T00:00:00Z", notes="spillway")
    second = _record(api_client, 50, timestamp="2024-01-02T00:00:00Z")

    assert first["is_alert"] is True
    assert first["recorded_by"] == "operator-1"
    assert first["notes"] == "spillway"
    assert second["is_alert"] is False

    response = api_client.get("/water-levels")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [item["id"] for item in body["data"]] == [second["id"], first["id"]]

    alerts = api_client.get("/water-levels/alerts").json()
    assert alerts["count"] == 1
    assert alerts["data"][0]["id"] == first["id"]


def test_record_rejects_negative_level(api_client: TestClient) -> None:
    response = api_client.post("/water-levels", json={"level": -1}, headers=OPERATOR)

    assert response.status_code == 400
    assert response.json()["detail"] == "Water level cannot be negative"
    assert api_client.get("/water-levels").json()["count"] == 0


def test_record_requires_level(api_client: TestClient) -> None:
    response = api_client.post("/water-levels", json={"notes": "no level"}, headers=OPERATOR)

    assert response.status_code == 400
    assert response.json()["detail"] == "Water level is required"


def test_write_without_actor_is_unauthorized(api_client: TestClient) -> None:
    response = api_client.post("/water-levels", json={"level": 10})

    assert response.status_code == 401


def test_update_reading(api_client: TestClient) -> None:
    created = _record(api_client, 50)

    response = api_client.put(
        f"/water-levels/{created['id']}", json={"level": 120}, headers=OPERATOR
    )
    assert response.status_code == 200
    assert response.json()["data"]["is_alert"] is True

    response = api_client.put(
        f"/water-levels/{created['id']}", json={"notes": "recalibrated"}, headers=OPERATOR
    )
    data = response.json()["data"]
    assert data["notes"] == "recalibrated"
    assert data["level"] == 120.0
    assert data["is_alert"] is True


def test_update_missing_reading_returns_not_found(api_client: TestClient) -> None:
    missing_id = str(uuid.uuid4())
    response = api_client.put(f"/water-levels/{missing_id}", json={"level": 1}, headers=OPERATOR)

    assert response.status_code == 404
    assert missing_id in response.json()["detail"]


def test_delete_reading(api_client: TestClient) -> None:
    created = _record(api_client, 50)

    response = api_client.delete(f"/water-levels/{created['id']}", headers=OPERATOR)
    assert response.status_code == 200
    assert response.json()["message"] == "Water level record deleted successfully"

    assert api_client.get(f"/water-levels/{created['id']}").status_code == 404


def test_delete_missing_reading_returns_not_found(api_client: TestClient) -> None:
    _record(api_client, 50)

    response = api_client.delete(f"/water-levels/{uuid.uuid4()}", headers=OPERATOR)

    assert response.status_code == 404
    assert api_client.get("/water-levels").json()["count"] == 1


def test_get_settings_returns_default_threshold(api_client: TestClient) -> None:
    response = api_client.get("/settings")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["value"] == 90.0
    assert data["updated_by"] is None


def test_set_threshold_reconciles_readings(api_client: TestClient) -> None:
    for level in (95, 50, 91):
        _record(api_client, level)

    response = api_client.put(
        "/settings/threshold", json={"critical_threshold": 100}, headers=ADMIN
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["value"] == 100.0
    assert data["updated_by"] == "admin-1"
    assert api_client.get("/water-levels/alerts").json()["count"] == 0


@pytest.mark.parametrize(
    ("payload", "detail"),
    [
        ({"critical_threshold": -5}, "Critical threshold cannot be negative"),
        ({}, "Critical threshold is required"),
    ],
)
def test_set_threshold_validation(api_client: TestClient, payload, detail) -> None:
    response = api_client.put("/settings/threshold", json=payload, headers=ADMIN)

    assert response.status_code == 400
    assert response.json()["detail"] == detail
    assert api_client.get("/settings").json()["data"]["value"] == 90.0


def test_reconciliation_failure_reports_stale_records_and_retry_repairs(
    api_client: TestClient, service: MonitorService
) -> None:
    broken = _record(api_client, 95)
    service.readings.table.failing_keys.add(broken["id"])  # type: ignore[attr-defined]

    response = api_client.put(
        "/settings/threshold", json={"critical_threshold": 100}, headers=ADMIN
    )

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["threshold"] == 100.0
    assert detail["stale_ids"] == [broken["id"]]
    assert api_client.get("/settings").json()["data"]["value"] == 100.0

    service.readings.table.failing_keys.clear()  # type: ignore[attr-defined]
    retry = api_client.post("/settings/reconcile", headers=ADMIN)

    assert retry.status_code == 200
    assert retry.json()["changed_ids"] == [broken["id"]]
    assert api_client.get("/water-levels/alerts").json()["count"] == 0


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_non_finite_level_is_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/water-levels",
        content='{"level": NaN}',
        headers={**OPERATOR, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Water level must be a finite number"
    assert api_client.get("/water-levels").json()["count"] == 0


def test_non_finite_threshold_is_rejected(api_client: TestClient) -> None:
    alert = _record(api_client, 95)

    response = api_client.put(
        "/settings/threshold",
        content='{"critical_threshold": NaN}',
        headers={**ADMIN, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert api_client.get("/settings").json()["data"]["value"] == 90.0
    assert api_client.get(f"/water-levels/{alert['id']}").json()["data"]["is_alert"] is True


def _fail_storage(*_args, **_kwargs):
    raise StorageError("disk unavailable")


def test_storage_fault_on_record_returns_unavailable(
    api_client: TestClient, service: MonitorService, monkeypatch
) -> None:
    monkeypatch.setattr(service.readings.table, "put_item", _fail_storage)

    response = api_client.post("/water-levels", json={"level": 95}, headers=OPERATOR)

    assert response.status_code == 503
    assert response.json()["detail"] == "disk unavailable"
    assert service.readings.table.scan() == []


def test_storage_fault_on_threshold_write_returns_unavailable(
    api_client: TestClient, service: MonitorService, monkeypatch
) -> None:
    alert = _record(api_client, 95)
    monkeypatch.setattr(service.thresholds.table, "update_item", _fail_storage)

    response = api_client.put(
        "/settings/threshold", json={"critical_threshold": 100}, headers=ADMIN
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "disk unavailable"
    threshold = service.thresholds.table.get_item("critical_threshold")
    assert threshold is not None
    assert threshold.value == 90.0
    assert threshold.version == 1
    assert service.readings.get(alert["id"]).is_alert is True
