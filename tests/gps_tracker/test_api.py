import pytest
from datetime import datetime
from fastapi.testclient import TestClient

from gps_tracker.api import NEW_DATA_EVENT, create_app
from gps_tracker.config import TrackerSettings
from gps_tracker.snapshot import NO_DATA_RAW


@pytest.fixture
def cfg():
    return TrackerSettings(maps_api_key="maps-key", alert_to=None)


@pytest.fixture
def client(cfg, service):
    app = create_app(cfg, service=service)
    return TestClient(app)


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"

    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["observers"] == 0
    datetime.fromisoformat(data["time_utc"].replace("Z", "+00:00"))


def test_latest_data_before_any_report(client):
    data = client.get("/api/data").json()
    assert data["values"] == {}
    assert data["raw"] == NO_DATA_RAW
    assert "timestamp" in data


def test_post_report_is_acknowledged_and_stored(client):
    payload = {"deviceId": "tracker-01", "lat": 42.5, "lon": 23.3}

    response = client.post("/api/data", json=payload)

    assert response.status_code == 200
    assert response.json() == {"status": "success", "message": "Data received"}
    data = client.get("/api/data").json()
    assert data["values"] == payload
    assert client.get("/api/movement").json()["history"] == []


def test_form_encoded_report_feeds_movement_window(client):
    for _ in range(2):
        client.post("/api/data", data={"isMoving": "true", "lat": "42.5", "lon": "23.3"})

    movement = client.get("/api/movement").json()

    assert movement == {"history": [True, True], "consecutiveCount": 2, "capacity": 3}
    assert client.get("/api/data").json()["values"]["lat"] == "42.5"


def test_three_moving_reports_trigger_one_alert(client, service, notifier):
    for _ in range(4):
        assert client.post("/api/data", json={"isMoving": True, "lat": 1, "lon": 2}).status_code == 200

    service.dispatcher.shutdown(wait=True)
    assert len(notifier.sent) == 1


def test_failing_notifier_still_acknowledges(client, service, notifier):
    notifier.fail = True
    for _ in range(3):
        response = client.post("/api/data", json={"isMoving": True})
        assert response.status_code == 200


@pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b""])
def test_malformed_body_is_acknowledged_as_empty_report(client, body):
    response = client.post("/api/data", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    data = client.get("/api/data").json()
    assert data["values"] == {}
    assert data["raw"] == "{}"


def test_client_config_exposes_maps_key(client):
    assert client.get("/api/config").json() == {"googleApiKey": "maps-key"}


def test_websocket_gets_current_snapshot_then_updates(client):
    client.post("/api/data", json={"lat": 42.5, "lon": 23.3})

    with client.websocket_connect("/ws") as ws:
        first = ws.receive_json()
        assert first["event"] == NEW_DATA_EVENT
        assert first["data"]["values"] == {"lat": 42.5, "lon": 23.3}

        client.post("/api/data", json={"lat": 42.6, "lon": 23.4, "isMoving": False})

        update = ws.receive_json()
        assert update["data"]["values"] == {"lat": 42.6, "lon": 23.4, "isMoving": False}


def test_websocket_without_reports_gets_placeholder(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["data"]["raw"] == NO_DATA_RAW
