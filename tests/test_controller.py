from __future__ import annotations

import pytest

from src.gym_attendance.gym_attendance.container import build_container
from src.gym_attendance.gym_attendance.main import create_app
from tests.fakes import FakeProbe, FakeRemote, make_record


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def probe():
    return FakeProbe(True)


@pytest.fixture
def container(tmp_path, remote, probe):
    c = build_container(
        db_config={"url": f"sqlite:///{tmp_path / 'ledger.db'}", "device_id": "kiosk-1"},
        sync_config={"remote_base_url": "http://remote.invalid/api", "probe_interval": 3600, "timeout": 1},
        remote=remote,
        probe=probe,
    )
    yield c
    c.shutdown()


@pytest.fixture
def app(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container)
    container.runtime.run(container.connectivity.refresh())
    container.runtime.run(container.tasks.drain())
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, user_id="u1", name="Ann", role="member"):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["name"] = name
        sess["role"] = role


def _settle(container):
    container.runtime.run(container.tasks.drain())


def test_requires_sign_in(client):
    resp = client.get("/api/dashboard")

    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_member_check_in_is_stored_and_replicated(client, container, remote):
    _login(client)

    resp = client.post("/api/attendance", json={"type": "check-in"})
    _settle(container)

    assert resp.status_code == 201
    record = resp.get_json()["record"]
    assert record["userId"] == "u1"
    assert record["id"].startswith("kiosk-1-")
    assert record["id"] in remote.store
    assert client.get("/api/attendance/unsynced").get_json() == {"unsynced": 0}


def test_unknown_attendance_type_is_bad_request(client):
    _login(client)

    resp = client.post("/api/attendance", json={"type": "nap"})

    assert resp.status_code == 400


def test_member_history_is_scoped_to_self(client, container):
    _login(client)
    client.post("/api/attendance", json={"type": "check-in"})
    _settle(container)

    own = client.get("/api/attendance")
    other = client.get("/api/attendance?userId=u2")
    bad_date = client.get("/api/attendance?date=yesterday")

    assert [r["userId"] for r in own.get_json()["records"]] == ["u1"]
    assert other.status_code == 403
    assert bad_date.status_code == 400


def test_sync_reports_failures_and_keeps_records_queued(client, container, remote):
    remote.reject.add("u1")
    _login(client)
    client.post("/api/attendance", json={"type": "check-in"})
    _settle(container)

    body = client.post("/api/sync").get_json()

    assert body["success"] is False
    assert body["status"] == "completed"
    assert len(body["failed"]) == 1
    assert "retry" in body["message"]
    assert client.get("/api/attendance/unsynced").get_json() == {"unsynced": 1}


def test_sync_while_offline_keeps_records_queued(client, container, probe, remote):
    probe.results = [False]
    container.runtime.run(container.connectivity.refresh())
    _login(client)
    client.post("/api/attendance", json={"type": "check-out"})
    _settle(container)

    body = client.post("/api/sync").get_json()
    status = client.get("/api/status").get_json()

    assert body["status"] == "offline"
    assert remote.upsert_calls == 0
    assert status["online"] is False
    assert status["unsynced"] == 1


def test_admin_scan_records_member_check_in(client, container):
    _login(client, user_id="a1", name="Admin", role="admin")

    ok = client.post("/api/qr/checkin", json={"code": '{"id":"u7","name":"Bob"}'})
    bad = client.post("/api/qr/checkin", json={"code": "garbage"})
    _settle(container)

    assert ok.status_code == 200
    assert ok.get_json()["message"] == "Attendance recorded for Bob"
    assert ok.get_json()["record"]["userId"] == "u7"
    assert bad.status_code == 400
    assert bad.get_json()["message"] == "Invalid code"

    dashboard = client.get("/api/dashboard").get_json()
    assert dashboard["kind"] == "admin"
    assert dashboard["total_members"] == 1
    assert dashboard["recent"][0]["memberName"] == "Bob"


def test_member_cannot_scan(client):
    _login(client)

    resp = client.post("/api/qr/checkin", json={"code": '{"id":"u7","name":"Bob"}'})

    assert resp.status_code == 403


def test_member_dashboard_and_qr_image(client):
    _login(client)

    dashboard = client.get("/api/dashboard").get_json()
    image = client.get("/api/me/qr/image")

    assert dashboard["kind"] == "member"
    assert dashboard["qr_payload"] == '{"id":"u1","name":"Ann"}'
    assert image.mimetype == "image/png"
    assert image.data.startswith(b"\x89PNG")


def test_refresh_imports_remote_records(client, remote):
    remote.records.append(make_record("srv-1", user_id="u1", synced=True))
    _login(client)

    resp = client.post("/api/attendance/refresh")

    assert resp.get_json() == {"success": True, "imported": 1}
    assert client.get("/api/attendance").get_json()["records"][0]["id"] == "srv-1"
