import pytest

from sleepwell.api import admin

ADMIN_KEY = "admin-test-key"


@pytest.fixture
def admin_headers(monkeypatch) -> dict[str, str]:
    monkeypatch.setattr(admin, "ADMIN_API_KEY", ADMIN_KEY)
    return {"X-Admin-Key": ADMIN_KEY}


def test_admin_list_disabled_without_key(client, monkeypatch) -> None:
    monkeypatch.setattr(admin, "ADMIN_API_KEY", "")
    response = client.get("/admin/guest-sessions", headers={"X-Admin-Key": "anything"})
    assert response.status_code == 503


def test_admin_list_rejects_wrong_key(client, admin_headers) -> None:
    assert client.get("/admin/guest-sessions").status_code == 401
    response = client.get("/admin/guest-sessions", headers={"X-Admin-Key": "wrong"})
    assert response.status_code == 401


def test_admin_list_counts_routine_entries(client, admin_headers, create_guest_session) -> None:
    complete = create_guest_session(
        sleep_routine={
            "night": {"bedtime": "22:00", "pre_bed": [{"item_name": "Read"}, {"item_name": "Tea"}]},
            "morning": {"wake_time": "06:00"},
        }
    )
    partial = create_guest_session(sleep_routine={"night": {"bedtime": "22:00"}})
    broken = create_guest_session(raw_sleep_routine_json="[]")

    response = client.get("/admin/guest-sessions", headers=admin_headers, params={"limit": 100})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] >= 3
    by_id = {item["session_id"]: item for item in body["items"]}

    assert by_id[complete.session_id]["routine_entries"] == 4
    assert by_id[complete.session_id]["is_complete"] is True
    assert by_id[partial.session_id]["routine_entries"] == 1
    assert by_id[partial.session_id]["is_complete"] is False
    assert by_id[broken.session_id]["routine_entries"] == 0


def test_admin_list_pagination(client, admin_headers, create_guest_session) -> None:
    for _ in range(3):
        create_guest_session()
    first_page = client.get("/admin/guest-sessions", headers=admin_headers, params={"limit": 2}).json()
    second_page = client.get(
        "/admin/guest-sessions", headers=admin_headers, params={"limit": 2, "offset": 2}
    ).json()
    assert len(first_page["items"]) == 2
    assert first_page["limit"] == 2
    assert second_page["offset"] == 2
    first_ids = {item["session_id"] for item in first_page["items"]}
    assert not first_ids & {item["session_id"] for item in second_page["items"]}


def test_admin_list_validates_limit(client, admin_headers) -> None:
    response = client.get("/admin/guest-sessions", headers=admin_headers, params={"limit": 0})
    assert response.status_code == 422
