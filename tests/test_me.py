from datetime import timedelta

from tests.support import NOW, auth_headers


def test_me_reports_identity_and_operator(client, factory):
    op = factory.operator()
    factory.user(op, subject="auth|owner", affiliation_type="owner")
    r = client.get("/api/v1/me", headers=auth_headers("auth|owner"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["identity"] == {"auth_subject": "auth|owner", "email": "auth|owner@example.com"}
    assert body["operator"] == {
        "operator_id": str(op.operator_id),
        "name": "Aqaba Reef Divers",
        "timezone": "Asia/Amman",
        "affiliation": "owner",
    }
    assert body["permissions"]["can_manage_operator"] is True
    assert body["server_time_utc"].startswith("2026-03-02T09:00")


def test_me_staff_cannot_manage_operator(client, factory):
    op = factory.operator()
    factory.user(op, subject="auth|staff")
    body = client.get("/api/v1/me", headers=auth_headers("auth|staff")).json()
    assert body["operator"]["affiliation"] == "staff"
    assert body["permissions"]["can_manage_operator"] is False


def test_me_requires_auth(client):
    assert client.get("/api/v1/me").status_code == 401


def test_me_unknown_user(client):
    r = client.get("/api/v1/me", headers=auth_headers("auth|ghost"))
    assert r.status_code == 404
    assert r.json()["code"] == "user_not_found"


def test_today_is_the_operator_local_date(client, factory):
    op = factory.operator()  # Asia/Amman, UTC+3: NOW is 12:00 local on 2026-03-02
    factory.user(op, subject="auth|owner")
    later_today = factory.session(op, None, when=NOW + timedelta(hours=2))
    factory.session(op, None, when=NOW + timedelta(hours=13))  # 01:00 local on the 3rd
    factory.session(op, None, when=NOW + timedelta(hours=1), cancelled=True)

    mine = client.get("/api/v1/me/schedule/today", headers=auth_headers("auth|owner")).json()
    public = client.get(f"/api/v1/operators/{op.operator_id}/schedule/today").json()

    for body in (mine, public):
        assert body["date"] == "2026-03-02"
        assert body["session_count"] == 1
        assert body["sessions"][0]["session_id"] == str(later_today.session_id)
        assert body["sessions"][0]["start_time"] == "14:00"


def test_my_week_is_scoped_and_explicit(client, factory):
    op = factory.operator()
    factory.user(op, subject="auth|owner")
    mine = factory.session(op, None, when=NOW + timedelta(days=1))
    other = factory.operator(name="Other")
    factory.session(other, None, when=NOW + timedelta(days=1))

    r = client.get("/api/v1/me/schedule/week", headers=auth_headers("auth|owner"))
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_start_date"

    r = client.get("/api/v1/me/schedule/week", params={"start_date": "2026-03-02"}, headers=auth_headers("auth|owner"))
    assert r.status_code == 200
    ids = [s["session_id"] for d in r.json()["days"] for s in d["sessions"]]
    assert ids == [str(mine.session_id)]


def test_public_today_unknown_operator(client):
    assert client.get("/api/v1/operators/999999/schedule/today").status_code == 404
