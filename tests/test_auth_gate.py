from datetime import timedelta

from conftest import auth, login, make_session, make_user


def test_missing_token_is_rejected_with_session_expired(client):
    response = client.get("/api/validate-session")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["sessionExpired"] is True
    assert body["message"] == "Session expired. Please login again."


def test_unknown_token_is_rejected(client):
    response = client.get("/api/validate-session", headers=auth("deadbeef" * 8))

    assert response.status_code == 401
    assert response.json()["sessionExpired"] is True


def test_expired_token_is_rejected(client, db):
    user = make_user(db, "old@example.com")
    token = make_session(db, user.id, expires_in=timedelta(seconds=-5))

    response = client.get("/api/validate-session", headers=auth(token))

    assert response.status_code == 401


def test_non_admin_gets_403_on_admin_routes(client, db):
    make_user(db, "staff@example.com", password="staff-pass")
    token = login(client, "staff@example.com", "staff-pass")

    for method, path in [
        ("get", "/api/users"),
        ("get", "/api/backup"),
        ("post", "/api/restore"),
        ("get", "/api/activity-logs/export"),
        ("delete", "/api/services/1"),
    ]:
        response = getattr(client, method)(path, headers=auth(token))
        assert response.status_code == 403, path
        assert response.json() == {"success": False, "message": "Admin access required"}


def test_admin_routes_reject_anonymous_before_role_check(client):
    response = client.get("/api/users")

    assert response.status_code == 401


def test_admin_passes_role_gate(client, admin_token):
    response = client.get("/api/users", headers=auth(admin_token))

    assert response.status_code == 200
    assert response.json()["success"] is True
