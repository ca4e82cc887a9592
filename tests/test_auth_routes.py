def _register(api, username="alice", email="alice@example.com", password="password123"):
    headers = api.csrf()
    return api.client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
        headers={**headers, **api.ip()},
    )


def test_register_starts_session(api):
    response = _register(api)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Registration successful"
    assert body["user"]["username"] == "alice"
    assert body["user"]["role"] == "user"
    assert "password" not in body["user"]

    me = api.client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "alice@example.com"


def test_register_duplicate_username_and_email(api):
    api.create_user("alice")

    response = _register(api, username="alice", email="fresh@example.com")
    assert response.status_code == 409
    assert response.json()["code"] == "USERNAME_EXISTS"

    response = _register(api, username="fresh", email="alice@example.com")
    assert response.status_code == 409
    assert response.json()["code"] == "EMAIL_EXISTS"


def test_register_validation_error_shape(api):
    response = _register(api, username="al", password="short")
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["path"] == "/api/auth/register"
    fields = {error["field"] for error in body["errors"]}
    assert {"username", "password"} <= fields


def test_login_missing_credentials(api):
    headers = api.csrf()
    response = api.client.post("/api/auth/login", json={"username": "alice"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_CREDENTIALS"


def test_login_wrong_password_reports_attempts(api):
    api.create_user("alice")
    headers = api.csrf()
    response = api.client.post(
        "/api/auth/login",
        json={"username": "alice", "password": "nope-nope"},
        headers=headers,
    )
    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "INVALID_CREDENTIALS"
    assert body["attempts_remaining"] == 4


def test_locked_account_rejected_over_http(api):
    api.create_user("alice")
    for _ in range(5):
        api.client.post(
            "/api/auth/login",
            json={"username": "alice", "password": "nope-nope"},
            headers={**api.csrf(), **api.ip()},
        )

    response = api.client.post(
        "/api/auth/login",
        json={"username": "alice", "password": "password123"},
        headers={**api.csrf(), **api.ip()},
    )
    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_LOCKED"


def test_login_logout_cycle(api):
    api.create_user("alice")
    assert api.client.get("/api/auth/me").status_code == 401

    headers = api.login("alice")
    assert api.client.get("/api/auth/me").json()["user"]["username"] == "alice"

    response = api.client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Logout successful"

    me = api.client.get("/api/auth/me")
    assert me.status_code == 401
    assert me.json()["code"] == "AUTH_REQUIRED"


def test_login_regenerates_session_id(api):
    api.create_user("alice")
    api.csrf()
    before = api.client.cookies.get("expatEatsSession")

    api.login("alice")
    after = api.client.cookies.get("expatEatsSession")
    assert before and after
    assert before != after


def test_remember_me_extends_cookie(api):
    api.create_user("alice")
    headers = api.csrf()
    response = api.client.post(
        "/api/auth/login",
        json={"username": "alice", "password": "password123", "remember_me": True},
        headers=headers,
    )
    assert response.status_code == 200
    assert "Max-Age=2592000" in response.headers["set-cookie"]


def test_availability_checks(api):
    api.create_user("alice")
    assert api.client.get("/api/auth/check-username/alice").json() == {"available": False}
    assert api.client.get("/api/auth/check-username/bob").json() == {"available": True}
    assert api.client.get("/api/auth/check-email/alice@example.com").json() == {"available": False}


def test_google_routes_disabled_without_config(api):
    response = api.client.get("/api/auth/google", follow_redirects=False)
    assert response.status_code == 404


def test_google_status_for_local_user(api):
    api.create_user("alice")
    api.login("alice")
    response = api.client.get("/api/auth/google/status")
    assert response.json() == {
        "is_linked": False,
        "auth_provider": "local",
        "google_email": None,
        "has_password": True,
    }


def test_admin_lists_users(api):
    api.create_user("alice")
    api.create_user("root", role="admin")

    api.login("alice")
    assert api.client.get("/api/users").status_code == 403

    api.login("root")
    response = api.client.get("/api/users")
    assert response.status_code == 200
    assert {u["username"] for u in response.json()} == {"alice", "root"}
    assert all("password" not in u for u in response.json())


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "session_store": "ok"}
