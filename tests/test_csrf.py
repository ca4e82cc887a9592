from expateats.services.csrf_service import generate_token, validate_token
from expateats.utils.session import SessionContext

PLACE = {
    "name": "Mercado Bio",
    "description": "Organic market",
    "address": "Rua Augusta 1",
    "city": "Lisbon",
    "category": "Grocery Stores",
}


def test_token_bound_to_session_secret():
    token, session = generate_token(SessionContext())
    assert session.csrf_secret
    assert "." in token
    assert validate_token(session, token)

    # Секрет создаётся один раз, следующие токены тоже валидны
    second, same_session = generate_token(session)
    assert same_session is session
    assert second != token
    assert validate_token(session, second)

    _, other_session = generate_token(SessionContext())
    assert not validate_token(other_session, token)


def test_invalid_tokens_rejected():
    _, session = generate_token(SessionContext())
    assert not validate_token(session, None)
    assert not validate_token(session, "")
    assert not validate_token(session, "no-separator")
    assert not validate_token(SessionContext(), "salt.digest")


def test_post_without_token_is_forbidden(api):
    response = api.client.post("/api/places", json=PLACE)
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "CSRF_ERROR"
    assert body["message"] == "Security token has expired. Please refresh the page and try again."


def test_post_with_fresh_token_passes(api):
    response = api.client.post("/api/places", json=PLACE, headers=api.csrf())
    assert response.status_code == 201
    assert response.json()["status"] == "pending"


def test_token_in_json_body(api):
    token = api.csrf()["X-CSRF-Token"]
    response = api.client.post("/api/places", json={**PLACE, "_csrf": token})
    assert response.status_code == 201


def test_token_from_another_session_rejected(api):
    other = api.new_client()
    foreign = api.csrf(other)

    # Свою сессию тоже заводим, иначе секрета нет вовсе
    api.csrf()
    response = api.client.post("/api/places", json=PLACE, headers=foreign)
    assert response.status_code == 403
    assert response.json()["code"] == "CSRF_ERROR"


def test_csrf_checked_before_auth(api):
    # Без токена и без входа - сначала CSRF
    response = api.client.post("/api/community/posts", json={"title": "t", "body": "b", "section": "general"})
    assert response.status_code == 403
    assert response.json()["code"] == "CSRF_ERROR"

    response = api.client.post(
        "/api/community/posts",
        json={"title": "t", "body": "b", "section": "general"},
        headers=api.csrf(),
    )
    assert response.status_code == 401
