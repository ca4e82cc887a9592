import itertools
import os

# Окружение для тестов выставляем до импорта приложения
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SESSION_SECRET"] = "test-session-secret-long-enough-for-hs256-signing"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["TRUST_PROXY"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "true"
for name in ("REDIS_URL", "GEOAPIFY_API_KEY", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"):
    os.environ.pop(name, None)

import pytest
from fastapi.testclient import TestClient

from expateats.main import app
from expateats.models import Base, Place
from expateats.schemas import UserCreate
from expateats.services import auth_service
from expateats.services.session_store import session_store
from expateats.utils.database import SessionLocal, engine
from expateats.utils.limiter import limiter

DEFAULT_PASSWORD = "password123"

_ip_counter = itertools.count(1)


def next_ip() -> str:
    n = next(_ip_counter)
    return f"10.{n // 65536 % 256}.{n // 256 % 256}.{n % 256}"


class Api:
    """Хелперы для тестов: CSRF, пользователи, вход"""

    def __init__(self, client: TestClient, db):
        self.client = client
        self.db = db

    def ip(self, address: str | None = None) -> dict:
        """Заголовок X-Forwarded-For: свой IP - свои счётчики лимитов"""
        return {"X-Forwarded-For": address or next_ip()}

    def csrf(self, client: TestClient | None = None) -> dict:
        response = (client or self.client).get("/api/csrf-token")
        assert response.status_code == 200, response.text
        return {"X-CSRF-Token": response.json()["csrf_token"]}

    def create_user(self, username: str, password: str = DEFAULT_PASSWORD, role: str = "user"):
        return auth_service.create_user(
            self.db,
            UserCreate(username=username, email=f"{username}@example.com", password=password),
            role=role,
        )

    def login(
        self,
        username: str,
        password: str = DEFAULT_PASSWORD,
        client: TestClient | None = None,
        remember_me: bool = False,
    ) -> dict:
        """Вход с отдельного IP (лимит логина 3/15 мин на IP). Возвращает CSRF-заголовок"""
        client = client or self.client
        headers = self.csrf(client)
        response = client.post(
            "/api/auth/login",
            json={"username": username, "password": password, "remember_me": remember_me},
            headers={**headers, "X-Forwarded-For": next_ip()},
        )
        assert response.status_code == 200, response.text
        return headers

    def create_place(self, **overrides) -> Place:
        data = {
            "name": "Mercado Bio",
            "description": "Organic market",
            "address": "Rua Augusta 1",
            "city": "Lisbon",
            "country": "Portugal",
            "category": "Grocery Stores",
            "tags": ["Organic"],
            "status": "approved",
        }
        data.update(overrides)
        place = Place(**data)
        self.db.add(place)
        self.db.commit()
        self.db.refresh(place)
        return place

    def new_client(self) -> TestClient:
        return TestClient(app)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    session_store._data.clear()
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api(client, db):
    return Api(client, db)
