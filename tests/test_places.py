import pytest

from expateats.main import app
from expateats.models import Place, Review, SavedStore
from expateats.services import review_service
from expateats.services.geocoding_service import GeocodeFailure, GeocodeResult, GeocodingService, get_geocoder

NEW_PLACE = {
    "name": "Celeiro",
    "description": "Health food store",
    "address": "Rua 1 de Dezembro 65",
    "city": "Lisbon",
    "category": "Grocery Stores",
    "tags": ["Gluten-free", "Organic"],
    "status": "approved",
}


class StubGeocoder:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def geocode_address(self, address, city, region=None, country="Portugal"):
        self.calls.append((address, city, region, country))
        return self.result

    async def geocode_batch(self, places):
        raise AssertionError("not used")


def use_geocoder(result):
    stub = StubGeocoder(result)
    app.dependency_overrides[get_geocoder] = lambda: stub
    return stub


def submit_place(api, **overrides):
    response = api.client.post("/api/places", json={**NEW_PLACE, **overrides}, headers=api.csrf())
    assert response.status_code == 201, response.text
    return response.json()


def test_average_rating_rounds_half_up():
    assert review_service.average_rating([]) is None
    assert review_service.average_rating([4, 5]) == 5
    assert review_service.average_rating([3, 4, 4]) == 4
    assert review_service.average_rating([1, 2]) == 2


def test_submitted_place_is_pending_and_hidden(api):
    place = submit_place(api)
    assert place["status"] == "pending"

    assert api.client.get("/api/places").json() == []
    assert api.client.get(f"/api/places/{place['id']}").status_code == 404


def test_admin_approves_with_geocoding(api):
    place = submit_place(api)
    api.create_user("admin", role="admin")
    headers = api.login("admin")
    stub = use_geocoder(
        GeocodeResult(success=True, latitude="38.7106000", longitude="-9.1397000", confidence=0.9)
    )

    pending = api.client.get("/api/admin/pending-places").json()
    assert [p["id"] for p in pending] == [place["id"]]

    response = api.client.post(
        f"/api/admin/approve-place/{place['id']}",
        json={"admin_notes": "Looks good", "soft_rating": 4},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["coordinates"] == {"latitude": "38.7106000", "longitude": "-9.1397000"}
    assert stub.calls == [("Rua 1 de Dezembro 65", "Lisbon", None, "Portugal")]

    public = api.client.get(f"/api/places/{place['id']}").json()
    assert public["status"] == "approved"
    assert public["soft_rating"] == 4
    assert public["latitude"] == "38.7106000"
    assert public["reviewed_at"] is not None

    # Повторное одобрение или отклонение - конфликт
    again = api.client.post(f"/api/admin/approve-place/{place['id']}", json={}, headers=headers)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_REVIEWED"
    reject = api.client.post(
        f"/api/admin/reject-place/{place['id']}",
        json={"admin_notes": "changed my mind"},
        headers=headers,
    )
    assert reject.status_code == 409


def test_geocoding_failure_keeps_place_pending(api):
    place = submit_place(api)
    api.create_user("admin", role="admin")
    headers = api.login("admin")
    use_geocoder(
        GeocodeResult.failure(
            GeocodeFailure.LOW_CONFIDENCE,
            "Geocoding result has low confidence. Please provide a more specific address.",
        )
    )

    response = api.client.post(f"/api/admin/approve-place/{place['id']}", json={}, headers=headers)
    assert response.status_code == 422
    body = response.json()
    assert body["geocoding_error"] is True
    assert body["message"].startswith("Geocoding result has low confidence")
    assert body["place"]["id"] == place["id"]

    api.db.expire_all()
    assert api.db.get(Place, place["id"]).status == "pending"


def test_approve_with_manual_coordinates_or_skip(api):
    first = submit_place(api)
    second = submit_place(api, name="Second")
    api.create_user("admin", role="admin")
    headers = api.login("admin")
    stub = use_geocoder(GeocodeResult.failure(GeocodeFailure.UNAVAILABLE, "down"))

    response = api.client.post(
        f"/api/admin/approve-place/{first['id']}",
        json={"coordinates": {"latitude": "38.7", "longitude": "-9.1"}},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["coordinates"] == {"latitude": "38.7", "longitude": "-9.1"}

    response = api.client.post(
        f"/api/admin/approve-place/{second['id']}",
        json={"skip_geocode": True},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["coordinates"] is None
    assert stub.calls == []


def test_reject_requires_notes(api):
    place = submit_place(api)
    api.create_user("admin", role="admin")
    headers = api.login("admin")

    response = api.client.post(f"/api/admin/reject-place/{place['id']}", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "ADMIN_NOTES_REQUIRED"

    response = api.client.post(
        f"/api/admin/reject-place/{place['id']}",
        json={"admin_notes": "Duplicate"},
        headers=headers,
    )
    assert response.status_code == 200

    # Отклонённое место админ видит, остальные - нет
    assert api.client.get(f"/api/places/{place['id']}").json()["status"] == "rejected"


def test_admin_routes_require_admin(api):
    assert api.client.get("/api/admin/pending-places").status_code == 401

    api.create_user("alice")
    api.login("alice")
    response = api.client.get("/api/admin/pending-places")
    assert response.status_code == 403
    assert response.json()["code"] == "ADMIN_REQUIRED"


def test_list_filters(api):
    api.create_place(name="Lisbon shop", city="Lisbon", tags=["Gluten-free"])
    api.create_place(name="Porto shop", city="Porto", category="Restaurants", tags=["Vegan"])
    api.create_place(name="Web shop", city="Online", category="Online Store", tags=[])
    api.create_place(name="Hidden", city="Lisbon", status="pending")

    def names(response):
        return [p["name"] for p in response.json()]

    assert names(api.client.get("/api/places")) == ["Lisbon shop", "Porto shop", "Web shop"]
    assert names(api.client.get("/api/places", params={"city": "lisbon"})) == ["Lisbon shop"]
    assert names(api.client.get("/api/places", params={"city": "LISBON,porto"})) == ["Lisbon shop", "Porto shop"]
    assert names(api.client.get("/api/places", params={"category": "Restaurants"})) == ["Porto shop"]
    assert names(api.client.get("/api/places", params={"tags": "gluten"})) == ["Lisbon shop"]
    assert names(
        api.client.get("/api/places", params={"city": "Lisbon", "category": "Online Store,Grocery Stores"})
    ) == ["Lisbon shop", "Web shop"]


def test_reviews_update_average(api):
    place = api.create_place()
    api.create_user("alice")
    api.create_user("bob")

    headers = api.login("alice")
    response = api.client.post(
        "/api/reviews",
        json={"place_id": place.id, "rating": 4, "comment": "Nice"},
        headers=headers,
    )
    assert response.status_code == 201

    headers = api.login("bob")
    api.client.post("/api/reviews", json={"place_id": place.id, "rating": 5}, headers=headers)

    assert api.client.get(f"/api/places/{place.id}").json()["average_rating"] == 5
    assert len(api.client.get(f"/api/places/{place.id}/reviews").json()) == 2

    missing = api.client.post("/api/reviews", json={"place_id": 999, "rating": 3}, headers=headers)
    assert missing.status_code == 404


@pytest.mark.parametrize("rating", [0, 6])
def test_review_rating_bounds(api, rating):
    place = api.create_place()
    api.create_user("alice")
    headers = api.login("alice")
    response = api.client.post("/api/reviews", json={"place_id": place.id, "rating": rating}, headers=headers)
    assert response.status_code == 400


def test_saved_stores(api):
    place = api.create_place()
    api.create_user("alice")
    headers = api.login("alice")

    response = api.client.post(
        "/api/user/saved-stores",
        json={"store_id": place.id, "action": "save"},
        headers=headers,
    )
    assert response.status_code == 200

    duplicate = api.client.post(
        "/api/user/saved-stores",
        json={"store_id": place.id, "action": "save"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "ALREADY_SAVED"

    saved = api.client.get("/api/user/saved-stores").json()
    assert [p["id"] for p in saved] == [place.id]

    bad = api.client.post("/api/user/saved-stores", json={"store_id": place.id}, headers=headers)
    assert bad.status_code == 400

    response = api.client.delete(f"/api/user/saved-stores/{place.id}", headers=headers)
    assert response.status_code == 200
    assert api.client.get("/api/user/saved-stores").json() == []


@pytest.mark.parametrize("status", ["pending", "rejected"])
def test_hidden_place_cannot_be_saved(api, status):
    place = api.create_place(status=status, admin_notes="internal only")
    api.create_user("alice")
    headers = api.login("alice")

    response = api.client.post(
        "/api/user/saved-stores",
        json={"store_id": place.id, "action": "save"},
        headers=headers,
    )
    assert response.status_code == 404
    assert api.client.get("/api/user/saved-stores").json() == []


def test_saved_list_drops_place_after_rejection(api):
    place = api.create_place()
    user = api.create_user("alice")
    api.db.add(SavedStore(user_id=user.id, place_id=place.id))
    place.status = "rejected"
    api.db.commit()

    api.login("alice")
    assert api.client.get("/api/user/saved-stores").json() == []


def test_hidden_place_has_no_reviews(api):
    place = api.create_place(status="rejected", admin_notes="Closed")
    user = api.create_user("alice")
    api.db.add(Review(place_id=place.id, user_id=user.id, rating=2))
    api.db.commit()
    headers = api.login("alice")

    response = api.client.post("/api/reviews", json={"place_id": place.id, "rating": 5}, headers=headers)
    assert response.status_code == 404
    assert api.client.get(f"/api/places/{place.id}/reviews").status_code == 404

    api.db.expire_all()
    assert api.db.get(Place, place.id).average_rating is None
    assert api.db.query(Review).count() == 1


def test_categories_and_cities(api):
    categories = api.client.get("/api/categories").json()
    assert [c["name"] for c in categories] == [
        "International Markets",
        "Restaurants",
        "Grocery Stores",
        "Expat Groups",
    ]

    api.create_user("admin", role="admin")
    headers = api.login("admin")
    response = api.client.post(
        "/api/admin/cities",
        json={"name": "Vila Nova de Gaia", "country": "Portugal", "region": "Norte"},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["slug"] == "vila-nova-de-gaia"

    duplicate = api.client.post(
        "/api/admin/cities",
        json={"name": "Vila Nova de Gaia", "country": "Portugal"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CITY_EXISTS"

    missing = api.client.post("/api/admin/cities", json={"name": "Braga"}, headers=headers)
    assert missing.status_code == 400

    assert [c["name"] for c in api.client.get("/api/cities").json()] == ["Vila Nova de Gaia"]


def test_batch_geocode_fills_missing_coordinates(api):
    ready = api.create_place(name="Has coords", latitude="38.7", longitude="-9.1")
    missing = api.create_place(name="No coords")
    vague = api.create_place(name="Vague", address="Somewhere")
    api.create_place(name="Pending", status="pending")
    ready_id, missing_id, vague_id = ready.id, missing.id, vague.id

    responses = {
        "Rua Augusta 1, Lisbon, Portugal": (200, {
            "features": [{
                "geometry": {"coordinates": [-9.1368, 38.7101]},
                "properties": {"rank": {"confidence": 0.95}},
            }],
        }),
        "Somewhere, Lisbon, Portugal": (200, {"features": []}),
    }

    async def fetch(url, params):
        return responses[params["text"]]

    async def sleep(seconds):
        return None

    service = GeocodingService("test-key", "https://geo.test", fetch=fetch, sleep=sleep)
    app.dependency_overrides[get_geocoder] = lambda: service

    api.create_user("admin", role="admin")
    headers = api.login("admin")
    response = api.client.post("/api/admin/batch-geocode", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}
    assert [r["place_id"] for r in body["results"]] == [missing_id, vague_id]
    assert body["results"][1]["success"] is False

    places = {p["id"]: p for p in api.client.get("/api/places").json()}
    assert places[missing_id]["latitude"] == "38.7101000"
    assert places[ready_id]["latitude"] == "38.7"
    assert places[vague_id]["latitude"] is None


def test_admin_edits_place_address_and_notes(api):
    place_id = api.create_place(region="Lisboa").id
    api.create_user("admin", role="admin")
    headers = api.login("admin")

    empty = api.client.patch(f"/api/admin/update-place/{place_id}", json={}, headers=headers)
    assert empty.status_code == 400

    response = api.client.patch(
        f"/api/admin/update-place/{place_id}",
        json={"address": "Rua Nova 2", "region": None},
        headers=headers,
    )
    assert response.status_code == 200

    response = api.client.patch(
        f"/api/admin/update-place-notes/{place_id}",
        json={"soft_rating": 5, "curator_notes": "Great bread"},
        headers=headers,
    )
    assert response.status_code == 200

    place = api.client.get(f"/api/places/{place_id}").json()
    assert place["address"] == "Rua Nova 2"
    assert place["region"] is None
    assert place["soft_rating"] == 5
    assert place["curator_notes"] == "Great bread"


def test_moderation_scenario_by_city(api):
    approved = submit_place(api, name="Approved", city="Porto")
    rejected = submit_place(api, name="Rejected", city="Porto")
    api.create_user("admin", role="admin")
    headers = api.login("admin")

    api.client.post(
        f"/api/admin/approve-place/{approved['id']}",
        json={"admin_notes": "looks good", "skip_geocode": True},
        headers=headers,
    )
    api.client.post(
        f"/api/admin/reject-place/{rejected['id']}",
        json={"admin_notes": "closed"},
        headers=headers,
    )

    for params in ({}, {"city": "porto"}, {"category": "Grocery Stores"}, {"tags": "organic"}):
        names = [p["name"] for p in api.client.get("/api/places", params=params).json()]
        assert names == ["Approved"]
