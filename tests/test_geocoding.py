import asyncio
from types import SimpleNamespace

import pytest

from expateats.services.geocoding_service import (
    BATCH_DELAY_SECONDS,
    RETRY_DELAY_SECONDS,
    GeocodeFailure,
    GeocodingService,
    format_address,
    validate_portugal_coordinates,
)


def feature(lat, lng, confidence, formatted="Rua Augusta 1, Lisbon, Portugal"):
    return {
        "features": [
            {
                "geometry": {"coordinates": [lng, lat]},
                "properties": {"rank": {"confidence": confidence}, "formatted": formatted},
            }
        ]
    }


class FakeApi:
    """Отдаёт заранее заданные ответы по очереди и запоминает запросы"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, url, params):
        self.calls.append(params)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class Sleeper:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_service(*responses, api_key="test-key"):
    fetch = FakeApi(*responses)
    sleep = Sleeper()
    return GeocodingService(api_key, "https://geo.test/search", fetch=fetch, sleep=sleep), fetch, sleep


@pytest.mark.parametrize(
    "lat,lng,expected",
    [
        (38.7223, -9.1393, True),  # Lisbon
        (41.1579, -8.6291, True),  # Porto
        (37.7412, -25.6756, True),  # Ponta Delgada
        (32.6669, -16.9241, True),  # Funchal
        (36.95, -9.5, True),  # угол прямоугольника
        (40.4168, -3.7038, False),  # Madrid
        (48.8566, 2.3522, False),  # Paris
    ],
)
def test_portugal_bounds(lat, lng, expected):
    assert validate_portugal_coordinates(lat, lng) is expected


def test_format_address_skips_empty_parts():
    assert format_address("Rua A 1", "Porto", None) == "Rua A 1, Porto, Portugal"
    assert format_address("Rua A 1", "Porto", "Norte", "Portugal") == "Rua A 1, Porto, Norte, Portugal"


@pytest.mark.anyio
async def test_geocode_success():
    service, fetch, sleep = make_service((200, feature(38.7101, -9.1368, 0.92)))

    result = await service.geocode_address("Rua Augusta 1", "Lisbon")

    assert result.success is True
    assert result.coordinates == {"latitude": "38.7101000", "longitude": "-9.1368000"}
    assert result.confidence == 0.92
    assert fetch.calls[0]["text"] == "Rua Augusta 1, Lisbon, Portugal"
    assert fetch.calls[0]["filter"] == "countrycode:pt"
    assert sleep.delays == []


@pytest.mark.anyio
async def test_low_confidence_rejected():
    service, _, _ = make_service((200, feature(38.7101, -9.1368, 0.3)))

    result = await service.geocode_address("Somewhere", "Lisbon")

    assert result.success is False
    assert result.reason is GeocodeFailure.LOW_CONFIDENCE
    assert result.coordinates is None


@pytest.mark.anyio
async def test_out_of_bounds_rejected():
    service, _, _ = make_service((200, feature(40.4168, -3.7038, 0.9)))

    result = await service.geocode_address("Gran Via 1", "Madrid")

    assert result.reason is GeocodeFailure.OUT_OF_BOUNDS
    assert result.error == "Geocoded coordinates are outside Portugal. Please verify the address."


@pytest.mark.anyio
async def test_no_results():
    service, _, _ = make_service((200, {"features": []}))

    result = await service.geocode_address("???", "Lisbon")

    assert result.reason is GeocodeFailure.NO_RESULTS


@pytest.mark.anyio
async def test_retry_once_after_network_error():
    service, fetch, sleep = make_service(
        asyncio.TimeoutError("timed out"),
        (200, feature(41.1579, -8.6291, 0.8)),
    )

    result = await service.geocode_address("Rua de Santa Catarina 1", "Porto")

    assert result.success is True
    assert len(fetch.calls) == 2
    assert sleep.delays == [RETRY_DELAY_SECONDS]


@pytest.mark.anyio
async def test_retry_failure_reports_unavailable():
    service, fetch, sleep = make_service((500, None), (502, None))

    result = await service.geocode_address("Rua X", "Porto")

    assert result.success is False
    assert result.reason is GeocodeFailure.UNAVAILABLE
    assert result.error == "Geocoding service is temporarily unavailable. Please try again later."
    assert len(fetch.calls) == 2
    assert sleep.delays == [RETRY_DELAY_SECONDS]


@pytest.mark.anyio
async def test_malformed_response_is_retried():
    service, fetch, _ = make_service(
        (200, {"features": [{"properties": {}}]}),
        (200, feature(38.7101, -9.1368, 0.2)),
    )

    result = await service.geocode_address("Rua Augusta 1", "Lisbon")

    assert len(fetch.calls) == 2
    assert result.reason is GeocodeFailure.LOW_CONFIDENCE
    assert result.error == "Geocoding result quality is insufficient."


@pytest.mark.anyio
async def test_auth_failure_not_retried():
    service, fetch, sleep = make_service((401, None))

    result = await service.geocode_address("Rua Augusta 1", "Lisbon")

    assert result.reason is GeocodeFailure.AUTH_FAILED
    assert len(fetch.calls) == 1
    assert sleep.delays == []


@pytest.mark.anyio
async def test_not_configured():
    service, fetch, _ = make_service(api_key=None)

    result = await service.geocode_address("Rua Augusta 1", "Lisbon")

    assert result.reason is GeocodeFailure.NOT_CONFIGURED
    assert fetch.calls == []


@pytest.mark.anyio
async def test_batch_pauses_between_places_and_continues_after_failure():
    places = [
        SimpleNamespace(id=1, name="A", address="Rua A", city="Lisbon", region=None, country="Portugal"),
        SimpleNamespace(id=2, name="B", address="Rua B", city="Lisbon", region=None, country="Portugal"),
        SimpleNamespace(id=3, name="C", address="Rua C", city="Porto", region="", country="Portugal"),
    ]
    service, fetch, sleep = make_service(
        (200, feature(38.71, -9.13, 0.9)),
        (429, None),
        (200, feature(41.15, -8.62, 0.9)),
    )

    results = await service.geocode_batch(places)

    assert [r.success for r in results] == [True, False, True]
    assert results[1].error == "Geocoding rate limit exceeded. Please try again later."
    assert results[2].coordinates == {"latitude": "41.1500000", "longitude": "-8.6200000"}
    # Пауза между местами, после последнего - нет
    assert sleep.delays == [BATCH_DELAY_SECONDS, BATCH_DELAY_SECONDS]
    assert fetch.calls[2]["text"] == "Rua C, Porto, Portugal"
