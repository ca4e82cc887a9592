# expateats/services/geocoding_service.py

"""
Геокодирование адресов через Geoapify.

Адрес -> координаты с проверкой уверенности (confidence >= 0.5) и попадания
в границы Португалии (материк, Азоры, Мадейра). При сетевой ошибке или
ошибке разбора ответа делается ровно одна повторная попытка через 1 секунду.

HTTP-запрос и задержка передаются в конструктор, поэтому в тестах
внешний API не вызывается.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

import aiohttp
from loguru import logger

from expateats.config import settings

MIN_CONFIDENCE = 0.5
RETRY_DELAY_SECONDS = 1.0
BATCH_DELAY_SECONDS = 0.2

# (min_lat, max_lat, min_lng, max_lng), границы включительно
PORTUGAL_BOUNDS = {
    "mainland": (36.95, 42.15, -9.5, -6.2),
    "azores": (36.8, 39.8, -31.5, -24.5),
    "madeira": (32.3, 33.2, -17.3, -16.2),
}

FetchFn = Callable[[str, dict[str, Any]], Awaitable[tuple[int, Any]]]
SleepFn = Callable[[float], Awaitable[None]]


class GeocodeFailure(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    NO_RESULTS = "no_results"
    LOW_CONFIDENCE = "low_confidence"
    OUT_OF_BOUNDS = "out_of_bounds"
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


@dataclass
class GeocodeResult:
    success: bool
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    confidence: Optional[float] = None
    formatted_address: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[GeocodeFailure] = None

    @property
    def coordinates(self) -> Optional[dict[str, str]]:
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def failure(cls, reason: GeocodeFailure, error: str) -> "GeocodeResult":
        return cls(success=False, reason=reason, error=error)


@dataclass
class BatchGeocodeResult:
    place_id: int
    place_name: str
    success: bool
    coordinates: Optional[dict[str, str]] = None
    error: Optional[str] = None


class _UpstreamError(Exception):
    """Неожиданный ответ провайдера: уходим на повторную попытку"""


def validate_portugal_coordinates(lat: float, lng: float) -> bool:
    """True, если точка внутри хотя бы одного из трёх прямоугольников"""
    for min_lat, max_lat, min_lng, max_lng in PORTUGAL_BOUNDS.values():
        if min_lat <= lat <= max_lat and min_lng <= lng <= max_lng:
            return True
    return False


def format_address(
    address: str,
    city: str,
    region: Optional[str] = None,
    country: str = "Portugal",
) -> str:
    parts = [address, city, region, country]
    return ", ".join(part for part in parts if part)


async def aiohttp_fetch(url: str, params: dict[str, Any]) -> tuple[int, Any]:
    """GET запрос к провайдеру: (статус, JSON или None при ошибке)"""
    timeout = aiohttp.ClientTimeout(total=10)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url, params=params) as response:
            if response.status >= 400:
                return response.status, None
            return response.status, await response.json(content_type=None)


class GeocodingService:

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        fetch: Optional[FetchFn] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._fetch = fetch or aiohttp_fetch
        self._sleep = sleep or asyncio.sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _params(self, text: str) -> dict[str, Any]:
        return {
            "text": text,
            "apiKey": self.api_key,
            "filter": "countrycode:pt",
            "limit": 1,
        }

    async def geocode_address(
        self,
        address: str,
        city: str,
        region: Optional[str] = None,
        country: str = "Portugal",
    ) -> GeocodeResult:
        if not self.is_configured:
            logger.error("GEOAPIFY_API_KEY is not configured")
            return GeocodeResult.failure(
                GeocodeFailure.NOT_CONFIGURED,
                "Geocoding service is not configured. Please contact support.",
            )

        text = format_address(address, city, region, country)
        logger.info("Geocoding address: {}", text)

        try:
            status, data = await self._fetch(self.base_url, self._params(text))

            if status in (401, 403):
                logger.error("Geoapify API authentication failed")
                return GeocodeResult.failure(
                    GeocodeFailure.AUTH_FAILED,
                    "Geocoding service authentication failed. Please check API key.",
                )
            if status == 429:
                logger.error("Geoapify API rate limit exceeded")
                return GeocodeResult.failure(
                    GeocodeFailure.RATE_LIMITED,
                    "Geocoding rate limit exceeded. Please try again later.",
                )
            if status >= 400:
                raise _UpstreamError(f"Geoapify API returned status {status}")

            return self._check_feature(data, text, retry=False)

        except (_UpstreamError, aiohttp.ClientError, asyncio.TimeoutError, LookupError, TypeError, ValueError) as e:
            logger.warning("Geocoding error for {}: {}", text, e)
            return await self._retry(text)

    async def _retry(self, text: str) -> GeocodeResult:
        try:
            logger.info("Retrying geocoding after error...")
            await self._sleep(RETRY_DELAY_SECONDS)

            status, data = await self._fetch(self.base_url, self._params(text))
            if status >= 400:
                raise _UpstreamError(f"Retry failed with status {status}")

            return self._check_feature(data, text, retry=True)

        except (_UpstreamError, aiohttp.ClientError, asyncio.TimeoutError, LookupError, TypeError, ValueError) as e:
            logger.error("Geocoding retry also failed for {}: {}", text, e)
            return GeocodeResult.failure(
                GeocodeFailure.UNAVAILABLE,
                "Geocoding service is temporarily unavailable. Please try again later.",
            )

    def _check_feature(self, data: Any, text: str, retry: bool) -> GeocodeResult:
        """
        Проверки верхнего результата: наличие, confidence, границы.
        Ошибки структуры ответа (KeyError/TypeError) летят наверх.
        """
        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            logger.warning("No geocoding results found for: {}", text)
            if retry:
                return GeocodeResult.failure(
                    GeocodeFailure.NO_RESULTS,
                    "No coordinates found for this address.",
                )
            return GeocodeResult.failure(
                GeocodeFailure.NO_RESULTS,
                "No coordinates found for this address. The address may be too vague or incorrect.",
            )

        feature = features[0]
        lng, lat = feature["geometry"]["coordinates"][:2]
        lat, lng = float(lat), float(lng)
        properties = feature.get("properties") or {}
        confidence = float((properties.get("rank") or {}).get("confidence") or 0)

        if confidence < MIN_CONFIDENCE:
            logger.warning("Low confidence geocoding result ({}) for: {}", confidence, text)
            return GeocodeResult.failure(
                GeocodeFailure.LOW_CONFIDENCE,
                "Geocoding result quality is insufficient." if retry else
                "Geocoding result has low confidence. Please provide a more specific address.",
            )

        if not validate_portugal_coordinates(lat, lng):
            logger.warning("Coordinates outside Portugal bounds: {}, {}", lat, lng)
            return GeocodeResult.failure(
                GeocodeFailure.OUT_OF_BOUNDS,
                "Geocoding result quality is insufficient." if retry else
                "Geocoded coordinates are outside Portugal. Please verify the address.",
            )

        result = GeocodeResult(
            success=True,
            latitude=f"{lat:.7f}",
            longitude=f"{lng:.7f}",
            confidence=confidence,
            formatted_address=properties.get("formatted") or text,
        )
        logger.info("Successfully geocoded: {} -> {}, {}", text, result.latitude, result.longitude)
        return result

    async def geocode_batch(self, places: Iterable[Any]) -> list[BatchGeocodeResult]:
        """
        Последовательно геокодировать места (id, name, address, city, region, country).

        Между запросами пауза 200 мс, после последнего паузы нет.
        Ошибка одного места не останавливает остальные.
        """
        places = list(places)
        results: list[BatchGeocodeResult] = []
        logger.info("Starting batch geocoding for {} places", len(places))

        for index, place in enumerate(places):
            result = await self.geocode_address(
                place.address,
                place.city,
                place.region or None,
                place.country,
            )
            results.append(
                BatchGeocodeResult(
                    place_id=place.id,
                    place_name=place.name,
                    success=result.success,
                    coordinates=result.coordinates,
                    error=result.error,
                )
            )

            if index < len(places) - 1:
                await self._sleep(BATCH_DELAY_SECONDS)

        successful = sum(1 for r in results if r.success)
        logger.info(
            "Batch geocoding complete: {} successful, {} failed",
            successful,
            len(results) - successful,
        )
        return results


geocoder = GeocodingService(settings.GEOAPIFY_API_KEY, settings.GEOAPIFY_URL)


def get_geocoder() -> GeocodingService:
    """Зависимость FastAPI, в тестах подменяется через dependency_overrides"""
    return geocoder
