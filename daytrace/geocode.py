"""Reverse geocoding (lat/lon -> place label) with tiered fallback.

Lookup order:
    1. a device geocoder, if the host application provides one;
    2. OpenStreetMap Nominatim over HTTP;
    3. a fixed-precision coordinate string.

``ReverseLookup.label_for`` never raises: every tier failure is logged and the
next tier is tried, so stay detection is never blocked by geocoding.

Important:
    - Public reverse-geocoding services are rate-limited.
    - For Nominatim (OpenStreetMap), please respect their usage policy and set a reasonable
      request interval and a descriptive User-Agent.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Literal, Protocol

from daytrace.kvstore import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

LabelSource = Literal["device", "remote", "fallback"]


@dataclass(frozen=True, slots=True)
class LabelResult:
    """A place label tagged with the tier that produced it."""

    source: LabelSource
    label: str


@dataclass(frozen=True, slots=True)
class PlaceAddress:
    """Structured address as returned by an on-device geocoder."""

    name: str = ""
    street: str = ""
    district: str = ""
    city: str = ""
    region: str = ""

    @property
    def label(self) -> str:
        parts = [self.name, self.street, self.district, self.city, self.region]
        return ", ".join(p.strip() for p in parts if p and p.strip())


class DeviceGeocoder(Protocol):
    def reverse(self, lat: float, lon: float) -> PlaceAddress | None: ...


class RemoteGeocoder(Protocol):
    def reverse(self, *, lat: float, lon: float) -> GeocodeResult | None: ...


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    """A minimal reverse geocoding result."""

    place_name: str
    raw: dict[str, Any]


def coord_key(lat: float, lon: float, precision: int) -> str:
    """Build a stable cache key by rounding coordinates.

    Notes:
        This is used as the cache key: "lat,lon" with fixed decimals.
        Precision=4 is often a good default (lat ~ 11m resolution).
    """

    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"


def fallback_label(lat: float, lon: float) -> str:
    return f"{lat:.4f}, {lon:.4f}"


@dataclass(frozen=True, slots=True)
class NominatimConfig:
    """Configuration for the Nominatim API."""

    base_url: str = "https://nominatim.openstreetmap.org"
    accept_language: str = "zh-CN"
    zoom: int = 18
    addressdetails: int = 1
    timeout_seconds: float = 20.0
    min_interval_seconds: float = 1.0
    user_agent: str = "daytrace/0.1.0 (significant-locations; please set your own UA)"
    search_limit: int = 5


FetchJson = Callable[[str, NominatimConfig], Any]


def fetch_json(url: str, cfg: NominatimConfig) -> Any:
    """GET ``url`` and return the parsed JSON body, or None on any failure.

    This is a pure function (no cache, no throttling state) so it can be swapped
    out in tests.
    """

    req = urllib.request.Request(
        url,
        headers={
            "User-Agent": cfg.user_agent,
            "Accept": "application/json",
        },
        method="GET",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:  # noqa: S310
            body = resp.read().decode("utf-8", errors="replace")
        return json.loads(body)
    except Exception as exc:
        logger.warning("Nominatim 请求失败：%s (%s)", url, exc)
        return None


class NominatimClient:
    """Shared request plumbing: URL building and request spacing."""

    def __init__(self, config: NominatimConfig, fetch: FetchJson = fetch_json) -> None:
        self._cfg = config
        self._fetch = fetch
        self._last_request_at = 0.0

    @property
    def config(self) -> NominatimConfig:
        return self._cfg

    def _get(self, endpoint: str, params: dict[str, str]) -> Any:
        url = f"{self._cfg.base_url.rstrip('/')}/{endpoint}?{urllib.parse.urlencode(params)}"
        self._sleep_if_needed()
        return self._fetch(url, self._cfg)

    def _sleep_if_needed(self) -> None:
        now = time.monotonic()
        wait = self._cfg.min_interval_seconds - (now - self._last_request_at)
        if self._last_request_at and wait > 0:
            time.sleep(wait)
        self._last_request_at = time.monotonic()


class NominatimReverseGeocoder(NominatimClient):
    """Reverse geocoder using OpenStreetMap Nominatim."""

    def __init__(
        self,
        config: NominatimConfig,
        cache: KeyValueStore | None = None,
        fetch: FetchJson = fetch_json,
        precision: int = 4,
    ) -> None:
        super().__init__(config, fetch)
        self._cache = cache
        self._precision = precision

    def reverse(self, *, lat: float, lon: float) -> GeocodeResult | None:
        """Reverse geocode one coordinate.

        Returns:
            GeocodeResult, or None if the request failed or returned no place.
        """

        key = f"geocode_{coord_key(lat, lon, self._precision)}"
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                raw = json.loads(cached.decode("utf-8"))
                return GeocodeResult(place_name=str(raw.get("display_name", "")), raw=raw)

        raw = self._get(
            "reverse",
            {
                "format": "jsonv2",
                "lat": f"{lat:.8f}",
                "lon": f"{lon:.8f}",
                "zoom": str(self._cfg.zoom),
                "addressdetails": str(self._cfg.addressdetails),
                "accept-language": self._cfg.accept_language,
            },
        )
        if not isinstance(raw, dict) or raw.get("error"):
            return None

        place = str(raw.get("display_name", "") or "")
        if not place:
            return None
        if self._cache is not None:
            try:
                self._cache.set(key, json.dumps(raw, ensure_ascii=False).encode("utf-8"))
            except StorageError:
                logger.warning("写入逆地理编码缓存失败：%s", key, exc_info=True)
        return GeocodeResult(place_name=place, raw=raw)


class ReverseLookup:
    """Label a coordinate, falling through device -> remote -> coordinates."""

    def __init__(
        self,
        device: DeviceGeocoder | None = None,
        remote: RemoteGeocoder | None = None,
    ) -> None:
        self._device = device
        self._remote = remote

    def label_for(self, lat: float, lon: float) -> LabelResult:
        if self._device is not None:
            try:
                address = self._device.reverse(lat, lon)
            except Exception:
                logger.warning("设备逆地理编码失败 (%.5f, %.5f)", lat, lon, exc_info=True)
                address = None
            if address is not None and address.label:
                return LabelResult(source="device", label=address.label)

        if self._remote is not None:
            try:
                result = self._remote.reverse(lat=lat, lon=lon)
            except Exception:
                logger.warning("远程逆地理编码失败 (%.5f, %.5f)", lat, lon, exc_info=True)
                result = None
            if result is not None and result.place_name.strip():
                return LabelResult(source="remote", label=result.place_name.strip())

        logger.info("使用坐标作为地点名称 (%.5f, %.5f)", lat, lon)
        return LabelResult(source="fallback", label=fallback_label(lat, lon))
