"""Free-text place search for manual timeline editing (Nominatim search/lookup)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from daytrace.geocode import FetchJson, NominatimClient, NominatimConfig, fetch_json

logger = logging.getLogger(__name__)

_OSM_TYPE_PREFIX = {"node": "N", "way": "W", "relation": "R"}


@dataclass(frozen=True, slots=True)
class PlaceSuggestion:
    """One ranked search hit.

    ``id`` is an OSM reference like ``N240109189`` that ``details`` resolves.
    """

    id: str
    description: str
    main_text: str
    secondary_text: str


@dataclass(frozen=True, slots=True)
class PlaceDetails:
    name: str
    address: str
    latitude: float
    longitude: float


def split_description(description: str) -> tuple[str, str]:
    """Split "Main, rest, of, address" into main text and secondary text."""

    head, _, tail = description.partition(",")
    main = head.strip() or description.strip()
    return main, tail.strip()


def _osm_ref(raw: dict[str, Any]) -> str | None:
    prefix = _OSM_TYPE_PREFIX.get(str(raw.get("osm_type", "")).lower())
    osm_id = raw.get("osm_id")
    if prefix is None or osm_id is None:
        return None
    return f"{prefix}{osm_id}"


def _suggestion_from_raw(raw: dict[str, Any], index: int) -> PlaceSuggestion | None:
    description = str(raw.get("display_name", "") or "").strip()
    if not description:
        return None
    main, secondary = split_description(description)
    name = str(raw.get("name", "") or "").strip()
    ref = _osm_ref(raw) or f"search_{index}"
    return PlaceSuggestion(
        id=ref,
        description=description,
        main_text=name or main,
        secondary_text=secondary,
    )


class NominatimPlaceSearch(NominatimClient):
    """Place search and details lookup using OpenStreetMap Nominatim."""

    def __init__(self, config: NominatimConfig, fetch: FetchJson = fetch_json) -> None:
        super().__init__(config, fetch)

    def search(self, query: str) -> list[PlaceSuggestion]:
        """Return ranked suggestions for ``query`` ([] on blank query or failure)."""

        q = query.strip()
        if not q:
            return []
        raw = self._get(
            "search",
            {
                "format": "jsonv2",
                "q": q,
                "limit": str(self._cfg.search_limit),
                "addressdetails": str(self._cfg.addressdetails),
                "accept-language": self._cfg.accept_language,
            },
        )
        if not isinstance(raw, list):
            logger.warning("地点搜索失败：%r", q)
            return []

        out: list[PlaceSuggestion] = []
        for i, item in enumerate(raw):
            if not isinstance(item, dict):
                continue
            suggestion = _suggestion_from_raw(item, i)
            if suggestion is not None:
                out.append(suggestion)
        logger.debug("地点搜索 %r 返回 %s 条", q, len(out))
        return out

    def details(self, place_id: str) -> PlaceDetails | None:
        """Resolve a suggestion id to name, address and coordinates."""

        if not place_id or place_id[0] not in _OSM_TYPE_PREFIX.values():
            return None
        raw = self._get(
            "lookup",
            {
                "format": "jsonv2",
                "osm_ids": place_id,
                "accept-language": self._cfg.accept_language,
            },
        )
        if not isinstance(raw, list) or not raw or not isinstance(raw[0], dict):
            logger.warning("地点详情获取失败：%s", place_id)
            return None

        item = raw[0]
        address = str(item.get("display_name", "") or "").strip()
        name = str(item.get("name", "") or "").strip() or split_description(address)[0]
        try:
            lat = float(item["lat"])
            lon = float(item["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning("地点详情缺少坐标：%s", place_id)
            return None
        return PlaceDetails(name=name, address=address, latitude=lat, longitude=lon)
