"""
rawg_client.py
==============
Client for the RAWG video game database (https://rawg.io/apidocs) and the
importer that fills Ludexicon's catalog from it.

Usage
-----
::

    import database
    from rawg_client import RawgAPIClient, RawgGameImporter

    client = RawgAPIClient(api_key="...")
    page = client.get_games(page=1, page_size=20)
    # {"count": 880000, "next": "...", "results": [{"id": 3498, ...}, ...]}

    stats = RawgGameImporter(client, database.session_scope).run(pages=5)
    # {"processed": 100, "inserted": 97, "updated": 3, "errors": 0}
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

import database
from app.services import CatalogService

logger = logging.getLogger('ludexicon.rawg')

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
RAWG_BASE_URL     = "https://api.rawg.io/api"
_DEFAULT_TIMEOUT  = 10    # seconds
RATE_LIMIT_DELAY  = 1.0   # pause after each successful request
RETRY_DELAY       = 2.0
MAX_RETRIES       = 3
DEFAULT_PAGES     = 10
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE     = 40    # RAWG rejects larger pages

_GAME_LIST_FILTERS = {
    "ordering": "-added",               # most popular first
    "dates": "2000-01-01,2025-12-31",
    "platforms": "4,5,6,1,2,3,7",       # PC, PlayStation, Xbox, Nintendo, ...
}
_STEAM_STORE_IDS = {"1", "2", "11"}
_STEAM_APP_RE = re.compile(r"/app/(\d+)")


class RawgAPIError(Exception):
    """Raised when the RAWG API cannot be reached or keeps failing."""


class RawgAPIClient:
    """Minimal RAWG REST client with retry and rate limiting."""

    def __init__(
        self,
        api_key: str,
        timeout: int = _DEFAULT_TIMEOUT,
        rate_limit_delay: float = RATE_LIMIT_DELAY,
        retry_delay: float = RETRY_DELAY,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            api_key:          RAWG API key.
            timeout:          HTTP request timeout in seconds.
            rate_limit_delay: Seconds to wait after each successful request.
            retry_delay:      Seconds to wait before retrying a failed request.
            max_retries:      Attempts per request before giving up.
            sleep:            Sleep function (replaced in tests).
        """
        if not api_key:
            raise ValueError("api_key must not be empty")
        self._api_key          = api_key
        self._timeout          = timeout
        self._rate_limit_delay = rate_limit_delay
        self._retry_delay      = retry_delay
        self._max_retries      = max_retries
        self._sleep            = sleep

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_games(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        """Return one page of the game list (``{count, next, previous, results}``)."""
        params = dict(_GAME_LIST_FILTERS, page=page, page_size=page_size)
        return self._get("/games", params)

    # Not used by RawgGameImporter: imports work from the list payload, so
    # description, developers, publishers and website stay empty.
    def get_game_details(self, game_id: int) -> Dict[str, Any]:
        return self._get(f"/games/{game_id}")

    def get_game_screenshots(self, game_id: int) -> Dict[str, Any]:
        return self._get(f"/games/{game_id}/screenshots")

    def get_game_movies(self, game_id: int) -> Dict[str, Any]:
        return self._get(f"/games/{game_id}/movies")

    def get_game_stores(self, game_id: int) -> Dict[str, Any]:
        return self._get(f"/games/{game_id}/stores")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET *path*, retrying on HTTP 429 and network errors."""
        query = {"key": self._api_key}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value

        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            logger.debug("Fetching %s (attempt %d)", path, attempt)
            try:
                resp = requests.get(RAWG_BASE_URL + path, params=query, timeout=self._timeout)
                if resp.status_code == 429:
                    logger.warning("Rate limited by RAWG on %s; waiting %.1fs", path, self._retry_delay)
                    last_error = RawgAPIError(f"Rate limited on {path}")
                    self._sleep(self._retry_delay)
                    continue
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError) as exc:
                logger.warning("Request to %s failed (attempt %d): %s", path, attempt, exc)
                last_error = exc
                if attempt < self._max_retries:
                    self._sleep(self._retry_delay)
                continue

            self._sleep(self._rate_limit_delay)
            return data

        raise RawgAPIError(
            f"Failed to fetch {path} after {self._max_retries} attempts: {last_error}"
        )


# ---------------------------------------------------------------------------
# Transformation
# ---------------------------------------------------------------------------

def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d")
    except ValueError:
        return None


def transform_game(raw: Dict[str, Any], screenshots: Optional[List[str]] = None,
                   trailers: Optional[List[str]] = None) -> Dict[str, Any]:
    """Map a RAWG game payload onto ``database.Game`` column values."""
    rating = raw.get("rating")
    return {
        "rawg_id": raw["id"],
        "name": raw.get("name"),
        "name_original": raw.get("name_original"),
        "slug": raw.get("slug"),
        "description": raw.get("description"),
        "released": _parse_date(raw.get("released")),
        "tba": bool(raw.get("tba")),
        "background_image": raw.get("background_image"),
        "background_image_additional": raw.get("background_image_additional"),
        "website": raw.get("website") or None,
        "rating": float(rating) if rating else None,
        "rating_top": raw.get("rating_top"),
        "ratings_count": raw.get("ratings_count"),
        "metacritic_score": raw.get("metacritic"),
        "playtime": raw.get("playtime"),
        "platforms": raw.get("platforms") or [],
        "genres": raw.get("genres") or [],
        "tags": raw.get("tags") or [],
        "developers": raw.get("developers") or [],
        "publishers": raw.get("publishers") or [],
        "esrb_rating": raw.get("esrb_rating"),
        "added": raw.get("added"),
        "suggestions_count": raw.get("suggestions_count"),
        "reviews_text_count": raw.get("reviews_text_count"),
        "screenshots": list(screenshots or []),
        "trailers": list(trailers or []),
        "is_active": True,
    }


def extract_steam_app_id(stores: List[Dict[str, Any]]) -> Optional[int]:
    """Return the Steam app id from a RAWG store list, if one is present.

    Looks for a Steam URL first, then falls back to the store ids RAWG
    commonly uses for Steam.
    """
    steam = next(
        (s for s in stores if s.get("url") and "steam" in s["url"]),
        None,
    )
    if steam is None:
        steam = next(
            (s for s in stores if str(s.get("store_id")) in _STEAM_STORE_IDS),
            None,
        )
    if steam and steam.get("url"):
        match = _STEAM_APP_RE.search(steam["url"])
        if match:
            return int(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

class RawgGameImporter:
    """Pages through RAWG's game list and upserts every game into the catalog.

    Args:
        client:          A :class:`RawgAPIClient`.
        session_factory: Context-manager factory yielding a SQLAlchemy session
                         (``database.session_scope``).
    """

    def __init__(self, client: RawgAPIClient, session_factory) -> None:
        self._client = client
        self._session_factory = session_factory
        self._catalog = CatalogService(database)

    def run(self, pages: int = DEFAULT_PAGES, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, int]:
        """Import up to *pages* pages and return processing statistics."""
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        stats = {"processed": 0, "inserted": 0, "updated": 0, "errors": 0}
        logger.info("Starting RAWG import: %d pages of %d games", pages, page_size)

        for page in range(1, pages + 1):
            try:
                results = self._client.get_games(page, page_size).get("results", [])
            except RawgAPIError as e:
                logger.error("Error fetching page %d: %s", page, e)
                stats["errors"] += 1
                continue

            logger.info("Found %d games on page %d", len(results), page)
            for raw in results:
                try:
                    created = self._process_game(raw)
                except Exception as e:
                    stats["errors"] += 1
                    logger.error("Error processing game %s: %s", raw.get("name"), e)
                    continue
                stats["processed"] += 1
                stats["inserted" if created else "updated"] += 1

            if len(results) < page_size:
                logger.info("Reached end of available games at page %d", page)
                break

        logger.info("RAWG import finished: %s", stats)
        return stats

    def _optional(self, fetch, game_id: int, name: str, what: str) -> List[Dict[str, Any]]:
        try:
            return fetch(game_id).get("results", [])
        except RawgAPIError as e:
            logger.warning("Failed to fetch %s for %s: %s", what, name, e)
            return []

    def _process_game(self, raw: Dict[str, Any]) -> bool:
        """Fetch a game's media and stores, then upsert it.  Returns ``True`` if inserted."""
        game_id, name = raw["id"], raw.get("name")
        screenshots = self._optional(self._client.get_game_screenshots, game_id, name, "screenshots")
        movies = self._optional(self._client.get_game_movies, game_id, name, "movies")
        stores = self._optional(self._client.get_game_stores, game_id, name, "stores")

        values = transform_game(
            raw,
            screenshots=[s.get("image") for s in screenshots],
            trailers=[(m.get("data") or {}).get("max") or m.get("preview") for m in movies],
        )
        values["steam_app_id"] = extract_steam_app_id(stores)

        with self._session_factory() as db:
            _game, created = self._catalog.upsert_rawg_game(db, values)
        logger.debug("%s: %s", "Inserted" if created else "Updated", name)
        return created
