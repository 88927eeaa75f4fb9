"""Genre-based recommendation engine.

Ranks catalog games a user does not own yet by how well their genres match
the genres the user already keeps in their library:

* Every library entry adds a weight to each of its genre slugs (favourites
  count double, completed games one and a half times).
* Each candidate's genre-match score is the sum of the weights of its
  slugs, scaled by its RAWG rating and a logarithmic popularity factor.

The engine is a pure computation over two in-memory lists; fetching the
library and the candidate pool is the job of :class:`RecommendationService`.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------
_FAVORITE_WEIGHT  = 2.0
_COMPLETED_WEIGHT = 1.5
_DEFAULT_WEIGHT   = 1.0
_RATING_SCALE     = 5.0   # RAWG ratings are out of 5
MAX_RECOMMENDATIONS = 10
CANDIDATE_POOL_SIZE = 100

EMPTY_LIBRARY_MESSAGE = "No games in library to base recommendations on"
NO_GENRE_DATA_MESSAGE = "No genre data available in library games"

# Candidate fields copied into each recommendation
_IDENTITY_FIELDS = (
    'id', 'rawgId', 'name', 'slug', 'backgroundImage', 'rating',
    'genres', 'released', 'playtime', 'metacriticScore',
)


def entry_weight(entry: Dict[str, Any]) -> float:
    """Return the genre multiplier for one library entry.

    A favourite outranks a completed game even when both flags apply.
    """
    if entry.get('is_favorite'):
        return _FAVORITE_WEIGHT
    elif entry.get('status') == 'completed':
        return _COMPLETED_WEIGHT
    return _DEFAULT_WEIGHT


def _parse_rating(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class GenreRecommendationEngine:
    """Score and rank candidate games against a user's genre profile.

    Args:
        library:    The user's library entries, each a dict with ``game_id``,
                    ``is_favorite``, ``status`` and ``genres`` (list of
                    ``{id, name, slug}`` or ``None``).
        candidates: Catalog game dicts (``Game.to_dict()`` shape) not in the
                    library, ordered by rating descending.
        limit:      Maximum number of recommendations returned.
    """

    def __init__(
        self,
        library: List[Dict[str, Any]],
        candidates: Optional[List[Dict[str, Any]]] = None,
        limit: int = MAX_RECOMMENDATIONS,
    ) -> None:
        self._library    = library or []
        self._candidates = candidates or []
        self._limit      = limit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_genre_weights(self) -> Dict[str, float]:
        """Accumulate a ``{genre_slug: weight}`` mapping from the library."""
        weights: Dict[str, float] = {}
        for entry in self._library:
            genres = entry.get('genres')
            if not genres or not isinstance(genres, list):
                continue
            weight = entry_weight(entry)
            for genre in genres:
                slug = genre.get('slug')
                if slug:
                    weights[slug] = weights.get(slug, 0.0) + weight
        return weights

    def score_candidates(self, weights: Dict[str, float]) -> List[Dict[str, Any]]:
        """Return every candidate with a non-zero score, best first.

        Each item is ``{'game', 'score', 'matched_genres'}``.  The sort is
        stable, so equal scores keep the incoming (rating) order.
        """
        owned = {entry.get('game_id') for entry in self._library}
        scored: List[Dict[str, Any]] = []

        for game in self._candidates:
            if game.get('id') in owned:
                continue
            genres = game.get('genres')
            if not genres or not isinstance(genres, list):
                continue

            match_score = 0.0
            matched: List[str] = []
            for genre in genres:
                weight = weights.get(genre.get('slug'))
                if weight:
                    match_score += weight
                    matched.append(genre.get('name'))

            if match_score == 0:
                continue

            rating_factor = _parse_rating(game.get('rating')) / _RATING_SCALE
            added = game.get('added') or 1
            popularity_factor = math.log(added + 1)

            scored.append({
                'game': game,
                'score': match_score * rating_factor * popularity_factor,
                'matched_genres': matched,
            })

        scored.sort(key=lambda item: item['score'], reverse=True)
        return scored

    def recommend(self) -> Dict[str, Any]:
        """Return the recommendation payload.

        Returns:
            ``{'recommendations': [], 'message': ...}`` when the library is
            empty or carries no genre data, otherwise
            ``{'recommendations': [...], 'count': n, 'genresAnalyzed': [...]}``.
        """
        if not self._library:
            return {'recommendations': [], 'message': EMPTY_LIBRARY_MESSAGE}

        weights = self.build_genre_weights()
        if not weights:
            return {'recommendations': [], 'message': NO_GENRE_DATA_MESSAGE}

        top = self.score_candidates(weights)[:self._limit]
        recommendations = [self._format(item) for item in top]
        logger.debug(
            "Scored %d candidates against %d genres, returning %d",
            len(self._candidates), len(weights), len(recommendations),
        )
        return {
            'recommendations': recommendations,
            'count': len(recommendations),
            'genresAnalyzed': list(weights.keys()),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format(item: Dict[str, Any]) -> Dict[str, Any]:
        game = item['game']
        result = {field: game.get(field) for field in _IDENTITY_FIELDS}
        result['matchedGenres'] = item['matched_genres']
        result['score'] = item['score']
        return result


class RecommendationService:
    """Fetches the scorer's inputs through the ``database`` module and runs
    :class:`GenreRecommendationEngine` over them.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    Database errors propagate to the caller.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_library_genre_entries`` and
                ``get_recommendation_candidates``).
        """
        self._db = db_module

    def get_for_user(self, db, user_id: str) -> Dict[str, Any]:
        """Return recommendations for *user_id*.

        Args:
            db:      SQLAlchemy session.
            user_id: Target user id.

        Returns:
            The payload produced by :meth:`GenreRecommendationEngine.recommend`.
        """
        library = self._db.get_library_genre_entries(db, user_id)
        if not library:
            return GenreRecommendationEngine(library).recommend()

        owned_ids = [entry['game_id'] for entry in library]
        candidates = [
            game.to_dict()
            for game in self._db.get_recommendation_candidates(
                db, owned_ids, limit=CANDIDATE_POOL_SIZE)
        ]
        return GenreRecommendationEngine(library, candidates).recommend()
