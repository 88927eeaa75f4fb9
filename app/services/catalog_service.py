"""Business logic for browsing and maintaining the game catalog."""
from typing import Dict, Optional, Tuple

SORT_OPTIONS = ('added', 'name', 'rating', 'released')
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class CatalogService:
    """Reads and writes catalog games, delegating persistence to the
    ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, db_module) -> None:
        self._db = db_module

    def search(self, db, search: Optional[str] = None, sort_by: str = 'added',
               limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> Dict:
        """Return a page of games.

        Args:
            db:      SQLAlchemy session.
            search:  Substring matched against name and description.
            sort_by: One of ``added`` (most popular, default), ``name``,
                     ``rating`` or ``released``.  Unknown values fall back to
                     ``added``.
            limit:   Page size, clamped to 1-100.
            offset:  Number of games to skip.

        Returns:
            ``{'games': [...], 'count': n, 'hasMore': bool}``.
        """
        if sort_by not in SORT_OPTIONS:
            sort_by = 'added'
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))
        offset = max(0, int(offset))
        games = self._db.search_games(db, search=search, sort_by=sort_by,
                                      limit=limit, offset=offset)
        return {
            'games': [g.to_dict() for g in games],
            'count': len(games),
            'hasMore': len(games) == limit,
        }

    def get_by_slug(self, db, slug: str) -> Optional[Dict]:
        """Return the game dict for *slug*, or ``None``."""
        game = self._db.get_game_by_slug(db, slug)
        return game.to_dict() if game else None

    def upsert_rawg_game(self, db, values: Dict) -> Tuple[Dict, bool]:
        """Insert or update a game from transformed RAWG data.

        Returns:
            ``(game_dict, created)``.
        """
        game, created = self._db.upsert_game(db, values)
        return game.to_dict(), created
