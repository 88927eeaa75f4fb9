"""Business logic for the personal game library."""
import datetime
from typing import Dict, List, Optional

from .errors import ConflictError, NotFoundError, ValidationError

# API field name -> UserGame column
_EDITABLE_FIELDS = {
    'status': 'status',
    'priority': 'priority',
    'platform': 'platform',
    'personalRating': 'personal_rating',
    'personalNotes': 'personal_notes',
    'hoursPlayed': 'hours_played',
    'progressPercentage': 'progress_percentage',
    'isFavorite': 'is_favorite',
    'isWishlisted': 'is_wishlisted',
    'isOwned': 'is_owned',
}


class LibraryService:
    """Manages each user's library entries (status, priority, favourite flag,
    progress), delegating persistence to the ``database`` module's helper
    functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.

    Rules
    -----
    * ``status`` is one of ``want_to_play``, ``playing``, ``completed``,
      ``dropped``, ``on_hold``; ``priority`` one of ``low``, ``medium``,
      ``high``.
    * ``personalRating`` is 1-5, ``progressPercentage`` 0-100.
    * A user holds at most one entry per game.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes the ``*_user_game`` helpers, ``get_user_library`` and
                ``get_game_by_id``).
        """
        self._db = db_module

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, db, user_id: str, game_id: str,
            data: Optional[Dict] = None) -> Dict:
        """Add *game_id* to the user's library.

        Args:
            db:      SQLAlchemy session.
            user_id: Library owner.
            game_id: Catalog game id.
            data:    Optional API fields (``status``, ``priority``, ...).

        Returns:
            The new entry as a dict.

        Raises:
            NotFoundError:   The game does not exist.
            ConflictError:   The game is already in the library.
            ValidationError: A field value is invalid.
        """
        if not self._db.get_game_by_id(db, game_id):
            raise NotFoundError("Game not found")
        if self._db.get_user_game(db, user_id, game_id):
            raise ConflictError("Game already in library")

        values = {
            'status': 'want_to_play',
            'priority': 'medium',
            'is_favorite': False,
            'is_wishlisted': False,
            'is_owned': True,
        }
        values.update(self._columns(data or {}))
        entry = self._db.add_user_game(db, user_id, game_id, values)
        return entry.to_dict()

    def update(self, db, user_id: str, game_id: str, data: Dict) -> Optional[Dict]:
        """Apply the API fields in *data*; ``None`` when the entry is missing."""
        entry = self._db.update_user_game(db, user_id, game_id, self._columns(data))
        return entry.to_dict() if entry else None

    def remove(self, db, user_id: str, game_id: str) -> bool:
        """Remove the entry.  Returns ``True`` if it existed."""
        return self._db.delete_user_game(db, user_id, game_id)

    def update_status(self, db, user_id: str, game_id: str,
                      status: str) -> Optional[Dict]:
        """Change the status, stamping the matching progress dates.

        ``completed`` records ``completed_at`` and 100 % progress;
        ``playing`` records ``last_played_at`` and, the first time,
        ``started_at``.
        """
        self._check_choice('status', status, self._db.GAME_STATUSES)
        now = datetime.datetime.utcnow()
        values = {'status': status}
        if status == 'completed':
            values['completed_at'] = now
            values['progress_percentage'] = 100
        if status == 'playing':
            existing = self._db.get_user_game(db, user_id, game_id)
            if existing is not None and not existing.started_at:
                values['started_at'] = now
            values['last_played_at'] = now
        entry = self._db.update_user_game(db, user_id, game_id, values)
        return entry.to_dict() if entry else None

    def toggle_favorite(self, db, user_id: str, game_id: str) -> bool:
        """Flip the favourite flag and return the new value.

        Returns ``False`` when the game is not in the library.
        """
        entry = self._db.get_user_game(db, user_id, game_id)
        if not entry:
            return False
        new_value = not entry.is_favorite
        self._db.update_user_game(db, user_id, game_id, {'is_favorite': new_value})
        return new_value

    def update_hours_played(self, db, user_id: str, game_id: str,
                            hours: int) -> Optional[Dict]:
        """Set the hours played and mark the game as played now."""
        if int(hours) < 0:
            raise ValidationError("hoursPlayed must not be negative")
        entry = self._db.update_user_game(db, user_id, game_id, {
            'hours_played': int(hours),
            'last_played_at': datetime.datetime.utcnow(),
        })
        return entry.to_dict() if entry else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_entry(self, db, user_id: str, game_id: str) -> Optional[Dict]:
        entry = self._db.get_user_game(db, user_id, game_id)
        return entry.to_dict() if entry else None

    def get_library(self, db, user_id: str,
                    status: Optional[str] = None) -> List[Dict]:
        """Return the library as flat game dicts merged with entry fields."""
        if status:
            self._check_choice('status', status, self._db.GAME_STATUSES)
        return [
            self._flatten(user_game, game)
            for user_game, game in self._db.get_user_library(db, user_id, status)
        ]

    def get_stats(self, db, user_id: str) -> Dict:
        """Return counts per status, favourites and total hours played."""
        stats = {
            'total': 0,
            'playing': 0,
            'completed': 0,
            'want_to_play': 0,
            'dropped': 0,
            'on_hold': 0,
            'favorites': 0,
            'totalHoursPlayed': 0,
        }
        for user_game, _game in self._db.get_user_library(db, user_id):
            stats['total'] += 1
            if user_game.status in stats:
                stats[user_game.status] += 1
            if user_game.is_favorite:
                stats['favorites'] += 1
            stats['totalHoursPlayed'] += user_game.hours_played or 0
        return stats

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _flatten(user_game, game) -> Dict:
        item = game.to_dict()
        item.update({
            'userGameId': user_game.id,
            'status': user_game.status,
            'priority': user_game.priority,
            'platform': user_game.platform,
            'personalNotes': user_game.personal_notes,
            'hoursPlayed': user_game.hours_played,
            'personalRating': user_game.personal_rating,
            'isFavorite': user_game.is_favorite,
            'isWishlisted': user_game.is_wishlisted,
            'isOwned': user_game.is_owned,
            'addedAt': user_game.created_at.isoformat() if user_game.created_at else None,
        })
        return item

    @staticmethod
    def _check_choice(field: str, value, choices) -> None:
        if value not in choices:
            raise ValidationError(f"{field} must be one of: {', '.join(choices)}")

    def _columns(self, data: Dict) -> Dict:
        """Translate and validate API fields into column values."""
        values = {}
        for key, column in _EDITABLE_FIELDS.items():
            if key in data:
                values[column] = data[key]

        if 'status' in values:
            self._check_choice('status', values['status'], self._db.GAME_STATUSES)
        if 'priority' in values and values['priority'] is not None:
            self._check_choice('priority', values['priority'], self._db.PRIORITIES)
        rating = values.get('personal_rating')
        if rating is not None and not 1 <= int(rating) <= 5:
            raise ValidationError("personalRating must be between 1 and 5")
        progress = values.get('progress_percentage')
        if progress is not None and not 0 <= int(progress) <= 100:
            raise ValidationError("progressPercentage must be between 0 and 100")
        return values
