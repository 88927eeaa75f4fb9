"""Business logic for public game reviews."""
from typing import Dict, Optional

from .errors import ConflictError, NotFoundError, ValidationError

_UPDATABLE_FIELDS = {
    'title': 'title',
    'content': 'content',
    'hoursPlayed': 'hours_played',
    'isRecommended': 'is_recommended',
}


class ReviewService:
    """Validates and applies review operations, delegating persistence to
    the ``database`` module's helper functions.

    Rules
    -----
    * ``rating`` must be an integer in the range **1-5** (inclusive).
    * ``platform`` is required (``PC``, ``PS5``, ``Xbox``, ``Switch``, ...).
    * A user writes at most one review per game.
    * Only the author may update or delete a review.
    """

    def __init__(self, db_module) -> None:
        self._db = db_module

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, db, user_id: str, game_id: str, platform: str, rating,
               title: Optional[str] = None, content: Optional[str] = None,
               hours_played: Optional[int] = None,
               is_recommended: Optional[bool] = None,
               is_verified_purchase: bool = False) -> Dict:
        """Create a review.

        Raises:
            ValidationError: Missing fields or rating out of range.
            NotFoundError:   The game does not exist.
            ConflictError:   The user already reviewed this game.
        """
        if not user_id or not game_id or not platform or not rating:
            raise ValidationError("userId, gameId, platform, and rating are required")
        rating = self._validate_rating(rating)
        if not self._db.get_game_by_id(db, game_id):
            raise NotFoundError("Game not found")
        if self._db.get_user_review_for_game(db, user_id, game_id):
            raise ConflictError("You already have a review for this game")

        review = self._db.create_review(db, {
            'user_id': user_id,
            'game_id': game_id,
            'platform': platform,
            'rating': rating,
            'title': title or None,
            'content': content or None,
            'hours_played': hours_played or None,
            'is_recommended': is_recommended,
            'is_verified_purchase': bool(is_verified_purchase),
        })
        return review.to_dict()

    def update(self, db, review_id: str, user_id: str, data: Dict) -> Dict:
        """Partially update a review owned by *user_id*.

        Keys absent from *data* keep their current value; ``platform`` and
        ``rating`` are only replaced by truthy values.

        Raises:
            ValidationError: Missing ids or rating out of range.
            NotFoundError:   No such review for this user.
        """
        if not review_id or not user_id:
            raise ValidationError("reviewId and userId are required")
        review = self._owned_review(db, review_id, user_id)

        values = {}
        if data.get('rating'):
            values['rating'] = self._validate_rating(data['rating'])
        if data.get('platform'):
            values['platform'] = data['platform']
        for key, column in _UPDATABLE_FIELDS.items():
            if key in data:
                values[column] = data[key]
        return self._db.update_review(db, review, values).to_dict()

    def delete(self, db, review_id: str, user_id: str) -> None:
        """Delete a review owned by *user_id*."""
        if not review_id or not user_id:
            raise ValidationError("reviewId and userId are required")
        self._db.delete_review(db, self._owned_review(db, review_id, user_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_for_user_and_game(self, db, user_id: str, game_id: str) -> Optional[Dict]:
        """Return ``{review, game}`` for the user's review of *game_id*, or ``None``."""
        review = self._db.get_user_review_for_game(db, user_id, game_id)
        if review is None:
            return None
        game = self._db.get_game_by_id(db, game_id)
        return {'review': review.to_dict(), 'game': game.to_dict() if game else None}

    def list(self, db, user_id: Optional[str] = None, game_id: Optional[str] = None,
             limit: int = 20, offset: int = 0) -> Dict:
        """Return a page of reviews.

        * *user_id* only: the user's reviews, each with its ``game``.
        * *game_id* only: the game's reviews, each with its ``user``.
        * neither: the public feed of active reviews with ``game`` and ``user``.

        Returns:
            ``{'reviews': [...], 'count': n, 'hasMore': bool}``.
        """
        if user_id:
            rows = self._db.get_reviews_by_user(db, user_id, limit, offset)
            reviews = [dict(r.to_dict(), game=g.to_dict() if g else None) for r, g in rows]
        elif game_id:
            rows = self._db.get_reviews_for_game(db, game_id, limit, offset)
            reviews = [dict(r.to_dict(), user=self._public_user(u)) for r, u in rows]
        else:
            rows = self._db.get_review_feed(db, limit, offset)
            reviews = [
                dict(r.to_dict(), game=g.to_dict() if g else None, user=self._public_user(u))
                for r, g, u in rows
            ]
        return {'reviews': reviews, 'count': len(reviews), 'hasMore': len(reviews) == limit}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_rating(rating) -> int:
        try:
            value = int(rating)
        except (TypeError, ValueError):
            raise ValidationError("Rating must be between 1 and 5")
        if not 1 <= value <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        return value

    @staticmethod
    def _public_user(user) -> Optional[Dict]:
        if user is None:
            return None
        return {'id': user.id, 'name': user.name, 'email': user.email}

    def _owned_review(self, db, review_id: str, user_id: str):
        review = self._db.get_review(db, review_id)
        if review is None or review.user_id != user_id:
            raise NotFoundError("Review not found or access denied")
        return review
