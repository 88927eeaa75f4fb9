"""Business logic for player directory and profile pages."""
from typing import Dict, List, Optional


class UserService:
    """Builds the player list and profile views, delegating persistence to
    the ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    RECENT_GAMES = 6

    def __init__(self, db_module) -> None:
        self._db = db_module

    def list_with_stats(self, db) -> List[Dict]:
        """Return all users, newest first, with ``gamesCount`` and ``reviewsCount``."""
        return [
            dict(user.to_dict(), gamesCount=games, reviewsCount=reviews)
            for user, games, reviews in self._db.get_users_with_stats(db)
        ]

    def get_profile(self, db, user_id: str,
                    current_user_id: Optional[str] = None) -> Optional[Dict]:
        """Return the public profile of *user_id*, or ``None`` if unknown.

        Args:
            db:              SQLAlchemy session.
            user_id:         Profile owner.
            current_user_id: Viewer; used to compute ``isFollowing``.

        Returns:
            Dict with ``user``, ``reviews``, ``libraryStats``,
            ``recentGames``, ``followersCount``, ``followingCount`` and
            ``isFollowing``.
        """
        rows = self._db.get_users_with_stats(db, user_ids=[user_id])
        if not rows:
            return None
        user, games_count, reviews_count = rows[0]

        is_following = False
        if current_user_id and current_user_id != user_id:
            is_following = self._db.get_follow(db, current_user_id, user_id) is not None

        reviews = [{
            'id': review.id,
            'rating': review.rating,
            'reviewText': review.content,
            'createdAt': review.created_at.isoformat() if review.created_at else None,
            'updatedAt': review.updated_at.isoformat() if review.updated_at else None,
            'game': game.to_summary() if game else None,
        } for review, game in self._db.get_reviews_by_user(db, user_id, limit=None)]

        recent = [{
            'id': user_game.id,
            'status': user_game.status,
            'addedAt': user_game.created_at.isoformat() if user_game.created_at else None,
            'hoursPlayed': user_game.hours_played,
            'game': game.to_summary(),
        } for user_game, game in self._db.get_recent_library_games(
            db, user_id, limit=self.RECENT_GAMES)]

        return {
            'user': dict(user.to_dict(), gamesCount=games_count, reviewsCount=reviews_count),
            'reviews': reviews,
            'libraryStats': self._db.get_library_status_counts(db, user_id),
            'recentGames': recent,
            'followersCount': self._db.count_followers(db, user_id),
            'followingCount': self._db.count_following(db, user_id),
            'isFollowing': is_following,
        }
