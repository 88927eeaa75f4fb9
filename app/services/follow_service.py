"""Business logic for following other players."""
from typing import Dict, List

from .errors import ConflictError, NotFoundError, ValidationError


class FollowService:
    """Manages directed follow relationships between users, delegating
    persistence to the ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_follow``, ``create_follow``, ``delete_follow``,
                ``get_followed_users`` and ``get_users_with_stats``).
        """
        self._db = db_module

    def follow(self, db, follower_id: str, following_id: str) -> None:
        """Make *follower_id* follow *following_id*.

        Raises:
            ValidationError: Missing follower or attempt to follow yourself.
            NotFoundError:   The followed user does not exist.
            ConflictError:   Already following.
        """
        if not follower_id:
            raise ValidationError("Follower ID is required")
        if follower_id == following_id:
            raise ValidationError("Cannot follow yourself")
        if not self._db.get_user_by_id(db, following_id):
            raise NotFoundError("User not found")
        if self._db.get_follow(db, follower_id, following_id):
            raise ConflictError("Already following this user")
        self._db.create_follow(db, follower_id, following_id)

    def unfollow(self, db, follower_id: str, following_id: str) -> bool:
        """Remove the follow edge.  Returns ``True`` if it existed."""
        if not follower_id:
            raise ValidationError("Follower ID is required")
        return self._db.delete_follow(db, follower_id, following_id)

    def is_following(self, db, follower_id: str, following_id: str) -> bool:
        if not follower_id:
            raise ValidationError("Follower ID is required")
        return self._db.get_follow(db, follower_id, following_id) is not None

    def get_following(self, db, user_id: str) -> Dict:
        """Return the users *user_id* follows, most recent follow first.

        Returns:
            ``{'followingUsers': [...], 'totalFollowing': n}`` where each user
            dict carries ``followedAt``, ``gamesCount`` and ``reviewsCount``.
        """
        rows = self._db.get_followed_users(db, user_id)
        stats = {
            user.id: (games, reviews)
            for user, games, reviews in self._db.get_users_with_stats(
                db, user_ids=[u.id for _f, u in rows])
        }
        following: List[Dict] = []
        for follow, user in rows:
            games, reviews = stats.get(user.id, (0, 0))
            entry = user.to_dict()
            entry.update({
                'followedAt': follow.created_at.isoformat() if follow.created_at else None,
                'gamesCount': games,
                'reviewsCount': reviews,
            })
            following.append(entry)
        return {'followingUsers': following, 'totalFollowing': len(following)}
