#!/usr/bin/env python3
"""
Database models and configuration for Ludexicon.
Handles the SQL store for users, the game catalog, personal libraries,
reviews and follow relationships.
"""

import os
import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine, Column, Integer, String, Boolean, DateTime, Text, Float,
    ForeignKey, JSON, UniqueConstraint, func, or_, distinct,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

logger = logging.getLogger('ludexicon.database')

DEFAULT_DATABASE_URL = 'sqlite:///ludexicon.db'

GAME_STATUSES = ('want_to_play', 'playing', 'completed', 'dropped', 'on_hold')
PRIORITIES = ('low', 'medium', 'high')

Base = declarative_base()
engine = None
SessionLocal = None


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(Base):
    """Registered player account."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    image = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user_games = relationship("UserGame", back_populates="user", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'image': self.image,
            'createdAt': _iso(self.created_at),
        }


class Game(Base):
    """Catalog entry ingested from the RAWG API."""
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_new_id)
    rawg_id = Column(Integer, unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    name_original = Column(String(255), nullable=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    released = Column(DateTime, nullable=True)
    tba = Column(Boolean, default=False)

    background_image = Column(String(500), nullable=True)
    background_image_additional = Column(String(500), nullable=True)
    screenshots = Column(JSON(none_as_null=True), nullable=True)
    trailers = Column(JSON(none_as_null=True), nullable=True)

    # Lists of {id, name, slug}
    genres = Column(JSON(none_as_null=True), nullable=True)
    platforms = Column(JSON(none_as_null=True), nullable=True)
    tags = Column(JSON(none_as_null=True), nullable=True)
    developers = Column(JSON(none_as_null=True), nullable=True)
    publishers = Column(JSON(none_as_null=True), nullable=True)

    rating = Column(Float, nullable=True)  # RAWG user rating, 0-5
    rating_top = Column(Integer, nullable=True)
    ratings_count = Column(Integer, nullable=True)
    metacritic_score = Column(Integer, nullable=True)
    metacritic_url = Column(String(500), nullable=True)
    esrb_rating = Column(JSON(none_as_null=True), nullable=True)

    playtime = Column(Integer, nullable=True)  # average hours
    website = Column(String(500), nullable=True)
    steam_app_id = Column(Integer, nullable=True)
    steam_price = Column(Float, nullable=True)

    added = Column(Integer, nullable=True)  # number of RAWG users who added it
    suggestions_count = Column(Integer, nullable=True)
    reviews_text_count = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'rawgId': self.rawg_id,
            'name': self.name,
            'nameOriginal': self.name_original,
            'slug': self.slug,
            'description': self.description,
            'released': _iso(self.released),
            'tba': self.tba,
            'backgroundImage': self.background_image,
            'backgroundImageAdditional': self.background_image_additional,
            'screenshots': self.screenshots,
            'trailers': self.trailers,
            'genres': self.genres,
            'platforms': self.platforms,
            'tags': self.tags,
            'developers': self.developers,
            'publishers': self.publishers,
            'rating': self.rating,
            'ratingTop': self.rating_top,
            'ratingsCount': self.ratings_count,
            'metacriticScore': self.metacritic_score,
            'metacriticUrl': self.metacritic_url,
            'esrbRating': self.esrb_rating,
            'playtime': self.playtime,
            'website': self.website,
            'steamAppId': self.steam_app_id,
            'steamPrice': self.steam_price,
            'added': self.added,
            'suggestionsCount': self.suggestions_count,
            'reviewsTextCount': self.reviews_text_count,
            'isActive': self.is_active,
        }

    def to_summary(self):
        """Short form used when a game is embedded in another object."""
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'backgroundImage': self.background_image,
            'released': _iso(self.released),
            'metacritic': self.metacritic_score,
        }


class UserGame(Base):
    """A game in a user's personal library."""
    __tablename__ = "user_games"
    __table_args__ = (UniqueConstraint('user_id', 'game_id', name='uq_user_game'),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False)

    status = Column(String(20), default='want_to_play', nullable=False)
    priority = Column(String(10), default='medium')

    hours_played = Column(Integer, default=0)
    progress_percentage = Column(Integer, default=0)  # 0-100

    personal_rating = Column(Integer, nullable=True)  # 1-5, private to the user
    personal_notes = Column(Text, nullable=True)
    platform = Column(String(50), nullable=True)

    added_at = Column(DateTime, default=_utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_played_at = Column(DateTime, nullable=True)

    is_favorite = Column(Boolean, default=False)
    is_wishlisted = Column(Boolean, default=False)
    is_owned = Column(Boolean, default=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="user_games")
    game = relationship("Game")

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'gameId': self.game_id,
            'status': self.status,
            'priority': self.priority,
            'hoursPlayed': self.hours_played,
            'progressPercentage': self.progress_percentage,
            'personalRating': self.personal_rating,
            'personalNotes': self.personal_notes,
            'platform': self.platform,
            'addedAt': _iso(self.added_at),
            'startedAt': _iso(self.started_at),
            'completedAt': _iso(self.completed_at),
            'lastPlayedAt': _iso(self.last_played_at),
            'isFavorite': self.is_favorite,
            'isWishlisted': self.is_wishlisted,
            'isOwned': self.is_owned,
            'updatedAt': _iso(self.updated_at),
        }


class Review(Base):
    """Public review of a game."""
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)  # PC, PS5, Xbox, Switch
    rating = Column(Integer, nullable=False)  # 1-5 stars
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)
    hours_played = Column(Integer, nullable=True)
    is_recommended = Column(Boolean, nullable=True)
    is_verified_purchase = Column(Boolean, default=False)
    likes_count = Column(Integer, default=0)
    dislikes_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow)

    user = relationship("User", back_populates="reviews")
    game = relationship("Game")

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'gameId': self.game_id,
            'platform': self.platform,
            'rating': self.rating,
            'title': self.title,
            'content': self.content,
            'hoursPlayed': self.hours_played,
            'isRecommended': self.is_recommended,
            'isVerifiedPurchase': self.is_verified_purchase,
            'likesCount': self.likes_count,
            'dislikesCount': self.dislikes_count,
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Follower(Base):
    """Directed follow edge: follower_id follows following_id."""
    __tablename__ = "followers"

    follower_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    following_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Engine / session management
# ---------------------------------------------------------------------------

def configure(database_url: str = None):
    """(Re)create the engine and session factory for *database_url*.

    SQLite connections are shared across threads; an in-memory SQLite
    database is pinned to a single connection so every session sees the
    same tables.
    """
    global engine, SessionLocal
    url = database_url or os.getenv('DATABASE_URL') or DEFAULT_DATABASE_URL
    kwargs = {'echo': False}
    if url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool
    engine = create_engine(url, **kwargs)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.debug("Database configured for %s", engine.url.render_as_string(hide_password=True))
    return engine


def init_db():
    """Initialize database tables."""
    if engine is None:
        configure()
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables initialized successfully")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        return False


@contextmanager
def session_scope():
    """Yield a database session and close it afterwards."""
    if SessionLocal is None:
        configure()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def _writing(db, action: str):
    """Commit on success; log, roll back and re-raise on database errors."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error {action}: {e}")
        db.rollback()
        raise


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def get_user_by_id(db, user_id: str):
    """Get user by primary key."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db, email: str):
    """Get user by (case-insensitive) email."""
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


def create_user(db, name: str, email: str, password_hash: str, image: str = None):
    """Create a user account and return it."""
    user = User(name=name, email=email, password_hash=password_hash, image=image)
    with _writing(db, "creating user"):
        db.add(user)
    return user


def _count_subqueries(db):
    games_count = (
        db.query(UserGame.user_id.label('user_id'),
                 func.count(distinct(UserGame.id)).label('games_count'))
        .group_by(UserGame.user_id).subquery()
    )
    reviews_count = (
        db.query(Review.user_id.label('user_id'),
                 func.count(distinct(Review.id)).label('reviews_count'))
        .group_by(Review.user_id).subquery()
    )
    return games_count, reviews_count


def get_users_with_stats(db, user_ids=None):
    """Return ``[(user, games_count, reviews_count)]``, newest users first."""
    games_count, reviews_count = _count_subqueries(db)
    query = (
        db.query(User,
                 func.coalesce(games_count.c.games_count, 0),
                 func.coalesce(reviews_count.c.reviews_count, 0))
        .outerjoin(games_count, games_count.c.user_id == User.id)
        .outerjoin(reviews_count, reviews_count.c.user_id == User.id)
    )
    if user_ids is not None:
        query = query.filter(User.id.in_(list(user_ids)))
    return [(u, int(g), int(r)) for u, g, r in query.order_by(User.created_at.desc()).all()]


# ---------------------------------------------------------------------------
# Games catalog
# ---------------------------------------------------------------------------

_GAME_SORTS = {
    'name': lambda: Game.name.asc(),
    'rating': lambda: Game.rating.desc(),
    'released': lambda: Game.released.desc(),
    'added': lambda: Game.added.desc(),
}


def search_games(db, search: str = None, sort_by: str = 'added', limit: int = 20, offset: int = 0):
    """Return catalog games matching *search* in name or description."""
    query = db.query(Game)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Game.name.ilike(pattern), Game.description.ilike(pattern)))
    order = _GAME_SORTS.get(sort_by, _GAME_SORTS['added'])()
    return query.order_by(order).limit(limit).offset(offset).all()


def get_game_by_id(db, game_id: str):
    return db.query(Game).filter(Game.id == game_id).first()


def get_game_by_slug(db, slug: str):
    return db.query(Game).filter(Game.slug == slug).first()


def upsert_game(db, values: dict):
    """Insert or update a catalog game keyed by ``rawg_id``.

    Returns:
        ``(game, created)`` tuple.
    """
    with _writing(db, "upserting game"):
        game = db.query(Game).filter(Game.rawg_id == values['rawg_id']).first()
        created = game is None
        if created:
            game = Game(**values)
            db.add(game)
        else:
            for key, value in values.items():
                setattr(game, key, value)
            game.updated_at = _utcnow()
    return game, created


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------

def get_user_game(db, user_id: str, game_id: str):
    return db.query(UserGame).filter(
        UserGame.user_id == user_id,
        UserGame.game_id == game_id,
    ).first()


def add_user_game(db, user_id: str, game_id: str, values: dict):
    """Insert a library entry for (*user_id*, *game_id*)."""
    entry = UserGame(user_id=user_id, game_id=game_id, **values)
    with _writing(db, "adding game to library"):
        db.add(entry)
    return entry


def update_user_game(db, user_id: str, game_id: str, values: dict):
    """Apply *values* to the library entry; ``None`` if it does not exist."""
    entry = get_user_game(db, user_id, game_id)
    if not entry:
        return None
    with _writing(db, "updating library entry"):
        for key, value in values.items():
            setattr(entry, key, value)
        entry.updated_at = _utcnow()
    return entry


def delete_user_game(db, user_id: str, game_id: str) -> bool:
    entry = get_user_game(db, user_id, game_id)
    if not entry:
        return False
    with _writing(db, "removing game from library"):
        db.delete(entry)
    return True


def get_user_library(db, user_id: str, status: str = None):
    """Return ``[(user_game, game)]`` for *user_id*, most recently updated first."""
    query = (
        db.query(UserGame, Game)
        .join(Game, UserGame.game_id == Game.id)
        .filter(UserGame.user_id == user_id)
    )
    if status:
        query = query.filter(UserGame.status == status)
    return query.order_by(UserGame.updated_at.desc()).all()


def get_library_status_counts(db, user_id: str):
    rows = (
        db.query(UserGame.status, func.count(UserGame.id))
        .filter(UserGame.user_id == user_id)
        .group_by(UserGame.status).all()
    )
    return [{'status': status, 'count': int(count)} for status, count in rows]


def get_recent_library_games(db, user_id: str, limit: int = 6):
    return (
        db.query(UserGame, Game)
        .join(Game, UserGame.game_id == Game.id)
        .filter(UserGame.user_id == user_id)
        .order_by(UserGame.created_at.desc())
        .limit(limit).all()
    )


def get_library_genre_entries(db, user_id: str):
    """Return the user's library as scorer input.

    Each entry is ``{'game_id', 'is_favorite', 'status', 'genres'}`` with the
    genres taken from the joined catalog game.
    """
    rows = (
        db.query(UserGame.game_id, UserGame.is_favorite, UserGame.status, Game.genres)
        .join(Game, UserGame.game_id == Game.id)
        .filter(UserGame.user_id == user_id)
        .all()
    )
    return [{
        'game_id': game_id,
        'is_favorite': bool(is_favorite),
        'status': status,
        'genres': genres,
    } for game_id, is_favorite, status, genres in rows]


def get_recommendation_candidates(db, exclude_game_ids, limit: int = 100):
    """Return top-rated games not in *exclude_game_ids* that have genres and a rating."""
    return (
        db.query(Game)
        .filter(
            Game.id.notin_(list(exclude_game_ids)),
            Game.genres.isnot(None),
            Game.rating.isnot(None),
        )
        .order_by(Game.rating.desc())
        .limit(limit).all()
    )


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

def get_review(db, review_id: str):
    return db.query(Review).filter(Review.id == review_id).first()


def get_user_review_for_game(db, user_id: str, game_id: str):
    return db.query(Review).filter(
        Review.user_id == user_id,
        Review.game_id == game_id,
    ).first()


def create_review(db, values: dict):
    review = Review(**values)
    with _writing(db, "creating review"):
        db.add(review)
    return review


def update_review(db, review, values: dict):
    with _writing(db, "updating review"):
        for key, value in values.items():
            setattr(review, key, value)
        review.updated_at = _utcnow()
    return review


def delete_review(db, review) -> None:
    with _writing(db, "deleting review"):
        db.delete(review)


def get_reviews_by_user(db, user_id: str, limit: int = 20, offset: int = 0):
    """Return ``[(review, game)]`` written by *user_id*, newest first."""
    return (
        db.query(Review, Game)
        .outerjoin(Game, Review.game_id == Game.id)
        .filter(Review.user_id == user_id)
        .order_by(Review.created_at.desc())
        .limit(limit).offset(offset).all()
    )


def get_reviews_for_game(db, game_id: str, limit: int = 20, offset: int = 0):
    """Return ``[(review, user)]`` for *game_id*, newest first."""
    return (
        db.query(Review, User)
        .outerjoin(User, Review.user_id == User.id)
        .filter(Review.game_id == game_id)
        .order_by(Review.created_at.desc())
        .limit(limit).offset(offset).all()
    )


def get_review_feed(db, limit: int = 20, offset: int = 0):
    """Return ``[(review, game, user)]`` for all active reviews, newest first."""
    return (
        db.query(Review, Game, User)
        .outerjoin(Game, Review.game_id == Game.id)
        .outerjoin(User, Review.user_id == User.id)
        .filter(Review.is_active.is_(True))
        .order_by(Review.created_at.desc())
        .limit(limit).offset(offset).all()
    )


# ---------------------------------------------------------------------------
# Followers
# ---------------------------------------------------------------------------

def get_follow(db, follower_id: str, following_id: str):
    return db.query(Follower).filter(
        Follower.follower_id == follower_id,
        Follower.following_id == following_id,
    ).first()


def create_follow(db, follower_id: str, following_id: str):
    follow = Follower(follower_id=follower_id, following_id=following_id)
    with _writing(db, "following user"):
        db.add(follow)
    return follow


def delete_follow(db, follower_id: str, following_id: str) -> bool:
    follow = get_follow(db, follower_id, following_id)
    if not follow:
        return False
    with _writing(db, "unfollowing user"):
        db.delete(follow)
    return True


def count_followers(db, user_id: str) -> int:
    return db.query(func.count()).select_from(Follower).filter(Follower.following_id == user_id).scalar() or 0


def count_following(db, user_id: str) -> int:
    return db.query(func.count()).select_from(Follower).filter(Follower.follower_id == user_id).scalar() or 0


def get_followed_users(db, user_id: str):
    """Return ``[(follower_row, user)]`` for users *user_id* follows, newest follow first."""
    return (
        db.query(Follower, User)
        .join(User, Follower.following_id == User.id)
        .filter(Follower.follower_id == user_id)
        .order_by(Follower.created_at.desc())
        .all()
    )
