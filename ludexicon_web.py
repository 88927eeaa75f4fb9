#!/usr/bin/env python3
"""
Ludexicon Web - JSON API for the game catalog, personal libraries, reviews,
follows and recommendations.
"""

import logging
import os
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, session
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

import database
import ludexicon
from app.services import (
    AuthService, CatalogService, LibraryService, ReviewService,
    FollowService, UserService, RecommendationService, ServiceError,
)
from openapi_spec import build_spec

# Initialize logging early so database module logs are captured
config = ludexicon.load_config(os.getenv('LUDEXICON_CONFIG', 'config.json'))
log_level = config.get('log_level', 'INFO')
ludexicon.setup_logging(log_level)
web_logger = logging.getLogger('ludexicon.web')

database.configure(config.get('database_url'))
if not database.init_db():
    web_logger.warning('Database initialization reported failure')

auth_service = AuthService(database)
catalog_service = CatalogService(database)
library_service = LibraryService(database)
review_service = ReviewService(database)
follow_service = FollowService(database)
user_service = UserService(database)
recommendation_service = RecommendationService(database)

app = Flask(__name__)
app.secret_key = config.get('secret_key') or os.urandom(24)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def current_user_id() -> Optional[str]:
    return session.get('user_id')


def require_login(f):
    """Decorator to require user to be logged in"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user_id():
            return jsonify({'error': 'Not logged in'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def _acting_user(requested: Optional[str]):
    """Return ``(user_id, error_response)`` for a write made on behalf of *requested*.

    Writes default to the logged-in user and may not target anyone else.
    """
    user_id = requested or current_user_id()
    if user_id != current_user_id():
        return None, (jsonify({'error': 'Cannot act on behalf of another user'}), 403)
    return user_id, None


@app.errorhandler(ServiceError)
def handle_service_error(e: ServiceError):
    return jsonify({'error': e.message}), e.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, SQLAlchemyError):
        web_logger.exception('Database error on %s %s: %s', request.method, request.path, e)
    else:
        web_logger.exception('Unhandled error on %s %s: %s', request.method, request.path, e)
    return jsonify({'error': 'Internal server error'}), 500


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------

@app.route('/api/health')
def api_health():
    return jsonify({'status': 'ok'})


@app.route('/api/openapi.json')
def api_openapi_spec():
    """Return the OpenAPI 3 description of this API."""
    return jsonify(build_spec(server_url=request.host_url))


# ---------------------------------------------------------------------------
# Auth endpoints
# ---------------------------------------------------------------------------

@app.route('/api/auth/register', methods=['POST'])
def api_register():
    """Create an account and log it in.

    Body JSON: {"name": "...", "email": "...", "password": "..."}
    """
    data = _json_body()
    with database.session_scope() as db:
        ok, message, user = auth_service.register(
            db, data.get('name'), data.get('email'), data.get('password'))
    if not ok:
        return jsonify({'error': message}), 400
    session['user_id'] = user['id']
    return jsonify({'success': True, 'message': message, 'user': user})


@app.route('/api/auth/login', methods=['POST'])
def api_login():
    """Body JSON: {"email": "...", "password": "..."}"""
    data = _json_body()
    with database.session_scope() as db:
        ok, message, user = auth_service.login(db, data.get('email'), data.get('password'))
    if not ok:
        web_logger.info('Failed login attempt')
        return jsonify({'error': message}), 401
    session['user_id'] = user['id']
    return jsonify({'success': True, 'message': message, 'user': user})


@app.route('/api/auth/logout', methods=['POST'])
def api_logout():
    session.pop('user_id', None)
    return jsonify({'success': True})


@app.route('/api/auth/me')
@require_login
def api_me():
    with database.session_scope() as db:
        user = database.get_user_by_id(db, current_user_id())
        user = user.to_dict() if user else None
    if user is None:
        session.pop('user_id', None)
        return jsonify({'error': 'Not logged in'}), 401
    return jsonify({'user': user})


# ---------------------------------------------------------------------------
# Catalog endpoints
# ---------------------------------------------------------------------------

@app.route('/api/games')
def api_games():
    """Browse the catalog.

    Query: search, sortBy (added|name|rating|released), limit, offset
    """
    with database.session_scope() as db:
        result = catalog_service.search(
            db,
            search=request.args.get('search'),
            sort_by=request.args.get('sortBy', 'added'),
            limit=_int_arg('limit', 20),
            offset=_int_arg('offset', 0),
        )
    return jsonify(result)


@app.route('/api/games/<slug>')
def api_game(slug: str):
    with database.session_scope() as db:
        game = catalog_service.get_by_slug(db, slug)
    if game is None:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify({'game': game})


# ---------------------------------------------------------------------------
# Library endpoints
# ---------------------------------------------------------------------------

@app.route('/api/user-games', methods=['GET'])
def api_get_user_games():
    """Return a user's library.

    Query: userId (defaults to the logged-in user), gameId (single entry),
    status (filtered list).  Without filters the response includes stats.
    """
    user_id = request.args.get('userId') or current_user_id()
    if not user_id:
        return jsonify({'error': 'userId is required'}), 400
    game_id = request.args.get('gameId')
    status = request.args.get('status')

    with database.session_scope() as db:
        if game_id:
            return jsonify({'userGame': library_service.get_entry(db, user_id, game_id)})
        if status:
            return jsonify({'library': library_service.get_library(db, user_id, status)})
        return jsonify({
            'library': library_service.get_library(db, user_id),
            'stats': library_service.get_stats(db, user_id),
        })


@app.route('/api/user-games', methods=['POST'])
@require_login
def api_post_user_games():
    """Modify the logged-in user's library.

    Body JSON: {"gameId": "...", "action": "add|update|remove|updateStatus|
    toggleFavorite|updateHours", ...entry fields}
    """
    data = dict(_json_body())
    requested_user = data.pop('userId', None)
    game_id = data.pop('gameId', None)
    action = data.pop('action', None)

    if not game_id:
        return jsonify({'error': 'userId and gameId are required'}), 400
    user_id, error = _acting_user(requested_user)
    if error:
        return error

    try:
        with database.session_scope() as db:
            if action == 'add':
                return jsonify({'userGame': library_service.add(db, user_id, game_id, data)})
            if action == 'update':
                entry = library_service.update(db, user_id, game_id, data)
                if entry is None:
                    return jsonify({'error': 'Game not in library'}), 404
                return jsonify({'userGame': entry})
            if action == 'remove':
                library_service.remove(db, user_id, game_id)
                return jsonify({'success': True})
            if action == 'updateStatus':
                entry = library_service.update_status(db, user_id, game_id, data.get('status'))
                if entry is None:
                    return jsonify({'error': 'Game not in library'}), 404
                return jsonify({'userGame': entry})
            if action == 'toggleFavorite':
                return jsonify({'isFavorite': library_service.toggle_favorite(db, user_id, game_id)})
            if action == 'updateHours':
                entry = library_service.update_hours_played(db, user_id, game_id, data.get('hoursPlayed'))
                if entry is None:
                    return jsonify({'error': 'Game not in library'}), 404
                return jsonify({'userGame': entry})
    except (TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid value: {e}'}), 400
    return jsonify({'error': 'Invalid action'}), 400


# ---------------------------------------------------------------------------
# Review endpoints
# ---------------------------------------------------------------------------

@app.route('/api/reviews', methods=['GET'])
def api_get_reviews():
    """List reviews.

    Query: userId and gameId (one review), userId (by author), gameId (by
    game), or neither (public feed); limit, offset.
    """
    user_id = request.args.get('userId')
    game_id = request.args.get('gameId')
    with database.session_scope() as db:
        if user_id and game_id:
            return jsonify({'review': review_service.get_for_user_and_game(db, user_id, game_id)})
        return jsonify(review_service.list(
            db, user_id=user_id, game_id=game_id,
            limit=_int_arg('limit', 20), offset=_int_arg('offset', 0)))


@app.route('/api/reviews', methods=['POST'])
@require_login
def api_create_review():
    """Body JSON: {"gameId", "platform", "rating": 1-5, "title", "content",
    "hoursPlayed", "isRecommended", "isVerifiedPurchase"}"""
    data = _json_body()
    user_id, error = _acting_user(data.get('userId'))
    if error:
        return error
    with database.session_scope() as db:
        review = review_service.create(
            db, user_id, data.get('gameId'), data.get('platform'), data.get('rating'),
            title=data.get('title'),
            content=data.get('content'),
            hours_played=data.get('hoursPlayed'),
            is_recommended=data.get('isRecommended'),
            is_verified_purchase=data.get('isVerifiedPurchase', False),
        )
    return jsonify({'review': review})


@app.route('/api/reviews', methods=['PUT'])
@require_login
def api_update_review():
    """Body JSON: {"reviewId", ...fields to change}"""
    data = dict(_json_body())
    user_id, error = _acting_user(data.pop('userId', None))
    if error:
        return error
    review_id = data.pop('reviewId', None)
    with database.session_scope() as db:
        review = review_service.update(db, review_id, user_id, data)
    return jsonify({'review': review})


@app.route('/api/reviews', methods=['DELETE'])
@require_login
def api_delete_review():
    """Query: reviewId"""
    user_id, error = _acting_user(request.args.get('userId'))
    if error:
        return error
    with database.session_scope() as db:
        review_service.delete(db, request.args.get('reviewId'), user_id)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Social endpoints
# ---------------------------------------------------------------------------

@app.route('/api/users')
def api_users():
    with database.session_scope() as db:
        users = user_service.list_with_stats(db)
    return jsonify({'users': users, 'success': True})


@app.route('/api/users/<user_id>')
def api_user_profile(user_id: str):
    viewer = request.args.get('currentUserId') or current_user_id()
    with database.session_scope() as db:
        profile = user_service.get_profile(db, user_id, viewer)
    if profile is None:
        return jsonify({'error': 'User not found', 'success': False}), 404
    return jsonify(dict(profile, success=True))


@app.route('/api/users/<user_id>/follow', methods=['GET'])
def api_follow_status(user_id: str):
    follower_id = request.args.get('followerId') or current_user_id()
    with database.session_scope() as db:
        following = follow_service.is_following(db, follower_id, user_id)
    return jsonify({'isFollowing': following, 'success': True})


@app.route('/api/users/<user_id>/follow', methods=['POST'])
@require_login
def api_follow(user_id: str):
    follower_id, error = _acting_user(_json_body().get('followerId'))
    if error:
        return error
    with database.session_scope() as db:
        follow_service.follow(db, follower_id, user_id)
    web_logger.info('%s followed %s', follower_id, user_id)
    return jsonify({'message': 'User followed successfully', 'success': True})


@app.route('/api/users/<user_id>/follow', methods=['DELETE'])
@require_login
def api_unfollow(user_id: str):
    follower_id, error = _acting_user(request.args.get('followerId'))
    if error:
        return error
    with database.session_scope() as db:
        follow_service.unfollow(db, follower_id, user_id)
    return jsonify({'message': 'User unfollowed successfully', 'success': True})


@app.route('/api/following')
def api_following():
    user_id = request.args.get('userId') or current_user_id()
    if not user_id:
        return jsonify({'error': 'User ID is required', 'success': False}), 400
    with database.session_scope() as db:
        result = follow_service.get_following(db, user_id)
    return jsonify(dict(result, success=True))


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

@app.route('/api/recommendations')
def api_recommendations():
    """Return up to 10 genre-matched games the user does not own.

    Query: userId (defaults to the logged-in user)
    """
    user_id = request.args.get('userId') or current_user_id()
    if not user_id:
        return jsonify({'error': 'userId is required'}), 400
    try:
        with database.session_scope() as db:
            result = recommendation_service.get_for_user(db, user_id)
    except Exception as e:
        web_logger.exception('Failed to fetch recommendations: %s', e)
        return jsonify({'error': 'Failed to fetch recommendations'}), 500
    return jsonify(result)


if __name__ == '__main__':
    app.run(debug=False)
