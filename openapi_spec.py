"""
openapi_spec.py: Ludexicon OpenAPI 3.0 document builder.

Returns a Python dict (compatible with ``json.dumps``) that describes every
REST endpoint exposed by ``ludexicon_web.py``.  The dict is built in pure
Python so that it can be generated at request time with no extra runtime
dependencies.

Usage (from ludexicon_web.py)::

    from openapi_spec import build_spec
    spec = build_spec(server_url="http://localhost:5000")
"""

from typing import Any, Dict, List


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _resp(description: str, schema: Dict = None) -> Dict:
    r: Dict[str, Any] = {"description": description}
    if schema:
        r["content"] = {"application/json": {"schema": schema}}
    return r


def _success() -> Dict:
    return _resp("Success", {"type": "object",
                             "properties": {"success": {"type": "boolean"}}})


def _error(description: str = "Error") -> Dict:
    return _resp(description, {"type": "object",
                               "properties": {"error": {"type": "string"}}})


def _query(name: str, description: str, required: bool = False,
           schema: Dict = None) -> Dict:
    return {"name": name, "in": "query", "required": required,
            "description": description, "schema": schema or {"type": "string"}}


def _path(name: str, description: str) -> Dict:
    return {"name": name, "in": "path", "required": True,
            "description": description, "schema": {"type": "string"}}


def _body(schema: Dict) -> Dict:
    return {"required": True, "content": {"application/json": {"schema": schema}}}


def _op(tag: str, summary: str, responses: Dict, parameters: List = None,
        body: Dict = None) -> Dict:
    op: Dict[str, Any] = {"tags": [tag], "summary": summary, "responses": responses}
    if parameters:
        op["parameters"] = parameters
    if body:
        op["requestBody"] = _body(body)
    return op


_PAGING = [
    _query("limit", "Page size (default 20)", schema={"type": "integer"}),
    _query("offset", "Items to skip (default 0)", schema={"type": "integer"}),
]


def _schemas() -> Dict[str, Any]:
    genre = {"type": "object", "properties": {
        "id": {"type": "integer"}, "name": {"type": "string"}, "slug": {"type": "string"}}}
    return {
        "Genre": genre,
        "User": {"type": "object", "properties": {
            "id": {"type": "string"}, "name": {"type": "string"},
            "email": {"type": "string"}, "image": {"type": "string", "nullable": True},
            "createdAt": {"type": "string", "format": "date-time"}}},
        "Game": {"type": "object", "properties": {
            "id": {"type": "string"}, "rawgId": {"type": "integer"},
            "name": {"type": "string"}, "slug": {"type": "string"},
            "backgroundImage": {"type": "string", "nullable": True},
            "rating": {"type": "number", "nullable": True},
            "genres": {"type": "array", "items": _ref("Genre")},
            "released": {"type": "string", "format": "date-time", "nullable": True},
            "playtime": {"type": "integer", "nullable": True},
            "metacriticScore": {"type": "integer", "nullable": True},
            "added": {"type": "integer", "nullable": True}}},
        "UserGame": {"type": "object", "properties": {
            "id": {"type": "string"}, "userId": {"type": "string"},
            "gameId": {"type": "string"},
            "status": {"type": "string", "enum": ["want_to_play", "playing", "completed",
                                                  "dropped", "on_hold"]},
            "priority": {"type": "string", "enum": ["low", "medium", "high"]},
            "hoursPlayed": {"type": "integer"}, "isFavorite": {"type": "boolean"}}},
        "Review": {"type": "object", "properties": {
            "id": {"type": "string"}, "userId": {"type": "string"},
            "gameId": {"type": "string"}, "platform": {"type": "string"},
            "rating": {"type": "integer", "minimum": 1, "maximum": 5},
            "title": {"type": "string", "nullable": True},
            "content": {"type": "string", "nullable": True}}},
        "Recommendation": {"allOf": [_ref("Game"), {"type": "object", "properties": {
            "matchedGenres": {"type": "array", "items": {"type": "string"}},
            "score": {"type": "number"}}}]},
    }


def build_spec(server_url: str = "/") -> Dict[str, Any]:
    """Return the full OpenAPI 3.0 specification dict."""
    user_id_q = _query("userId", "User id (defaults to the logged-in user)")
    paths: Dict[str, Any] = {
        "/api/health": {"get": _op("system", "Liveness check", {"200": _resp("OK")})},
        "/api/auth/register": {"post": _op(
            "auth", "Create an account",
            {"200": _resp("Registered", _ref("User")), "400": _error()},
            body={"type": "object", "required": ["name", "email", "password"],
                  "properties": {"name": {"type": "string"}, "email": {"type": "string"},
                                 "password": {"type": "string"}}})},
        "/api/auth/login": {"post": _op(
            "auth", "Log in and start a session",
            {"200": _resp("Logged in", _ref("User")), "401": _error()},
            body={"type": "object", "required": ["email", "password"],
                  "properties": {"email": {"type": "string"},
                                 "password": {"type": "string"}}})},
        "/api/auth/logout": {"post": _op("auth", "End the session", {"200": _success()})},
        "/api/auth/me": {"get": _op("auth", "Current user",
                                    {"200": _resp("User", _ref("User")), "401": _error()})},
        "/api/games": {"get": _op(
            "games", "Browse the catalog",
            {"200": _resp("Games", {"type": "object", "properties": {
                "games": {"type": "array", "items": _ref("Game")},
                "count": {"type": "integer"}, "hasMore": {"type": "boolean"}}})},
            parameters=[_query("search", "Name/description substring"),
                        _query("sortBy", "added | name | rating | released")] + _PAGING)},
        "/api/games/{slug}": {"get": _op(
            "games", "Game details",
            {"200": _resp("Game", {"type": "object", "properties": {"game": _ref("Game")}}),
             "404": _error("Game not found")},
            parameters=[_path("slug", "Game slug")])},
        "/api/user-games": {
            "get": _op("library", "Library, a single entry, or a status-filtered list",
                       {"200": _resp("Library"), "400": _error()},
                       parameters=[user_id_q, _query("gameId", "Single entry"),
                                   _query("status", "Status filter")]),
            "post": _op("library", "Add, update, remove, change status or toggle favourite",
                        {"200": _resp("Result"), "400": _error(), "401": _error(),
                         "403": _error(), "404": _error(), "409": _error()},
                        body={"type": "object", "required": ["gameId", "action"],
                              "properties": {
                                  "userId": {"type": "string"}, "gameId": {"type": "string"},
                                  "action": {"type": "string", "enum": [
                                      "add", "update", "remove", "updateStatus",
                                      "toggleFavorite", "updateHours"]},
                                  "status": {"type": "string"}}}),
        },
        "/api/reviews": {
            "get": _op("reviews", "List reviews by user, by game, or the public feed",
                       {"200": _resp("Reviews")},
                       parameters=[_query("userId", "Author"), _query("gameId", "Game")] + _PAGING),
            "post": _op("reviews", "Write a review",
                        {"200": _resp("Review", {"type": "object",
                                                 "properties": {"review": _ref("Review")}}),
                         "400": _error(), "401": _error(), "409": _error()},
                        body=_ref("Review")),
            "put": _op("reviews", "Update your review",
                       {"200": _resp("Review"), "400": _error(), "404": _error()},
                       body={"type": "object", "required": ["reviewId"],
                             "properties": {"reviewId": {"type": "string"}}}),
            "delete": _op("reviews", "Delete your review",
                          {"200": _success(), "400": _error(), "404": _error()},
                          parameters=[_query("reviewId", "Review id", required=True)]),
        },
        "/api/users": {"get": _op("social", "All players with stats", {"200": _resp("Users")})},
        "/api/users/{userId}": {"get": _op(
            "social", "Player profile",
            {"200": _resp("Profile"), "404": _error("User not found")},
            parameters=[_path("userId", "Player id"),
                        _query("currentUserId", "Viewer id for isFollowing")])},
        "/api/users/{userId}/follow": {
            "get": _op("social", "Is the follower following this player?",
                       {"200": _resp("Status"), "400": _error()},
                       parameters=[_path("userId", "Followed player"),
                                   _query("followerId", "Follower")]),
            "post": _op("social", "Follow a player",
                        {"200": _success(), "400": _error(), "409": _error()},
                        parameters=[_path("userId", "Player to follow")]),
            "delete": _op("social", "Unfollow a player",
                          {"200": _success(), "400": _error()},
                          parameters=[_path("userId", "Player to unfollow")]),
        },
        "/api/following": {"get": _op(
            "social", "Players the user follows",
            {"200": _resp("Following"), "400": _error()}, parameters=[user_id_q])},
        "/api/recommendations": {"get": _op(
            "recommendations", "Genre-based game recommendations",
            {"200": _resp("Recommendations", {"type": "object", "properties": {
                "recommendations": {"type": "array", "items": _ref("Recommendation")},
                "count": {"type": "integer"},
                "genresAnalyzed": {"type": "array", "items": {"type": "string"}},
                "message": {"type": "string"}}}),
             "400": _error("userId is required"),
             "500": _error("Failed to fetch recommendations")},
            parameters=[user_id_q])},
    }

    return {
        "openapi": "3.0.3",
        "info": {
            "title": "Ludexicon API",
            "version": "1.0.0",
            "description": (
                "REST API for Ludexicon: browse the RAWG-backed game catalog, track a "
                "personal library, write reviews, follow players and get genre-based "
                "recommendations.\n\nWrite endpoints require an active session "
                "(log in via `POST /api/auth/login` first)."
            ),
        },
        "servers": [{"url": server_url, "description": "Ludexicon server"}],
        "tags": [
            {"name": "system",          "description": "Service status"},
            {"name": "auth",            "description": "Registration and sessions"},
            {"name": "games",           "description": "Game catalog"},
            {"name": "library",         "description": "Personal game library"},
            {"name": "reviews",         "description": "Game reviews"},
            {"name": "social",          "description": "Players and follows"},
            {"name": "recommendations", "description": "Genre-based recommendations"},
        ],
        "paths": paths,
        "components": {"schemas": _schemas()},
    }
