"""Services package: expose all concrete services from one import."""
from .auth_service import AuthService
from .catalog_service import CatalogService
from .library_service import LibraryService
from .review_service import ReviewService
from .follow_service import FollowService
from .user_service import UserService
from .recommendation_service import GenreRecommendationEngine, RecommendationService
from .errors import ServiceError, ValidationError, NotFoundError, ConflictError

__all__ = [
    'AuthService',
    'CatalogService',
    'LibraryService',
    'ReviewService',
    'FollowService',
    'UserService',
    'GenreRecommendationEngine',
    'RecommendationService',
    'ServiceError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
]
