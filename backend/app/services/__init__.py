from .catalog_service import CatalogService
from .errors import ServiceError
from .recommendation_service import RecommendationService

__all__ = [
    "CatalogService",
    "ServiceError",
    "RecommendationService",
]
