from .catalog import router as catalog_router
from .recommendation import router as recommendation_router

__all__ = [
    "catalog_router",
    "recommendation_router",
]
