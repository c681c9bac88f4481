from fastapi import Depends
from sqlalchemy.orm import Session

from app.dependencies.db import get_db
from app.services.catalog_service import CatalogService
from app.services.recommendation_service import RecommendationService


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_recommendation_service(db: Session = Depends(get_db)) -> RecommendationService:
    # Engine config is re-read from the environment per request
    return RecommendationService(db)
