from fastapi import APIRouter, Depends

from app.dependencies.services import get_catalog_service
from app.models.card_catalogue import CardCatalogueResponse
from app.services.catalog_service import CatalogService

router = APIRouter(
    prefix="/api/v1/catalog",
    tags=["catalog"]
)


@router.get("/", response_model=list[CardCatalogueResponse])
def get_catalog(service: CatalogService = Depends(get_catalog_service)):
    return service.get_catalog()
