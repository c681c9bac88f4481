import logging
import os
import sys

# Add backend directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.db.db import SessionLocal, init_db
from app.routes import catalog_router, recommendation_router
from app.services.catalog_service import CatalogService
from app.services.errors import ServiceError

from reward_engine.catalog import JsonCardCatalog
from reward_engine.errors import CatalogError, InvalidInput

logger = logging.getLogger(__name__)

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CATALOG_SEED_PATH = os.getenv("CATALOG_SEED_PATH", os.path.join(REPO_ROOT, "data", "cards.json"))


def seed_catalog(seed_path: str = CATALOG_SEED_PATH) -> int:
    """Fill an empty catalog from the JSON export; returns the number of cards imported."""
    db = SessionLocal()
    try:
        service = CatalogService(db)
        if not service.is_empty():
            return 0
        if not os.path.exists(seed_path):
            logger.warning("Catalog is empty and no seed file at %s", seed_path)
            return 0
        try:
            cards = JsonCardCatalog(seed_path).list_cards()
        except CatalogError as exc:
            logger.error("Could not seed catalog: %s", exc)
            return 0
        return service.import_cards(cards)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown"""
    init_db()
    seed_catalog()
    yield


app = FastAPI(
    title="Card Reward Engine API",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):  # type: ignore[override]
    """Handle validation errors with HTTP 400 to keep one error envelope for bad input."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request payload.",
                "details": {"errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
                    for err in exc.errors()
                ]}
            }
        }
    )


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request, exc: InvalidInput):  # type: ignore[override]
    error = ServiceError.from_invalid_input(exc)
    return JSONResponse(status_code=error.status_code, content=error.to_content())


@app.exception_handler(ServiceError)
async def service_error_handler(request, exc: ServiceError):  # type: ignore[override]
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):  # type: ignore[override]
    """Handle general exceptions - log and return 500 error"""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error.",
                "details": {}
            }
        }
    )


# Register routers
app.include_router(catalog_router)
app.include_router(recommendation_router)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
