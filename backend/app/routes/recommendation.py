from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.dependencies.services import get_recommendation_service
from app.schemas.recommendation_schemas import RecommendationRequest, RecommendationResponse
from app.services.errors import ServiceError
from app.services.recommendation_service import RecommendationService

from reward_engine.errors import InvalidInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["recommendation"])


@router.post("/recommendation", response_model=RecommendationResponse)
def post_recommendation(
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Rank every catalog card for one purchase.

    Prior usage is the caller's record of rewards already earned this
    period per (card_id, rule_id); it only affects capped rules.
    """
    transaction = payload.transaction.to_transaction()
    preferences = payload.preferences.to_preferences() if payload.preferences else None
    ledger = service.build_ledger(
        ((u.card_id, u.rule_id, u.amount) for u in payload.prior_usage),
        period=payload.period,
    )

    try:
        result = service.recommend(transaction=transaction, preferences=preferences, ledger=ledger)
    except InvalidInput as exc:
        logger.info("Rejected recommendation request: %s", exc.message)
        error = ServiceError.from_invalid_input(exc)
        return JSONResponse(status_code=error.status_code, content=error.to_content())

    return RecommendationResponse.from_result(result)
