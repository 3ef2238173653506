"""
FastAPI Router for Progress Administration.

Provides REST API over ProgressService:
- Read scores, breakdowns, history and the leaderboard
- Force recalculation, set or reset scores
- Grant/revoke custom milestones
- Register losses
"""

from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status

from admin_api.schemas import (
    CategoryScoreSchema,
    HistoryEntrySchema,
    HistoryResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    LossResponse,
    OperationResponse,
    ProgressResponse,
    RegisterLossRequest,
    SetScoreRequest,
)
from penalty_tracker.valuation import LostItem
from update_orchestrator.service import OperationResult, ProgressService

router = APIRouter(prefix="/progress", tags=["Progress"])


# =============================================================
# HELPER: Service dependency
# =============================================================

def get_progress_service(request: Request) -> ProgressService:
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Progress service not initialized")
    return service


def _operation_response(result: OperationResult) -> OperationResponse:
    return OperationResponse.model_validate(result.to_dict())


# =============================================================
# QUERY ENDPOINTS
# =============================================================

@router.get("/top", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    service: ProgressService = Depends(get_progress_service),
):
    """Highest progress scores, best first."""
    ranked = await service.top_participants(limit)
    return LeaderboardResponse(entries=[
        LeaderboardEntry(rank=i + 1, participant_id=pid, score=score)
        for i, (pid, score) in enumerate(ranked)
    ])


@router.get("/{participant_id}", response_model=ProgressResponse)
async def get_progress(
    participant_id: UUID,
    service: ProgressService = Depends(get_progress_service),
):
    """Current score plus the last computed breakdown, if any."""
    score = await service.get_score(participant_id)
    result = service.get_result(participant_id)

    if result is None:
        return ProgressResponse(participant_id=participant_id, score=score)

    return ProgressResponse(
        participant_id=participant_id,
        score=score,
        penalty_applied=result.penalty_applied,
        categories=[
            CategoryScoreSchema.model_validate(s.to_dict())
            for s in result.category_scores.values()
        ],
        computed_at=result.computed_at,
    )


@router.get("/{participant_id}/history", response_model=HistoryResponse)
async def get_progress_history(
    participant_id: UUID,
    limit: int = Query(10, ge=1, le=500),
    service: ProgressService = Depends(get_progress_service),
):
    """Most recent significant score changes, newest first."""
    entries = await service.get_history(participant_id, limit)
    return HistoryResponse(
        participant_id=participant_id,
        entries=[HistoryEntrySchema(score=e.score, recorded_at=e.recorded_at) for e in entries],
    )


# =============================================================
# ADMIN ENDPOINTS
# =============================================================

@router.post("/{participant_id}/recalculate", response_model=OperationResponse)
async def recalculate_progress(
    participant_id: UUID,
    service: ProgressService = Depends(get_progress_service),
):
    """Recompute immediately and return the new score."""
    result = await service.force_recalculate(participant_id)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.message)
    return _operation_response(result)


@router.put("/{participant_id}", response_model=OperationResponse)
async def set_progress(
    participant_id: UUID,
    body: SetScoreRequest,
    service: ProgressService = Depends(get_progress_service),
):
    """Override the score. Values outside bounds are clamped."""
    return _operation_response(await service.set_score(participant_id, body.score))


@router.post("/{participant_id}/reset", response_model=OperationResponse)
async def reset_progress(
    participant_id: UUID,
    service: ProgressService = Depends(get_progress_service),
):
    """Reset score, custom milestones and active penalties."""
    result = await service.reset_participant(participant_id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.message)
    return _operation_response(result)


@router.post("/{participant_id}/milestones/{key}", response_model=OperationResponse)
async def grant_milestone(
    participant_id: UUID,
    key: str,
    service: ProgressService = Depends(get_progress_service),
):
    """Grant a custom milestone. Score updates after the debounce delay."""
    result = await service.grant_milestone(participant_id, key)
    if not result.success:
        raise HTTPException(status_code=409, detail=result.message)
    return _operation_response(result)


@router.delete("/{participant_id}/milestones/{key}", response_model=OperationResponse)
async def revoke_milestone(
    participant_id: UUID,
    key: str,
    service: ProgressService = Depends(get_progress_service),
):
    """Revoke a custom milestone."""
    result = await service.revoke_milestone(participant_id, key)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.message)
    return _operation_response(result)


@router.post("/{participant_id}/losses", response_model=LossResponse, status_code=status.HTTP_201_CREATED)
async def register_loss(
    participant_id: UUID,
    body: RegisterLossRequest,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Register a loss event.

    With items, the value is computed from them; otherwise
    total_value is used as given.
    """
    if body.items:
        items = [LostItem(**item.model_dump()) for item in body.items]
        loss = await service.register_item_loss(participant_id, items)
        record_id, total_value = loss.record_id, loss.total_value
    elif body.total_value is not None:
        total_value = body.total_value
        record_id = await service.register_loss(participant_id, total_value)
    else:
        raise HTTPException(status_code=400, detail="Provide total_value or items")

    return LossResponse(
        participant_id=participant_id,
        record_id=record_id,
        total_value=total_value,
        recorded=record_id is not None,
    )


# =============================================================
# APPLICATION FACTORY
# =============================================================

def create_app(service: ProgressService) -> FastAPI:
    """Build the admin application around an existing service."""
    app = FastAPI(title="Progress Engine Admin", version="1.0.0")
    app.state.progress_service = service
    app.include_router(router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "cached_participants": len(service.cache)}

    return app
