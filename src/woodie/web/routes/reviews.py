"""Review endpoints: due targets, completion, progress and statistics."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from woodie.core import review_repository
from woodie.db import RecordNotFoundError
from woodie.db.users_repository import UserRecord
from woodie.web.deps import get_current_user
from woodie.web.schemas import ApiResponse, ReviewComplete, WorkbookReviewComplete

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


def _paged(result: dict, key: str = "targets") -> dict:
    return {key: result["data"], "pagination": result["pagination"]}


@router.get("/today", response_model=ApiResponse)
async def get_today_reviews(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Review items due by the end of today."""
    result = review_repository.get_today_review_targets(user.id, page=page, limit=limit)
    return ApiResponse(data=_paged(result))


@router.get("/priority", response_model=ApiResponse)
async def get_priority_reviews(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    max_overdue_days: int | None = Query(default=None, ge=0, alias="maxOverdueDays"),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Due review items, most overdue first."""
    result = review_repository.get_review_targets_by_priority(
        user.id, page=page, limit=limit, max_overdue_days=max_overdue_days
    )
    return ApiResponse(data=_paged(result))


@router.get("/progress", response_model=ApiResponse)
async def get_progress(user: UserRecord = Depends(get_current_user)) -> ApiResponse:
    """Today's review count and mastery distribution."""
    return ApiResponse(data=review_repository.get_review_progress(user.id))


@router.get("/schedule", response_model=ApiResponse)
async def get_schedule(
    day: date | None = Query(default=None, alias="date"),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Open problem review schedules for a day (default today)."""
    return ApiResponse(data=review_repository.get_review_schedule(user.id, day=day))


@router.get("/stats/daily", response_model=ApiResponse)
async def get_daily_stats(
    day: date | None = Query(default=None, alias="date"),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Review statistics for one day (default today)."""
    return ApiResponse(data=review_repository.get_daily_review_stats(user.id, day=day))


@router.get("/efficiency", response_model=ApiResponse)
async def get_efficiency(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Review accuracy over a date range (default the last seven days)."""
    try:
        result = review_repository.get_review_efficiency(
            user.id, start_day=start_date, end_day=end_date
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return ApiResponse(data=result)


@router.get("/workbooks", response_model=ApiResponse)
async def get_workbook_reviews(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Workbook reviews due by the end of today."""
    result = review_repository.get_workbook_review_targets(user.id, page=page, limit=limit)
    return ApiResponse(data=_paged(result))


@router.post("/complete/{record_id}", response_model=ApiResponse)
async def complete_review(
    record_id: int,
    body: ReviewComplete,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Record the result of reviewing one problem."""
    record = review_repository.get_solution_record(record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Solution record {record_id} not found",
        )
    if record.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not your solution record",
        )

    try:
        outcome = review_repository.complete_review(
            record_id,
            is_correct=body.is_correct,
            time_spent=body.time_spent,
            confidence_level=body.confidence_level,
            difficulty_perceived=body.difficulty_perceived,
        )
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return ApiResponse(
        data={
            "masteryLevel": outcome.mastery_level,
            "previousMasteryLevel": outcome.previous_mastery_level,
            "nextReviewDate": outcome.next_review_date,
            "masteryLevelChanged": outcome.mastery_level_changed,
        },
        message="Review completed",
    )


@router.post("/workbooks/complete/{schedule_id}", response_model=ApiResponse)
async def complete_workbook_review(
    schedule_id: int,
    body: WorkbookReviewComplete,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Record the result of reviewing a whole workbook."""
    schedule = review_repository.get_workbook_review_schedule(schedule_id)
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workbook review schedule {schedule_id} not found",
        )
    if schedule["user_id"] != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not your workbook review schedule",
        )

    try:
        outcome = review_repository.complete_workbook_review(schedule_id, body.success)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return ApiResponse(
        data={
            "reviewStage": outcome.review_stage,
            "nextReviewDate": outcome.next_review_date,
            "stageChanged": outcome.stage_changed,
            "completed": outcome.completed,
        },
        message="Workbook review completed",
    )
