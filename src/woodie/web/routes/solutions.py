"""Solution endpoints: answer submission, attempt history, workbook progress."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from woodie.core import review_repository
from woodie.core.answer_checker import check_answer
from woodie.db.problems_repository import get_problem_by_id
from woodie.db.users_repository import UserRecord
from woodie.db.workbooks_repository import (
    get_all_workbooks_progress,
    get_workbook_by_id,
    get_workbook_progress,
    list_workbook_problem_ids,
)
from woodie.web.deps import get_current_user
from woodie.web.schemas import ApiResponse, SolutionSubmit

router = APIRouter(prefix="/api/solutions", tags=["solutions"])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def submit_solution(
    body: SolutionSubmit,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Check an answer and store it as a new solution record.

    A correct answer that completes a workbook opens a workbook review
    schedule, unless one is already open.
    """
    problem = get_problem_by_id(body.problem_id)
    if problem is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Problem {body.problem_id} not found",
        )

    if body.workbook_id is not None:
        if get_workbook_by_id(body.workbook_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Workbook {body.workbook_id} not found",
            )
        if body.problem_id not in list_workbook_problem_ids(body.workbook_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Problem {body.problem_id} is not part of workbook {body.workbook_id}",
            )

    is_correct = check_answer(body.user_answer, problem.answer, problem.problem_type)
    record = review_repository.create_solution_record(
        user_id=user.id,
        problem_id=problem.id,
        user_answer=body.user_answer,
        is_correct=is_correct,
        time_spent=body.time_spent,
        workbook_id=body.workbook_id,
    )

    workbook_schedule_id = None
    if is_correct and body.workbook_id is not None:
        progress = get_workbook_progress(user.id, body.workbook_id)
        if progress["progressPercentage"] >= 100:
            workbook_schedule_id = review_repository.create_workbook_review_schedule(
                user.id, body.workbook_id
            )

    return ApiResponse(
        data={
            "id": record.id,
            "isCorrect": is_correct,
            "attemptNumber": record.attempt_number,
            "timeSpent": record.time_spent or 0,
            "correctAnswer": problem.answer,
            "explanation": problem.explanation,
            "masteryLevel": record.mastery_level,
            "nextReviewDate": record.next_review_date,
            "workbookReviewScheduleId": workbook_schedule_id,
        },
        message="Correct" if is_correct else "Incorrect",
    )


@router.get("", response_model=ApiResponse)
async def list_solutions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    workbook_id: int | None = Query(default=None, alias="workbookId"),
    problem_id: int | None = Query(default=None, alias="problemId"),
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """List the caller's solution records, newest first."""
    result = review_repository.list_user_solution_records(
        user.id, page=page, limit=limit, workbook_id=workbook_id, problem_id=problem_id
    )
    return ApiResponse(data={"records": result["data"], "pagination": result["pagination"]})


@router.get("/stats", response_model=ApiResponse)
async def get_stats(user: UserRecord = Depends(get_current_user)) -> ApiResponse:
    """Overall solving statistics and activity streak of the caller."""
    return ApiResponse(data=review_repository.get_user_stats(user.id))


@router.get("/status/{problem_id}", response_model=ApiResponse)
async def get_problem_status(
    problem_id: int,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Solve status of one problem for the caller."""
    return ApiResponse(data=review_repository.get_problem_status(user.id, problem_id))


@router.get("/workbook/{workbook_id}/progress", response_model=ApiResponse)
async def get_workbook_progress_route(
    workbook_id: int,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Progress of the caller through one workbook."""
    if get_workbook_by_id(workbook_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workbook {workbook_id} not found",
        )
    return ApiResponse(data=get_workbook_progress(user.id, workbook_id))


@router.get("/workbooks/progress", response_model=ApiResponse)
async def get_all_progress(user: UserRecord = Depends(get_current_user)) -> ApiResponse:
    """Progress of the caller across every started workbook."""
    return ApiResponse(data=get_all_workbooks_progress(user.id))
