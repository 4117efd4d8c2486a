"""Problem endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from woodie.db.problems_repository import (
    deactivate_problem,
    get_problem_by_id,
    insert_problem,
    list_problems,
    update_problem,
)
from woodie.db.users_repository import UserRecord
from woodie.web.deps import get_current_user, require_admin, require_teacher
from woodie.web.schemas import ApiResponse, ProblemCreate, ProblemUpdate

router = APIRouter(prefix="/api/problems", tags=["problems"])


@router.get("", response_model=ApiResponse)
async def get_problems(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    subject: str | None = None,
    difficulty: str | None = None,
    topic: str | None = None,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """List active problems."""
    result = list_problems(
        page=page, limit=limit, subject=subject, difficulty=difficulty, topic=topic
    )
    return ApiResponse(
        data={
            "problems": [p.to_dict() for p in result["data"]],
            "pagination": result["pagination"],
        }
    )


@router.get("/{problem_id}", response_model=ApiResponse)
async def get_problem(
    problem_id: int,
    user: UserRecord = Depends(get_current_user),
) -> ApiResponse:
    """Get one problem. Teachers and admins also see the answer."""
    problem = get_problem_by_id(problem_id)
    if problem is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Problem {problem_id} not found",
        )
    return ApiResponse(data=problem.to_dict(include_answer=user.role != "student"))


@router.post(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_problem(
    body: ProblemCreate,
    user: UserRecord = Depends(require_teacher),
) -> ApiResponse:
    """Create a problem (teacher or admin)."""
    problem = insert_problem(
        title=body.title,
        content=body.content,
        subject=body.subject,
        answer=body.answer,
        explanation=body.explanation,
        difficulty=body.difficulty,
        topic=body.topic,
        problem_type=body.problem_type,
        points=body.points,
        created_by=user.id,
    )
    return ApiResponse(data=problem.to_dict(include_answer=True), message="Problem created")


@router.put("/{problem_id}", response_model=ApiResponse)
async def edit_problem(
    problem_id: int,
    body: ProblemUpdate,
    user: UserRecord = Depends(require_teacher),
) -> ApiResponse:
    """Edit a problem. Only its creator or an admin may change it."""
    problem = get_problem_by_id(problem_id)
    if problem is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Problem {problem_id} not found",
        )
    if not user.is_admin and problem.created_by != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the creator or an admin can edit this problem",
        )

    try:
        updated = update_problem(problem_id, **body.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Problem {problem_id} not found",
        )

    return ApiResponse(data=updated.to_dict(include_answer=True), message="Problem updated")


@router.delete("/{problem_id}", response_model=ApiResponse)
async def delete_problem(
    problem_id: int,
    user: UserRecord = Depends(require_admin),
) -> ApiResponse:
    """Deactivate a problem (admin only)."""
    if not deactivate_problem(problem_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Problem {problem_id} not found",
        )
    return ApiResponse(data={"id": problem_id}, message="Problem deleted")
