"""Scheduler endpoints (admin only)."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from woodie.config import load_app_config
from woodie.core import review_repository
from woodie.core.scheduler import UnknownJobError, get_scheduler
from woodie.db.users_repository import UserRecord
from woodie.utils.dates import local_date, to_iso, utc_now
from woodie.web.deps import require_admin
from woodie.web.schemas import ApiResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status", response_model=ApiResponse)
async def get_status(user: UserRecord = Depends(require_admin)) -> ApiResponse:
    """Registered jobs and their last run."""
    tasks = get_scheduler().get_task_status()
    return ApiResponse(
        data={
            "tasks": tasks,
            "totalTasks": len(tasks),
            "runningTasks": sum(1 for t in tasks if t["running"]),
        }
    )


@router.post("/run/{task_name}", response_model=ApiResponse)
async def run_task(task_name: str, user: UserRecord = Depends(require_admin)) -> ApiResponse:
    """Run a job immediately."""
    try:
        result = await get_scheduler().run_task_manually(task_name)
    except UnknownJobError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except Exception as e:
        logger.exception("scheduler.manual_run_failed", job=task_name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Job '{task_name}' failed: {e}",
        ) from e

    return ApiResponse(
        data={"taskName": task_name, "executedAt": to_iso(utc_now()), "result": result},
        message=f"Job '{task_name}' completed",
    )


@router.get("/metrics", response_model=ApiResponse)
async def get_metrics(user: UserRecord = Depends(require_admin)) -> ApiResponse:
    """Today's review totals across all users plus job status."""
    today = local_date(utc_now(), load_app_config().review.timezone)
    stats = review_repository.get_daily_stats_for_date(today)

    target = sum(s["target_review_count"] for s in stats)
    completed = sum(s["completed_review_count"] for s in stats)
    correct = sum(s["correct_answers"] for s in stats)

    return ApiResponse(
        data={
            "date": today.isoformat(),
            "users": {
                "total": len(stats),
                "active": sum(1 for s in stats if s["completed_review_count"] > 0),
            },
            "reviews": {
                "target": target,
                "completed": completed,
                "correct": correct,
                "completionRate": round(completed / target * 100) if target else 0,
                "accuracyRate": round(correct / completed * 100) if completed else 0,
            },
            "scheduler": {"tasks": get_scheduler().get_task_status()},
        }
    )
