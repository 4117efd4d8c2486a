"""Route handlers for Web API."""

from woodie.web.routes.health import router as health_router
from woodie.web.routes.problems import router as problems_router
from woodie.web.routes.solutions import router as solutions_router
from woodie.web.routes.reviews import router as reviews_router
from woodie.web.routes.scheduler import router as scheduler_router

__all__ = [
    "health_router",
    "problems_router",
    "solutions_router",
    "reviews_router",
    "scheduler_router",
]
