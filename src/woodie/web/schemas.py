"""Pydantic schemas for Web API.

Request bodies use camelCase on the wire; Python code uses snake_case.
Every response is wrapped in the ApiResponse envelope.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENVELOPE
# =============================================================================


class ApiResponse(BaseModel):
    """Response envelope shared by every endpoint."""

    success: bool = True
    data: Any = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str


# =============================================================================
# PROBLEM SCHEMAS
# =============================================================================


class ProblemCreate(CamelModel):
    """Request body for creating a problem."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=100)
    answer: str | None = None
    explanation: str | None = None
    difficulty: str = Field(default="medium", pattern="^(easy|medium|hard)$")
    topic: str | None = None
    problem_type: str = Field(
        default="multiple_choice",
        pattern="^(multiple_choice|true_false|short_answer|essay)$",
    )
    points: int = Field(default=1, ge=1)


class ProblemUpdate(CamelModel):
    """Request body for editing a problem; only the fields sent are changed."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    subject: str | None = Field(default=None, min_length=1, max_length=100)
    answer: str | None = None
    explanation: str | None = None
    difficulty: str | None = Field(default=None, pattern="^(easy|medium|hard)$")
    topic: str | None = None
    problem_type: str | None = Field(
        default=None,
        pattern="^(multiple_choice|true_false|short_answer|essay)$",
    )
    points: int | None = Field(default=None, ge=1)


# =============================================================================
# SOLUTION SCHEMAS
# =============================================================================


class SolutionSubmit(CamelModel):
    """Request body for submitting an answer."""

    problem_id: int = Field(..., ge=1)
    user_answer: str
    time_spent: int | None = Field(default=None, ge=0)
    workbook_id: int | None = Field(default=None, ge=1)


# =============================================================================
# REVIEW SCHEMAS
# =============================================================================


class ReviewComplete(CamelModel):
    """Request body for completing a problem review."""

    is_correct: bool
    time_spent: int | None = Field(default=None, ge=0)
    confidence_level: int | None = Field(default=None, ge=1, le=5)
    difficulty_perceived: int | None = Field(default=None, ge=1, le=5)


class WorkbookReviewComplete(CamelModel):
    """Request body for completing a workbook review."""

    success: bool
