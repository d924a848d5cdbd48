"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ApiResponseMessage(BaseModel):
    """Outcome of a mutating request that has no resource to return."""

    success: bool = Field(..., description="Whether the operation changed anything.")
    message: str = Field(..., description="Human-readable summary of the outcome.")


class ViewCountResponse(BaseModel):
    """View count reported for one post URL."""

    url: str
    views: int
