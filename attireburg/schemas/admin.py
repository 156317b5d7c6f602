"""Pydantic schemas for admin tooling."""
from datetime import datetime
from typing import List

from attireburg.schemas.base import BaseResponseSchema


class ProductionCheckItem(BaseResponseSchema):
    name: str
    status: str
    message: str
    required: bool


class ProductionCheckSummary(BaseResponseSchema):
    total: int
    passed: int
    warnings: int
    failed: int
    required_failed: int


class ProductionCheckResponse(BaseResponseSchema):
    """Readiness verdict: ready, ready-with-warnings or not-ready."""
    status: str
    summary: ProductionCheckSummary
    checks: List[ProductionCheckItem]
    recommendations: List[str]
    timestamp: datetime
