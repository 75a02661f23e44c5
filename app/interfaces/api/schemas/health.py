"""Schemas for service health endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthRead(BaseModel):
    status: str
    service: str
    timestamp: datetime
    features: list[str] = Field(default_factory=list)
