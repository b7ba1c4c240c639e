"""
API models for md-converter REST endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIResponse(BaseModel):
    """Base API response model."""
    
    success: bool = Field(description="Request success status")
    message: str = Field(description="Response message")
    timestamp: datetime = Field(default_factory=_utcnow, description="Response timestamp")


class ErrorResponse(APIResponse):
    """API error response model."""
    
    success: bool = Field(default=False, description="Always false for errors")
    error_code: Optional[str] = Field(default=None, description="Error code identifier")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Error details")


class HealthCheckResponse(APIResponse):
    """Response model for health check."""
    
    status: str = Field(description="Health status")
    version: str = Field(description="Service version")
    uptime_seconds: float = Field(description="Service uptime in seconds")
    active_jobs: int = Field(description="Jobs currently held by the progress registry")
