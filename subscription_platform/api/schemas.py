"""
Pydantic schemas for API request/response models.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionRequest(BaseModel):
    """Request schema for creating or updating a subscription."""

    # Empty defaults so missing fields reach domain validation instead of a 422.
    user_id: str = Field(default="", description="Owning user identifier")
    plan: str = Field(default="", description="Subscription plan (basic/premium)")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"user_id": "user_123", "plan": "premium"},
            ]
        }
    }


class SubscriptionResponse(BaseModel):
    """Response schema for a subscription."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Subscription ID")
    user_id: str = Field(..., description="Owning user identifier")
    plan: str = Field(..., description="Subscription plan")
    start_date: datetime = Field(..., description="Start of validity (ISO 8601)")
    end_date: datetime = Field(..., description="End of validity (ISO 8601)")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    service: str = Field(..., description="Service name")
    timestamp: str = Field(..., description="Check time (RFC 3339)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Dependency checks")
