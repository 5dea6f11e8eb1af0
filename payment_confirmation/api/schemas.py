"""
Pydantic schemas for API request/response models.

Field names follow the JSON the web client and the provider already speak
(camelCase).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerifyPaymentRequest(BaseModel):
    """Request schema for payment verification."""

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"examples": [{"transactionId": "pc_1234567890"}]},
    )

    transactionId: Optional[str] = Field(default=None, description="Transaction identifier")


class VerifyPaymentResponse(BaseModel):
    """Response schema for a successful verification lookup."""

    verified: bool = Field(..., description="True only when the transaction is COMPLETED")
    status: str = Field(..., description="Current transaction status")
    packageId: str = Field(..., description="Purchased package")
    timestamp: str = Field(..., description="Last status change (ISO 8601)")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "verified": True,
                    "status": "COMPLETED",
                    "packageId": "basic",
                    "timestamp": "2025-01-06T10:00:00+00:00",
                }
            ]
        }
    )


class VerifyPaymentError(BaseModel):
    """Error body for verification failures."""

    verified: bool = Field(default=False, description="Always false on failure")
    error: str = Field(..., description="Human-readable reason")


class WebhookResponse(BaseModel):
    """Response schema for webhook processing."""

    success: bool = Field(..., description="Whether the delivery was accepted")
    message: Optional[str] = Field(default=None, description="Failure reason")


class TrackEventRequest(BaseModel):
    """Client analytics event."""

    model_config = ConfigDict(extra="ignore")

    event: Optional[str] = Field(default=None, description="Event type")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Event attributes")
    timestamp: Optional[str] = Field(default=None, description="Client timestamp (ISO 8601)")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
