"""
Dana notification payloads.

Normalises the provider's webhook bodies into typed models. Field names
follow the provider's JSON; aliases cover the camelCase variants seen in
the wild.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _scalar_to_str(v: Any) -> Any:
    if isinstance(v, (int, float, bool)):
        return str(v)
    return v


class PaymentCodeNotification(BaseModel):
    """Payment code issued or paid (``POST /webhooks/payment-code``)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    external_code_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payment_code_id", "externalCodeId", "external_code_id"),
    )
    payment_code: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[int] = None
    expiry_time: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("expiry_time", "expiryTime")
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("external_code_id", "payment_code", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric ids and codes."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Any:
        """Unrecognised scalar statuses pass through as text and fail closed later."""
        return _scalar_to_str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        """Amounts arrive as integers or decimal strings like "75000.00"."""
        if v is None or isinstance(v, int):
            return v
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return None

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        """Treat a null metadata object as empty."""
        return v or {}

    @property
    def user_id(self) -> Optional[str]:
        """Application user reference carried in metadata."""
        user_id = self.metadata.get("userId")
        return str(user_id) if user_id else None

    @property
    def package_id(self) -> Optional[str]:
        """Purchased package carried in metadata."""
        return self.metadata.get("packageId")

    def summary(self) -> Dict[str, Any]:
        """Loggable subset of the payload."""
        return {
            "payment_code_id": self.external_code_id,
            "status": self.status,
            "expiry_time": self.expiry_time,
        }


class StatusNotificationBody(BaseModel):
    """Inner ``response`` object of a status notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    notify_type: Optional[str] = Field(default=None, alias="notifyType")
    merchant_order_no: Optional[str] = Field(default=None, alias="merchantOrderNo")
    status: Optional[str] = None
    status_update_time: Optional[str] = Field(default=None, alias="statusUpdateTime")

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Any:
        """Unrecognised scalar statuses pass through as text and fail closed later."""
        return _scalar_to_str(v)


class StatusNotification(BaseModel):
    """Payment status change (``POST /webhooks/notify``)."""

    model_config = ConfigDict(extra="ignore")

    response: StatusNotificationBody = Field(default_factory=StatusNotificationBody)

    @field_validator("response", mode="before")
    @classmethod
    def default_response(cls, v: Any) -> Any:
        """Treat a null response object as empty."""
        return v or {}
