"""
Service request models.

Provides Pydantic schemas for:
- Persisted service requests (all kinds share one record layout)
- Order line items
- Status-update and creation API payloads
- Status history entries

Persisted documents use camelCase field names; models expose snake_case
attributes and serialise with camelCase aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================


class RequestKind(str, Enum):
    """Categories of service request sharing one lifecycle shape."""

    ORDER = "order"
    RENOVATION = "renovation"
    CONSTRUCTION = "construction"
    RENTAL = "rental"
    BUY_SELL = "buy_sell"


class LifecycleEvent(str, Enum):
    """Lifecycle events that drive notification fan-out."""

    CREATED = "created"
    ACCEPTED = "accepted"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    REJECTED = "rejected"


# ============================================================================
# Base
# ============================================================================


class CamelModel(BaseModel):
    """Model that reads and writes camelCase documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Persisted records
# ============================================================================


class LineItem(CamelModel):
    """Normalised order line item."""

    item_id: str
    item_type: str
    price: float = Field(..., gt=0)
    quantity: float = Field(..., gt=0)
    name: Optional[str] = None
    image: Optional[str] = None
    seller_id: Optional[str] = None


class ServiceRequest(CamelModel):
    """
    A service request of any kind.

    ``id`` is store-assigned and immutable; ``human_id`` is an advisory
    display identifier. ``details`` holds the kind-specific payload
    (line items and totals for orders, description/budget/photos for
    service requests).
    """

    id: str
    human_id: str
    kind: RequestKind
    requester_id: str
    provider_id: Optional[str] = None
    category: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str
    channel_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    progress_note: Optional[str] = None
    last_progress_update: Optional[datetime] = None
    is_assigned: Optional[bool] = Field(
        None,
        description="Set on provider queue listings: assigned to the provider vs. open"
    )

    @property
    def is_open(self) -> bool:
        """True while no provider has been assigned."""
        return self.provider_id is None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ServiceRequest":
        """Build a request from a stored document."""
        return cls.model_validate(dict(document))


class HistoryEntry(CamelModel):
    """One entry of a request's status history log."""

    id: str
    request_id: str
    kind: RequestKind
    status: str
    updated_by: Optional[str] = None
    note: str = ""
    created_at: Optional[datetime] = None


# ============================================================================
# API schemas
# ============================================================================


class StatusUpdateRequest(CamelModel):
    """Body of a status transition call."""

    status: str = Field(..., min_length=1, description="Target status label")
    acting_provider_id: Optional[str] = Field(
        None,
        description="Provider performing the transition (required to accept)"
    )
    progress_note: Optional[str] = Field(
        None,
        description="Free-text update stored with the transition"
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "status": "Accepted",
                "actingProviderId": "provider-1",
            }
        },
    )


class CreatedResponse(BaseModel):
    """Response of a successful create."""

    id: str = Field(..., description="Store-assigned request id")


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str = Field(
        ...,
        min_length=1,
        description="Error message"
    )
    error_code: Optional[str] = Field(
        None,
        description="Error code"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Illegal transition: Pending -> Completed",
                "error_code": "ILLEGAL_TRANSITION"
            }
        }
    }
