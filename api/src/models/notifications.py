"""
Notification models.

``NotificationRecord`` is the addressed message produced by fan-out
planning; ``Notification`` is the stored inbox entry; ``DeliveryOutcome``
and ``FanoutReport`` describe what happened to each send attempt.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.src.models.requests import CamelModel


class NotificationCategory:
    """Notification type labels understood by the frontend."""

    SERVICE_REQUEST = "service-request"
    STATUS_UPDATE = "status-update"
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class NotificationRecord:
    """One addressed notification to be dispatched."""

    recipient_id: str
    title: str
    body: str
    category: str = NotificationCategory.INFO
    deep_link: Optional[str] = None


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one send attempt."""

    recipient_id: str
    delivered: bool
    error: Optional[str] = None


@dataclass
class FanoutReport:
    """Per-recipient outcomes of one fan-out."""

    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def delivered(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.delivered)

    @property
    def failed(self) -> List[DeliveryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.delivered]


class Notification(CamelModel):
    """Stored notification as shown in a user's inbox."""

    id: str
    user_id: str
    title: str
    message: str
    type: str = NotificationCategory.INFO
    link: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class UnreadCountResponse(CamelModel):
    """Unread notification badge count."""

    user_id: str
    unread: int = Field(..., ge=0)
