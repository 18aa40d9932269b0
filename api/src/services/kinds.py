"""
Per-kind lifecycle configuration.

Every request kind (order, renovation, construction, rental, buy/sell)
runs through the same engine. What differs between kinds lives here, in
one ``KindConfig`` per kind:

- where requests are stored and how their display ids are prefixed
- the status labels, initial status and transition graph
- which payload fields are required, numeric, or kind-specific details
- who is broadcast to when a request is created without a provider
- the notification templates and deep links per lifecycle event
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from api.src.errors import UnknownKindError
from api.src.models.notifications import NotificationCategory
from api.src.models.requests import LifecycleEvent, RequestKind

CHAT_LINK = "/chats?chatId={channel_id}"


class _RenderContext(dict):
    """Format mapping that renders unknown placeholders as empty strings."""

    def __missing__(self, key: str) -> str:
        return ""


@dataclass(frozen=True)
class NotificationTemplate:
    """Title/body pair rendered with request context."""

    title: str
    body: str
    category: str = NotificationCategory.INFO

    def render(self, context: Mapping[str, Any]) -> Tuple[str, str]:
        values = _RenderContext(context)
        return self.title.format_map(values), self.body.format_map(values)


class TemplateKey:
    """Keys into ``KindConfig.templates``."""

    CREATED_REQUESTER = "created.requester"
    CREATED_PROVIDER = "created.provider"
    CREATED_BROADCAST = "created.broadcast"
    ACCEPTED = LifecycleEvent.ACCEPTED.value
    IN_PROGRESS = LifecycleEvent.IN_PROGRESS.value
    COMPLETED = LifecycleEvent.COMPLETED.value
    REJECTED = LifecycleEvent.REJECTED.value


@dataclass(frozen=True)
class KindConfig:
    """Lifecycle configuration for one request kind."""

    kind: RequestKind
    label: str
    collection: str
    id_prefix: str
    initial_status: str
    transitions: Mapping[str, Mapping[str, LifecycleEvent]]
    required_fields: Tuple[str, ...]
    templates: Mapping[str, NotificationTemplate]
    category_field: Optional[str] = None
    detail_fields: Tuple[str, ...] = ()
    numeric_fields: Tuple[str, ...] = ()
    field_aliases: Mapping[str, str] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    requires_items: bool = False
    provider_type: Optional[str] = None
    requester_link: str = "/dashboard"
    provider_link: str = "/dashboard"

    @property
    def history_collection(self) -> str:
        return f"{self.collection}Updates"

    @property
    def statuses(self) -> Tuple[str, ...]:
        labels = list(self.transitions)
        for targets in self.transitions.values():
            labels.extend(status for status in targets if status not in labels)
        return tuple(dict.fromkeys(labels))

    def event_for(self, current_status: str, new_status: str) -> Optional[LifecycleEvent]:
        """Return the event of a legal transition, or None if it is illegal."""
        return self.transitions.get(current_status, {}).get(new_status)

    def link_for_requester(self, request_id: str) -> str:
        return self.requester_link.format(id=request_id)

    def link_for_provider(self, request_id: str) -> str:
        return self.provider_link.format(id=request_id)


# ============================================================================
# Transition graphs
# ============================================================================

PENDING = "Pending"
ACCEPTED = "Accepted"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
REJECTED = "Rejected"

# Self-loops: re-accept by the assigned provider, and progress notes while
# work is under way.
PROJECT_TRANSITIONS: Dict[str, Dict[str, LifecycleEvent]] = {
    PENDING: {
        ACCEPTED: LifecycleEvent.ACCEPTED,
        REJECTED: LifecycleEvent.REJECTED,
    },
    ACCEPTED: {
        ACCEPTED: LifecycleEvent.ACCEPTED,
        IN_PROGRESS: LifecycleEvent.IN_PROGRESS,
        REJECTED: LifecycleEvent.REJECTED,
    },
    IN_PROGRESS: {
        IN_PROGRESS: LifecycleEvent.IN_PROGRESS,
        COMPLETED: LifecycleEvent.COMPLETED,
    },
    COMPLETED: {},
    REJECTED: {},
}

PROPERTY_TRANSITIONS: Dict[str, Dict[str, LifecycleEvent]] = {
    PENDING: {
        ACCEPTED: LifecycleEvent.ACCEPTED,
        REJECTED: LifecycleEvent.REJECTED,
    },
    ACCEPTED: {
        ACCEPTED: LifecycleEvent.ACCEPTED,
        COMPLETED: LifecycleEvent.COMPLETED,
        REJECTED: LifecycleEvent.REJECTED,
    },
    COMPLETED: {},
    REJECTED: {},
}

ORDER_TRANSITIONS: Dict[str, Dict[str, LifecycleEvent]] = {
    "pending": {
        "processing": LifecycleEvent.ACCEPTED,
        "cancelled": LifecycleEvent.REJECTED,
    },
    "processing": {
        "processing": LifecycleEvent.ACCEPTED,
        "completed": LifecycleEvent.COMPLETED,
        "cancelled": LifecycleEvent.REJECTED,
    },
    "completed": {},
    "cancelled": {},
}


# ============================================================================
# Notification templates
# ============================================================================


def _project_templates(label: str) -> Dict[str, NotificationTemplate]:
    return {
        TemplateKey.CREATED_REQUESTER: NotificationTemplate(
            f"{label} Request Submitted",
            "Your {category} request has been submitted successfully. "
            "We'll notify you when a provider responds.",
            NotificationCategory.SERVICE_REQUEST,
        ),
        TemplateKey.CREATED_PROVIDER: NotificationTemplate(
            f"New {label} Request",
            "You have received a new {category} request. Check your dashboard for details.",
            NotificationCategory.SERVICE_REQUEST,
        ),
        TemplateKey.CREATED_BROADCAST: NotificationTemplate(
            f"New {label} Request Available",
            "A new {category} request is available. Check available projects.",
            NotificationCategory.SERVICE_REQUEST,
        ),
        TemplateKey.ACCEPTED: NotificationTemplate(
            f"{label} Request Accepted",
            "Your {category} request has been accepted! You can now chat with the provider.",
            NotificationCategory.SUCCESS,
        ),
        TemplateKey.REJECTED: NotificationTemplate(
            f"{label} Request Rejected",
            "Your {category} request has been rejected.",
        ),
        TemplateKey.COMPLETED: NotificationTemplate(
            f"{label} Project Completed",
            "Your {category} project has been marked as completed.",
            NotificationCategory.SUCCESS,
        ),
        TemplateKey.IN_PROGRESS: NotificationTemplate(
            f"{label} Project In Progress",
            "Your {category} project is now in progress.{note_suffix}",
            NotificationCategory.STATUS_UPDATE,
        ),
    }


ORDER_TEMPLATES: Dict[str, NotificationTemplate] = {
    TemplateKey.CREATED_REQUESTER: NotificationTemplate(
        "Order Placed",
        "Your order #{human_id} has been placed successfully. Total: {currency} {total}",
        NotificationCategory.SUCCESS,
    ),
    TemplateKey.CREATED_PROVIDER: NotificationTemplate(
        "New Order",
        "You have received order #{human_id}. Total: {currency} {total}",
        NotificationCategory.SERVICE_REQUEST,
    ),
    TemplateKey.ACCEPTED: NotificationTemplate(
        "Order Processing",
        "Your order #{human_id} is being processed by the seller.",
        NotificationCategory.SUCCESS,
    ),
    TemplateKey.REJECTED: NotificationTemplate(
        "Order Cancelled",
        "Your order #{human_id} has been cancelled.",
    ),
    TemplateKey.COMPLETED: NotificationTemplate(
        "Order Completed",
        "Your order #{human_id} has been completed.",
        NotificationCategory.SUCCESS,
    ),
}

RENTAL_TEMPLATES: Dict[str, NotificationTemplate] = {
    TemplateKey.CREATED_REQUESTER: NotificationTemplate(
        "Rental Request Submitted",
        "Your rental request {human_id} has been submitted. "
        "We'll notify you when the owner responds.",
        NotificationCategory.SERVICE_REQUEST,
    ),
    TemplateKey.CREATED_PROVIDER: NotificationTemplate(
        "New Rental Request",
        "You have received a new rental request for {start_date} to {end_date}.",
        NotificationCategory.SERVICE_REQUEST,
    ),
    TemplateKey.ACCEPTED: NotificationTemplate(
        "Rental Request Accepted",
        "Your rental request {human_id} has been accepted!",
        NotificationCategory.SUCCESS,
    ),
    TemplateKey.REJECTED: NotificationTemplate(
        "Rental Request Rejected",
        "Your rental request {human_id} has been rejected.",
    ),
    TemplateKey.COMPLETED: NotificationTemplate(
        "Rental Completed",
        "Your rental {human_id} has been marked as completed.",
        NotificationCategory.SUCCESS,
    ),
}

BUY_SELL_TEMPLATES: Dict[str, NotificationTemplate] = {
    TemplateKey.CREATED_REQUESTER: NotificationTemplate(
        "Purchase Offer Submitted",
        "Your purchase offer {human_id} has been submitted.",
        NotificationCategory.SERVICE_REQUEST,
    ),
    TemplateKey.CREATED_PROVIDER: NotificationTemplate(
        "New Purchase Offer",
        "You have received a new purchase offer of {offer_amount}.",
        NotificationCategory.SERVICE_REQUEST,
    ),
    TemplateKey.ACCEPTED: NotificationTemplate(
        "Purchase Offer Accepted",
        "Your purchase offer {human_id} has been accepted!",
        NotificationCategory.SUCCESS,
    ),
    TemplateKey.REJECTED: NotificationTemplate(
        "Purchase Offer Rejected",
        "Your purchase offer {human_id} has been rejected.",
    ),
    TemplateKey.COMPLETED: NotificationTemplate(
        "Purchase Completed",
        "Your purchase {human_id} has been completed.",
        NotificationCategory.SUCCESS,
    ),
}


# ============================================================================
# Registry
# ============================================================================

KIND_REGISTRY: Dict[RequestKind, KindConfig] = {
    RequestKind.ORDER: KindConfig(
        kind=RequestKind.ORDER,
        label="Order",
        collection="orders",
        id_prefix="ORD",
        initial_status="pending",
        transitions=ORDER_TRANSITIONS,
        required_fields=("requesterId", "items"),
        templates=ORDER_TEMPLATES,
        detail_fields=("total", "currency", "shippingAddress", "paymentMethod"),
        numeric_fields=("total",),
        defaults={"paymentStatus": "pending"},
        requires_items=True,
        requester_link="/orders/{id}",
        provider_link="/seller/orders/{id}",
    ),
    RequestKind.RENOVATION: KindConfig(
        kind=RequestKind.RENOVATION,
        label="Renovation",
        collection="renovationRequests",
        id_prefix="REN",
        initial_status=PENDING,
        transitions=PROJECT_TRANSITIONS,
        required_fields=("requesterId", "serviceCategory"),
        templates=_project_templates("Renovation"),
        category_field="serviceCategory",
        detail_fields=("propertyId", "detailedDescription", "budget", "preferredDate", "photos"),
        numeric_fields=("budget",),
        field_aliases={"description": "detailedDescription", "startDate": "preferredDate"},
        defaults={"photos": []},
        provider_type="renovation",
        provider_link="/provider-renovation-panel",
    ),
    RequestKind.CONSTRUCTION: KindConfig(
        kind=RequestKind.CONSTRUCTION,
        label="Construction",
        collection="constructionRequests",
        id_prefix="CON",
        initial_status=PENDING,
        transitions=PROJECT_TRANSITIONS,
        required_fields=("requesterId", "projectType"),
        templates=_project_templates("Construction"),
        category_field="projectType",
        detail_fields=("propertyId", "description", "budget", "startDate", "endDate"),
        numeric_fields=("budget",),
        provider_type="construction",
        provider_link="/provider-construction-panel",
    ),
    RequestKind.RENTAL: KindConfig(
        kind=RequestKind.RENTAL,
        label="Rental",
        collection="rentalRequests",
        id_prefix="RNT",
        initial_status=PENDING,
        transitions=PROPERTY_TRANSITIONS,
        required_fields=("requesterId", "propertyId", "startDate", "endDate"),
        templates=RENTAL_TEMPLATES,
        detail_fields=("propertyId", "startDate", "endDate", "message", "totalCost"),
        numeric_fields=("totalCost",),
        defaults={"message": ""},
        requester_link="/rental/booking/{id}",
        provider_link="/rental-requests/{id}",
    ),
    RequestKind.BUY_SELL: KindConfig(
        kind=RequestKind.BUY_SELL,
        label="Purchase Offer",
        collection="buySellRequests",
        id_prefix="BSR",
        initial_status=PENDING,
        transitions=PROPERTY_TRANSITIONS,
        required_fields=("requesterId", "propertyId", "offerAmount"),
        templates=BUY_SELL_TEMPLATES,
        detail_fields=("propertyId", "offerAmount", "message"),
        numeric_fields=("offerAmount",),
        defaults={"message": ""},
        requester_link="/account",
        provider_link="/account",
    ),
}


def get_kind_config(kind: Union[RequestKind, str]) -> KindConfig:
    """
    Look up the configuration for a kind.

    Args:
        kind: Kind enum or its string value

    Returns:
        Kind configuration

    Raises:
        UnknownKindError: If the kind is not registered
    """
    try:
        return KIND_REGISTRY[RequestKind(kind)]
    except (ValueError, KeyError):
        raise UnknownKindError(str(kind.value if isinstance(kind, RequestKind) else kind))
