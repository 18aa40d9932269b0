"""
Unit tests for the per-kind lifecycle configuration.

Tests cover:
- Registry completeness and uniqueness
- Transition graphs and their events
- Kind lookup
- Template rendering
"""

import pytest

from api.src.errors import UnknownKindError
from api.src.models.requests import LifecycleEvent, RequestKind
from api.src.services.kinds import (
    KIND_REGISTRY,
    NotificationTemplate,
    TemplateKey,
    get_kind_config,
)


class TestRegistry:
    """Tests for KIND_REGISTRY."""

    def test_every_kind_is_registered(self):
        assert set(KIND_REGISTRY) == set(RequestKind)

    def test_prefixes_and_collections_are_unique(self):
        configs = list(KIND_REGISTRY.values())

        assert len({config.id_prefix for config in configs}) == len(configs)
        assert len({config.collection for config in configs}) == len(configs)

    def test_initial_status_has_outgoing_transitions(self):
        for config in KIND_REGISTRY.values():
            assert config.transitions[config.initial_status]

    def test_every_target_status_is_a_known_state(self):
        for config in KIND_REGISTRY.values():
            for targets in config.transitions.values():
                for status in targets:
                    assert status in config.transitions

    def test_every_kind_requires_a_requester(self):
        for config in KIND_REGISTRY.values():
            assert "requesterId" in config.required_fields

    def test_broadcast_only_for_project_kinds(self):
        broadcasting = {kind for kind, config in KIND_REGISTRY.items() if config.provider_type}

        assert broadcasting == {RequestKind.RENOVATION, RequestKind.CONSTRUCTION}

    def test_history_collection(self):
        assert KIND_REGISTRY[RequestKind.RENOVATION].history_collection == "renovationRequestsUpdates"


class TestTransitions:
    """Tests for transition graphs."""

    @pytest.mark.parametrize("current, new, event", [
        ("Pending", "Accepted", LifecycleEvent.ACCEPTED),
        ("Pending", "Rejected", LifecycleEvent.REJECTED),
        ("Accepted", "In Progress", LifecycleEvent.IN_PROGRESS),
        ("Accepted", "Rejected", LifecycleEvent.REJECTED),
        ("In Progress", "In Progress", LifecycleEvent.IN_PROGRESS),
        ("In Progress", "Completed", LifecycleEvent.COMPLETED),
    ])
    def test_renovation_legal_transitions(self, current, new, event):
        config = get_kind_config(RequestKind.RENOVATION)

        assert config.event_for(current, new) is event

    @pytest.mark.parametrize("current, new", [
        ("Pending", "Completed"),
        ("Pending", "In Progress"),
        ("Completed", "Pending"),
        ("Rejected", "Accepted"),
        ("In Progress", "Rejected"),
        ("Pending", "Nonsense"),
        ("Nonsense", "Accepted"),
    ])
    def test_renovation_illegal_transitions(self, current, new):
        config = get_kind_config(RequestKind.RENOVATION)

        assert config.event_for(current, new) is None

    def test_order_uses_lower_case_labels(self):
        config = get_kind_config(RequestKind.ORDER)

        assert config.initial_status == "pending"
        assert config.event_for("pending", "processing") is LifecycleEvent.ACCEPTED
        assert config.event_for("processing", "completed") is LifecycleEvent.COMPLETED
        assert config.event_for("pending", "cancelled") is LifecycleEvent.REJECTED
        assert config.event_for("completed", "cancelled") is None

    def test_rental_has_no_in_progress_state(self):
        config = get_kind_config(RequestKind.RENTAL)

        assert "In Progress" not in config.statuses
        assert config.event_for("Accepted", "Completed") is LifecycleEvent.COMPLETED

    def test_statuses_lists_each_label_once(self):
        statuses = get_kind_config(RequestKind.CONSTRUCTION).statuses

        assert statuses == ("Pending", "Accepted", "In Progress", "Completed", "Rejected")


class TestLookup:
    """Tests for get_kind_config."""

    def test_lookup_by_enum_and_value(self):
        assert get_kind_config(RequestKind.BUY_SELL) is get_kind_config("buy_sell")

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownKindError) as exc_info:
            get_kind_config("spaceship")

        assert exc_info.value.error_code == "UNKNOWN_KIND"
        assert "spaceship" in exc_info.value.message


class TestTemplates:
    """Tests for notification templates."""

    def test_render_fills_placeholders(self):
        template = NotificationTemplate("Hi {label}", "Request {human_id} ({category})")

        title, body = template.render({"label": "Renovation", "human_id": "REN-1-X", "category": "Painting"})

        assert title == "Hi Renovation"
        assert body == "Request REN-1-X (Painting)"

    def test_unknown_placeholders_render_empty(self):
        template = NotificationTemplate("Title", "Update:{note_suffix}")

        assert template.render({}) == ("Title", "Update:")

    def test_every_kind_has_creation_and_transition_templates(self):
        for config in KIND_REGISTRY.values():
            assert TemplateKey.CREATED_REQUESTER in config.templates
            assert TemplateKey.CREATED_PROVIDER in config.templates
            assert TemplateKey.ACCEPTED in config.templates
            assert TemplateKey.REJECTED in config.templates
            assert TemplateKey.COMPLETED in config.templates

    def test_broadcasting_kinds_have_broadcast_template(self):
        for config in KIND_REGISTRY.values():
            if config.provider_type:
                assert TemplateKey.CREATED_BROADCAST in config.templates

    def test_links(self):
        order = get_kind_config(RequestKind.ORDER)

        assert order.link_for_requester("abc") == "/orders/abc"
        assert get_kind_config(RequestKind.RENOVATION).link_for_provider("abc") == "/provider-renovation-panel"
