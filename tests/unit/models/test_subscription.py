"""
Module: test_subscription.py
Description: Unit tests for subscription and request models.

Covers URL and filter validation, identifier generation and the
mapping of partial updates onto subscription fields.
"""

import pytest
from pydantic import ValidationError

from event_relay.models.request import CreateSubscriptionRequest, UpdateSubscriptionRequest
from event_relay.models.response import SubscriptionResponse
from event_relay.models.subscription import Subscription


def _subscription(**overrides):
    fields = {
        "owner_id": "user_1",
        "name": "Transfers",
        "url": "https://hooks.example.com/t",
        "event_type": "token_transfer",
    }
    fields.update(overrides)
    return Subscription(**fields)


class TestSubscription:
    """Test cases for the Subscription model."""

    def test_defaults(self):
        subscription = _subscription()

        assert subscription.subscription_id.startswith("sub_")
        assert len(subscription.subscription_id) == 16
        assert subscription.filters == {}
        assert subscription.secret is None
        assert subscription.active is True
        assert subscription.has_secret is False

    def test_ids_are_unique(self):
        assert _subscription().subscription_id != _subscription().subscription_id

    @pytest.mark.parametrize("url", [
        "ftp://example.com/hook",
        "example.com/hook",
        "https://",
        "",
        "not a url",
    ])
    def test_rejects_bad_urls(self, url):
        with pytest.raises(ValidationError):
            _subscription(url=url)

    def test_accepts_http_and_https(self):
        assert _subscription(url="http://localhost:9000/h").url == "http://localhost:9000/h"
        assert _subscription(url="https://example.com").url == "https://example.com"

    @pytest.mark.parametrize("filters", [
        {"amount": 10},
        {"flag": True},
        {"nested": {"a": "b"}},
        {"": "x"},
    ])
    def test_rejects_non_string_filters(self, filters):
        with pytest.raises(ValidationError):
            _subscription(filters=filters)

    def test_none_filters_become_empty(self):
        assert _subscription(filters=None).filters == {}

    def test_rejects_bad_event_type(self):
        with pytest.raises(ValidationError):
            _subscription(event_type="Token Transfer!")

    def test_has_secret(self):
        assert _subscription(secret="whsec_1").has_secret is True


class TestSubscriptionRequests:

    def test_create_request_maps_fields(self):
        request = CreateSubscriptionRequest(
            name="  Transfers  ",
            url="https://hooks.example.com/t",
            event="token_transfer",
            filters={"mint": "X"},
        )

        assert request.name == "Transfers"
        assert request.filters == {"mint": "X"}
        assert request.secret is None

    def test_create_request_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            CreateSubscriptionRequest(
                name="n", url="https://e.com", event="swap", owner_id="someone_else"
            )

    def test_update_only_includes_sent_fields(self):
        request = UpdateSubscriptionRequest(active=False, event="swap")

        assert request.to_changes() == {"active": False, "event_type": "swap"}

    def test_update_null_secret_clears_signing(self):
        request = UpdateSubscriptionRequest.model_validate({"secret": None, "name": None})

        assert request.to_changes() == {"secret": None}

    def test_update_rejects_bad_url(self):
        with pytest.raises(ValidationError):
            UpdateSubscriptionRequest(url="ftp://example.com")


class TestSubscriptionResponse:

    def test_secret_never_exposed(self):
        response = SubscriptionResponse.from_subscription(_subscription(secret="whsec_1"))
        body = response.model_dump()

        assert body["has_secret"] is True
        assert "secret" not in body
        assert "whsec_1" not in response.model_dump_json()
        assert body["event"] == "token_transfer"
