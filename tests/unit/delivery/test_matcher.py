"""
Module: test_matcher.py
Description: Unit tests for subscription matching and event dispatch.

Covers the matcher over the in-memory repository and the dispatcher's
one-job-per-match fan-out.
"""

import pytest

from event_relay.delivery.dispatcher import EventDispatcher
from event_relay.delivery.matcher import SubscriptionMatcher
from event_relay.delivery_queue.memory import InMemoryQueueBackend
from event_relay.delivery_queue.queue import DeliveryQueue
from event_relay.models.subscription import Subscription
from event_relay.storage.memory import InMemorySubscriptionRepository


def _subscription(**overrides):
    fields = {
        "owner_id": "user_1",
        "name": "n",
        "url": "https://hooks.example.com/a",
        "event_type": "token_transfer",
    }
    fields.update(overrides)
    return Subscription(**fields)


@pytest.fixture
def repository():
    return InMemorySubscriptionRepository()


class TestSubscriptionMatcher:

    @pytest.mark.asyncio
    async def test_matches_only_equal_filter_values(self, repository):
        wanted = await repository.create(_subscription(filters={"mint": "X"}))
        await repository.create(_subscription(filters={"mint": "Y"}))

        matched = await SubscriptionMatcher(repository).match(
            "token_transfer", {"mint": "X", "amount": "10"}
        )

        assert [s.subscription_id for s in matched] == [wanted.subscription_id]

    @pytest.mark.asyncio
    async def test_empty_filters_match_every_event_of_type(self, repository):
        catch_all = await repository.create(_subscription())
        await repository.create(_subscription(event_type="swap"))

        matched = await SubscriptionMatcher(repository).match("token_transfer", {})

        assert [s.subscription_id for s in matched] == [catch_all.subscription_id]

    @pytest.mark.asyncio
    async def test_disabled_subscription_is_skipped(self, repository):
        created = await repository.create(_subscription())
        await repository.update("user_1", created.subscription_id, {"active": False})

        assert await SubscriptionMatcher(repository).match("token_transfer", {}) == []

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, repository):
        assert await SubscriptionMatcher(repository).match("token_transfer", {"mint": "X"}) == []


class TestEventDispatcher:

    @pytest.mark.asyncio
    async def test_one_job_per_match(self, repository):
        x_sub = await repository.create(_subscription(filters={"mint": "X"}, secret="s"))
        await repository.create(_subscription(filters={"mint": "Y"}))
        backend = InMemoryQueueBackend()
        dispatcher = EventDispatcher(SubscriptionMatcher(repository), DeliveryQueue(backend))

        jobs = await dispatcher.notify("token_transfer", {"mint": "X", "amount": "10"})

        assert len(jobs) == 1
        job = jobs[0]
        assert job.subscription_id == x_sub.subscription_id
        assert job.target_url == x_sub.url
        assert job.secret == "s"
        assert job.attempt == 1
        assert job.max_attempts == 5
        assert job.payload == {"mint": "X", "amount": "10"}
        assert len(backend) == 1
        assert job.job_id in backend

    @pytest.mark.asyncio
    async def test_no_match_enqueues_nothing(self, repository):
        backend = InMemoryQueueBackend()
        dispatcher = EventDispatcher(SubscriptionMatcher(repository), DeliveryQueue(backend))

        assert await dispatcher.notify("token_transfer", {"mint": "X"}) == []
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_job_snapshots_subscription(self, repository):
        created = await repository.create(_subscription())
        dispatcher = EventDispatcher(
            SubscriptionMatcher(repository), DeliveryQueue(InMemoryQueueBackend())
        )

        jobs = await dispatcher.notify("token_transfer", {})
        await repository.update(
            "user_1", created.subscription_id, {"url": "https://hooks.example.com/new"}
        )

        assert jobs[0].target_url == "https://hooks.example.com/a"
