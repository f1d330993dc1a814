"""
Module: test_retry.py
Description: Unit tests for the delivery backoff policy.
"""

import pytest

from event_relay.delivery.retry import BackoffPolicy


class TestBackoffPolicy:

    def test_default_schedule_doubles_from_one_second(self):
        assert BackoffPolicy().schedule() == [1.0, 2.0, 4.0, 8.0]

    def test_delay_before_each_attempt(self):
        policy = BackoffPolicy(base=0.5)

        assert policy.delay_before(2) == 0.5
        assert policy.delay_before(3) == 1.0
        assert policy.delay_before(5) == 4.0

    def test_delay_is_capped(self):
        policy = BackoffPolicy(base=1.0, max_delay=3.0, max_attempts=6)

        assert policy.schedule() == [1.0, 2.0, 3.0, 3.0, 3.0]

    def test_first_attempt_has_no_delay(self):
        with pytest.raises(ValueError):
            BackoffPolicy().delay_before(1)

    def test_single_attempt_has_empty_schedule(self):
        assert BackoffPolicy(max_attempts=1).schedule() == []

    @pytest.mark.parametrize("kwargs", [{"base": 0}, {"base": -1}, {"max_attempts": 0}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)
