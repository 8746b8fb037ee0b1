"""Tests for activity proxy grouping."""

from twc.compiler.activity_proxies import (
    ProxyRetry,
    group_activities,
    proxy_assignments,
    retry_from_policy,
)
from twc.ir.graph_schema import RetryPolicy, RetryStrategy
from twc.ir.node_configs import ActivityConfig


def _activity(node_id, timeout=None, retry=None):
    return ActivityConfig(node_id=node_id, activity_name=node_id, timeout=timeout, retry_policy=retry)


class TestRetryTranslation:
    def test_missing_policy_uses_defaults(self):
        assert retry_from_policy(None) == ProxyRetry()

    def test_bare_none_strategy_disables_retries(self):
        assert retry_from_policy(RetryPolicy()).maximum_attempts == 1

    def test_keep_trying_is_unlimited(self):
        retry = retry_from_policy(RetryPolicy(strategy=RetryStrategy.KEEP_TRYING, max_attempts=9))

        assert retry.maximum_attempts == 0

    def test_explicit_fields_are_kept(self):
        retry = retry_from_policy(
            RetryPolicy(
                strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
                max_attempts=5,
                initial_interval="2s",
                backoff_coefficient=3,
            )
        )

        assert retry.maximum_attempts == 5
        assert retry.initial_interval == "2s"
        assert retry.maximum_interval == "1m"
        assert retry.backoff_coefficient == 3


class TestGrouping:
    def test_no_activities_yields_one_default_group(self):
        groups = group_activities([], "1m")

        assert [(group.name, group.timeout, group.node_ids) for group in groups] == [("acts", "1m", [])]

    def test_groups_by_effective_timeout_in_first_seen_order(self):
        groups = group_activities(
            [_activity("a", "30s"), _activity("b"), _activity("c", "30s"), _activity("d", "5m")],
            "1m",
        )

        assert [(group.name, group.timeout, group.node_ids) for group in groups] == [
            ("acts", "30s", ["a", "c"]),
            ("acts_1", "1m", ["b"]),
            ("acts_2", "5m", ["d"]),
        ]

    def test_explicit_default_timeout_joins_default_group(self):
        groups = group_activities([_activity("a"), _activity("b", "1m")], "1m")

        assert len(groups) == 1
        assert groups[0].node_ids == ["a", "b"]

    def test_first_member_decides_retry(self):
        fallback = RetryPolicy(strategy=RetryStrategy.FAIL_AFTER_X, max_attempts=2)
        groups = group_activities(
            [
                _activity("a", "10s"),
                _activity("b", "10s", RetryPolicy(strategy=RetryStrategy.KEEP_TRYING)),
            ],
            "1m",
            fallback,
        )

        assert groups[0].retry.maximum_attempts == 2

    def test_assignments(self):
        groups = group_activities([_activity("a", "30s"), _activity("b")], "1m")

        assert proxy_assignments(groups) == {"a": "acts", "b": "acts_1"}
