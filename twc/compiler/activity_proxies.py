"""
Activity proxy grouping by effective timeout.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from twc.compiler.lowering import DEFAULT_PROXY
from twc.ir.graph_schema import RetryPolicy, RetryStrategy
from twc.ir.node_configs import ActivityConfig

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_INTERVAL = "1s"
DEFAULT_MAX_INTERVAL = "1m"
DEFAULT_BACKOFF_COEFFICIENT = 2.0


class ProxyRetry(BaseModel):
    maximum_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_interval: str = DEFAULT_INITIAL_INTERVAL
    maximum_interval: str = DEFAULT_MAX_INTERVAL
    backoff_coefficient: float = DEFAULT_BACKOFF_COEFFICIENT


class ProxyGroup(BaseModel):
    name: str
    timeout: str
    retry: ProxyRetry = Field(default_factory=ProxyRetry)
    node_ids: List[str] = Field(default_factory=list)


def proxy_name(index: int) -> str:
    return DEFAULT_PROXY if index == 0 else f"{DEFAULT_PROXY}_{index}"


def retry_from_policy(policy: Optional[RetryPolicy]) -> ProxyRetry:
    if policy is None:
        return ProxyRetry()
    explicit_fields = (
        policy.max_attempts,
        policy.initial_interval,
        policy.max_interval,
        policy.backoff_coefficient,
    )
    if policy.strategy == RetryStrategy.NONE and all(value is None for value in explicit_fields):
        return ProxyRetry(maximum_attempts=1)

    attempts = policy.max_attempts if policy.max_attempts is not None else DEFAULT_MAX_ATTEMPTS
    if policy.strategy == RetryStrategy.KEEP_TRYING:
        attempts = 0
    return ProxyRetry(
        maximum_attempts=attempts,
        initial_interval=policy.initial_interval or DEFAULT_INITIAL_INTERVAL,
        maximum_interval=policy.max_interval or DEFAULT_MAX_INTERVAL,
        backoff_coefficient=(
            policy.backoff_coefficient
            if policy.backoff_coefficient is not None
            else DEFAULT_BACKOFF_COEFFICIENT
        ),
    )


def group_activities(
    activities: Sequence[ActivityConfig],
    default_timeout: str,
    fallback_retry: Optional[RetryPolicy] = None,
) -> List[ProxyGroup]:
    """
    Partition activities by effective timeout, in first-seen order.

    The first member of each group decides its retry policy; groups whose
    first member declares none use ``fallback_retry``. With no activities a
    single default group is still returned so the proxy handle always exists.
    """

    order: List[str] = []
    members: Dict[str, List[ActivityConfig]] = {}
    for activity in activities:
        timeout = activity.timeout or default_timeout
        if timeout not in members:
            order.append(timeout)
            members[timeout] = []
        members[timeout].append(activity)

    if not order:
        return [ProxyGroup(name=proxy_name(0), timeout=default_timeout, retry=retry_from_policy(fallback_retry))]

    groups: List[ProxyGroup] = []
    for index, timeout in enumerate(order):
        first = members[timeout][0]
        groups.append(
            ProxyGroup(
                name=proxy_name(index),
                timeout=timeout,
                retry=retry_from_policy(first.retry_policy or fallback_retry),
                node_ids=[activity.node_id for activity in members[timeout]],
            )
        )
    return groups


def proxy_assignments(groups: Sequence[ProxyGroup]) -> Dict[str, str]:
    return {node_id: group.name for group in groups for node_id in group.node_ids}
