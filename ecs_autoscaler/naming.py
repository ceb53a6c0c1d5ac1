"""
Deterministic names of everything ecs-autoscaler creates.

The names are part of the contract with earlier runs: teardown finds
resources only by recomputing them.
"""

from typing import Iterable, List

DEFAULT_ALARM_SUFFIXES = ("cpu-high", "cpu-low", "mem-high", "mem-low")


def resource_id(cluster: str, service: str) -> str:
    """Application Auto Scaling resource id of an ECS service"""
    return f"service/{cluster}/{service}"


def scale_out_policy_name(cluster: str, service: str) -> str:
    return f"{cluster}-{service}-scale-out"


def scale_in_policy_name(cluster: str, service: str) -> str:
    return f"{cluster}-{service}-scale-in"


def default_policy_names(cluster: str, service: str) -> List[str]:
    return [scale_out_policy_name(cluster, service), scale_in_policy_name(cluster, service)]


def alarm_name(cluster: str, service: str, suffix: str) -> str:
    """Alarm name for a default suffix or a custom policy name"""
    return f"{cluster}-{service}-{suffix}"


def default_alarm_names(cluster: str, service: str) -> List[str]:
    return [alarm_name(cluster, service, suffix) for suffix in DEFAULT_ALARM_SUFFIXES]


def deduplicate(names: Iterable[str]) -> List[str]:
    """Drop repeated names, keeping first-seen order"""
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result
