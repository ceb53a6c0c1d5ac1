"""
Read-and-compare checks against live state.

Each check issues exactly one read through a backend. Read failures are
not caught here: the caller never gets a verdict without a successful read.
"""
from typing import Optional, TypeVar

from .backends import AlarmBackend, ScalingBackend
from .models import (
    CustomMetricSpec,
    LivePolicy,
    PolicyDef,
    StepScalingConfig,
    TargetTrackingConfig,
)

T = TypeVar("T")


def optional_equal(live: Optional[T], desired: Optional[T]) -> bool:
    """Both unset, or both set to the same value"""
    if live is None or desired is None:
        return live is None and desired is None
    return live == desired


def target_matches(backend: ScalingBackend, resource_id: str,
                   min_capacity: int, max_capacity: int) -> bool:
    target = backend.describe_target(resource_id)
    if target is None:
        return False
    return target.min_capacity == min_capacity and target.max_capacity == max_capacity


def target_exists(backend: ScalingBackend, resource_id: str) -> bool:
    return backend.describe_target(resource_id) is not None


def policy_exists(backend: ScalingBackend, resource_id: str, name: str) -> bool:
    return len(backend.describe_policies(resource_id, [name])) > 0


def alarm_exists(backend: AlarmBackend, name: str) -> bool:
    return name in backend.describe_alarms([name])


def step_scaling_equal(live: StepScalingConfig, desired: StepScalingConfig) -> bool:
    """
    Field-by-field equality of two step configurations.

    Step adjustments are compared by position: the same steps in another
    order count as a difference.
    """
    if live.adjustment_type != desired.adjustment_type:
        return False
    if live.aggregation != desired.aggregation:
        return False
    if not optional_equal(live.cooldown, desired.cooldown):
        return False
    if len(live.step_adjustments) != len(desired.step_adjustments):
        return False

    for live_step, desired_step in zip(live.step_adjustments, desired.step_adjustments):
        if not optional_equal(live_step.lower_bound, desired_step.lower_bound):
            return False
        if not optional_equal(live_step.upper_bound, desired_step.upper_bound):
            return False
        if live_step.adjustment != desired_step.adjustment:
            return False
    return True


def custom_metric_equal(live: CustomMetricSpec, desired: CustomMetricSpec) -> bool:
    """Desired dimensions must be present in live with equal values; live may have more"""
    if (live.metric_name != desired.metric_name
            or live.namespace != desired.namespace
            or live.statistic != desired.statistic):
        return False
    return all(
        key in live.dimensions and live.dimensions[key] == value
        for key, value in desired.dimensions.items()
    )


def target_tracking_equal(live: TargetTrackingConfig, desired: TargetTrackingConfig) -> bool:
    if live.target_value != desired.target_value:
        return False
    if not optional_equal(live.scale_in_cooldown, desired.scale_in_cooldown):
        return False
    if not optional_equal(live.scale_out_cooldown, desired.scale_out_cooldown):
        return False
    if not optional_equal(live.predefined_metric, desired.predefined_metric):
        return False

    if (live.custom_metric is None) != (desired.custom_metric is None):
        return False
    if live.custom_metric is not None and not custom_metric_equal(live.custom_metric, desired.custom_metric):
        return False
    return True


def live_policy_equal(live: LivePolicy, desired: PolicyDef) -> bool:
    if live.policy_type is not desired.policy_type:
        return False

    if isinstance(desired.config, StepScalingConfig):
        return isinstance(live.config, StepScalingConfig) and step_scaling_equal(live.config, desired.config)
    if isinstance(desired.config, TargetTrackingConfig):
        return (isinstance(live.config, TargetTrackingConfig)
                and target_tracking_equal(live.config, desired.config))
    raise TypeError(f"unsupported policy configuration: {type(desired.config).__name__}")


def policy_matches(backend: ScalingBackend, resource_id: str, desired: PolicyDef) -> bool:
    """The named policy exists and its configuration equals the desired one"""
    policies = backend.describe_policies(resource_id, [desired.name])
    if not policies:
        return False
    return live_policy_equal(policies[0], desired)
