"""
Pytest configuration and fixtures for ecs-autoscaler tests
"""
import copy
import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from ecs_autoscaler.backends import AlarmBackend, ScalingBackend
from ecs_autoscaler.config import Settings
from ecs_autoscaler.exceptions import DescribeError, MutationError
from ecs_autoscaler.models import AlarmSpec, LivePolicy, PolicyDef, ScalableTarget
from ecs_autoscaler.reconciler import Reconciler

WRITE_OPERATIONS = {
    "register_target", "put_policy", "delete_policy", "deregister_target",
    "put_alarm", "delete_alarms",
}


class _Recorder:
    """Records calls and raises configured failures"""

    def __init__(self):
        self.calls: List[tuple] = []
        self._failures: Dict[Tuple[str, Optional[str]], Exception] = {}

    def fail_on(self, operation: str, name: Optional[str] = None, error: Optional[Exception] = None):
        """Make `operation` (optionally only for `name`) raise"""
        if error is None:
            error_cls = MutationError if operation in WRITE_OPERATIONS else DescribeError
            error = error_cls(f"{operation} failed", operation=operation, resource=name)
        self._failures[(operation, name)] = error

    def _call(self, operation: str, name: Optional[str], *args):
        self.calls.append((operation,) + args)
        error = self._failures.get((operation, name)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    @property
    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in WRITE_OPERATIONS]

    def operations(self) -> List[str]:
        return [c[0] for c in self.calls]


class FakeScalingBackend(_Recorder, ScalingBackend):
    """In-memory Application Auto Scaling"""

    def __init__(self):
        super().__init__()
        self.target: Optional[ScalableTarget] = None
        self.policies: Dict[str, LivePolicy] = {}

    def add_policy(self, policy: PolicyDef) -> LivePolicy:
        live = LivePolicy(
            name=policy.name,
            arn=f"arn:aws:autoscaling:us-east-1:123456789012:scalingPolicy:{policy.name}",
            policy_type=policy.policy_type,
            config=copy.deepcopy(policy.config),
        )
        self.policies[policy.name] = live
        return live

    def describe_target(self, resource_id: str) -> Optional[ScalableTarget]:
        self._call("describe_target", resource_id, resource_id)
        return copy.deepcopy(self.target)

    def describe_policies(self, resource_id: str, names: Sequence[str]) -> List[LivePolicy]:
        self._call("describe_policies", ",".join(names), resource_id, tuple(names))
        return [copy.deepcopy(self.policies[n]) for n in names if n in self.policies]

    def register_target(self, resource_id: str, min_capacity: int, max_capacity: int) -> None:
        self._call("register_target", resource_id, resource_id, min_capacity, max_capacity)
        self.target = ScalableTarget(resource_id, min_capacity, max_capacity)

    def put_policy(self, resource_id: str, policy: PolicyDef) -> str:
        self._call("put_policy", policy.name, resource_id, policy.name)
        return self.add_policy(policy).arn

    def delete_policy(self, resource_id: str, name: str) -> None:
        self._call("delete_policy", name, resource_id, name)
        self.policies.pop(name, None)

    def deregister_target(self, resource_id: str) -> None:
        self._call("deregister_target", resource_id, resource_id)
        self.target = None


class FakeAlarmBackend(_Recorder, AlarmBackend):
    """In-memory CloudWatch alarms"""

    def __init__(self):
        super().__init__()
        self.alarms: Dict[str, AlarmSpec] = {}

    def describe_alarms(self, names: Sequence[str]) -> List[str]:
        self._call("describe_alarms", ",".join(names), tuple(names))
        return [n for n in names if n in self.alarms]

    def put_alarm(self, alarm: AlarmSpec) -> None:
        self._call("put_alarm", alarm.name, alarm.name)
        self.alarms[alarm.name] = copy.deepcopy(alarm)

    def delete_alarms(self, names: Sequence[str]) -> None:
        self._call("delete_alarms", ",".join(names), tuple(names))
        for name in names:
            self.alarms.pop(name, None)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """configure_logging() installs handlers on a process-wide logger"""
    yield
    package_logger = logging.getLogger("ecs_autoscaler")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def scaling():
    return FakeScalingBackend()


@pytest.fixture
def alarms():
    return FakeAlarmBackend()


@pytest.fixture
def settings():
    """All-defaults settings for cluster 'cluster', service 'svc'"""
    return Settings(cluster="cluster", service="svc", region="us-east-1")


@pytest.fixture
def make_reconciler(scaling, alarms):
    def _make(settings: Settings) -> Reconciler:
        return Reconciler(scaling, alarms, settings)
    return _make


@pytest.fixture
def step_policy_json():
    """A custom scale-in step policy that gets an alarm"""
    return json.dumps([{
        "policy_name": "p1",
        "policy_type": "StepScaling",
        "metric_name": "CPUUtilization",
        "metric_namespace": "AWS/ECS",
        "scale_direction": "in",
        "step_adjustments": [{"ScalingAdjustment": -1}],
    }])


@pytest.fixture
def mixed_policies_json():
    return json.dumps([
        {
            "policy_name": "cpu-step",
            "policy_type": "StepScaling",
            "adjustment_type": "ChangeInCapacity",
            "cooldown": 120,
            "metric_aggregation_type": "Maximum",
            "metric_name": "CPUUtilization",
            "metric_namespace": "AWS/ECS",
            "scale_direction": "out",
            "step_adjustments": [{"MetricIntervalLowerBound": 0, "ScalingAdjustment": 2}],
        },
        {
            "policy_name": "mem-target",
            "policy_type": "TargetTrackingScaling",
            "target_tracking_configuration": {
                "target_value": 60.0,
                "predefined_metric_specification": "ECSServiceAverageMemoryUtilization",
                "scale_in_cooldown": 200,
                "scale_out_cooldown": 200,
            },
        },
    ])
