"""
ecs-autoscaler - idempotent ECS service auto-scaling

Registers the scalable target, scaling policies and CloudWatch alarms of an
ECS service, touching only what differs from the desired configuration, and
tears them down again when auto-scaling is disabled.
"""

__version__ = "0.1.0"
__author__ = "ecs-autoscaler Contributors"
__license__ = "MIT"

from ecs_autoscaler.config import Settings, Thresholds, LoggingConfig, configure_logging
from ecs_autoscaler.exceptions import (
    AutoscalerError,
    ConfigurationError,
    PolicyParseError,
    ControlPlaneError,
    DescribeError,
    MutationError,
    ReconcileError,
)
from ecs_autoscaler.models import (
    PolicyDef,
    PolicyType,
    ScaleDirection,
    StepAdjustment,
    StepScalingConfig,
    TargetTrackingConfig,
    CustomMetricSpec,
    AlarmSpec,
)
from ecs_autoscaler.parser import parse_policies, resolve_policy_set
from ecs_autoscaler.backends import (
    ScalingBackend,
    AlarmBackend,
    ApplicationAutoScalingBackend,
    CloudWatchAlarmBackend,
    create_backends,
)
from ecs_autoscaler.reconciler import Reconciler, ReconcileReport

__all__ = [
    # Configuration
    'Settings',
    'Thresholds',
    'LoggingConfig',
    'configure_logging',

    # Errors
    'AutoscalerError',
    'ConfigurationError',
    'PolicyParseError',
    'ControlPlaneError',
    'DescribeError',
    'MutationError',
    'ReconcileError',

    # Desired state
    'PolicyDef',
    'PolicyType',
    'ScaleDirection',
    'StepAdjustment',
    'StepScalingConfig',
    'TargetTrackingConfig',
    'CustomMetricSpec',
    'AlarmSpec',
    'parse_policies',
    'resolve_policy_set',

    # Backends
    'ScalingBackend',
    'AlarmBackend',
    'ApplicationAutoScalingBackend',
    'CloudWatchAlarmBackend',
    'create_backends',

    # Reconciliation
    'Reconciler',
    'ReconcileReport',

    # Version
    '__version__'
]
