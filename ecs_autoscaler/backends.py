"""
Control-plane backends for ecs-autoscaler.

The reconciler only sees the two abstract capabilities below. The boto3
implementations translate them to Application Auto Scaling and CloudWatch
calls and turn every botocore failure into a ControlPlaneError.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple, Type

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .exceptions import ConfigurationError, ControlPlaneError, DescribeError, MutationError
from .models import (
    AlarmSpec,
    LivePolicy,
    PolicyDef,
    ScalableTarget,
    StepScalingConfig,
    TargetTrackingConfig,
)

logger = logging.getLogger(__name__)

SERVICE_NAMESPACE = "ecs"
SCALABLE_DIMENSION = "ecs:service:DesiredCount"


class ScalingBackend(ABC):
    """Read/write access to scalable targets and scaling policies"""

    @abstractmethod
    def describe_target(self, resource_id: str) -> Optional[ScalableTarget]:
        """Registered target of a resource, or None"""
        pass

    @abstractmethod
    def describe_policies(self, resource_id: str, names: Sequence[str]) -> List[LivePolicy]:
        """Policies of a resource, filtered by name"""
        pass

    @abstractmethod
    def register_target(self, resource_id: str, min_capacity: int, max_capacity: int) -> None:
        """Register or update a scalable target"""
        pass

    @abstractmethod
    def put_policy(self, resource_id: str, policy: PolicyDef) -> str:
        """Create or update a scaling policy, returns its ARN"""
        pass

    @abstractmethod
    def delete_policy(self, resource_id: str, name: str) -> None:
        pass

    @abstractmethod
    def deregister_target(self, resource_id: str) -> None:
        pass


class AlarmBackend(ABC):
    """Read/write access to metric alarms"""

    @abstractmethod
    def describe_alarms(self, names: Sequence[str]) -> List[str]:
        """Names of the given alarms that exist"""
        pass

    @abstractmethod
    def put_alarm(self, alarm: AlarmSpec) -> None:
        pass

    @abstractmethod
    def delete_alarms(self, names: Sequence[str]) -> None:
        pass


@contextmanager
def _api_call(operation: str, resource: str, error_cls: Type[ControlPlaneError]) -> Iterator[None]:
    """Translate botocore failures of one call"""
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        raise error_cls(
            f"{operation} failed for {resource}: {e}",
            operation=operation,
            resource=resource,
        ) from e


class ApplicationAutoScalingBackend(ScalingBackend):
    """Application Auto Scaling for ECS services"""

    def __init__(self, client=None, region: Optional[str] = None):
        self.client = client or boto3.client("application-autoscaling", region_name=region)

    def describe_target(self, resource_id: str) -> Optional[ScalableTarget]:
        with _api_call("DescribeScalableTargets", resource_id, DescribeError):
            response = self.client.describe_scalable_targets(
                ServiceNamespace=SERVICE_NAMESPACE,
                ScalableDimension=SCALABLE_DIMENSION,
                ResourceIds=[resource_id],
            )

        targets = response.get("ScalableTargets", [])
        if not targets:
            return None
        target = targets[0]
        return ScalableTarget(
            resource_id=target.get("ResourceId", resource_id),
            min_capacity=target["MinCapacity"],
            max_capacity=target["MaxCapacity"],
        )

    def describe_policies(self, resource_id: str, names: Sequence[str]) -> List[LivePolicy]:
        with _api_call("DescribeScalingPolicies", resource_id, DescribeError):
            response = self.client.describe_scaling_policies(
                ServiceNamespace=SERVICE_NAMESPACE,
                ScalableDimension=SCALABLE_DIMENSION,
                ResourceId=resource_id,
                PolicyNames=list(names),
            )
        return [LivePolicy.from_api(item) for item in response.get("ScalingPolicies", [])]

    def register_target(self, resource_id: str, min_capacity: int, max_capacity: int) -> None:
        with _api_call("RegisterScalableTarget", resource_id, MutationError):
            self.client.register_scalable_target(
                ServiceNamespace=SERVICE_NAMESPACE,
                ScalableDimension=SCALABLE_DIMENSION,
                ResourceId=resource_id,
                MinCapacity=min_capacity,
                MaxCapacity=max_capacity,
            )

    def put_policy(self, resource_id: str, policy: PolicyDef) -> str:
        params = {
            "ServiceNamespace": SERVICE_NAMESPACE,
            "ScalableDimension": SCALABLE_DIMENSION,
            "ResourceId": resource_id,
            "PolicyName": policy.name,
            "PolicyType": policy.policy_type.value,
        }
        if isinstance(policy.config, StepScalingConfig):
            params["StepScalingPolicyConfiguration"] = policy.config.to_api()
        elif isinstance(policy.config, TargetTrackingConfig):
            params["TargetTrackingScalingPolicyConfiguration"] = policy.config.to_api()
        else:
            raise TypeError(f"unsupported policy configuration: {type(policy.config).__name__}")

        with _api_call("PutScalingPolicy", policy.name, MutationError):
            response = self.client.put_scaling_policy(**params)
        return response.get("PolicyARN", "")

    def delete_policy(self, resource_id: str, name: str) -> None:
        with _api_call("DeleteScalingPolicy", name, MutationError):
            self.client.delete_scaling_policy(
                ServiceNamespace=SERVICE_NAMESPACE,
                ScalableDimension=SCALABLE_DIMENSION,
                ResourceId=resource_id,
                PolicyName=name,
            )

    def deregister_target(self, resource_id: str) -> None:
        with _api_call("DeregisterScalableTarget", resource_id, MutationError):
            self.client.deregister_scalable_target(
                ServiceNamespace=SERVICE_NAMESPACE,
                ScalableDimension=SCALABLE_DIMENSION,
                ResourceId=resource_id,
            )


class CloudWatchAlarmBackend(AlarmBackend):
    """CloudWatch metric alarms"""

    def __init__(self, client=None, region: Optional[str] = None):
        self.client = client or boto3.client("cloudwatch", region_name=region)

    def describe_alarms(self, names: Sequence[str]) -> List[str]:
        with _api_call("DescribeAlarms", ",".join(names), DescribeError):
            response = self.client.describe_alarms(AlarmNames=list(names))
        return [alarm["AlarmName"] for alarm in response.get("MetricAlarms", [])]

    def put_alarm(self, alarm: AlarmSpec) -> None:
        with _api_call("PutMetricAlarm", alarm.name, MutationError):
            self.client.put_metric_alarm(**alarm.to_api())

    def delete_alarms(self, names: Sequence[str]) -> None:
        with _api_call("DeleteAlarms", ",".join(names), MutationError):
            self.client.delete_alarms(AlarmNames=list(names))


def create_backends(settings: Settings) -> Tuple[ScalingBackend, AlarmBackend]:
    """
    Build both backends from one boto3 session.

    Static credentials are used only when both key id and secret are set,
    otherwise boto3's default chain (env, profile, IAM role) applies.
    """
    region = settings.region or None
    try:
        if settings.has_static_credentials:
            logger.info("using static AWS credentials")
            session = boto3.Session(
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=region,
            )
        else:
            session = boto3.Session(region_name=region)

        return (
            ApplicationAutoScalingBackend(session.client("application-autoscaling")),
            CloudWatchAlarmBackend(session.client("cloudwatch")),
        )
    except BotoCoreError as e:
        raise ConfigurationError(f"loading AWS config: {e}", parameter="aws-region",
                                 value=settings.region) from e
