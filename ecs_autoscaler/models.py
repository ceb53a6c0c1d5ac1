"""
Desired and live state of an ECS service's auto-scaling configuration.

A policy's configuration is a tagged variant: either StepScalingConfig or
TargetTrackingConfig. The policy type is derived from the variant.
Optional numeric fields use None for "unset", which is never the same as 0.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any, Union

logger = logging.getLogger(__name__)


class PolicyType(Enum):
    """Application Auto Scaling policy types"""
    STEP_SCALING = "StepScaling"
    TARGET_TRACKING = "TargetTrackingScaling"


class ScaleDirection(Enum):
    """Explicit scale direction of a custom policy"""
    IN = "in"
    OUT = "out"
    UNSET = ""


class ComparisonOperator(Enum):
    """CloudWatch comparison operators used by the generated alarms"""
    GREATER_OR_EQUAL = "GreaterThanOrEqualToThreshold"
    LESS_OR_EQUAL = "LessThanOrEqualToThreshold"


@dataclass
class ScalableTarget:
    """Registered capacity bounds of a service"""
    resource_id: str
    min_capacity: int
    max_capacity: int


@dataclass
class StepAdjustment:
    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None
    adjustment: int = 0

    def to_api(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"ScalingAdjustment": self.adjustment}
        if self.lower_bound is not None:
            item["MetricIntervalLowerBound"] = self.lower_bound
        if self.upper_bound is not None:
            item["MetricIntervalUpperBound"] = self.upper_bound
        return item

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "StepAdjustment":
        return cls(
            lower_bound=item.get("MetricIntervalLowerBound"),
            upper_bound=item.get("MetricIntervalUpperBound"),
            adjustment=item["ScalingAdjustment"],
        )


@dataclass
class StepScalingConfig:
    """Payload of a StepScaling policy"""
    adjustment_type: str = "ChangeInCapacity"
    cooldown: Optional[int] = None
    aggregation: str = "Average"
    step_adjustments: List[StepAdjustment] = field(default_factory=list)

    policy_type = PolicyType.STEP_SCALING

    def to_api(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "AdjustmentType": self.adjustment_type,
            "MetricAggregationType": self.aggregation,
            "StepAdjustments": [adj.to_api() for adj in self.step_adjustments],
        }
        if self.cooldown is not None:
            config["Cooldown"] = self.cooldown
        return config

    @classmethod
    def from_api(cls, config: Dict[str, Any]) -> "StepScalingConfig":
        return cls(
            adjustment_type=config.get("AdjustmentType", ""),
            cooldown=config.get("Cooldown"),
            aggregation=config.get("MetricAggregationType", ""),
            step_adjustments=[
                StepAdjustment.from_api(item) for item in config.get("StepAdjustments", [])
            ],
        )


@dataclass
class CustomMetricSpec:
    namespace: str
    metric_name: str
    statistic: str
    dimensions: Dict[str, str] = field(default_factory=dict)

    def to_api(self) -> Dict[str, Any]:
        return {
            "MetricName": self.metric_name,
            "Namespace": self.namespace,
            "Dimensions": [{"Name": k, "Value": v} for k, v in self.dimensions.items()],
            "Statistic": self.statistic,
        }

    @classmethod
    def from_api(cls, spec: Dict[str, Any]) -> "CustomMetricSpec":
        """Single-metric form only; a metric-math spec reads back empty"""
        if "Metrics" in spec:
            logger.debug("metric-math customized metric is not reconciled, treating it as different")
        return cls(
            namespace=spec.get("Namespace", ""),
            metric_name=spec.get("MetricName", ""),
            statistic=spec.get("Statistic", ""),
            dimensions={d["Name"]: d["Value"] for d in spec.get("Dimensions", [])},
        )


@dataclass
class TargetTrackingConfig:
    """Payload of a TargetTrackingScaling policy"""
    target_value: float
    predefined_metric: Optional[str] = None
    custom_metric: Optional[CustomMetricSpec] = None
    scale_in_cooldown: Optional[int] = None
    scale_out_cooldown: Optional[int] = None

    policy_type = PolicyType.TARGET_TRACKING

    def to_api(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {"TargetValue": self.target_value}
        if self.predefined_metric is not None:
            config["PredefinedMetricSpecification"] = {
                "PredefinedMetricType": self.predefined_metric
            }
        if self.custom_metric is not None:
            config["CustomizedMetricSpecification"] = self.custom_metric.to_api()
        if self.scale_in_cooldown is not None:
            config["ScaleInCooldown"] = self.scale_in_cooldown
        if self.scale_out_cooldown is not None:
            config["ScaleOutCooldown"] = self.scale_out_cooldown
        return config

    @classmethod
    def from_api(cls, config: Dict[str, Any]) -> "TargetTrackingConfig":
        predefined = config.get("PredefinedMetricSpecification")
        custom = config.get("CustomizedMetricSpecification")
        return cls(
            target_value=config["TargetValue"],
            predefined_metric=predefined["PredefinedMetricType"] if predefined else None,
            custom_metric=CustomMetricSpec.from_api(custom) if custom else None,
            scale_in_cooldown=config.get("ScaleInCooldown"),
            scale_out_cooldown=config.get("ScaleOutCooldown"),
        )


PolicyConfig = Union[StepScalingConfig, TargetTrackingConfig]


@dataclass
class PolicyDef:
    """A scaling policy as the user declared it"""
    name: str
    config: PolicyConfig
    metric_name: str = ""
    metric_namespace: str = ""
    scale_direction: ScaleDirection = ScaleDirection.UNSET

    @property
    def policy_type(self) -> PolicyType:
        return self.config.policy_type

    @property
    def wants_alarm(self) -> bool:
        """StepScaling policies naming both metric and namespace get an alarm"""
        return (
            self.policy_type is PolicyType.STEP_SCALING
            and bool(self.metric_name)
            and bool(self.metric_namespace)
        )


@dataclass
class LivePolicy:
    """A scaling policy as Application Auto Scaling reports it"""
    name: str
    arn: str
    policy_type: Optional[PolicyType]
    config: Optional[PolicyConfig] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "LivePolicy":
        try:
            policy_type = PolicyType(item.get("PolicyType"))
        except ValueError:
            policy_type = None

        config: Optional[PolicyConfig] = None
        if policy_type is PolicyType.STEP_SCALING and item.get("StepScalingPolicyConfiguration"):
            config = StepScalingConfig.from_api(item["StepScalingPolicyConfiguration"])
        elif (policy_type is PolicyType.TARGET_TRACKING
              and item.get("TargetTrackingScalingPolicyConfiguration")):
            config = TargetTrackingConfig.from_api(item["TargetTrackingScalingPolicyConfiguration"])

        return cls(
            name=item["PolicyName"],
            arn=item.get("PolicyARN", ""),
            policy_type=policy_type,
            config=config,
        )


@dataclass
class AlarmSpec:
    """A CloudWatch metric alarm wired to a scaling policy"""
    name: str
    description: str
    namespace: str
    metric_name: str
    period: int
    threshold: float
    comparison_operator: ComparisonOperator
    dimensions: Dict[str, str] = field(default_factory=dict)
    actions: List[str] = field(default_factory=list)
    statistic: str = "Average"
    evaluation_periods: int = 2

    def to_api(self) -> Dict[str, Any]:
        return {
            "AlarmName": self.name,
            "AlarmDescription": self.description,
            "Namespace": self.namespace,
            "MetricName": self.metric_name,
            "Statistic": self.statistic,
            "Period": self.period,
            "EvaluationPeriods": self.evaluation_periods,
            "Threshold": self.threshold,
            "ComparisonOperator": self.comparison_operator.value,
            "Dimensions": [{"Name": k, "Value": v} for k, v in self.dimensions.items()],
            "AlarmActions": list(self.actions),
        }
