"""
Parsing of the declarative policy payloads.

Turns the `scaling-policies` / `default-policies` JSON arrays into validated
PolicyDef values and decides which set of policies a run applies.
"""
import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import Settings
from .exceptions import PolicyParseError
from .models import (
    CustomMetricSpec,
    PolicyDef,
    PolicyType,
    ScaleDirection,
    StepAdjustment,
    StepScalingConfig,
    TargetTrackingConfig,
)
from . import naming

logger = logging.getLogger(__name__)

SCALING_POLICIES = "scaling-policies"
DEFAULT_POLICIES = "default-policies"


class PolicySource(Enum):
    """Where the applied policy set came from"""
    CUSTOM = "scaling-policies"
    DEFAULT = "default-policies"
    BUILTIN = "builtin"


@dataclass
class PolicySet:
    policies: List[PolicyDef]
    source: PolicySource

    @property
    def is_builtin(self) -> bool:
        return self.source is PolicySource.BUILTIN


def _optional_int(entry: Dict[str, Any], key: str, ctx: Dict[str, Any]) -> Optional[int]:
    value = entry.get(key)
    if value is None:
        return None
    if (isinstance(value, bool) or not isinstance(value, (int, float))
            or not math.isfinite(value) or int(value) != value):
        raise PolicyParseError(f"{key} must be an integer, got {value!r}", **ctx)
    return int(value)


def _optional_float(entry: Dict[str, Any], key: str, ctx: Dict[str, Any]) -> Optional[float]:
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise PolicyParseError(f"{key} must be a number, got {value!r}", **ctx)
    return float(value)


def _optional_str(entry: Dict[str, Any], key: str, ctx: Dict[str, Any]) -> str:
    value = entry.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PolicyParseError(f"{key} must be a string, got {value!r}", **ctx)
    return value


def _parse_step_adjustments(raw: Any, ctx: Dict[str, Any]) -> List[StepAdjustment]:
    if not isinstance(raw, list) or not raw:
        raise PolicyParseError("StepScaling policy needs at least one step adjustment", **ctx)

    steps = []
    for item in raw:
        if not isinstance(item, dict):
            raise PolicyParseError(f"step adjustment must be an object, got {item!r}", **ctx)
        adjustment = _optional_int(item, "ScalingAdjustment", ctx)
        if adjustment is None:
            raise PolicyParseError("step adjustment is missing ScalingAdjustment", **ctx)
        steps.append(StepAdjustment(
            lower_bound=_optional_float(item, "MetricIntervalLowerBound", ctx),
            upper_bound=_optional_float(item, "MetricIntervalUpperBound", ctx),
            adjustment=adjustment,
        ))
    return steps


def _parse_step_scaling(entry: Dict[str, Any], ctx: Dict[str, Any]) -> StepScalingConfig:
    return StepScalingConfig(
        adjustment_type=_optional_str(entry, "adjustment_type", ctx) or "ChangeInCapacity",
        cooldown=_optional_int(entry, "cooldown", ctx),
        aggregation=_optional_str(entry, "metric_aggregation_type", ctx) or "Average",
        step_adjustments=_parse_step_adjustments(entry.get("step_adjustments"), ctx),
    )


def _parse_custom_metric(raw: Any, ctx: Dict[str, Any]) -> CustomMetricSpec:
    if not isinstance(raw, dict):
        raise PolicyParseError("custom_metric_specification must be an object", **ctx)

    dimensions = raw.get("dimensions") or {}
    if not isinstance(dimensions, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in dimensions.items()):
        raise PolicyParseError("dimensions must map strings to strings", **ctx)

    return CustomMetricSpec(
        namespace=_optional_str(raw, "namespace", ctx),
        metric_name=_optional_str(raw, "metric_name", ctx),
        statistic=_optional_str(raw, "statistic", ctx),
        dimensions=dict(dimensions),
    )


def _parse_target_tracking(entry: Dict[str, Any], ctx: Dict[str, Any]) -> TargetTrackingConfig:
    raw = entry.get("target_tracking_configuration")
    if not isinstance(raw, dict):
        raise PolicyParseError("TargetTrackingScaling policy needs target_tracking_configuration", **ctx)

    target_value = _optional_float(raw, "target_value", ctx)
    if target_value is None:
        raise PolicyParseError("target_tracking_configuration is missing target_value", **ctx)

    predefined = _optional_str(raw, "predefined_metric_specification", ctx) or None
    custom_raw = raw.get("custom_metric_specification")
    if (predefined is None) == (custom_raw is None):
        raise PolicyParseError(
            "TargetTrackingScaling policy needs exactly one of "
            "predefined_metric_specification and custom_metric_specification",
            **ctx
        )

    return TargetTrackingConfig(
        target_value=target_value,
        predefined_metric=predefined,
        custom_metric=_parse_custom_metric(custom_raw, ctx) if custom_raw is not None else None,
        scale_in_cooldown=_optional_int(raw, "scale_in_cooldown", ctx),
        scale_out_cooldown=_optional_int(raw, "scale_out_cooldown", ctx),
    )


def parse_policy(entry: Any, source: str) -> PolicyDef:
    """Validate one entry of a policy payload"""
    if not isinstance(entry, dict):
        raise PolicyParseError(f"policy must be an object, got {entry!r}", source=source)

    name = entry.get("policy_name")
    if not isinstance(name, str) or not name:
        raise PolicyParseError("policy_name is required", source=source)
    ctx = {"source": source, "policy_name": name}

    try:
        policy_type = PolicyType(entry.get("policy_type"))
    except ValueError:
        raise PolicyParseError(f"unknown policy_type {entry.get('policy_type')!r}", **ctx) from None

    if policy_type is PolicyType.STEP_SCALING:
        config = _parse_step_scaling(entry, ctx)
    else:
        config = _parse_target_tracking(entry, ctx)

    try:
        direction = ScaleDirection(_optional_str(entry, "scale_direction", ctx))
    except ValueError:
        raise PolicyParseError(
            f"scale_direction must be 'in' or 'out', got {entry.get('scale_direction')!r}", **ctx
        ) from None

    return PolicyDef(
        name=name,
        config=config,
        metric_name=_optional_str(entry, "metric_name", ctx),
        metric_namespace=_optional_str(entry, "metric_namespace", ctx),
        scale_direction=direction,
    )


def parse_policies(raw: str, source: str = SCALING_POLICIES) -> List[PolicyDef]:
    """
    Parse a JSON array of policy definitions.

    Raises PolicyParseError on the first problem; nothing is returned for a
    payload that is only partly valid.
    """
    try:
        entries = json.loads(raw)
    except ValueError as e:
        raise PolicyParseError(f"invalid {source} JSON: {e}", source=source) from e

    if not isinstance(entries, list):
        raise PolicyParseError(f"{source} must be a JSON array", source=source)

    return [parse_policy(entry, source) for entry in entries]


def declared_policies(settings: Settings) -> List[PolicyDef]:
    """
    Policies the user declared; custom payload wins outright over defaults.

    An empty list means nothing was declared.
    """
    if settings.scaling_policies.strip():
        logger.info("parsing custom scaling policies")
        return parse_policies(settings.scaling_policies, SCALING_POLICIES)
    if settings.default_policies.strip():
        logger.info("parsing default scaling policies")
        return parse_policies(settings.default_policies, DEFAULT_POLICIES)
    return []


def builtin_policies(settings: Settings) -> List[PolicyDef]:
    """The two CPU step-scaling policies used when nothing is declared"""
    result = []
    for name, adjustment, cooldown in (
            (naming.scale_out_policy_name(settings.cluster, settings.service), 1, settings.scale_out_cooldown),
            (naming.scale_in_policy_name(settings.cluster, settings.service), -1, settings.scale_in_cooldown),
    ):
        result.append(PolicyDef(
            name=name,
            config=StepScalingConfig(
                adjustment_type="ChangeInCapacity",
                cooldown=cooldown,
                aggregation="Maximum",
                step_adjustments=[StepAdjustment(lower_bound=0.0, adjustment=adjustment)],
            ),
        ))
    return result


def resolve_policy_set(settings: Settings) -> PolicySet:
    """Pick the policy set a run applies"""
    policies = declared_policies(settings)
    if not policies:
        return PolicySet(builtin_policies(settings), PolicySource.BUILTIN)

    if settings.scaling_policies.strip():
        return PolicySet(policies, PolicySource.CUSTOM)
    return PolicySet(policies, PolicySource.DEFAULT)
