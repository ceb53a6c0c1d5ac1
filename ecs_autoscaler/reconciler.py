"""
Reconciliation of an ECS service's auto-scaling configuration.

One Reconciler instance drives one run. Every resource is compared with
its desired state first and at most one write is issued for it. Calls are
strictly sequential: target, then policies, then alarms (or, on teardown,
target check, alarms, policies, deregistration).
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from . import comparators, naming
from .backends import AlarmBackend, ScalingBackend
from .config import Settings
from .exceptions import DescribeError, ReconcileError
from .models import AlarmSpec, ComparisonOperator, PolicyDef, ScaleDirection
from .parser import declared_policies, resolve_policy_set

ECS_NAMESPACE = "AWS/ECS"


class ActionKind(Enum):
    REGISTER = "register"
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"
    DELETE = "delete"
    DEREGISTER = "deregister"
    SKIPPED = "skipped"


@dataclass
class Action:
    kind: ActionKind
    resource_type: str  # target, policy, alarm
    name: str


@dataclass
class ReconcileReport:
    """What a run did, in call order"""
    resource_id: str
    enabled: bool
    actions: List[Action] = field(default_factory=list)

    def record(self, kind: ActionKind, resource_type: str, name: str):
        self.actions.append(Action(kind, resource_type, name))

    @property
    def changes(self) -> List[Action]:
        return [a for a in self.actions if a.kind not in (ActionKind.UNCHANGED, ActionKind.SKIPPED)]

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def summary(self) -> str:
        counts = {}
        for action in self.actions:
            counts[action.kind.value] = counts.get(action.kind.value, 0) + 1
        return " ".join(f"{kind}={count}" for kind, count in sorted(counts.items())) or "no-op"


def legacy_direction(policy_name: str) -> ScaleDirection:
    """Direction guessed from the policy name, for policies without scale_direction"""
    return ScaleDirection.IN if "in" in policy_name.lower() else ScaleDirection.OUT


class Reconciler:
    """Converges live auto-scaling state of one service to the settings"""

    def __init__(self, scaling: ScalingBackend, alarms: AlarmBackend, settings: Settings,
                 logger: Optional[logging.Logger] = None):
        self.scaling = scaling
        self.alarms = alarms
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)

    @property
    def resource_id(self) -> str:
        return self.settings.resource_id

    def run(self) -> ReconcileReport:
        if self.settings.enabled:
            return self.enable()
        return self.disable()

    # Enable path

    def enable(self) -> ReconcileReport:
        """Register the target, apply policies and create missing alarms"""
        report = ReconcileReport(self.resource_id, enabled=True)

        # Parse before the first call so bad input never leaves partial state
        policy_set = resolve_policy_set(self.settings)

        self._reconcile_target(report)

        for policy in policy_set.policies:
            existed, arn = self._reconcile_policy(policy, report)
            if policy.wants_alarm:
                if existed:
                    self.logger.info(
                        f"scaling policy already exists, leaving existing alarms unchanged "
                        f"policy_name={policy.name}"
                    )
                    report.record(ActionKind.SKIPPED, "alarm", self._custom_alarm_name(policy))
                else:
                    self._create_policy_alarm(policy, arn, report)

        if policy_set.is_builtin:
            self._reconcile_default_alarms(report)
            self.logger.info("default CPU and memory auto-scaling & alarms configured")
        else:
            self.logger.info(f"{policy_set.source.value} applied count={len(policy_set.policies)}")
        return report

    def _reconcile_target(self, report: ReconcileReport):
        s = self.settings
        if comparators.target_matches(self.scaling, self.resource_id, s.min_capacity, s.max_capacity):
            self.logger.info(f"scalable target already exists with desired configuration resource={self.resource_id}")
            report.record(ActionKind.UNCHANGED, "target", self.resource_id)
            return

        self.logger.info(
            f"registering scalable target resource={self.resource_id} "
            f"min={s.min_capacity} max={s.max_capacity}"
        )
        self.scaling.register_target(self.resource_id, s.min_capacity, s.max_capacity)
        report.record(ActionKind.REGISTER, "target", self.resource_id)

    def _reconcile_policy(self, policy: PolicyDef, report: ReconcileReport) -> Tuple[bool, str]:
        """Apply one policy; returns whether it existed before this run and the ARN a write returned"""
        self.logger.info(f"processing policy policy_name={policy.name}")

        if comparators.policy_matches(self.scaling, self.resource_id, policy):
            self.logger.info(f"scaling policy is up to date policy_name={policy.name}")
            report.record(ActionKind.UNCHANGED, "policy", policy.name)
            return True, ""

        existed = comparators.policy_exists(self.scaling, self.resource_id, policy.name)
        if existed:
            self.logger.info(f"updating scaling policy configuration policy_name={policy.name}")
        else:
            self.logger.info(f"creating new scaling policy policy_name={policy.name}")

        arn = self.scaling.put_policy(self.resource_id, policy)
        report.record(ActionKind.UPDATE if existed else ActionKind.CREATE, "policy", policy.name)
        return existed, arn

    def _policy_arn(self, name: str) -> str:
        policies = self.scaling.describe_policies(self.resource_id, [name])
        if not policies or not policies[0].arn:
            raise ReconcileError(f"scaling policy {name} not found while wiring its alarm", resource=name)
        return policies[0].arn

    def _custom_alarm_name(self, policy: PolicyDef) -> str:
        return naming.alarm_name(self.settings.cluster, self.settings.service, policy.name)

    def _alarm_dimensions(self):
        return {"ClusterName": self.settings.cluster, "ServiceName": self.settings.service}

    def select_threshold(self, policy: PolicyDef) -> Tuple[float, ComparisonOperator, int]:
        """
        Threshold, operator and fallback period for a custom policy's alarm.

        Only an explicit "in" selects the scale-in threshold. Without a
        direction the alarm scales out even if the name suggests otherwise.
        """
        s = self.settings
        direction = policy.scale_direction
        if direction is ScaleDirection.UNSET and legacy_direction(policy.name) is ScaleDirection.IN:
            self.logger.warning(
                f"scale_direction not set, using scale-out threshold although the name suggests "
                f"scale-in policy_name={policy.name}"
            )

        if direction is ScaleDirection.IN:
            return s.thresholds.cpu_in, ComparisonOperator.LESS_OR_EQUAL, s.scale_in_cooldown
        return s.thresholds.cpu_out, ComparisonOperator.GREATER_OR_EQUAL, s.scale_out_cooldown

    def _create_policy_alarm(self, policy: PolicyDef, arn: str, report: ReconcileReport):
        self.logger.info(f"creating CloudWatch alarm for new scaling policy policy_name={policy.name}")

        arn = arn or self._policy_arn(policy.name)
        name = self._custom_alarm_name(policy)
        threshold, operator, fallback_period = self.select_threshold(policy)
        period = policy.config.cooldown if policy.config.cooldown is not None else fallback_period

        alarm = AlarmSpec(
            name=name,
            description=f"Scale based on {policy.metric_name}",
            namespace=policy.metric_namespace,
            metric_name=policy.metric_name,
            period=period,
            threshold=threshold,
            comparison_operator=operator,
            dimensions=self._alarm_dimensions(),
            actions=[arn],
        )
        self._create_alarm_if_missing(alarm, report)

    def _create_alarm_if_missing(self, alarm: AlarmSpec, report: ReconcileReport):
        if comparators.alarm_exists(self.alarms, alarm.name):
            self.logger.info(f"CloudWatch alarm already exists, leaving unchanged alarm_name={alarm.name}")
            report.record(ActionKind.UNCHANGED, "alarm", alarm.name)
            return

        self.logger.info(f"creating CloudWatch alarm alarm_name={alarm.name}")
        self.alarms.put_alarm(alarm)
        report.record(ActionKind.CREATE, "alarm", alarm.name)

    def default_alarms(self, scale_out_arn: str, scale_in_arn: str) -> List[AlarmSpec]:
        s = self.settings
        out_cd, in_cd = s.scale_out_cooldown, s.scale_in_cooldown
        ge, le = ComparisonOperator.GREATER_OR_EQUAL, ComparisonOperator.LESS_OR_EQUAL

        specs = [
            ("cpu-high", "Scale out on high CPU", ge, out_cd, scale_out_arn, "CPUUtilization", s.thresholds.cpu_out),
            ("cpu-low", "Scale in on low CPU", le, in_cd, scale_in_arn, "CPUUtilization", s.thresholds.cpu_in),
            ("mem-high", "Scale out on high memory", ge, out_cd, scale_out_arn, "MemoryUtilization",
             s.thresholds.mem_out),
            ("mem-low", "Scale in on low memory", le, in_cd, scale_in_arn, "MemoryUtilization", s.thresholds.mem_in),
        ]
        return [
            AlarmSpec(
                name=naming.alarm_name(s.cluster, s.service, suffix),
                description=description,
                namespace=ECS_NAMESPACE,
                metric_name=metric,
                period=period,
                threshold=threshold,
                comparison_operator=operator,
                dimensions=self._alarm_dimensions(),
                actions=[arn],
            )
            for suffix, description, operator, period, arn, metric, threshold in specs
        ]

    def _reconcile_default_alarms(self, report: ReconcileReport):
        s = self.settings
        scale_out_arn = self._policy_arn(naming.scale_out_policy_name(s.cluster, s.service))
        scale_in_arn = self._policy_arn(naming.scale_in_policy_name(s.cluster, s.service))

        self.logger.info("configuring CloudWatch alarms for default policies")
        for alarm in self.default_alarms(scale_out_arn, scale_in_arn):
            self._create_alarm_if_missing(alarm, report)

    # Disable path

    def disable(self) -> ReconcileReport:
        """Delete alarms and policies, then deregister the target"""
        s = self.settings
        report = ReconcileReport(self.resource_id, enabled=False)
        self.logger.info(f"disabling auto-scaling resource={self.resource_id} cluster={s.cluster} service={s.service}")

        if not comparators.target_exists(self.scaling, self.resource_id):
            self.logger.info(f"auto-scaling was not enabled for this service cluster={s.cluster} service={s.service}")
            return report

        policies = declared_policies(s)

        self._delete_alarms(self.teardown_alarm_names(policies), report)
        self._delete_policies(self.teardown_policy_names(policies), report)

        self.logger.info(f"deregistering scalable target resource={self.resource_id}")
        self.scaling.deregister_target(self.resource_id)
        report.record(ActionKind.DEREGISTER, "target", self.resource_id)

        self.logger.info(f"auto-scaling disabled and cleaned up cluster={s.cluster} service={s.service}")
        return report

    def teardown_alarm_names(self, policies: List[PolicyDef]) -> List[str]:
        s = self.settings
        names = naming.default_alarm_names(s.cluster, s.service)
        names.extend(self._custom_alarm_name(p) for p in policies if p.metric_name and p.metric_namespace)
        return naming.deduplicate(names)

    def teardown_policy_names(self, policies: List[PolicyDef]) -> List[str]:
        s = self.settings
        names = naming.default_policy_names(s.cluster, s.service)
        names.extend(p.name for p in policies)
        return naming.deduplicate(names)

    def _delete_alarms(self, candidates: List[str], report: ReconcileReport):
        existing = []
        for name in candidates:
            try:
                if comparators.alarm_exists(self.alarms, name):
                    existing.append(name)
            except DescribeError as e:
                self.logger.error(f"failed to check CloudWatch alarm alarm_name={name} error={e}")
                report.record(ActionKind.SKIPPED, "alarm", name)

        if not existing:
            return
        self.logger.info(f"deleting CloudWatch alarms alarms={existing}")
        self.alarms.delete_alarms(existing)
        for name in existing:
            report.record(ActionKind.DELETE, "alarm", name)

    def _delete_policies(self, candidates: List[str], report: ReconcileReport):
        existing = [name for name in candidates
                    if comparators.policy_exists(self.scaling, self.resource_id, name)]

        for name in existing:
            self.logger.info(f"deleting scaling policy policy_name={name}")
            self.scaling.delete_policy(self.resource_id, name)
            report.record(ActionKind.DELETE, "policy", name)
