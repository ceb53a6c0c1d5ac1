"""
Tests for the boto3 backends.

The boto3 clients are replaced by MagicMock objects; tests assert on the
request parameters and on the translation of botocore errors.
"""
import logging
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoRegionError

from ecs_autoscaler.backends import (
    ApplicationAutoScalingBackend,
    CloudWatchAlarmBackend,
    create_backends,
)
from ecs_autoscaler.comparators import live_policy_equal
from ecs_autoscaler.config import Settings
from ecs_autoscaler.exceptions import ConfigurationError, DescribeError, MutationError
from ecs_autoscaler.models import (
    AlarmSpec,
    ComparisonOperator,
    CustomMetricSpec,
    PolicyDef,
    PolicyType,
    StepAdjustment,
    StepScalingConfig,
    TargetTrackingConfig,
)

RID = "service/cluster/svc"
SCOPE = {"ServiceNamespace": "ecs", "ScalableDimension": "ecs:service:DesiredCount"}


def client_error(operation):
    return ClientError({"Error": {"Code": "ValidationException", "Message": "boom"}}, operation)


# Fixtures

@pytest.fixture
def autoscaling_client():
    return MagicMock()


@pytest.fixture
def cloudwatch_client():
    return MagicMock()


@pytest.fixture
def scaling_backend(autoscaling_client):
    return ApplicationAutoScalingBackend(autoscaling_client)


@pytest.fixture
def alarm_backend(cloudwatch_client):
    return CloudWatchAlarmBackend(cloudwatch_client)


# Application Auto Scaling

class TestApplicationAutoScalingBackend:
    """Requests and responses of the scaling backend"""

    def test_describe_target(self, scaling_backend, autoscaling_client):
        autoscaling_client.describe_scalable_targets.return_value = {
            "ScalableTargets": [{"ResourceId": RID, "MinCapacity": 2, "MaxCapacity": 8}]
        }

        target = scaling_backend.describe_target(RID)

        assert (target.resource_id, target.min_capacity, target.max_capacity) == (RID, 2, 8)
        autoscaling_client.describe_scalable_targets.assert_called_once_with(ResourceIds=[RID], **SCOPE)

    def test_describe_missing_target(self, scaling_backend, autoscaling_client):
        autoscaling_client.describe_scalable_targets.return_value = {"ScalableTargets": []}
        assert scaling_backend.describe_target(RID) is None

    def test_describe_policies(self, scaling_backend, autoscaling_client):
        autoscaling_client.describe_scaling_policies.return_value = {"ScalingPolicies": [
            {
                "PolicyName": "p1",
                "PolicyARN": "arn:p1",
                "PolicyType": "StepScaling",
                "StepScalingPolicyConfiguration": {
                    "AdjustmentType": "ChangeInCapacity",
                    "Cooldown": 60,
                    "MetricAggregationType": "Average",
                    "StepAdjustments": [{"MetricIntervalLowerBound": 0.0, "ScalingAdjustment": 1}],
                },
            },
            {
                "PolicyName": "p2",
                "PolicyARN": "arn:p2",
                "PolicyType": "TargetTrackingScaling",
                "TargetTrackingScalingPolicyConfiguration": {
                    "TargetValue": 50.0,
                    "CustomizedMetricSpecification": {
                        "MetricName": "CPUUtilization",
                        "Namespace": "AWS/ECS",
                        "Statistic": "Average",
                        "Dimensions": [{"Name": "ClusterName", "Value": "cluster"}],
                    },
                },
            },
        ]}

        step, tracking = scaling_backend.describe_policies(RID, ["p1", "p2"])

        assert step.arn == "arn:p1"
        assert step.policy_type is PolicyType.STEP_SCALING
        assert step.config == StepScalingConfig(
            adjustment_type="ChangeInCapacity", cooldown=60, aggregation="Average",
            step_adjustments=[StepAdjustment(lower_bound=0.0, adjustment=1)],
        )
        assert tracking.policy_type is PolicyType.TARGET_TRACKING
        assert tracking.config.custom_metric.dimensions == {"ClusterName": "cluster"}
        assert tracking.config.scale_in_cooldown is None
        autoscaling_client.describe_scaling_policies.assert_called_once_with(
            ResourceId=RID, PolicyNames=["p1", "p2"], **SCOPE
        )

    def test_describe_metric_math_policy(self, scaling_backend, autoscaling_client, caplog):
        autoscaling_client.describe_scaling_policies.return_value = {"ScalingPolicies": [{
            "PolicyName": "p4",
            "PolicyARN": "arn:p4",
            "PolicyType": "TargetTrackingScaling",
            "TargetTrackingScalingPolicyConfiguration": {
                "TargetValue": 50.0,
                "CustomizedMetricSpecification": {
                    "Metrics": [{"Id": "m1", "Expression": "SUM(METRICS())", "ReturnData": True}],
                },
            },
        }]}
        desired = PolicyDef("p4", TargetTrackingConfig(
            target_value=50.0,
            custom_metric=CustomMetricSpec("AWS/ECS", "CPUUtilization", "Average"),
        ))

        with caplog.at_level(logging.DEBUG, logger="ecs_autoscaler.models"):
            policy, = scaling_backend.describe_policies(RID, ["p4"])

        assert policy.config.custom_metric.metric_name == ""
        assert not live_policy_equal(policy, desired)
        assert "metric-math customized metric is not reconciled" in caplog.text

    def test_describe_policy_of_unknown_type(self, scaling_backend, autoscaling_client):
        autoscaling_client.describe_scaling_policies.return_value = {"ScalingPolicies": [
            {"PolicyName": "p3", "PolicyARN": "arn:p3", "PolicyType": "PredictiveScaling"},
        ]}

        policy, = scaling_backend.describe_policies(RID, ["p3"])

        assert policy.policy_type is None
        assert policy.config is None

    def test_register_target(self, scaling_backend, autoscaling_client):
        scaling_backend.register_target(RID, 1, 10)

        autoscaling_client.register_scalable_target.assert_called_once_with(
            ResourceId=RID, MinCapacity=1, MaxCapacity=10, **SCOPE
        )

    def test_put_step_policy(self, scaling_backend, autoscaling_client):
        autoscaling_client.put_scaling_policy.return_value = {"PolicyARN": "arn:p1"}
        policy = PolicyDef("p1", StepScalingConfig(
            step_adjustments=[StepAdjustment(upper_bound=0.0, adjustment=-1)],
        ))

        assert scaling_backend.put_policy(RID, policy) == "arn:p1"

        autoscaling_client.put_scaling_policy.assert_called_once_with(
            ResourceId=RID,
            PolicyName="p1",
            PolicyType="StepScaling",
            StepScalingPolicyConfiguration={
                "AdjustmentType": "ChangeInCapacity",
                "MetricAggregationType": "Average",
                "StepAdjustments": [{"ScalingAdjustment": -1, "MetricIntervalUpperBound": 0.0}],
            },
            **SCOPE
        )

    def test_put_target_tracking_policy(self, scaling_backend, autoscaling_client):
        autoscaling_client.put_scaling_policy.return_value = {"PolicyARN": "arn:p2"}
        policy = PolicyDef("p2", TargetTrackingConfig(
            target_value=50.0,
            custom_metric=CustomMetricSpec("AWS/ECS", "CPUUtilization", "Average", {"ServiceName": "svc"}),
            scale_out_cooldown=30,
        ))

        scaling_backend.put_policy(RID, policy)

        kwargs = autoscaling_client.put_scaling_policy.call_args.kwargs
        assert kwargs["PolicyType"] == "TargetTrackingScaling"
        assert kwargs["TargetTrackingScalingPolicyConfiguration"] == {
            "TargetValue": 50.0,
            "CustomizedMetricSpecification": {
                "MetricName": "CPUUtilization",
                "Namespace": "AWS/ECS",
                "Dimensions": [{"Name": "ServiceName", "Value": "svc"}],
                "Statistic": "Average",
            },
            "ScaleOutCooldown": 30,
        }
        assert "StepScalingPolicyConfiguration" not in kwargs

    def test_delete_policy_and_deregister(self, scaling_backend, autoscaling_client):
        scaling_backend.delete_policy(RID, "p1")
        scaling_backend.deregister_target(RID)

        autoscaling_client.delete_scaling_policy.assert_called_once_with(ResourceId=RID, PolicyName="p1", **SCOPE)
        autoscaling_client.deregister_scalable_target.assert_called_once_with(ResourceId=RID, **SCOPE)

    def test_read_error(self, scaling_backend, autoscaling_client):
        autoscaling_client.describe_scalable_targets.side_effect = client_error("DescribeScalableTargets")

        with pytest.raises(DescribeError) as exc_info:
            scaling_backend.describe_target(RID)

        assert exc_info.value.context == {"operation": "DescribeScalableTargets", "resource": RID}
        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_write_error(self, scaling_backend, autoscaling_client):
        autoscaling_client.delete_scaling_policy.side_effect = client_error("DeleteScalingPolicy")

        with pytest.raises(MutationError) as exc_info:
            scaling_backend.delete_policy(RID, "p1")

        assert exc_info.value.error_code == "WRITE"
        assert exc_info.value.context["resource"] == "p1"


# CloudWatch

class TestCloudWatchAlarmBackend:
    """Requests and responses of the alarm backend"""

    def test_describe_alarms(self, alarm_backend, cloudwatch_client):
        cloudwatch_client.describe_alarms.return_value = {"MetricAlarms": [{"AlarmName": "a1"}]}

        assert alarm_backend.describe_alarms(["a1", "a2"]) == ["a1"]
        cloudwatch_client.describe_alarms.assert_called_once_with(AlarmNames=["a1", "a2"])

    def test_put_alarm(self, alarm_backend, cloudwatch_client):
        alarm = AlarmSpec(
            name="cluster-svc-cpu-high",
            description="Scale out on high CPU",
            namespace="AWS/ECS",
            metric_name="CPUUtilization",
            period=300,
            threshold=75.0,
            comparison_operator=ComparisonOperator.GREATER_OR_EQUAL,
            dimensions={"ClusterName": "cluster", "ServiceName": "svc"},
            actions=["arn:scale-out"],
        )

        alarm_backend.put_alarm(alarm)

        cloudwatch_client.put_metric_alarm.assert_called_once_with(
            AlarmName="cluster-svc-cpu-high",
            AlarmDescription="Scale out on high CPU",
            Namespace="AWS/ECS",
            MetricName="CPUUtilization",
            Statistic="Average",
            Period=300,
            EvaluationPeriods=2,
            Threshold=75.0,
            ComparisonOperator="GreaterThanOrEqualToThreshold",
            Dimensions=[{"Name": "ClusterName", "Value": "cluster"}, {"Name": "ServiceName", "Value": "svc"}],
            AlarmActions=["arn:scale-out"],
        )

    def test_delete_alarms(self, alarm_backend, cloudwatch_client):
        alarm_backend.delete_alarms(["a1", "a2"])
        cloudwatch_client.delete_alarms.assert_called_once_with(AlarmNames=["a1", "a2"])

    def test_describe_error(self, alarm_backend, cloudwatch_client):
        cloudwatch_client.describe_alarms.side_effect = client_error("DescribeAlarms")

        with pytest.raises(DescribeError):
            alarm_backend.describe_alarms(["a1"])


# Session setup

class TestCreateBackends:
    """Credential handling"""

    def test_default_credential_chain(self):
        with patch("ecs_autoscaler.backends.boto3") as mock_boto3:
            create_backends(Settings(cluster="c", service="s", region="us-east-1"))

        mock_boto3.Session.assert_called_once_with(region_name="us-east-1")
        clients = [c.args[0] for c in mock_boto3.Session.return_value.client.call_args_list]
        assert clients == ["application-autoscaling", "cloudwatch"]

    def test_static_credentials(self):
        settings = Settings(cluster="c", service="s", region="eu-west-1",
                            aws_access_key_id="AKIA", aws_secret_access_key="secret")

        with patch("ecs_autoscaler.backends.boto3") as mock_boto3:
            create_backends(settings)

        mock_boto3.Session.assert_called_once_with(
            aws_access_key_id="AKIA", aws_secret_access_key="secret", region_name="eu-west-1"
        )

    def test_blank_region_uses_environment(self):
        with patch("ecs_autoscaler.backends.boto3") as mock_boto3:
            create_backends(Settings(cluster="c", service="s"))

        mock_boto3.Session.assert_called_once_with(region_name=None)

    def test_missing_region(self):
        with patch("ecs_autoscaler.backends.boto3") as mock_boto3:
            mock_boto3.Session.return_value.client.side_effect = NoRegionError()

            with pytest.raises(ConfigurationError) as exc_info:
                create_backends(Settings(cluster="c", service="s"))

        assert exc_info.value.context["parameter"] == "aws-region"
