"""
ecs-autoscaler configuration

Run settings come from the positional values the GitHub Action passes in;
logging settings come from the environment (ECS_AUTOSCALER_ prefix) or CLI
options.
"""

import os
import sys
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, TextIO

from .exceptions import ConfigurationError
from . import naming

logger = logging.getLogger(__name__)

ENV_PREFIX = "ECS_AUTOSCALER_"

DEFAULT_MIN_CAPACITY = 1
DEFAULT_MAX_CAPACITY = 10
DEFAULT_COOLDOWN = 300
DEFAULT_CPU_OUT = 75.0
DEFAULT_CPU_IN = 65.0
DEFAULT_MEM_OUT = 80.0
DEFAULT_MEM_IN = 70.0

# Order of the positional values in action.yml
ARGUMENT_NAMES = (
    "aws-access-key-id",
    "aws-secret-access-key",
    "aws-region",
    "cluster-name",
    "service-name",
    "enabled",
    "min-capacity",
    "max-capacity",
    "scale-out-cooldown",
    "scale-in-cooldown",
    "target-cpu-utilization-out",
    "target-cpu-utilization-in",
    "target-memory-utilization-out",
    "target-memory-utilization-in",
    "default-policies",
    "scaling-policies",
)


def get_int_with_default(value: Optional[str], name: str, default: int) -> int:
    """Parse an integer argument, blank means default"""
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError as e:
        logger.error(f"invalid input name={name} value={value!r} error={e}")
        raise ConfigurationError(f"invalid {name}: {e}", parameter=name, value=value) from e


def get_float_with_default(value: Optional[str], name: str, default: float) -> float:
    """Parse a float argument, blank means default"""
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError as e:
        logger.error(f"invalid input name={name} value={value!r} error={e}")
        raise ConfigurationError(f"invalid {name}: {e}", parameter=name, value=value) from e


@dataclass
class Thresholds:
    """Alarm thresholds in percent"""
    cpu_out: float = DEFAULT_CPU_OUT
    cpu_in: float = DEFAULT_CPU_IN
    mem_out: float = DEFAULT_MEM_OUT
    mem_in: float = DEFAULT_MEM_IN


@dataclass
class Settings:
    """Everything one run needs to know"""
    cluster: str
    service: str
    region: str = ""
    enabled: bool = True

    min_capacity: int = DEFAULT_MIN_CAPACITY
    max_capacity: int = DEFAULT_MAX_CAPACITY
    scale_out_cooldown: int = DEFAULT_COOLDOWN
    scale_in_cooldown: int = DEFAULT_COOLDOWN
    thresholds: Thresholds = field(default_factory=Thresholds)

    default_policies: str = ""
    scaling_policies: str = ""

    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None

    @property
    def resource_id(self) -> str:
        return naming.resource_id(self.cluster, self.service)

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.aws_access_key_id) and bool(self.aws_secret_access_key)

    @classmethod
    def from_args(cls, values: Sequence[str]) -> "Settings":
        """
        Build settings from the positional values of the action.

        Blank numeric values fall back to their defaults. Any value that
        does not parse raises ConfigurationError before anything is called.
        """
        if len(values) != len(ARGUMENT_NAMES):
            raise ConfigurationError(
                f"invalid number of arguments: expected {len(ARGUMENT_NAMES)}, got {len(values)}"
            )
        args = dict(zip(ARGUMENT_NAMES, values))

        settings = cls(
            cluster=args["cluster-name"].strip(),
            service=args["service-name"].strip(),
            region=args["aws-region"].strip(),
            enabled=args["enabled"].strip().lower() == "true",
            min_capacity=get_int_with_default(args["min-capacity"], "min-capacity", DEFAULT_MIN_CAPACITY),
            max_capacity=get_int_with_default(args["max-capacity"], "max-capacity", DEFAULT_MAX_CAPACITY),
            scale_out_cooldown=get_int_with_default(
                args["scale-out-cooldown"], "scale-out-cooldown", DEFAULT_COOLDOWN),
            scale_in_cooldown=get_int_with_default(
                args["scale-in-cooldown"], "scale-in-cooldown", DEFAULT_COOLDOWN),
            thresholds=Thresholds(
                cpu_out=get_float_with_default(
                    args["target-cpu-utilization-out"], "target-cpu-utilization-out", DEFAULT_CPU_OUT),
                cpu_in=get_float_with_default(
                    args["target-cpu-utilization-in"], "target-cpu-utilization-in", DEFAULT_CPU_IN),
                mem_out=get_float_with_default(
                    args["target-memory-utilization-out"], "target-memory-utilization-out", DEFAULT_MEM_OUT),
                mem_in=get_float_with_default(
                    args["target-memory-utilization-in"], "target-memory-utilization-in", DEFAULT_MEM_IN),
            ),
            default_policies=args["default-policies"],
            scaling_policies=args["scaling-policies"],
            aws_access_key_id=args["aws-access-key-id"].strip() or None,
            aws_secret_access_key=args["aws-secret-access-key"].strip() or None,
        )
        settings.validate()
        return settings

    def validate(self):
        """Reject settings no run could apply"""
        if not self.cluster:
            raise ConfigurationError("cluster name is required", parameter="cluster-name")
        if not self.service:
            raise ConfigurationError("service name is required", parameter="service-name")

        for name, value in (("scale-out-cooldown", self.scale_out_cooldown),
                            ("scale-in-cooldown", self.scale_in_cooldown)):
            if value < 0:
                raise ConfigurationError(f"{name} must not be negative", parameter=name, value=str(value))

        # Capacities only matter when registering
        if not self.enabled:
            return
        if self.min_capacity < 0:
            raise ConfigurationError("min-capacity must not be negative",
                                     parameter="min-capacity", value=str(self.min_capacity))
        if self.max_capacity < 1:
            raise ConfigurationError("max-capacity must be at least 1",
                                     parameter="max-capacity", value=str(self.max_capacity))
        if self.min_capacity > self.max_capacity:
            raise ConfigurationError(
                f"min-capacity ({self.min_capacity}) is greater than max-capacity ({self.max_capacity})",
                parameter="min-capacity",
                value=str(self.min_capacity),
            )


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: str = "INFO"
    log_format: str = "text"  # text, json
    text_format: str = "time=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            log_level=os.environ.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
            log_format=os.environ.get(f"{ENV_PREFIX}LOG_FORMAT", "text").lower(),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per log line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(config: Optional[LoggingConfig] = None,
                      stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Returns the package logger so callers can hand it to the reconciler.
    """
    config = config or LoggingConfig.from_env()

    handler = logging.StreamHandler(stream or sys.stderr)
    if config.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(config.text_format))

    package_logger = logging.getLogger("ecs_autoscaler")
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    package_logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    return package_logger
