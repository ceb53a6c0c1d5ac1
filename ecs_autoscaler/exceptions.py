"""
ecs-autoscaler exceptions

Every fatal condition of a run is raised as an AutoscalerError subclass.
The CLI turns them into a log line and a nonzero exit code.
"""

from typing import Optional, List, Dict, Any


class AutoscalerError(Exception):
    """
    Base exception for all ecs-autoscaler errors.

    Carries an optional error code, a hint for the user and a context
    dict that ends up in the log line.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        guidance: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.guidance = guidance
        self.context = context or {}

    def __str__(self):
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.guidance:
            result += f" ({self.guidance})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "guidance": self.guidance,
            "context": self.context
        }


class ConfigurationError(AutoscalerError):
    """Invalid run parameter (numeric value, capacity range, ...)"""

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        value: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("error_code", "CONFIG")
        super().__init__(message, **kwargs)
        if parameter:
            self.context["parameter"] = parameter
        if value is not None:
            self.context["value"] = value


class PolicyParseError(AutoscalerError):
    """Malformed or invalid declarative policy payload"""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        policy_name: Optional[str] = None,
        validation_errors: Optional[List[str]] = None,
        **kwargs
    ):
        kwargs.setdefault("error_code", "POLICY")
        super().__init__(message, **kwargs)
        if source:
            self.context["source"] = source
        if policy_name:
            self.context["policy_name"] = policy_name
        if validation_errors:
            self.context["validation_errors"] = validation_errors


class ControlPlaneError(AutoscalerError):
    """A call to Application Auto Scaling or CloudWatch failed"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        resource: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if operation:
            self.context["operation"] = operation
        if resource:
            self.context["resource"] = resource


class DescribeError(ControlPlaneError):
    """Read-path failure: existence is never assumed without a successful read"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "READ")
        super().__init__(message, **kwargs)


class MutationError(ControlPlaneError):
    """Write-path failure: no retry, no rollback of earlier writes"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "WRITE")
        kwargs.setdefault("guidance", "re-run once the cause is fixed, every step is idempotent")
        super().__init__(message, **kwargs)


class ReconcileError(AutoscalerError):
    """Live state contradicts what the run just established"""

    def __init__(self, message: str, resource: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "RECONCILE")
        super().__init__(message, **kwargs)
        if resource:
            self.context["resource"] = resource
