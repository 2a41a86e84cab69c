"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them
once and get consistent HTTP status codes everywhere.

The workflow taxonomy (PeriodNotFound, InvalidStage, NoOpRequest,
AlreadyCompleted, AssigneeNotFound) is detected before the transition
engine mutates anything, so raising one never leaves a partial write.

Usage:
    from filingflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Client", resource_id=42)
    raise ValidationError("stage is required", details={"stage": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "WorkflowPeriod").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation conflicts with the current state of a record.

    Maps to HTTP 409.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


# ── Workflow transition errors ───────────────────────────────────────────────


class PeriodNotFound(NotFoundError):
    """The workflow period id does not exist."""

    def __init__(self, period_id: int) -> None:
        super().__init__(resource="WorkflowPeriod", resource_id=period_id)


class AssigneeNotFound(NotFoundError):
    """An explicit assignee id does not reference a user."""

    def __init__(self, user_id: int) -> None:
        super().__init__(resource="User", resource_id=user_id)


class InvalidStage(ValidationError):
    """Unknown stage literal, or a stage outside the period's family."""

    def __init__(self, stage, family=None) -> None:
        self.stage = stage
        self.family = family
        label = getattr(stage, "value", stage)
        msg = f"Invalid workflow stage: {label!r}"
        details = {"stage": str(label)}
        if family is not None:
            family_label = getattr(family, "value", family)
            msg += f" for {family_label} workflow"
            details["family"] = str(family_label)
        super().__init__(msg, details=details)


class NoOpRequest(ValidationError):
    """Neither a stage nor an assignee was requested."""

    def __init__(self) -> None:
        super().__init__("Either a stage or an assignee must be supplied")


class AlreadyCompleted(ConflictError):
    """A completed period cannot be re-stamped into its terminal state."""

    def __init__(self, period_id: int, stage) -> None:
        self.period_id = period_id
        self.stage = stage
        label = getattr(stage, "value", stage)
        super().__init__(
            f"WorkflowPeriod id={period_id} is already completed at {label}",
            details={"period_id": period_id, "current_stage": str(label)},
        )
