"""Exceptions raised by the pipeline and by verification actions."""

from __future__ import annotations

from typing import ClassVar

from relverify.core.models import ErrorKind


class PipelineError(Exception):
    """Base for structural errors: a misconfigured pipeline, not a finding."""
    kind: ClassVar[ErrorKind]


class DuplicateStepError(PipelineError, ValueError):
    """Raised when a step identifier is registered twice."""
    kind = ErrorKind.DUPLICATE_STEP


class UnknownDependencyError(PipelineError, ValueError):
    """Raised when a step declares a prerequisite that is not registered."""
    kind = ErrorKind.UNKNOWN_DEPENDENCY


class DuplicateResultError(PipelineError, ValueError):
    """Raised when a result is recorded twice for the same step."""
    kind = ErrorKind.DUPLICATE_RESULT


class IncompleteReportError(PipelineError, RuntimeError):
    """Raised when a report is finalized before the pipeline has finished."""
    kind = ErrorKind.INCOMPLETE_REPORT


class VerificationError(Exception):
    """A verification finding raised from inside a step action.

    The collector turns it into a ``Failure`` with the given kind.
    """

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class StepTimeoutError(VerificationError):
    """Raised when a step's external process exceeds the step timeout."""

    def __init__(self, message: str):
        super().__init__(ErrorKind.TIMEOUT, message)
