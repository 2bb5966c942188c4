"""Core models for step outcomes and the verification report."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(StrEnum):
    DOWNLOAD_FAILED = "DownloadFailed"
    CHECKSUM_MISMATCH = "ChecksumMismatch"
    SIGNATURE_INVALID = "SignatureInvalid"
    VERSION_MISMATCH = "VersionMismatch"  # POM/tag version disagreement
    DIFF_DETECTED = "DiffDetected"  # checkout vs. source artifact
    BUILD_FAILED = "BuildFailed"
    SMOKE_TEST_FAILED = "SmokeTestFailed"
    STEP_CRASHED = "StepCrashed"
    TIMEOUT = "Timeout"

    # Structural errors, raised rather than recorded
    DUPLICATE_STEP = "DuplicateStepError"
    UNKNOWN_DEPENDENCY = "UnknownDependencyError"
    DUPLICATE_RESULT = "DuplicateResultError"
    INCOMPLETE_REPORT = "IncompleteReportError"


class Policy(StrEnum):
    FAIL_FAST = "fail-fast"
    CONTINUE_ON_FAILURE = "continue-on-failure"


class _Outcome(BaseModel):
    """Evidence shared by every result, attached by the collector."""
    model_config = ConfigDict(frozen=True)

    output: str = ""
    artifacts: tuple[str, ...] = ()
    seconds: float = 0.0


class Success(_Outcome):
    status: Literal["success"] = "success"
    detail: str | None = None


class Failure(_Outcome):
    status: Literal["failure"] = "failure"
    kind: ErrorKind
    message: str


class Skipped(_Outcome):
    status: Literal["skipped"] = "skipped"
    reason: str


Result = Annotated[Union[Success, Failure, Skipped], Field(discriminator="status")]


class ReportEntry(BaseModel):
    """One step's outcome, positioned by registration order."""
    model_config = ConfigDict(frozen=True)

    step_id: str
    description: str
    result: Result


class Report(BaseModel):
    """Ordered outcomes of a pipeline run, one entry per registered step."""
    model_config = ConfigDict(frozen=True)

    policy: Policy
    entries: tuple[ReportEntry, ...]

    def get(self, step_id: str) -> ReportEntry:
        """Get the entry for a step ID."""
        for entry in self.entries:
            if entry.step_id == step_id:
                return entry
        raise ValueError(f"Step {step_id} not found in report")

    def results(self) -> list[Result]:
        return [entry.result for entry in self.entries]

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results() if isinstance(r, Success))

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results() if isinstance(r, Failure))

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results() if isinstance(r, Skipped))

    @property
    def exit_code(self) -> int:
        """Non-zero iff at least one step failed; skips never count."""
        return 1 if self.failed else 0
