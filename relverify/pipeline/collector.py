"""
Evidence collection for a single pipeline step.

The collector runs a step's action, captures the diagnostic output of any
external processes it starts (bounded, with an explicit truncation marker),
records the artifacts it produced and normalizes whatever happened into one
immutable `Result`. Failures never escape the collector, only a
KeyboardInterrupt is passed on.

Actions that shell out use `run_command`, which finds the evidence of the
step running on the current thread, applies the remaining step timeout and
kills the whole process group when it expires.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from contextvars import ContextVar
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import httpx

from relverify.core.config import PipelineConfig
from relverify.core.errors import StepTimeoutError, VerificationError
from relverify.core.models import ErrorKind, Failure, Skipped, Success
from relverify.pipeline.context import Context
from relverify.pipeline.step import Step

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "... [truncated {n} bytes]"

_current_evidence: ContextVar[Optional["Evidence"]] = ContextVar(
    "relverify_current_evidence", default=None
)


class Evidence:
    """Bounded diagnostic output and artifact paths for one step run."""

    def __init__(self, step_id: str, max_bytes: int, timeout: float | None = None):
        self.step_id = step_id
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.artifacts: list[str] = []
        self._chunks: list[str] = []
        self._size = 0
        self._dropped = 0
        self._started = time.monotonic()

    def write(self, text: str) -> None:
        if not text:
            return
        data = text.encode("utf-8", errors="replace")
        room = self.max_bytes - self._size
        if room <= 0:
            self._dropped += len(data)
            return
        if len(data) > room:
            self._dropped += len(data) - room
            # Cutting mid-character leaves a partial sequence; drop it
            data = data[:room]
        self._chunks.append(data.decode("utf-8", errors="ignore"))
        self._size += len(data)

    def add_artifact(self, path: Union[str, Path]) -> None:
        self.artifacts.append(str(path))

    @property
    def truncated(self) -> bool:
        return self._dropped > 0

    def text(self) -> str:
        out = "".join(self._chunks)
        if self._dropped:
            if out and not out.endswith("\n"):
                out += "\n"
            out += TRUNCATION_MARKER.format(n=self._dropped)
        return out

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def remaining(self) -> float | None:
        if self.timeout is None:
            return None
        return self.timeout - self.elapsed

    def overran(self) -> bool:
        return self.timeout is not None and self.elapsed > self.timeout


def current_evidence() -> Optional[Evidence]:
    return _current_evidence.get()


def note(text: str) -> None:
    """Append a line to the running step's diagnostic output."""
    evidence = current_evidence()
    if evidence is not None:
        evidence.write(text.rstrip("\n") + "\n")
    logger.debug(text)


def add_artifact(path: Union[str, Path]) -> None:
    """Record an artifact written by the running step."""
    evidence = current_evidence()
    if evidence is not None:
        evidence.add_artifact(path)


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def run_command(
    cmd: Sequence[str],
    cwd: Union[str, Path, None] = None,
    failure_kind: ErrorKind = ErrorKind.STEP_CRASHED,
    check: bool = True,
    env: Optional[Mapping[str, str]] = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """Run an external tool on behalf of the current step.

    Without `timeout` the tool gets whatever is left of the step's time.
    An explicit `timeout` replaces that budget, so cleanup commands still
    run after the step's own time is used up.

    Raises:
        StepTimeoutError: The time limit ran out; the process group was
            killed.
        VerificationError: The tool exited non-zero and `check` is set.
    """
    cmd = [str(part) for part in cmd]
    evidence = current_evidence()
    limit = timeout
    if timeout is None and evidence is not None and evidence.timeout is not None:
        limit = evidence.timeout
        timeout = evidence.remaining()
        if timeout <= 0:
            raise StepTimeoutError(f"No time left to run {cmd[0]}")

    note(f"$ {' '.join(cmd)}")
    proc = subprocess.Popen(
        cmd,
        cwd=str(cwd) if cwd else None,
        env=dict(env) if env is not None else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        start_new_session=True,
    )
    try:
        stdout, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_group(proc)
        stdout, _ = proc.communicate()
        if evidence is not None:
            evidence.write(stdout or "")
        raise StepTimeoutError(f"{cmd[0]} did not finish within {limit:g}s")

    if evidence is not None:
        evidence.write(stdout or "")

    completed = subprocess.CompletedProcess(cmd, proc.returncode, stdout, None)
    if check and completed.returncode != 0:
        raise VerificationError(
            failure_kind, f"{' '.join(cmd)} exited with {completed.returncode}"
        )
    return completed


class EvidenceCollector:
    """Run one step's action and turn the outcome into a Result."""

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    def collect(self, step: Step, ctx: Context):
        evidence = Evidence(
            step.id, self.config.max_output_bytes, self.config.timeout_for(step.id)
        )
        token = _current_evidence.set(evidence)
        try:
            with ctx.bind(step.id):
                result = self._invoke(step, ctx, evidence)
        finally:
            _current_evidence.reset(token)

        output = evidence.text() or result.output
        return result.model_copy(update={
            "output": output,
            "artifacts": tuple(result.artifacts) + tuple(evidence.artifacts),
            "seconds": round(evidence.elapsed, 3),
        })

    def _invoke(self, step: Step, ctx: Context, evidence: Evidence):
        try:
            value = step.action(ctx)
        except VerificationError as e:
            logger.debug(f"Step {step.id} reported {e.kind}: {e.message}")
            return Failure(kind=e.kind, message=e.message)
        except httpx.HTTPError as e:
            return Failure(kind=ErrorKind.DOWNLOAD_FAILED, message=f"{type(e).__name__}: {e}")
        except KeyboardInterrupt:
            raise
        except BaseException as e:
            # sys.exit() in an action is a crash of that step, not of the run
            logger.error(f"Step {step.id} crashed: {type(e).__name__}: {e}")
            evidence.write(f"{type(e).__name__}: {e}\n")
            return Failure(kind=ErrorKind.STEP_CRASHED, message=f"{type(e).__name__}: {e}")

        if evidence.overran():
            return Failure(
                kind=ErrorKind.TIMEOUT,
                message=f"Step took {evidence.elapsed:.1f}s, limit is {evidence.timeout:g}s",
            )

        if value is None:
            return Success()
        if isinstance(value, str):
            return Success(detail=value)
        if isinstance(value, (Success, Failure, Skipped)):
            return value
        return Failure(
            kind=ErrorKind.STEP_CRASHED,
            message=f"Action returned unsupported value of type {type(value).__name__}",
        )
