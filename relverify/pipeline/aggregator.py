"""Collects step results into a report ordered by registration."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Sequence

from relverify.core.errors import DuplicateResultError, IncompleteReportError
from relverify.core.models import Policy, Report, ReportEntry, Result
from relverify.pipeline.step import Step

logger = logging.getLogger(__name__)


class Aggregator:
    """Thread-safe result sink for one pipeline run."""

    def __init__(self, steps: Sequence[Step], policy: Policy):
        self.steps = list(steps)
        self.policy = policy
        self._known = {step.id for step in self.steps}
        self._results: Dict[str, Result] = {}
        self._lock = threading.Lock()
        self._closed = False

    def record(self, step_id: str, result: Result) -> None:
        """Store the single result of a step.

        Raises:
            KeyError: The step is not part of this run
            DuplicateResultError: A result was already recorded; the first one is kept
        """
        if step_id not in self._known:
            raise KeyError(f"Step '{step_id}' is not registered")

        with self._lock:
            if step_id in self._results:
                raise DuplicateResultError(f"Result for step '{step_id}' already recorded")
            self._results[step_id] = result

        logger.debug(f"Recorded {result.status} for {step_id}")

    def has_result(self, step_id: str) -> bool:
        with self._lock:
            return step_id in self._results

    def result(self, step_id: str) -> Result | None:
        with self._lock:
            return self._results.get(step_id)

    def close(self) -> None:
        """Mark the pipeline as finished; no further steps will run."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def finalize(self) -> Report:
        """Build the report in registration order."""
        if not self._closed:
            raise IncompleteReportError("Pipeline has not finished; report would be partial")

        with self._lock:
            missing = [step.id for step in self.steps if step.id not in self._results]
            if missing:
                raise IncompleteReportError(f"No result recorded for: {', '.join(missing)}")

            entries = tuple(
                ReportEntry(step_id=step.id, description=step.description, result=self._results[step.id])
                for step in self.steps
            )

        return Report(policy=self.policy, entries=entries)
