"""
Pipeline that registers verification steps and runs them in dependency order.

Registration enforces that every prerequisite is registered first, so the
registration order is itself a topological order and the run is a single
forward pass. Independent steps may be dispatched to a thread pool; the
report is always ordered by registration.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional, Set

from relverify.core.errors import DuplicateStepError, UnknownDependencyError
from relverify.core.models import ErrorKind, Failure, Policy, Report, Result, Skipped
from relverify.pipeline.aggregator import Aggregator
from relverify.pipeline.collector import EvidenceCollector
from relverify.pipeline.context import Context
from relverify.pipeline.step import Step

logger = logging.getLogger(__name__)

PREREQUISITE_FAILED = "prerequisite failed"


class Pipeline:
    """Ordered registry of steps plus the run loop."""

    def __init__(self, steps: Iterable[Step] = (), collector: Optional[EvidenceCollector] = None):
        self._steps: Dict[str, Step] = {}
        self.collector = collector
        for step in steps:
            self.register(step)

    def register(self, step: Step) -> Step:
        if step.id in self._steps:
            raise DuplicateStepError(f"Step '{step.id}' is already registered")

        unknown = [req for req in step.requires if req not in self._steps]
        if unknown:
            raise UnknownDependencyError(
                f"Step '{step.id}' requires unregistered step(s): {', '.join(unknown)}"
            )

        self._steps[step.id] = step
        return step

    @property
    def steps(self) -> List[Step]:
        return list(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._steps

    def run(
        self,
        ctx: Context,
        policy: Optional[Policy] = None,
        max_workers: Optional[int] = None,
    ) -> Report:
        """Run every registered step once and return the finalized report."""
        settings = ctx.config.pipeline
        policy = Policy(policy or settings.policy)
        workers = max_workers or settings.max_workers
        collector = self.collector or EvidenceCollector(settings)

        aggregator = Aggregator(self.steps, policy)
        blocked: Set[str] = set()

        logger.info(f"Running {len(self)} steps ({policy}, {workers} worker(s))")

        if workers <= 1:
            self._run_sequential(ctx, policy, collector, aggregator, blocked)
        else:
            self._run_concurrent(ctx, policy, collector, aggregator, blocked, workers)

        aggregator.close()
        report = aggregator.finalize()
        self._log_metrics(report)
        return report

    def _is_blocked(self, step: Step, aggregator: Aggregator, blocked: Set[str]) -> bool:
        for req in step.requires:
            if req in blocked or isinstance(aggregator.result(req), Failure):
                return True
        return False

    def _skip_if_blocked(self, step: Step, policy: Policy, aggregator: Aggregator, blocked: Set[str]) -> bool:
        if policy != Policy.FAIL_FAST or not self._is_blocked(step, aggregator, blocked):
            return False
        blocked.add(step.id)
        logger.info(f"-- SKIP:  {step.id} ({PREREQUISITE_FAILED})")
        aggregator.record(step.id, Skipped(reason=PREREQUISITE_FAILED))
        return True

    def _collect(self, step: Step, ctx: Context, collector: EvidenceCollector) -> Result:
        logger.info(f"-- START: {step.id}")
        try:
            return collector.collect(step, ctx)
        except KeyboardInterrupt:
            raise
        except BaseException as e:
            # The collector already maps action faults; this guards the collector itself
            logger.error(f"Collector failed for step {step.id}: {e}")
            return Failure(kind=ErrorKind.STEP_CRASHED, message=f"{type(e).__name__}: {e}")

    def _finish(self, step: Step, result: Result, aggregator: Aggregator) -> None:
        aggregator.record(step.id, result)
        summary = getattr(result, "detail", None) or getattr(result, "message", None) or ""
        logger.info(f"-- DONE:  {step.id} [{result.status.upper()}] ({result.seconds:.1f}s) {summary}".rstrip())

    def _run_sequential(self, ctx, policy, collector, aggregator, blocked) -> None:
        for step in self.steps:
            if self._skip_if_blocked(step, policy, aggregator, blocked):
                continue
            self._finish(step, self._collect(step, ctx, collector), aggregator)

    def _run_concurrent(self, ctx, policy, collector, aggregator, blocked, workers: int) -> None:
        pending = self.steps
        running: Dict[Future, Step] = {}

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="relverify") as pool:
            while pending or running:
                # Registration order is topological, so one ordered sweep
                # also settles skips that cascade within the sweep
                for step in list(pending):
                    if not all(aggregator.has_result(req) for req in step.requires):
                        continue
                    pending.remove(step)
                    if self._skip_if_blocked(step, policy, aggregator, blocked):
                        continue
                    running[pool.submit(self._collect, step, ctx, collector)] = step

                if not running:
                    continue

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    step = running.pop(future)
                    self._finish(step, future.result(), aggregator)

    def _log_metrics(self, report: Report) -> None:
        metrics = {f"{entry.step_id}.s": entry.result.seconds for entry in report.entries}
        logger.debug("Pipeline execution metrics:")
        for key, value in metrics.items():
            logger.debug(f"  {key}: {value}s")
        logger.debug(f"  Total step time: {sum(metrics.values()):.2f}s")
        logger.info(
            f"Finished: {report.passed} passed, {report.failed} failed, {report.skipped} skipped"
        )
