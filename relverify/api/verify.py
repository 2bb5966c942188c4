"""High-level verification API."""

from __future__ import annotations

from typing import Iterable, Optional

from relverify.core.models import Policy, Report
from relverify.pipeline.context import Context
from relverify.pipeline.runner import Pipeline
from relverify.pipeline.step import Step


def run(
    steps: Iterable[Step],
    context: Context,
    policy: Optional[Policy] = None,
    max_workers: Optional[int] = None,
) -> Report:
    """Register `steps` in order and run them against `context`.

    Structural errors (duplicate ids, unknown prerequisites) are raised
    before any step runs; verification failures end up in the report.
    """
    pipeline = Pipeline(steps)
    return pipeline.run(context, policy=policy, max_workers=max_workers)
