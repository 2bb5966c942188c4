"""
Smoke test: run an example job on a local session cluster and scan its logs.

The cluster scripts of the built distribution do the work; this step only
starts the cluster, submits the job, always stops the cluster again and then
looks for error lines in the logs written for this run.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List

from relverify.core.errors import VerificationError
from relverify.core.models import ErrorKind
from relverify.pipeline.collector import add_artifact, note, run_command
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key
from relverify.pipeline.step import Action

logger = logging.getLogger(__name__)

MAX_FINDINGS = 20

# stop-cluster.sh gets its own time so a timed-out run still shuts down
CLEANUP_TIMEOUT = 60.0


def scan_logs(log_dir: Path, patterns: Iterable[str]) -> List[str]:
    """Return 'file:line: text' for every log line matching a pattern."""
    compiled = [re.compile(p) for p in patterns]
    findings: List[str] = []
    if not log_dir.is_dir():
        return findings

    for log_file in sorted(log_dir.iterdir()):
        if not log_file.is_file():
            continue
        with open(log_file, "r", encoding="utf-8", errors="replace") as f:
            for lineno, line in enumerate(f, 1):
                if any(p.search(line) for p in compiled):
                    findings.append(f"{log_file.name}:{lineno}: {line.rstrip()}")
    return findings


def session_cluster_run(name: str, example_jar: str) -> Action:
    """Build the action for one example job run named `name`."""

    def run_example(ctx: Context) -> str:
        dist = ctx.path(Key.BUILD_TARGET)
        bin_dir = dist / "bin"
        log_dir = ctx.working_dir / name / "log"
        log_dir.mkdir(parents=True, exist_ok=True)

        # Keep each run's logs apart from other runs and the distribution
        env = {**os.environ, "FLINK_LOG_DIR": str(log_dir)}

        try:
            run_command([bin_dir / "start-cluster.sh"], env=env, failure_kind=ErrorKind.SMOKE_TEST_FAILED)
            run_command(
                [bin_dir / "flink", "run", dist / example_jar],
                env=env,
                failure_kind=ErrorKind.SMOKE_TEST_FAILED,
            )
        finally:
            run_command([bin_dir / "stop-cluster.sh"], env=env, check=False, timeout=CLEANUP_TIMEOUT)

        add_artifact(log_dir)
        findings = scan_logs(log_dir, ctx.config.smoke_test.log_patterns)
        for finding in findings[:MAX_FINDINGS]:
            note(finding)
        if findings:
            raise VerificationError(
                ErrorKind.SMOKE_TEST_FAILED,
                f"{len(findings)} suspicious log line(s) in {log_dir}",
            )
        return f"{example_jar}: nothing suspicious in logs"

    run_example.__name__ = f"run_{name}"
    return run_example
