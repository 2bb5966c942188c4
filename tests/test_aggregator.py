"""Tests for result aggregation and report finalization."""

import threading

import pytest

from relverify.core.errors import DuplicateResultError, IncompleteReportError
from relverify.core.models import ErrorKind, Failure, Policy, Skipped, Success
from relverify.pipeline.aggregator import Aggregator
from relverify.pipeline.step import Step


def make_steps(*ids):
    return [Step(step_id, f"Step {step_id}", lambda ctx: None) for step_id in ids]


def test_record_twice_keeps_first_result():
    """Test that a duplicate record is rejected and the first result kept."""
    aggregator = Aggregator(make_steps("checksum"), Policy.FAIL_FAST)
    aggregator.record("checksum", Success(detail="first"))

    with pytest.raises(DuplicateResultError):
        aggregator.record("checksum", Failure(kind=ErrorKind.CHECKSUM_MISMATCH, message="second"))

    aggregator.close()
    report = aggregator.finalize()
    assert report.get("checksum").result.detail == "first"


def test_record_unknown_step():
    aggregator = Aggregator(make_steps("download"), Policy.FAIL_FAST)

    with pytest.raises(KeyError):
        aggregator.record("upload", Success())


def test_finalize_before_close():
    """Test that a report cannot be taken before the run has finished."""
    aggregator = Aggregator(make_steps("download"), Policy.FAIL_FAST)
    aggregator.record("download", Success())

    with pytest.raises(IncompleteReportError):
        aggregator.finalize()


def test_finalize_with_missing_results():
    aggregator = Aggregator(make_steps("download", "build"), Policy.FAIL_FAST)
    aggregator.record("download", Success())
    aggregator.close()

    with pytest.raises(IncompleteReportError, match="build"):
        aggregator.finalize()


def test_report_follows_registration_order():
    """Test that recording order doesn't affect report order."""
    aggregator = Aggregator(make_steps("download", "checksum", "signature"), Policy.CONTINUE_ON_FAILURE)
    aggregator.record("signature", Success())
    aggregator.record("download", Success())
    aggregator.record("checksum", Skipped(reason="not applicable"))
    aggregator.close()

    report = aggregator.finalize()

    assert [entry.step_id for entry in report.entries] == ["download", "checksum", "signature"]
    assert report.entries[0].description == "Step download"
    assert report.policy == Policy.CONTINUE_ON_FAILURE


def test_concurrent_records():
    """Test that concurrent writers each land exactly once."""
    ids = [f"s{i}" for i in range(50)]
    aggregator = Aggregator(make_steps(*ids), Policy.FAIL_FAST)

    threads = [threading.Thread(target=aggregator.record, args=(step_id, Success())) for step_id in ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    aggregator.close()

    assert len(aggregator.finalize().entries) == 50
