"""Rendering of verification reports for people and for automation."""

from __future__ import annotations

from relverify.core.encoders.compact_encoder import CompactReportEncoder
from relverify.core.models import Failure, Report, ReportEntry, Skipped, Success

STATUS_LABELS = {
    "success": "PASS",
    "failure": "FAIL",
    "skipped": "SKIP",
}

OUTPUT_INDENT = "      | "


def _describe(entry: ReportEntry) -> str:
    result = entry.result
    if isinstance(result, Success):
        return f" ({result.detail})" if result.detail else ""
    if isinstance(result, Failure):
        return f" ({result.kind}: {result.message})"
    if isinstance(result, Skipped):
        return f" ({result.reason})"
    return ""


def render(report: Report, show_output: bool = True) -> str:
    """Render the report as plain text, one line per step in registration order.

    Failed steps are followed by their captured (already bounded) output.
    """
    width = max((len(entry.step_id) for entry in report.entries), default=0)

    lines = [f"Release verification report (policy: {report.policy})", ""]
    for entry in report.entries:
        label = STATUS_LABELS[entry.result.status]
        lines.append(f"[{label}] {entry.step_id:<{width}}  {entry.description}{_describe(entry)}")
        if show_output and isinstance(entry.result, Failure) and entry.result.output:
            for out_line in entry.result.output.rstrip("\n").splitlines():
                lines.append(f"{OUTPUT_INDENT}{out_line}")

    lines.append("")
    lines.append(
        f"Summary: {report.passed} passed, {report.failed} failed, "
        f"{report.skipped} skipped (exit status {report.exit_code})"
    )
    return "\n".join(lines) + "\n"


def render_vote(report: Report) -> str:
    """Render the text of a release vote reply.

    A clean run gives ``+1 (non-binding)`` with every verified item; any
    failure gives ``-1`` listing what failed.
    """
    if report.failed:
        lines = ["-1 (non-binding)", "", "The following checks failed:"]
        for entry in report.entries:
            if isinstance(entry.result, Failure):
                lines.append(f"* {entry.description}: {entry.result.kind} - {entry.result.message}")
    else:
        lines = ["+1 (non-binding)", ""]
        for entry in report.entries:
            if isinstance(entry.result, Success):
                lines.append(f"* {entry.description}")

    skipped = [entry for entry in report.entries if isinstance(entry.result, Skipped)]
    if skipped:
        lines.append("")
        lines.append("Not verified:")
        for entry in skipped:
            lines.append(f"* {entry.description} ({entry.result.reason})")

    return "\n".join(lines) + "\n"


def render_json(report: Report) -> str:
    """Render the report as JSON for automation."""
    data = report.model_dump(mode="json")
    data["summary"] = {
        "passed": report.passed,
        "failed": report.failed,
        "skipped": report.skipped,
        "exit_code": report.exit_code,
    }
    return CompactReportEncoder().encode(data)
