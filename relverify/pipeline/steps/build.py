"""Build tool steps: version check and the build from the extracted sources."""

from __future__ import annotations

import logging
import re

from relverify.core.errors import VerificationError
from relverify.core.models import ErrorKind
from relverify.pipeline.collector import add_artifact, run_command
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key

logger = logging.getLogger(__name__)

MAVEN_VERSION_PATTERN = re.compile(r"Apache Maven (\S+)")


def parse_maven_version(output: str) -> str | None:
    match = MAVEN_VERSION_PATTERN.search(output)
    return match.group(1) if match else None


def check_maven_version(ctx: Context) -> str:
    maven = ctx.config.maven
    cp = run_command([maven.executable, "--version"], failure_kind=ErrorKind.BUILD_FAILED)

    version = parse_maven_version(cp.stdout or "")
    if version is None:
        raise VerificationError(ErrorKind.BUILD_FAILED, f"Could not determine version of {maven.executable}")

    if maven.required_version and version != maven.required_version:
        raise VerificationError(
            ErrorKind.BUILD_FAILED,
            f"Maven {version} found, only {maven.required_version} is supported",
        )

    ctx.put(Key.MAVEN_VERSION, version)
    return f"Maven {version}"


def build_sources(ctx: Context) -> str:
    maven = ctx.config.maven
    sources = ctx.path(Key.EXTRACTED_SOURCE)

    cmd = [maven.executable, "clean", "install", *maven.params]
    if maven.modules:
        cmd += ["-pl", ",".join(maven.modules), "-am"]

    logger.info(f"Building {sources.name} (this takes a while)")
    run_command(cmd, cwd=sources, failure_kind=ErrorKind.BUILD_FAILED)

    target = sources / maven.build_target
    if not target.exists():
        raise VerificationError(ErrorKind.BUILD_FAILED, f"Build finished but {maven.build_target} is missing")

    add_artifact(target)
    ctx.put(Key.BUILD_TARGET, str(target.resolve()))
    return f"{' '.join(cmd[1:])}"
