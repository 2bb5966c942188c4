"""Release candidate coordinates, context construction and the standard step list."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from relverify.core.config import VerifyConfig
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key
from relverify.pipeline.step import Step
from relverify.pipeline.steps.build import build_sources, check_maven_version
from relverify.pipeline.steps.checkout import clone_repo, extract_sources
from relverify.pipeline.steps.checks import (
    check_gpg,
    check_pom_versions,
    check_sha512,
    collect_notice_changes,
    compare_checkout,
)
from relverify.pipeline.steps.download import download_artifacts
from relverify.pipeline.steps.smoke import session_cluster_run

RC_SUFFIX = re.compile(r"-rc\d+$")

DOWNLOAD_DIR_NAME = "downloaded_artifacts"


class ReleaseCoordinates(BaseModel):
    """What a release candidate URL tells us."""
    url: str
    git_tag: str    # e.g. 1.16.0-rc1
    version: str    # e.g. 1.16.0


def parse_release_url(url: str, repository_name: str) -> ReleaseCoordinates:
    """Derive tag and version from a URL ending in '<repository>-<tag>'.

    >>> parse_release_url("https://dist.apache.org/repos/dist/dev/flink/flink-1.16.0-rc1/", "flink").version
    '1.16.0'
    """
    url = url.rstrip("/")
    last_segment = url.rsplit("/", 1)[-1]

    prefix = f"{repository_name}-"
    if not last_segment.startswith(prefix) or len(last_segment) == len(prefix):
        raise ValueError(f"URL must end in '{prefix}<version>-rc<N>', got '{last_segment}'")

    git_tag = last_segment[len(prefix):]
    version = RC_SUFFIX.sub("", git_tag)
    return ReleaseCoordinates(url=url, git_tag=git_tag, version=version)


def build_context(
    url: str,
    gpg_key: str,
    base_tag: str,
    working_dir: Path,
    config: Optional[VerifyConfig] = None,
) -> Context:
    config = config or VerifyConfig.default()
    coordinates = parse_release_url(url, config.repository.name)
    working_dir = Path(working_dir)

    return Context(
        working_dir=working_dir,
        config=config,
        inputs={
            Key.INPUT_URL: coordinates.url,
            Key.INPUT_GPG_KEY: gpg_key,
            Key.INPUT_BASE_TAG: base_tag,
            Key.INPUT_GIT_TAG: coordinates.git_tag,
            Key.INPUT_VERSION: coordinates.version,
            Key.DIR_DOWNLOAD: str(working_dir / DOWNLOAD_DIR_NAME),
            Key.DIR_SOURCE: str(working_dir / "src"),
            Key.DIR_CHECKOUT: str(working_dir / "checkout"),
        },
    )


def release_steps(config: Optional[VerifyConfig] = None) -> List[Step]:
    """The verification steps in the order a reviewer reads them."""
    config = config or VerifyConfig.default()

    steps = [
        Step("maven_version", "Checked Maven version", check_maven_version),
        Step("download", "Downloaded artifacts", download_artifacts),
        Step("checkout", "Checked out release tag", clone_repo),
        Step("extract_sources", "Extracted source artifact", extract_sources, requires=("download",)),
        Step("signatures", "Verified GPG signatures", check_gpg, requires=("download",)),
        Step("checksums", "Verified SHA512 checksums", check_sha512, requires=("download",)),
        Step(
            "compare_checkout",
            "Compared checkout with provided sources",
            compare_checkout,
            requires=("checkout", "extract_sources"),
        ),
        Step("pom_versions", "Verified pom file versions", check_pom_versions, requires=("extract_sources",)),
        Step(
            "notice_changes",
            "Went over NOTICE file/pom files changes without finding anything suspicious",
            collect_notice_changes,
            requires=("checkout",),
        ),
        Step(
            "build",
            "Built from sources",
            build_sources,
            requires=("maven_version", "extract_sources"),
        ),
    ]

    # Session clusters share ports, so each example run waits for the previous one
    previous = "build"
    for name, jar in config.smoke_test.examples.items():
        step_id = f"smoke_{name}"
        steps.append(Step(
            step_id,
            f"Deployed standalone session cluster and ran {Path(jar).stem} ({name}): "
            "nothing suspicious in log files found",
            session_cluster_run(f"session-{name}", jar),
            requires=tuple(dict.fromkeys(("build", previous))),
        ))
        previous = step_id

    return steps
