"""Steps that produce the two source trees to compare: git checkout and source artifact."""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path

from relverify.core.errors import VerificationError
from relverify.core.models import ErrorKind
from relverify.pipeline.collector import add_artifact, run_command
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key

logger = logging.getLogger(__name__)


def release_tag(ctx: Context, tag: str) -> str:
    return f"{ctx.config.repository.tag_prefix}{tag}"


def clone_repo(ctx: Context) -> str:
    """Shallow-clone the candidate tag and fetch the base tag next to it."""
    repo = ctx.config.repository
    checkout = ctx.path(Key.DIR_CHECKOUT)
    candidate = release_tag(ctx, ctx.require(Key.INPUT_GIT_TAG))
    base = release_tag(ctx, ctx.require(Key.INPUT_BASE_TAG))

    run_command(
        ["git", "clone", "--quiet", "--depth", "1", "--branch", candidate, repo.url, checkout],
        failure_kind=ErrorKind.DOWNLOAD_FAILED,
    )
    run_command(
        ["git", "fetch", "--quiet", "--depth", "1", "origin", "tag", base],
        cwd=checkout,
        failure_kind=ErrorKind.DOWNLOAD_FAILED,
    )

    add_artifact(checkout)
    ctx.put(Key.CHECKOUT_TREE, str(checkout))
    return candidate


def _archive_root(archive: tarfile.TarFile) -> str | None:
    roots = {Path(member.name).parts[0] for member in archive.getmembers() if member.name.strip("/")}
    return roots.pop() if len(roots) == 1 else None


def extract_sources(ctx: Context) -> str:
    name = ctx.config.repository.name
    version = ctx.require(Key.INPUT_VERSION)
    source_dir = ctx.path(Key.DIR_SOURCE)
    archive_path = ctx.path(Key.DIR_DOWNLOAD) / f"{name}-{version}-src.tgz"

    if not archive_path.exists():
        raise VerificationError(ErrorKind.DOWNLOAD_FAILED, f"Source artifact {archive_path.name} was not downloaded")

    source_dir.mkdir(parents=True, exist_ok=True)
    with tarfile.open(archive_path, "r:gz") as archive:
        root = _archive_root(archive)
        archive.extractall(source_dir, filter="data")

    extracted = source_dir / root if root else source_dir
    logger.debug(f"Extracted {archive_path.name} into {extracted}")
    add_artifact(extracted)
    ctx.put(Key.EXTRACTED_SOURCE, str(extracted))
    return extracted.name
