"""
Verification checks on the downloaded artifacts and the extracted sources.

Signature verification is delegated to gpg, comparison to diff and change
collection to git; only the SHA-512 digest is computed in-process.
"""

from __future__ import annotations

import hashlib
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, List, Optional

from relverify.core.errors import VerificationError
from relverify.core.models import ErrorKind
from relverify.pipeline.collector import add_artifact, note, run_command
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key
from relverify.pipeline.steps.checkout import release_tag

logger = logging.getLogger(__name__)

POM_NAMESPACE = "{http://maven.apache.org/POM/4.0.0}"

# Build output and VCS metadata never ship in a source release
IGNORED_DIRS = {".git", "target", "node_modules"}


# ─────────────────────────────────────────────────────────────────────────────
# Signatures
# ─────────────────────────────────────────────────────────────────────────────

def _import_key(ctx: Context, gnupg_home: Path) -> None:
    key = ctx.require(Key.INPUT_GPG_KEY)
    if Path(key).is_file():
        cmd = ["gpg", "--homedir", gnupg_home, "--batch", "--import", key]
    else:
        cmd = ["gpg", "--homedir", gnupg_home, "--batch", "--recv-keys", key]
    run_command(cmd, failure_kind=ErrorKind.SIGNATURE_INVALID)


def check_gpg(ctx: Context) -> str:
    download_dir = ctx.path(Key.DIR_DOWNLOAD)
    signatures = sorted(download_dir.glob("*.asc"))
    if not signatures:
        raise VerificationError(ErrorKind.SIGNATURE_INVALID, "No .asc signature files found")

    # Isolated keyring so the user's trust settings don't leak into the result
    gnupg_home = ctx.working_dir / "gnupg"
    gnupg_home.mkdir(mode=0o700, parents=True, exist_ok=True)
    _import_key(ctx, gnupg_home)

    invalid: List[str] = []
    for signature in signatures:
        artifact = signature.with_suffix("")
        if not artifact.exists():
            note(f"missing artifact for {signature.name}")
            invalid.append(signature.name)
            continue
        cp = run_command(
            ["gpg", "--homedir", gnupg_home, "--batch", "--verify", signature, artifact],
            check=False,
        )
        if cp.returncode != 0:
            invalid.append(signature.name)

    if invalid:
        raise VerificationError(
            ErrorKind.SIGNATURE_INVALID,
            f"{len(invalid)} of {len(signatures)} signatures invalid: {', '.join(invalid)}",
        )
    return f"{len(signatures)} signatures"


# ─────────────────────────────────────────────────────────────────────────────
# Checksums
# ─────────────────────────────────────────────────────────────────────────────

def sha512_of_file(path: Path) -> str:
    h = hashlib.sha512()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def read_expected_digest(checksum_file: Path) -> str:
    """Parse '<hex>' or '<hex>  <file name>' as written by sha512sum."""
    content = checksum_file.read_text(encoding="utf-8").split()
    if not content:
        raise VerificationError(ErrorKind.CHECKSUM_MISMATCH, f"{checksum_file.name} is empty")
    return content[0].lower()


def check_sha512(ctx: Context) -> str:
    download_dir = ctx.path(Key.DIR_DOWNLOAD)
    checksum_files = sorted(download_dir.glob("*.sha512"))
    if not checksum_files:
        raise VerificationError(ErrorKind.CHECKSUM_MISMATCH, "No .sha512 checksum files found")

    mismatches: List[str] = []
    for checksum_file in checksum_files:
        artifact = checksum_file.with_suffix("")
        if not artifact.exists():
            note(f"{artifact.name}: missing")
            mismatches.append(artifact.name)
            continue
        expected = read_expected_digest(checksum_file)
        actual = sha512_of_file(artifact)
        if actual != expected:
            note(f"{artifact.name}: FAILED (expected {expected}, got {actual})")
            mismatches.append(artifact.name)
        else:
            note(f"{artifact.name}: OK")

    if mismatches:
        raise VerificationError(
            ErrorKind.CHECKSUM_MISMATCH,
            f"{len(mismatches)} of {len(checksum_files)} checksums failed: {', '.join(mismatches)}",
        )
    return f"{len(checksum_files)} checksums"


# ─────────────────────────────────────────────────────────────────────────────
# Source comparison and versions
# ─────────────────────────────────────────────────────────────────────────────

def compare_checkout(ctx: Context) -> str:
    """diff the git checkout against the extracted source artifact."""
    checkout = ctx.path(Key.CHECKOUT_TREE)
    sources = ctx.path(Key.EXTRACTED_SOURCE)

    cmd = ["diff", "-qr"]
    for name in sorted(IGNORED_DIRS):
        cmd.append(f"--exclude={name}")
    cp = run_command(cmd + [checkout, sources], check=False)

    diff_file = ctx.working_dir / "checkout_vs_sources.diff"
    diff_file.write_text(cp.stdout or "", encoding="utf-8")
    add_artifact(diff_file)

    if cp.returncode == 1:
        differences = len((cp.stdout or "").splitlines())
        raise VerificationError(
            ErrorKind.DIFF_DETECTED,
            f"{differences} difference(s) between checkout and sources, see {diff_file.name}",
        )
    if cp.returncode != 0:
        # diff names what went wrong on its last output line
        lines = (cp.stdout or "").strip().splitlines()
        reason = f": {lines[-1]}" if lines else ""
        raise VerificationError(ErrorKind.STEP_CRASHED, f"diff exited with {cp.returncode}{reason}")
    return "identical"


def iter_poms(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("pom.xml")):
        if IGNORED_DIRS.intersection(path.relative_to(root).parts):
            continue
        yield path


def pom_version(pom: Path) -> Optional[str]:
    """Project version of a POM, falling back to the inherited parent version."""
    project = ET.parse(pom).getroot()
    for path in (f"{POM_NAMESPACE}version", f"{POM_NAMESPACE}parent/{POM_NAMESPACE}version",
                 "version", "parent/version"):
        element = project.find(path)
        if element is not None and element.text:
            return element.text.strip()
    return None


def check_pom_versions(ctx: Context) -> str:
    version = ctx.require(Key.INPUT_VERSION)
    sources = ctx.path(Key.EXTRACTED_SOURCE)

    poms = list(iter_poms(sources))
    if not poms:
        raise VerificationError(ErrorKind.VERSION_MISMATCH, f"No pom.xml found below {sources}")

    wrong: List[str] = []
    for pom in poms:
        found = pom_version(pom)
        if found != version:
            rel = pom.relative_to(sources)
            note(f"{rel}: {found}")
            wrong.append(str(rel))

    if wrong:
        raise VerificationError(
            ErrorKind.VERSION_MISMATCH,
            f"{len(wrong)} of {len(poms)} pom files don't declare version {version}",
        )
    return f"{len(poms)} pom files at {version}"


def collect_notice_changes(ctx: Context) -> str:
    """Write NOTICE and pom changes since the base release for manual review."""
    checkout = ctx.path(Key.CHECKOUT_TREE)
    base = release_tag(ctx, ctx.require(Key.INPUT_BASE_TAG))
    candidate = release_tag(ctx, ctx.require(Key.INPUT_GIT_TAG))
    pathspec = ["--", "*pom.xml", "*NOTICE*"]

    names = run_command(["git", "diff", "--name-only", base, candidate] + pathspec, cwd=checkout)
    changed = [line for line in (names.stdout or "").splitlines() if line.strip()]

    full = run_command(["git", "diff", base, candidate] + pathspec, cwd=checkout)
    diff_file = ctx.working_dir / f"notice_pom_changes_{base}_{candidate}.diff"
    diff_file.write_text(full.stdout or "", encoding="utf-8")
    add_artifact(diff_file)

    ctx.put(Key.NOTICE_DIFF, str(diff_file))
    return f"{len(changed)} changed file(s) to review in {diff_file.name}"
