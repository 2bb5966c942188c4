"""
Context keys for values shared between release verification steps.

Initial inputs are set when the context is built from the release URL;
everything else is written by exactly one step into its own output slot.
"""

from enum import StrEnum


class Key(StrEnum):
    # ─────────────────────────────────────────────────────────────────────────────
    # Inputs (set during context construction)
    # ─────────────────────────────────────────────────────────────────────────────

    # Release candidate URL without trailing slash
    # Example: https://dist.apache.org/repos/dist/dev/flink/flink-1.16.0-rc1
    INPUT_URL = "INPUT_URL"

    # GPG key id/fingerprint or path to a KEYS file
    INPUT_GPG_KEY = "INPUT_GPG_KEY"

    # Base git tag without prefix, e.g. '1.15.2'
    INPUT_BASE_TAG = "INPUT_BASE_TAG"

    # Candidate git tag without prefix, e.g. '1.16.0-rc1'
    INPUT_GIT_TAG = "INPUT_GIT_TAG"

    # Released version, e.g. '1.16.0'
    INPUT_VERSION = "INPUT_VERSION"

    # ─────────────────────────────────────────────────────────────────────────────
    # Directories
    # ─────────────────────────────────────────────────────────────────────────────

    DIR_DOWNLOAD = "DIR_DOWNLOAD"     # <working_dir>/downloaded_artifacts
    DIR_SOURCE = "DIR_SOURCE"         # <working_dir>/src
    DIR_CHECKOUT = "DIR_CHECKOUT"     # <working_dir>/checkout

    # ─────────────────────────────────────────────────────────────────────────────
    # Step outputs
    # ─────────────────────────────────────────────────────────────────────────────

    # List of downloaded file paths
    DOWNLOADED_FILES = "DOWNLOADED_FILES"

    # Root of the extracted source artifact
    EXTRACTED_SOURCE = "EXTRACTED_SOURCE"

    # Root of the git checkout at the candidate tag
    CHECKOUT_TREE = "CHECKOUT_TREE"

    # Diff file with NOTICE/pom changes since the base tag
    NOTICE_DIFF = "NOTICE_DIFF"

    # Directory holding the built distribution
    BUILD_TARGET = "BUILD_TARGET"

    # Version string reported by the build tool
    MAVEN_VERSION = "MAVEN_VERSION"
