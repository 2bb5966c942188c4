"""
Step that downloads every artifact listed at the release candidate URL.

Release candidates are published as a plain directory listing (svn dist or
an Apache httpd index). The listing is fetched once, every relative link to
a file is followed and saved into the download directory.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urljoin

import httpx

from relverify.core.errors import StepTimeoutError, VerificationError
from relverify.core.models import ErrorKind
from relverify.pipeline.collector import add_artifact, current_evidence, note
from relverify.pipeline.context import Context
from relverify.pipeline.keys import Key

logger = logging.getLogger(__name__)

HREF_PATTERN = re.compile(r'href\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE)

CHUNK_SIZE = 1024 * 1024


def parse_listing(html: str) -> List[str]:
    """Return file names linked from a directory listing, in page order.

    Sort links, parent links, absolute URLs and sub-directories are ignored.
    """
    names: List[str] = []
    for href in HREF_PATTERN.findall(html):
        if href.startswith(("?", "#", "/", "..")) or "://" in href or href.startswith("mailto:"):
            continue
        if href.endswith("/"):
            continue
        name = unquote(href.split("?", 1)[0])
        if "/" in name or not name:
            continue
        if name not in names:
            names.append(name)
    return names


def _fetch(client: httpx.Client, url: str, target: Path) -> None:
    # httpx timeouts apply per read, the step limit to the whole transfer
    evidence = current_evidence()
    with client.stream("GET", url) as response:
        response.raise_for_status()
        with open(target, "wb") as f:
            for chunk in response.iter_bytes(CHUNK_SIZE):
                if evidence is not None and evidence.overran():
                    raise StepTimeoutError(
                        f"Download of {url} did not finish within {evidence.timeout:g}s"
                    )
                f.write(chunk)


def download_artifacts(ctx: Context, transport: Optional[httpx.BaseTransport] = None) -> str:
    url = ctx.require(Key.INPUT_URL).rstrip("/") + "/"
    download_dir = ctx.path(Key.DIR_DOWNLOAD)
    download_dir.mkdir(parents=True, exist_ok=True)

    with httpx.Client(transport=transport, follow_redirects=True, timeout=60.0) as client:
        listing = client.get(url)
        listing.raise_for_status()

        names = parse_listing(listing.text)
        if not names:
            raise VerificationError(ErrorKind.DOWNLOAD_FAILED, f"No artifacts listed at {url}")

        logger.info(f"Downloading {len(names)} artifacts from {url}")
        files: List[str] = []
        for name in names:
            target = download_dir / name
            _fetch(client, urljoin(url, name), target)
            note(f"downloaded {name} ({target.stat().st_size} bytes)")
            add_artifact(target)
            files.append(str(target))

    ctx.put(Key.DOWNLOADED_FILES, files)
    return f"{len(files)} files"
