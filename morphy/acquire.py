"""Template acquisition: local copy or remote archive download.

Local templates are copied recursively, skipping version-control metadata,
lock files and installed dependencies. Remote templates (GitHub repository
URLs by default) are downloaded as a zip archive of the default branch and
the archive's single top-level directory becomes the destination.
"""

from __future__ import annotations

import io
import re
import shutil
import tempfile
import zipfile
from collections.abc import Iterable
from pathlib import Path

import httpx

from morphy.errors import AcquisitionError
from morphy.utils import console

_GITHUB_REPO_RE = re.compile(r"github\.com[/:](?P<owner>[^/]+)/(?P<repo>[^/#?]+?)(?:\.git)?(?:[/#?].*)?$")


def is_remote(source: str, pattern: str) -> bool:
    """Return ``True`` when *source* must be downloaded rather than copied."""
    return re.search(pattern, source) is not None


def archive_url(source: str, api_url: str = "https://api.github.com") -> str:
    """Return the zip-archive URL for the default branch of a GitHub repository.

    Examples::

        archive_url("https://github.com/acme/template")
            -> "https://api.github.com/repos/acme/template/zipball"
    """
    match = _GITHUB_REPO_RE.search(source)
    if match is None:
        raise AcquisitionError(f"Not a GitHub repository URL: {source}")
    return f"{api_url.rstrip('/')}/repos/{match['owner']}/{match['repo']}/zipball"


# ---------------------------------------------------------------------------
# Local copy
# ---------------------------------------------------------------------------


def copy_template(
    source: str | Path,
    destination: str | Path,
    ignore: Iterable[str] = (),
    quiet: bool = False,
) -> Path:
    """Recursively copy a local template directory to *destination*.

    Args:
        source: Template directory.
        destination: Directory to create; must not exist yet.
        ignore: File and directory names skipped at any depth.
        quiet: Suppress the per-file progress lines.

    Raises:
        AcquisitionError: If the source is not a directory or copying fails.
    """
    source_path = Path(source)
    destination_path = Path(destination)
    if not source_path.is_dir():
        raise AcquisitionError(f"Template directory {source_path} does not exist")

    def _copy(src: str, dst: str) -> str:
        if not quiet:
            console.print(f"Copying [green]{dst}[/green]")
        return shutil.copy2(src, dst)

    try:
        shutil.copytree(
            source_path,
            destination_path,
            ignore=shutil.ignore_patterns(*ignore),
            copy_function=_copy,
        )
    except (OSError, shutil.Error) as exc:
        raise AcquisitionError(
            f"Error while copying {source_path} to {destination_path}: {exc}"
        ) from exc
    return destination_path


# ---------------------------------------------------------------------------
# Remote download
# ---------------------------------------------------------------------------


async def download_template(
    source: str,
    destination: str | Path,
    api_url: str = "https://api.github.com",
    timeout: int = 60,
) -> Path:
    """Download and unpack a remote template into *destination*.

    The archive is extracted to a temporary directory first; only a complete
    extraction is moved into place, so a failed download leaves nothing
    behind.

    Raises:
        AcquisitionError: On HTTP errors, network failures or a bad archive.
    """
    destination_path = Path(destination)
    url = archive_url(source, api_url)
    console.print(f"Downloading [green]{source}[/green]...")

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise AcquisitionError(
            f"Download of {source} failed: HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise AcquisitionError(f"Download of {source} failed: {exc}") from exc

    extract_archive(response.content, destination_path)
    return destination_path


def extract_archive(data: bytes, destination: Path) -> None:
    """Unpack zip *data* into *destination*, flattening a single top-level directory."""
    with tempfile.TemporaryDirectory(prefix="morphy-") as tmp:
        tmp_path = Path(tmp)
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                archive.extractall(tmp_path)
        except zipfile.BadZipFile as exc:
            raise AcquisitionError(f"Downloaded archive is not a valid zip file: {exc}") from exc

        entries = list(tmp_path.iterdir())
        root = entries[0] if len(entries) == 1 and entries[0].is_dir() else tmp_path
        try:
            if root is tmp_path:
                shutil.copytree(tmp_path, destination)
            else:
                shutil.move(str(root), str(destination))
        except (OSError, shutil.Error) as exc:
            shutil.rmtree(destination, ignore_errors=True)
            raise AcquisitionError(f"Error while unpacking archive to {destination}: {exc}") from exc
        except BaseException:
            # interrupted mid-move; the run is still CHECKING, so nobody else removes it
            shutil.rmtree(destination, ignore_errors=True)
            raise
