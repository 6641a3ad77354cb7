# =============================================================================
# Download Service — Source Documents and Sample Databases
# =============================================================================
#
# download_file streams a binary file to disk with a tqdm progress bar and
# skips the request when the file is already present. fetch_text returns a
# whole text document and enforces a minimum length.
#
# DESIGN DECISION: Whatever interrupts a streamed download, the partial
# file is deleted before the error propagates. A file on disk is always
# a complete one.
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path

import requests
from tqdm import tqdm

logger = logging.getLogger(__name__)

_TIMEOUT = (10, 120)


class DownloadError(RuntimeError):
    """An HTTP download failed or returned unusable content."""

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def download_file(url: str, destination: Path) -> Path:
    """
    Download `url` to `destination` unless the file already exists.

    Args:
        url: Source URL
        destination: Target file path; parent directories are created

    Returns:
        Path to the local file

    Raises:
        DownloadError: On connection errors or a non-2xx response. Any
            partially written file is removed.
    """
    destination = Path(destination)
    if destination.exists():
        logger.info("File already exists, skipping download: %s", destination)
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s to %s", url, destination)

    try:
        response = requests.get(url, stream=True, timeout=_TIMEOUT)
    except requests.RequestException as e:
        raise DownloadError(url, f"Failed to download {url}: {e}") from e

    with response:
        if not response.ok:
            raise DownloadError(
                url,
                f"Failed to download {url}. "
                f"HTTP {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        total_size = int(response.headers.get("content-length", 0))
        try:
            with open(destination, "wb") as f, tqdm(
                total=total_size,
                unit="B",
                unit_scale=True,
                desc=destination.name,
            ) as pbar:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        pbar.update(len(chunk))
        except requests.RequestException as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(url, f"Download of {url} interrupted: {e}") from e
        except BaseException:
            # A truncated file would be reused as if complete on the next run
            destination.unlink(missing_ok=True)
            raise

    logger.info("Saved %s", destination)
    return destination


def fetch_text(url: str, min_length: int = 0) -> str:
    """
    Fetch a text document.

    Raises:
        DownloadError: On a non-2xx response or when the body is shorter
            than `min_length` characters.
    """
    try:
        response = requests.get(url, timeout=_TIMEOUT)
    except requests.RequestException as e:
        raise DownloadError(url, f"Failed to download {url}: {e}") from e

    if not response.ok:
        raise DownloadError(
            url,
            f"Failed to download {url}. HTTP {response.status_code} {response.reason}",
            status_code=response.status_code,
        )

    text = response.text
    if len(text) < min_length:
        raise DownloadError(
            url,
            f"Downloaded text from {url} is too short "
            f"({len(text)} chars, expected at least {min_length})",
            status_code=response.status_code,
        )
    return text
