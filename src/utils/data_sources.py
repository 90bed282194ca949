"""
AccessGB - Data Source Utilities
Download helpers with retry, backoff and slow-transfer detection
"""

import time
import zipfile
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import requests

from config.settings import get_settings
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

CHUNK_SIZE = 1024 * 1024


class SlowDownloadError(RuntimeError):
    """Raised when throughput stays below the configured floor for too long."""


def _stream_to_file(
    response: requests.Response,
    save_path: Path,
    low_speed_limit: float,
    low_speed_time: float,
) -> int:
    """
    Write a streamed response to disk, aborting sustained slow transfers.

    Throughput is measured over windows of ``low_speed_time`` seconds; a
    window averaging below ``low_speed_limit`` bytes/s aborts the download.
    """
    downloaded = 0
    window_start = time.monotonic()
    window_bytes = 0

    with open(save_path, "wb") as f:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            f.write(chunk)
            downloaded += len(chunk)
            window_bytes += len(chunk)

            elapsed = time.monotonic() - window_start
            if elapsed > 0 and elapsed >= low_speed_time:
                speed = window_bytes / elapsed
                if speed < low_speed_limit:
                    raise SlowDownloadError(
                        f"Transfer speed {speed / 1e6:.2f} MB/s below limit for {elapsed:.0f}s"
                    )
                logger.debug(f"Downloaded {downloaded / (1024 * 1024):.1f} MB")
                window_start = time.monotonic()
                window_bytes = 0

    return downloaded


def download_file(
    url: str,
    save_path: Union[str, Path],
    label: Optional[str] = None,
    timeout: Optional[int] = None,
    max_attempts: Optional[int] = None,
    low_speed_limit_mb: Optional[float] = None,
    low_speed_time: Optional[int] = None,
) -> bool:
    """
    Download a file from URL, retrying with exponential backoff.

    Args:
        url: URL to download from
        save_path: Local path to save file
        label: Human readable source name for log messages
        timeout: Per-request timeout in seconds
        max_attempts: Attempts before giving up
        low_speed_limit_mb: Minimum sustained speed in MB/s (0 disables the check)
        low_speed_time: Seconds below the minimum speed before aborting

    Returns:
        True if a non-empty file was written, False otherwise
    """
    save_path = Path(save_path)
    label = label or url
    if timeout is None:
        timeout = settings.DOWNLOAD_TIMEOUT
    if max_attempts is None:
        max_attempts = settings.DOWNLOAD_MAX_ATTEMPTS
    if low_speed_limit_mb is None:
        low_speed_limit_mb = settings.DOWNLOAD_LOW_SPEED_LIMIT_MB
    if low_speed_time is None:
        low_speed_time = settings.DOWNLOAD_LOW_SPEED_TIME
    low_speed_limit = low_speed_limit_mb * 1024 * 1024

    for attempt in range(1, max_attempts + 1):
        logger.info(f"Downloading from {label} (attempt {attempt})...")
        try:
            with requests.get(url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                size = _stream_to_file(response, save_path, low_speed_limit, low_speed_time)

            if size > 0:
                logger.info(f"Download complete: {save_path} ({size / 1e6:.1f} MB)")
                return True
            logger.warning(f"Empty download from {label}")

        except (requests.exceptions.RequestException, SlowDownloadError, OSError) as e:
            logger.warning(f"Download from {label} failed on attempt {attempt}: {e}")

        if save_path.exists():
            save_path.unlink()
        if attempt < max_attempts:
            time.sleep(2 ** attempt)

    return False


def download_first_available(
    sources: Sequence[Tuple[str, str]],
    save_path: Union[str, Path],
    **kwargs,
) -> Optional[str]:
    """
    Try (label, url) sources in order until one downloads.

    Returns:
        Label of the source that succeeded, or None
    """
    for label, url in sources:
        if not url:
            continue
        if download_file(url, save_path, label=label, **kwargs):
            return label
        logger.warning(f"{label} download failed or too slow, trying next source")
    return None


def extract_zip(zip_path: Union[str, Path], target_dir: Union[str, Path], remove: bool = True) -> Path:
    """Extract an archive into target_dir and optionally delete the archive."""
    zip_path = Path(zip_path)
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(zip_path) as zf:
        zf.extractall(target_dir)
        logger.info(f"Extracted {len(zf.namelist())} files to {target_dir}")

    if remove:
        zip_path.unlink()
    return target_dir
