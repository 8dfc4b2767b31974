"""
Common utility functions for rt-kernel-prep.
"""

import gzip
import logging
import re
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import requests
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress

from rtkernel.exceptions import FetchError
from rtkernel.models import version_key


# Rich console for output
console = Console()


def setup_logging(
    name: str = "rtkernel",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Set up logging with Rich handler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler with Rich
    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


# Default logger
logger = setup_logging()


def fetch_listing(url: str, timeout: int = 30) -> str:
    """
    Fetch a plain HTTP(S) directory listing.

    Args:
        url: Listing URL
        timeout: Request timeout in seconds

    Returns:
        Listing body as text

    Raises:
        FetchError: NOT_FOUND on HTTP 404, TRANSPORT otherwise
    """
    logger.debug(f"Fetching listing {url}")
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"Failed to fetch {url}: {e}", FetchError.TRANSPORT, url) from e

    if response.status_code == 404:
        raise FetchError(f"Listing not found: {url}", FetchError.NOT_FOUND, url)
    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise FetchError(f"Failed to fetch {url}: {e}", FetchError.TRANSPORT, url) from e
    return response.text


def extract_hrefs(listing: str) -> List[str]:
    """Extract link targets from an HTML directory listing."""
    return re.findall(r'<a\s+href="([^"]+)"', listing, re.IGNORECASE)


def download_file(
    url: str,
    dest_path: Path,
    timeout: int = 600,
    show_progress: bool = True,
) -> Path:
    """
    Download a file from URL.

    Args:
        url: URL to download from
        dest_path: Destination file path, overwritten if present
        timeout: Request timeout in seconds
        show_progress: Show download progress when the size is known

    Returns:
        The destination path

    Raises:
        FetchError: NOT_FOUND on HTTP 404, TRANSPORT on any other failure
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading {url}")

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            if response.status_code == 404:
                raise FetchError(f"Artifact not found: {url}", FetchError.NOT_FOUND, url)
            response.raise_for_status()
            total_size = int(response.headers.get("content-length", 0))

            downloaded = 0
            with open(dest_path, "wb") as f:
                if show_progress and total_size > 0:
                    with Progress(console=console) as progress:
                        task = progress.add_task(f"Downloading {dest_path.name}", total=total_size)
                        for chunk in response.iter_content(chunk_size=8192):
                            f.write(chunk)
                            downloaded += len(chunk)
                            progress.update(task, advance=len(chunk))
                else:
                    for chunk in response.iter_content(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
    except (requests.RequestException, OSError) as e:
        if dest_path.exists():
            dest_path.unlink()
        raise FetchError(f"Failed to download {url}: {e}", FetchError.TRANSPORT, url) from e

    logger.debug(f"Download complete: {dest_path} ({downloaded} bytes)")
    return dest_path


def gunzip_file(gz_path: Path, dest_path: Optional[Path] = None) -> Path:
    """Decompress a .gz file next to itself (like ``gunzip``) and remove the archive."""
    if dest_path is None:
        dest_path = gz_path.with_suffix("")
    with gzip.open(gz_path, "rb") as src, open(dest_path, "wb") as dst:
        shutil.copyfileobj(src, dst)
    gz_path.unlink()
    return dest_path


def run_command(
    cmd: List[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = None,
    env: Optional[Dict[str, str]] = None,
    input_text: Optional[str] = None,
) -> Tuple[int, str, str]:
    """
    Run an external command.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory
        timeout: Command timeout in seconds
        env: Full environment for the command (inherits ours when None)
        input_text: Text fed to stdin; an empty string closes stdin immediately

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            timeout=timeout,
            env=env,
            input=input_text,
            capture_output=True,
            text=True,
        )
        return result.returncode, result.stdout or "", result.stderr or ""
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        return -1, "", f"Command timed out after {timeout}s"
    except OSError as e:
        logger.error(f"Command failed: {e}")
        return -1, "", str(e)


def sort_versions(values: Iterable[str]) -> List[str]:
    """Sort strings in version order, ties broken lexicographically."""
    return sorted(values, key=lambda v: (version_key(v), v))


def log_file_name(prefix: str) -> str:
    """Timestamped log file name."""
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"


def format_duration(seconds: int) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"
