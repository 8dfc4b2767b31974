"""
linux-buildinfo download and base configuration extraction.
"""

import re
from typing import Optional

from rtkernel.common import download_file, logger, run_command
from rtkernel.config import BuildConfig
from rtkernel.exceptions import FetchError, ResolutionError
from rtkernel.kconfig import ConfigurationSet
from rtkernel.models import KernelReleaseId


def tag_package_version(tag: str, release: KernelReleaseId) -> str:
    """
    Extract the package version component of a source tag.

    ``Ubuntu-raspi-5.15.0-1023.25`` gives ``1023.25`` for 5.15.0-1023-raspi.
    """
    match = re.search(
        rf"-{re.escape(release.kernel_version)}-({release.abi}\.[A-Za-z0-9.+~]+)$",
        tag,
    )
    if not match:
        raise ResolutionError(
            f"Tag {tag} carries no package version for {release}",
            ResolutionError.NO_TAG,
        )
    return match.group(1)


def buildinfo_filename(release: KernelReleaseId, tag: str, arch: str) -> str:
    """Deterministic linux-buildinfo package name of a release and tag."""
    version = tag_package_version(tag, release)
    return f"linux-buildinfo-{release}_{release.kernel_version}-{version}_{arch}.deb"


class BuildInfoFetcher:
    """Download linux-buildinfo and read the reference kernel config from it."""

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or BuildConfig()

    def fetch(self, release: KernelReleaseId, source_tag: str) -> ConfigurationSet:
        arch = release.arch or self.config.arch
        filename = buildinfo_filename(release, source_tag, arch)
        url = f"{self.config.pool_url.rstrip('/')}/{filename}"

        download_dir = self.config.download_dir
        deb_path = download_file(url, download_dir / filename, timeout=self.config.download_timeout)

        extract_dir = download_dir / "buildinfo"
        extract_dir.mkdir(parents=True, exist_ok=True)
        returncode, _, stderr = run_command(["dpkg-deb", "-x", str(deb_path), str(extract_dir)])
        if returncode != 0:
            raise FetchError(f"Failed to extract {filename}: {stderr.strip()}", FetchError.TRANSPORT, url)

        config_path = extract_dir / "usr" / "lib" / "linux" / str(release) / "config"
        if not config_path.exists():
            raise FetchError(f"{filename} has no kernel config for {release}", FetchError.NOT_FOUND, url)

        base = ConfigurationSet.from_file(config_path)
        logger.info(f"Loaded base config with {len(base)} options from {filename}")
        return base
