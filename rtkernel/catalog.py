"""
Remote version listings: Ubuntu ports pool and kernel.org RT projects.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from rtkernel.common import extract_hrefs, fetch_listing, logger
from rtkernel.config import BuildConfig
from rtkernel.models import BuildInfoEntry, RTPatchVersion


class VersionCatalog(ABC):
    """Read-only access to parsed version listings."""

    @abstractmethod
    def list_kernel_releases(self, arch: str, prefix: str) -> List[BuildInfoEntry]:
        """List build-metadata packages for an arch and kernel version prefix."""

    @abstractmethod
    def list_patch_versions(self, series: str) -> List[RTPatchVersion]:
        """List RT patch versions published for a kernel series (e.g. '5.15')."""


class HttpVersionCatalog(VersionCatalog):
    """
    Catalog backed by the plain HTTP directory listings.

    Listings are fetched at most once per instance.
    """

    RT_PATCH_PATTERN = re.compile(r"^patch-(.+)\.patch\.gz$")

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or BuildConfig()
        self._pool_entries: Optional[List[BuildInfoEntry]] = None
        self._patch_listings: Dict[str, List[RTPatchVersion]] = {}

    def _load_pool(self) -> List[BuildInfoEntry]:
        if self._pool_entries is None:
            listing = fetch_listing(self.config.pool_url, timeout=self.config.network_timeout)
            entries = []
            for href in extract_hrefs(listing):
                entry = BuildInfoEntry.from_filename(href.rsplit("/", 1)[-1])
                if entry:
                    entries.append(entry)
            logger.debug(f"Parsed {len(entries)} linux-buildinfo entries from {self.config.pool_url}")
            self._pool_entries = entries
        return self._pool_entries

    def list_kernel_releases(self, arch: str, prefix: str) -> List[BuildInfoEntry]:
        return [
            entry for entry in self._load_pool()
            if entry.release.flavour == self.config.flavour and entry.matches(arch, prefix)
        ]

    def list_patch_versions(self, series: str) -> List[RTPatchVersion]:
        if series not in self._patch_listings:
            url = self.config.rt_patch_url(series)
            listing = fetch_listing(url, timeout=self.config.network_timeout)

            versions = set()
            for href in extract_hrefs(listing):
                match = self.RT_PATCH_PATTERN.match(href.rsplit("/", 1)[-1])
                if not match:
                    continue
                try:
                    version = RTPatchVersion.parse(match.group(1))
                except ValueError:
                    # -rc based patches are not candidates
                    continue
                if version.series == series:
                    versions.add(version)

            logger.debug(f"Parsed {len(versions)} RT patches from {url}")
            self._patch_listings[series] = sorted(versions)
        return self._patch_listings[series]
