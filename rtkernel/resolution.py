"""
Version resolution across the distribution release, RT patch and git tag namespaces.
"""

from typing import Iterable, Optional, Union

from rtkernel.catalog import VersionCatalog
from rtkernel.common import logger, sort_versions
from rtkernel.exceptions import ResolutionError
from rtkernel.models import KernelReleaseId, KernelVersion, RTPatchVersion


class KernelReleaseResolver:
    """Pick the raspi kernel release to build."""

    def __init__(self, catalog: VersionCatalog):
        self.catalog = catalog

    def resolve(
        self,
        hint: Optional[KernelReleaseId],
        arch: str,
        kernel_version_prefix: str,
    ) -> KernelReleaseId:
        """
        Resolve the kernel release.

        An explicit hint is trusted as-is. Otherwise the latest build-metadata
        package for ``arch`` within ``kernel_version_prefix`` wins.

        Args:
            hint: Release supplied by the user, if any
            arch: dpkg architecture (e.g. "arm64")
            kernel_version_prefix: Kernel version narrowing the listing (e.g. "5.15.0")

        Returns:
            The resolved KernelReleaseId

        Raises:
            ResolutionError: NO_MATCH when nothing in the listing matches
        """
        if hint is not None:
            logger.info(f"Using requested kernel release {hint}")
            return hint

        entries = [
            entry for entry in self.catalog.list_kernel_releases(arch, kernel_version_prefix)
            if entry.matches(arch, kernel_version_prefix)
        ]
        if not entries:
            raise ResolutionError(
                f"No linux-buildinfo package for arch {arch} and kernel {kernel_version_prefix}",
                ResolutionError.NO_MATCH,
            )

        latest = max(entries, key=lambda e: (e.sort_key, e.filename))
        logger.info(f"Resolved kernel release {latest.release} ({latest.package_version})")
        return latest.release.with_arch(arch)


class PatchVersionMatcher:
    """Find the RT patch closest to, and not newer than, the kernel sublevel."""

    def __init__(self, catalog: VersionCatalog):
        self.catalog = catalog

    def match(
        self,
        hint: Optional[RTPatchVersion],
        target_kernel_version: Union[str, KernelVersion],
    ) -> RTPatchVersion:
        if isinstance(target_kernel_version, str):
            target_kernel_version = KernelVersion.parse(target_kernel_version)
        target = target_kernel_version

        if hint is not None:
            if hint.series != target.series or hint.sublevel > target.sublevel:
                logger.warning(
                    f"Requested RT patch {hint} does not match kernel {target}, using it anyway"
                )
            else:
                logger.info(f"Using requested RT patch {hint}")
            return hint

        candidates = [
            patch for patch in self.catalog.list_patch_versions(target.series)
            if patch.series == target.series and patch.sublevel <= target.sublevel
        ]
        if not candidates:
            raise ResolutionError(
                f"No RT patch at or below {target} in series {target.series}",
                ResolutionError.NO_CANDIDATE,
            )

        nearest = max(candidates)
        logger.info(f"Matched RT patch {nearest} for kernel {target}")
        return nearest


class SourceTagResolver:
    """Select the git tag of a kernel release."""

    def resolve_tag(self, tags: Iterable[str], release: KernelReleaseId) -> str:
        token = release.abi_token
        matching = [tag for tag in tags if token in tag]
        if not matching:
            raise ResolutionError(
                f"No tag containing {token} for release {release}",
                ResolutionError.NO_TAG,
            )

        tag = sort_versions(set(matching))[-1]
        logger.info(f"Resolved source tag {tag}")
        return tag
