"""
Configuration constants and distribution series mappings for rt-kernel-prep.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import os


@dataclass
class SeriesMapping:
    """Mapping between an Ubuntu series and its raspi kernel."""
    name: str
    kernel_version: str
    branch: str = "master"

    @property
    def series(self) -> str:
        """Get the kernel major.minor series (e.g., '5.15' from '5.15.0')."""
        return ".".join(self.kernel_version.split(".")[:2])


# Supported Ubuntu series
SERIES_MAPPINGS: Dict[str, SeriesMapping] = {
    "jammy": SeriesMapping(name="jammy", kernel_version="5.15.0"),
    "focal": SeriesMapping(name="focal", kernel_version="5.4.0"),
}

SUPPORTED_SERIES = list(SERIES_MAPPINGS.keys())

# dpkg architecture -> GNU cross toolchain triple
ARCH_TRIPLES: Dict[str, str] = {
    "arm64": "aarch64-linux-gnu",
    "armhf": "arm-linux-gnueabihf",
    "amd64": "x86_64-linux-gnu",
}

SUPPORTED_ARCHES = list(ARCH_TRIPLES.keys())


@dataclass
class BuildConfig:
    """Invocation configuration for a tree preparation run."""

    # Target
    arch: str = "arm64"
    series: str = "jammy"
    kernel_version: Optional[str] = None
    flavour: str = "raspi"

    # Explicit overrides, skip resolution when set
    kernel_release: Optional[str] = None
    rt_patch: Optional[str] = None

    # Tracing modules
    lttng_version: str = "2.13"
    enable_tracing: bool = True

    # Directories
    work_dir: Path = field(default_factory=lambda: Path.home() / "linux_build")
    kernel_dir_name: str = "linux-raspi"
    config_fragment: Path = field(default_factory=lambda: Path(".config-fragment"))

    # Remote locations
    pool_url: str = "http://ports.ubuntu.com/pool/main/l/linux-raspi/"
    rt_projects_url: str = "http://cdn.kernel.org/pub/linux/kernel/projects/rt/"
    git_url_template: str = (
        "https://git.launchpad.net/~ubuntu-kernel/ubuntu/+source/linux-raspi/+git/{series}"
    )

    # Network settings
    network_timeout: int = 30
    download_timeout: int = 600

    # Build environment
    run_debian_rules: bool = True

    @classmethod
    def from_env(cls) -> "BuildConfig":
        """Create configuration from environment variables."""
        config = cls(
            arch=os.getenv("RT_KERNEL_ARCH", "arm64"),
            series=os.getenv("RT_KERNEL_SERIES", "jammy"),
            kernel_version=os.getenv("RT_KERNEL_VERSION") or None,
            kernel_release=os.getenv("RT_KERNEL_UNAME_R") or None,
            rt_patch=os.getenv("RT_KERNEL_RT_PATCH") or None,
            lttng_version=os.getenv("RT_KERNEL_LTTNG_VERSION", "2.13"),
            network_timeout=int(os.getenv("RT_KERNEL_TIMEOUT", "30")),
        )
        work_dir = os.getenv("RT_KERNEL_WORK_DIR")
        if work_dir:
            config.work_dir = Path(work_dir)
        fragment = os.getenv("RT_KERNEL_FRAGMENT")
        if fragment:
            config.config_fragment = Path(fragment)
        return config

    @property
    def series_mapping(self) -> Optional[SeriesMapping]:
        """Get the mapping for the configured Ubuntu series."""
        return SERIES_MAPPINGS.get(self.series)

    @property
    def kernel_version_prefix(self) -> str:
        """Kernel version used to narrow the build-metadata listing."""
        if self.kernel_version:
            return self.kernel_version
        kernel_version = get_kernel_version_for_series(self.series)
        if not kernel_version:
            raise ValueError(f"Unsupported series: {self.series}")
        return kernel_version

    @property
    def kernel_series(self) -> str:
        """Kernel major.minor series (e.g., '5.15')."""
        return ".".join(self.kernel_version_prefix.split(".")[:2])

    @property
    def cross_triple(self) -> str:
        """GNU triple of the cross toolchain for the target arch."""
        return ARCH_TRIPLES.get(self.arch, f"{self.arch}-linux-gnu")

    @property
    def cross_compile(self) -> str:
        """CROSS_COMPILE prefix passed to the kernel build."""
        return f"{self.cross_triple}-"

    @property
    def git_url(self) -> str:
        """Launchpad git URL for the configured series."""
        return self.git_url_template.format(series=self.series)

    @property
    def git_branch(self) -> str:
        mapping = self.series_mapping
        return mapping.branch if mapping else "master"

    def rt_patch_url(self, series: str) -> str:
        """RT projects directory holding every patch of a kernel series."""
        return f"{self.rt_projects_url.rstrip('/')}/{series}/older/"

    @property
    def source_dir(self) -> Path:
        """Kernel source tree location."""
        return self.work_dir / self.kernel_dir_name

    @property
    def state_dir(self) -> Path:
        """Directory holding persisted resolved values."""
        return self.work_dir / "state"

    @property
    def log_dir(self) -> Path:
        return self.work_dir / "logs"

    @property
    def download_dir(self) -> Path:
        """Directory for downloaded archives and extracted build info."""
        return self.work_dir / "downloads"


def get_kernel_version_for_series(series: str) -> Optional[str]:
    """Get default kernel version for an Ubuntu series."""
    mapping = SERIES_MAPPINGS.get(series)
    return mapping.kernel_version if mapping else None


def validate_series(series: str) -> bool:
    """Check if an Ubuntu series is supported."""
    return series in SUPPORTED_SERIES


def validate_arch(arch: str) -> bool:
    """Check if an architecture has a known cross toolchain."""
    return arch in SUPPORTED_ARCHES

