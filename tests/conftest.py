"""
Pytest configuration and fixtures for rt-kernel-prep tests.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from rtkernel.catalog import VersionCatalog
from rtkernel.config import BuildConfig
from rtkernel.models import BuildInfoEntry, KernelVersion, RTPatchVersion


POOL_LISTING = """<html><body>
<a href="linux-buildinfo-5.15.0-1020-raspi_5.15.0-1020.22_arm64.deb">linux-buildinfo-5.15.0-1020-raspi_5.15.0-1020.22_arm64.deb</a>
<a href="linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb">linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb</a>
<a href="linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_armhf.deb">linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_armhf.deb</a>
<a href="linux-buildinfo-5.4.0-1080-raspi_5.4.0-1080.91_arm64.deb">linux-buildinfo-5.4.0-1080-raspi_5.4.0-1080.91_arm64.deb</a>
<a href="linux-headers-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb">linux-headers-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb</a>
<a href="linux-raspi_5.15.0-1023.25.dsc">linux-raspi_5.15.0-1023.25.dsc</a>
</body></html>
"""

RT_LISTING = """<html><body>
<a href="../">../</a>
<a href="patch-5.15-rt17.patch.gz">patch-5.15-rt17.patch.gz</a>
<a href="patch-5.15.3-rt21.patch.gz">patch-5.15.3-rt21.patch.gz</a>
<a href="patch-5.15.70-rt50.patch.gz">patch-5.15.70-rt50.patch.gz</a>
<a href="patch-5.15.70-rt50.patch.xz">patch-5.15.70-rt50.patch.xz</a>
<a href="patch-5.15.74-rt52.patch.gz">patch-5.15.74-rt52.patch.gz</a>
<a href="patch-5.15.74-rt53.patch.gz">patch-5.15.74-rt53.patch.gz</a>
<a href="patch-5.15.76-rt53.patch.gz">patch-5.15.76-rt53.patch.gz</a>
<a href="patch-5.15-rc7-rt15.patch.gz">patch-5.15-rc7-rt15.patch.gz</a>
<a href="patches-5.15.76-rt53.tar.gz">patches-5.15.76-rt53.tar.gz</a>
</body></html>
"""

BASE_CONFIG = """#
# Automatically generated file; DO NOT EDIT.
# Linux/arm64 5.15.74 Kernel Configuration
#
CONFIG_LOCALVERSION=""
CONFIG_PREEMPT=y
# CONFIG_PREEMPT_RT is not set
CONFIG_HZ_250=y
CONFIG_HZ=250
CONFIG_NO_HZ_IDLE=y
CONFIG_VIRTUALIZATION=y
CONFIG_KVM=m
"""

FRAGMENT = """CONFIG_PREEMPT_RT=y
# CONFIG_PREEMPT is not set
CONFIG_HZ_1000=y
CONFIG_HZ=1000
# CONFIG_VIRTUALIZATION is not set
"""


class FakeCatalog(VersionCatalog):
    """In-memory catalog that records every query."""

    def __init__(
        self,
        filenames: Optional[List[str]] = None,
        patches: Optional[Dict[str, List[str]]] = None,
    ):
        self.entries = [
            entry for entry in (BuildInfoEntry.from_filename(f) for f in filenames or []) if entry
        ]
        self.patches = {
            series: [RTPatchVersion.parse(v) for v in versions]
            for series, versions in (patches or {}).items()
        }
        self.calls: List[tuple] = []

    def list_kernel_releases(self, arch, prefix):
        self.calls.append(("releases", arch, prefix))
        return list(self.entries)

    def list_patch_versions(self, series):
        self.calls.append(("patches", series))
        return list(self.patches.get(series, []))


class FakeSource:
    """Stand-in for SourceRepository with a fixed tag set and Makefile version."""

    def __init__(self, tags: List[str], kernel_version: str = "5.15.74"):
        self._tags = tags
        self._kernel_version = KernelVersion.parse(kernel_version)
        self.fetched = 0
        self.checked_out: List[str] = []

    def fetch(self):
        self.fetched += 1

    def tags(self):
        return list(self._tags)

    def checkout(self, tag):
        self.checked_out.append(tag)

    def kernel_version(self):
        return self._kernel_version


@pytest.fixture
def fake_catalog():
    """Catalog of the 5.15 arm64 raspi releases and RT patches."""
    return FakeCatalog(
        filenames=[
            "linux-buildinfo-5.15.0-1020-raspi_5.15.0-1020.22_arm64.deb",
            "linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb",
        ],
        patches={"5.15": ["5.15.70-rt50", "5.15.74-rt52", "5.15.74-rt53", "5.15.76-rt53"]},
    )


@pytest.fixture
def fake_source():
    return FakeSource(tags=[
        "Ubuntu-raspi-5.15.0-1020.22",
        "Ubuntu-raspi-5.15.0-1023.24",
        "Ubuntu-raspi-5.15.0-1023.25",
    ])


@pytest.fixture
def build_config(tmp_path):
    """Configuration rooted in a temporary work directory."""
    config = BuildConfig(work_dir=tmp_path / "linux_build", run_debian_rules=False)
    config.config_fragment = tmp_path / ".config-fragment"
    config.config_fragment.write_text(FRAGMENT)
    config.source_dir.mkdir(parents=True)
    return config


def write_base_config(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(BASE_CONFIG)
    return path
