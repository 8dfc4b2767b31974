"""Tests for models module."""

import pytest

from rtkernel.models import (
    ApplyResult,
    ApplyStatus,
    BuildInfoEntry,
    HunkOutcome,
    KernelReleaseId,
    KernelVersion,
    RTPatchVersion,
    version_key,
)


class TestKernelVersion:
    """Tests for KernelVersion class."""

    def test_parse_full_version(self):
        """Test parsing full version string."""
        kv = KernelVersion.parse("5.15.74")
        assert kv.major == 5
        assert kv.minor == 15
        assert kv.sublevel == 74

    def test_parse_short_version(self):
        """Test parsing version without sublevel."""
        kv = KernelVersion.parse("5.15")
        assert kv.sublevel == 0

    def test_parse_invalid(self):
        """Test parsing garbage."""
        with pytest.raises(ValueError):
            KernelVersion.parse("linux")

    def test_comparison_operators(self):
        """Test comparison operators."""
        v1 = KernelVersion.parse("5.15.70")
        v2 = KernelVersion.parse("5.15.74")
        v3 = KernelVersion.parse("5.15.70")
        v4 = KernelVersion.parse("5.4.200")

        assert v1 < v2
        assert v2 > v1
        assert v1 <= v3
        assert v1 >= v3
        assert v1 == v3
        assert v1 != v2
        assert v4 < v1  # 5.4 < 5.15 numerically

    def test_series_and_str(self):
        """Test series property and string form."""
        kv = KernelVersion.parse("5.15.74")
        assert kv.series == "5.15"
        assert str(kv) == "5.15.74"

    def test_hash(self):
        """Test hash for use in sets."""
        versions = {KernelVersion.parse("5.15.74"), KernelVersion.parse("5.15.74")}
        assert len(versions) == 1


class TestKernelReleaseId:
    """Tests for KernelReleaseId class."""

    def test_parse(self):
        """Test parsing a raspi release."""
        release = KernelReleaseId.parse("5.15.0-1023-raspi")
        assert release.kernel_version == "5.15.0"
        assert release.abi == 1023
        assert release.flavour == "raspi"
        assert release.arch is None
        assert release.abi_token == "1023"

    def test_str_round_trip(self):
        """Test string form matches uname -r."""
        assert str(KernelReleaseId.parse("5.4.0-1080-raspi")) == "5.4.0-1080-raspi"

    def test_flavour_with_dash(self):
        """Test flavours containing dashes."""
        release = KernelReleaseId.parse("5.4.0-1080-raspi-nolpae")
        assert release.flavour == "raspi-nolpae"

    @pytest.mark.parametrize("value", ["5.15.0-raspi", "5.15-1023-raspi", "1023-raspi", ""])
    def test_parse_invalid(self, value):
        """Test invalid releases are rejected."""
        with pytest.raises(ValueError):
            KernelReleaseId.parse(value)

    def test_with_arch(self):
        """Test attaching an arch keeps the string form."""
        release = KernelReleaseId.parse("5.15.0-1023-raspi").with_arch("arm64")
        assert release.arch == "arm64"
        assert str(release) == "5.15.0-1023-raspi"

    def test_immutable(self):
        """Test releases cannot be modified once built."""
        release = KernelReleaseId.parse("5.15.0-1023-raspi")
        with pytest.raises(Exception):
            release.abi = 1024


class TestRTPatchVersion:
    """Tests for RTPatchVersion class."""

    def test_parse(self):
        """Test parsing an RT patch version."""
        patch = RTPatchVersion.parse("5.15.76-rt53")
        assert patch.version == KernelVersion.parse("5.15.76")
        assert patch.rt == 53
        assert patch.series == "5.15"
        assert patch.sublevel == 76

    def test_first_of_series(self):
        """Test the initial patch of a series has no sublevel in its name."""
        patch = RTPatchVersion.parse("5.15-rt17")
        assert patch.sublevel == 0
        assert str(patch) == "5.15-rt17"

    def test_filename(self):
        """Test kernel.org file name."""
        assert RTPatchVersion.parse("5.15.76-rt53").filename == "patch-5.15.76-rt53.patch.gz"

    def test_ordering(self):
        """Test ordering by sublevel then rt number."""
        versions = [
            RTPatchVersion.parse(v)
            for v in ["5.15.76-rt53", "5.15.74-rt53", "5.15.74-rt52", "5.15.9-rt60"]
        ]
        assert [str(v) for v in sorted(versions)] == [
            "5.15.9-rt60", "5.15.74-rt52", "5.15.74-rt53", "5.15.76-rt53",
        ]

    def test_rc_rejected(self):
        """Test -rc based patches do not parse."""
        with pytest.raises(ValueError):
            RTPatchVersion.parse("5.15-rc7-rt15")


class TestBuildInfoEntry:
    """Tests for BuildInfoEntry parsing."""

    def test_from_filename(self):
        """Test parsing a pool file name."""
        entry = BuildInfoEntry.from_filename(
            "linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb"
        )
        assert entry is not None
        assert str(entry.release) == "5.15.0-1023-raspi"
        assert entry.release.arch == "arm64"
        assert entry.package_version == "5.15.0-1023.25"
        assert entry.arch == "arm64"

    def test_other_packages_ignored(self):
        """Test non buildinfo files are not entries."""
        assert BuildInfoEntry.from_filename(
            "linux-headers-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb"
        ) is None
        assert BuildInfoEntry.from_filename("linux-raspi_5.15.0-1023.25.dsc") is None

    def test_matches_prefix_componentwise(self):
        """Test version prefix matching on whole components."""
        entry = BuildInfoEntry.from_filename(
            "linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb"
        )
        assert entry.matches("arm64", "5.15.0")
        assert entry.matches("arm64", "5.15")
        assert not entry.matches("arm64", "5.1")
        assert not entry.matches("armhf", "5.15.0")

    def test_sort_key_is_numeric(self):
        """Test package versions order numerically, not textually."""
        old = BuildInfoEntry.from_filename("linux-buildinfo-5.4.0-999-raspi_5.4.0-999.9_arm64.deb")
        new = BuildInfoEntry.from_filename("linux-buildinfo-5.4.0-1001-raspi_5.4.0-1001.1_arm64.deb")
        assert old.sort_key < new.sort_key


class TestVersionKey:
    """Tests for sort -V style keys."""

    def test_numeric_runs(self):
        """Test digit runs compare numerically."""
        assert version_key("1023.9") < version_key("1023.25")

    def test_mixed_strings(self):
        """Test tags with text and numbers stay comparable."""
        tags = ["Ubuntu-raspi-5.15.0-1023.25", "Ubuntu-raspi-5.15.0-1023.9", "Ubuntu-raspi-5.15.0-1020.30"]
        assert sorted(tags, key=version_key)[-1] == "Ubuntu-raspi-5.15.0-1023.25"


class TestApplyResult:
    """Tests for ApplyResult status."""

    def test_clean(self):
        """Test zero exit is applied."""
        assert ApplyResult(returncode=0).status == ApplyStatus.APPLIED

    def test_only_skips(self):
        """Test failures that are all skips are tolerated."""
        result = ApplyResult(returncode=1, skipped=[HunkOutcome(file="a.c", reason="Skipping patch.")])
        assert result.status == ApplyStatus.SKIPPED
        assert result.tolerated

    def test_rejects(self):
        """Test any reject is a conflict."""
        result = ApplyResult(
            returncode=1,
            skipped=[HunkOutcome(file="a.c", reason="Skipping patch.")],
            rejected=[HunkOutcome(file="b.c", reason="Hunk #1 FAILED at 10.", hunk=1)],
        )
        assert result.status == ApplyStatus.CONFLICT
        assert not result.tolerated

    def test_unexplained_failure(self):
        """Test a non-zero exit without any classified line is a conflict."""
        assert ApplyResult(returncode=2).status == ApplyStatus.CONFLICT
