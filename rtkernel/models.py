"""
Data models for rt-kernel-prep using Pydantic for validation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, field_validator
import re


_VERSION_SPLIT = re.compile(r"(\d+)")


def version_key(value: str) -> Tuple[Union[int, str], ...]:
    """
    Sort key ordering strings the way ``sort -V`` does.

    The string is split into alternating non-digit and digit runs, digit runs
    compare numerically. Runs always alternate starting with a (possibly empty)
    non-digit run, so keys of different strings stay comparable.
    """
    parts = _VERSION_SPLIT.split(value)
    return tuple(int(part) if index % 2 else part for index, part in enumerate(parts))


class Tristate(str, Enum):
    """Kconfig tristate values."""
    YES = "y"
    MODULE = "m"
    NO = "n"


class ApplyStatus(str, Enum):
    """Outcome classes of a patch application."""
    APPLIED = "applied"
    SKIPPED = "skipped"
    CONFLICT = "conflict"


class KernelVersion(BaseModel):
    """Represents an upstream kernel version with comparison support."""
    model_config = ConfigDict(frozen=True)

    major: int
    minor: int
    sublevel: int = 0

    @classmethod
    def parse(cls, version_str: str) -> "KernelVersion":
        """Parse a version string like '5.15.74' into a KernelVersion."""
        match = re.match(r"^(\d+)\.(\d+)(?:\.(\d+))?", version_str.strip())
        if not match:
            raise ValueError(f"Invalid kernel version: {version_str}")
        return cls(
            major=int(match.group(1)),
            minor=int(match.group(2)),
            sublevel=int(match.group(3) or 0),
        )

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.sublevel}"

    def _key(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.sublevel)

    def __lt__(self, other: "KernelVersion") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "KernelVersion") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "KernelVersion") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "KernelVersion") -> bool:
        return self._key() >= other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KernelVersion):
            return False
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @property
    def series(self) -> str:
        """Get the kernel series (e.g., '5.15' from '5.15.74')."""
        return f"{self.major}.{self.minor}"


class KernelReleaseId(BaseModel):
    """
    A distribution kernel release such as ``5.15.0-1023-raspi``.

    ``abi`` is the per-upload number that also appears in the git tags,
    ``flavour`` is the platform suffix. ``arch`` is carried along but is not
    part of the string form (``uname -r`` has no arch).
    """
    model_config = ConfigDict(frozen=True)

    kernel_version: str
    abi: int
    flavour: str
    arch: Optional[str] = None

    @field_validator("kernel_version")
    @classmethod
    def validate_kernel_version(cls, v: str) -> str:
        if not re.match(r"^\d+\.\d+\.\d+$", v):
            raise ValueError(f"Invalid kernel version: {v}")
        return v

    @classmethod
    def parse(cls, release: str, arch: Optional[str] = None) -> "KernelReleaseId":
        """Parse a release string like '5.15.0-1023-raspi'."""
        match = re.match(r"^(\d+\.\d+\.\d+)-(\d+)-([A-Za-z0-9][\w.+-]*)$", release.strip())
        if not match:
            raise ValueError(f"Invalid kernel release: {release}")
        return cls(
            kernel_version=match.group(1),
            abi=int(match.group(2)),
            flavour=match.group(3),
            arch=arch,
        )

    def __str__(self) -> str:
        return f"{self.kernel_version}-{self.abi}-{self.flavour}"

    @property
    def abi_token(self) -> str:
        """Token that tags of this release must contain."""
        return str(self.abi)

    def with_arch(self, arch: str) -> "KernelReleaseId":
        return self.model_copy(update={"arch": arch})


class RTPatchVersion(BaseModel):
    """An upstream PREEMPT_RT patch version such as ``5.15.76-rt53``."""
    model_config = ConfigDict(frozen=True)

    version: KernelVersion
    rt: int

    @classmethod
    def parse(cls, value: str) -> "RTPatchVersion":
        """Parse an RT patch string like '5.15.76-rt53'."""
        match = re.match(r"^(\d+)\.(\d+)(?:\.(\d+))?-rt(\d+)$", value.strip())
        if not match:
            raise ValueError(f"Invalid RT patch version: {value}")
        return cls(
            version=KernelVersion(
                major=int(match.group(1)),
                minor=int(match.group(2)),
                sublevel=int(match.group(3) or 0),
            ),
            rt=int(match.group(4)),
        )

    def __str__(self) -> str:
        # kernel.org names the first patch of a series without a sublevel
        if self.version.sublevel == 0:
            return f"{self.version.series}-rt{self.rt}"
        return f"{self.version}-rt{self.rt}"

    def _key(self) -> Tuple[int, int, int, int]:
        return (self.version.major, self.version.minor, self.version.sublevel, self.rt)

    def __lt__(self, other: "RTPatchVersion") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "RTPatchVersion") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "RTPatchVersion") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "RTPatchVersion") -> bool:
        return self._key() >= other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RTPatchVersion):
            return False
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @property
    def series(self) -> str:
        return self.version.series

    @property
    def sublevel(self) -> int:
        return self.version.sublevel

    @property
    def filename(self) -> str:
        """Compressed patch file name on kernel.org."""
        return f"patch-{self}.patch.gz"


class BuildInfoEntry(BaseModel):
    """A ``linux-buildinfo`` package found in the ports pool listing."""
    release: KernelReleaseId
    package_version: str
    arch: str
    filename: str

    @classmethod
    def from_filename(cls, filename: str) -> Optional["BuildInfoEntry"]:
        """
        Parse a pool file name.

        Example: ``linux-buildinfo-5.15.0-1023-raspi_5.15.0-1023.25_arm64.deb``
        """
        match = re.match(
            r"^linux-buildinfo-(\d+\.\d+\.\d+)-(\d+)-([a-z0-9][a-z0-9.+-]*)_([^_]+)_([a-z0-9]+)\.deb$",
            filename,
        )
        if not match:
            return None
        arch = match.group(5)
        return cls(
            release=KernelReleaseId(
                kernel_version=match.group(1),
                abi=int(match.group(2)),
                flavour=match.group(3),
                arch=arch,
            ),
            package_version=match.group(4),
            arch=arch,
            filename=filename,
        )

    @property
    def sort_key(self) -> Tuple[Union[int, str], ...]:
        return version_key(self.package_version)

    def matches(self, arch: str, prefix: str) -> bool:
        """Check arch and a component-wise kernel version prefix."""
        if self.arch != arch:
            return False
        wanted = prefix.split(".")
        have = self.release.kernel_version.split(".")
        return have[: len(wanted)] == wanted


@dataclass
class HunkOutcome:
    """A single skipped or rejected piece of a patch."""
    file: Optional[str]
    reason: str
    hunk: Optional[int] = None


@dataclass
class ApplyResult:
    """Structured result of applying a patch to a tree."""
    returncode: int
    output: str = ""
    applied: List[str] = field(default_factory=list)
    skipped: List[HunkOutcome] = field(default_factory=list)
    rejected: List[HunkOutcome] = field(default_factory=list)

    @property
    def status(self) -> ApplyStatus:
        if self.returncode == 0:
            return ApplyStatus.APPLIED
        if not self.rejected and self.skipped:
            return ApplyStatus.SKIPPED
        return ApplyStatus.CONFLICT

    @property
    def tolerated(self) -> bool:
        """True when the tree can be used: clean apply or only benign skips."""
        return self.status != ApplyStatus.CONFLICT
