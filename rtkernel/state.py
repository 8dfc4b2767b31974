"""
Persisted resolved values shared between pipeline runs.
"""

from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

from rtkernel.common import logger
from rtkernel.exceptions import StateError
from rtkernel.models import KernelReleaseId, RTPatchVersion

T = TypeVar("T")


class PipelineState:
    """
    Write-once store for the resolved release, RT patch and source tag.

    Each value is a single-line text file in ``state_dir``. Once a file
    exists its value is never replaced; recording the same value again is a
    no-op, recording a different one raises StateError.
    """

    FILES: Dict[str, str] = {
        "release": "uname_r",
        "rt_patch": "rt_patch",
        "tag": "tag",
    }

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)

    def _path(self, name: str) -> Path:
        return self.state_dir / self.FILES[name]

    def _read(self, name: str) -> Optional[str]:
        path = self._path(name)
        if not path.exists():
            return None
        value = path.read_text().strip()
        return value or None

    def _write_once(self, name: str, value: str) -> None:
        current = self._read(name)
        if current is not None:
            if current != value:
                raise StateError(
                    f"{self.FILES[name]} already recorded as {current}, refusing to replace with {value}"
                )
            return
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self._path(name).write_text(f"{value}\n")
        logger.debug(f"Recorded {self.FILES[name]}={value}")

    def _parse(self, name: str, parser: Callable[[str], T]) -> Optional[T]:
        value = self._read(name)
        if value is None:
            return None
        try:
            return parser(value)
        except ValueError as e:
            raise StateError(
                f"Corrupt {self._path(name)}: {e}; run with --fresh to resolve again"
            ) from e

    @property
    def release(self) -> Optional[KernelReleaseId]:
        return self._parse("release", KernelReleaseId.parse)

    @property
    def rt_patch(self) -> Optional[RTPatchVersion]:
        return self._parse("rt_patch", RTPatchVersion.parse)

    @property
    def tag(self) -> Optional[str]:
        return self._read("tag")

    def record_release(self, release: KernelReleaseId) -> None:
        self._write_once("release", str(release))

    def record_rt_patch(self, rt_patch: RTPatchVersion) -> None:
        self._write_once("rt_patch", str(rt_patch))

    def record_tag(self, tag: str) -> None:
        self._write_once("tag", tag)

    def as_dict(self) -> Dict[str, Optional[str]]:
        """Raw persisted values keyed by file name."""
        return {filename: self._read(name) for name, filename in self.FILES.items()}

    def clear(self) -> None:
        """Forget every persisted value."""
        for name in self.FILES:
            path = self._path(name)
            if path.exists():
                path.unlink()
        logger.debug("Pipeline state cleared")
