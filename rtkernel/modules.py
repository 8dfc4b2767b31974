"""
LTTng tracing modules built into the kernel tree.
"""

from pathlib import Path
from typing import List, Optional

from rtkernel.common import logger, run_command, sort_versions
from rtkernel.exceptions import ModuleIntegrationError


class ModuleIntegrator:
    """
    Run lttng-modules' ``scripts/built-in.sh`` against a kernel tree.

    Only sources of the configured series (``lttng-modules-<series>.*``) in
    ``source_root`` are used. When none is unpacked it is fetched with
    ``apt-get source`` (the lttng stable-<series> PPA must already be enabled).
    """

    PACKAGE = "lttng-modules-dkms"
    BUILT_IN_SCRIPT = Path("scripts") / "built-in.sh"

    def __init__(self, source_root: Path, series: str = "2.13", timeout: int = 1800):
        self.source_root = Path(source_root)
        self.series = series
        self.timeout = timeout

    def _unpacked(self) -> List[Path]:
        if not self.source_root.exists():
            return []
        return [path for path in self.source_root.glob("lttng-modules-*") if path.is_dir()]

    def belongs_to_series(self, path: Path) -> bool:
        """True for ``lttng-modules-<series>`` and ``lttng-modules-<series>.<n>``."""
        prefix = f"lttng-modules-{self.series}"
        return path.name == prefix or path.name.startswith(f"{prefix}.")

    def find_source(self) -> Optional[Path]:
        """Newest unpacked lttng-modules directory of the configured series, if any."""
        candidates = {path.name: path for path in self._unpacked() if self.belongs_to_series(path)}
        if not candidates:
            return None
        return candidates[sort_versions(candidates)[-1]]

    def fetch_source(self) -> Path:
        logger.info(f"Fetching {self.PACKAGE} source for LTTng {self.series}")
        self.source_root.mkdir(parents=True, exist_ok=True)
        returncode, stdout, stderr = run_command(
            ["apt-get", "source", self.PACKAGE],
            cwd=self.source_root,
            timeout=self.timeout,
        )
        if returncode != 0:
            raise ModuleIntegrationError(f"apt-get source {self.PACKAGE} failed:\n{stdout}{stderr}")

        source = self.find_source()
        if source is None:
            others = sorted(path.name for path in self._unpacked())
            raise ModuleIntegrationError(
                f"No lttng-modules {self.series} source in {self.source_root}"
                + (f" (found {', '.join(others)})" if others else "")
            )
        return source

    def integrate(self, source_tree: Path) -> Path:
        """
        Build the tracing modules into ``source_tree``.

        Returns:
            The lttng-modules directory that was used
        """
        source = self.find_source() or self.fetch_source()

        script = source / self.BUILT_IN_SCRIPT
        if not script.exists():
            raise ModuleIntegrationError(f"{self.BUILT_IN_SCRIPT} not found in {source}")

        logger.info(f"Running {source.name}/{self.BUILT_IN_SCRIPT} on {source_tree}")
        returncode, stdout, stderr = run_command(
            ["bash", str(self.BUILT_IN_SCRIPT), str(Path(source_tree).resolve())],
            cwd=source,
            timeout=self.timeout,
        )
        if returncode != 0:
            raise ModuleIntegrationError(f"built-in.sh failed ({returncode}):\n{stdout}{stderr}")
        return source
