"""
Cross-compile environment and debian/rules steps of the external build system.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from rtkernel.common import logger, run_command
from rtkernel.exceptions import BuildEnvError


class DebianRules:
    """Run ``fakeroot debian/rules`` targets with the target arch environment."""

    def __init__(self, source_tree: Path, arch: str, cross_compile: str, timeout: int = 1800):
        self.source_tree = Path(source_tree)
        self.arch = arch
        self.cross_compile = cross_compile
        self.timeout = timeout
        self._env: Optional[Dict[str, str]] = None

    def environment(self) -> Dict[str, str]:
        """Our environment plus ``dpkg-architecture -a<arch>`` and CROSS_COMPILE."""
        if self._env is None:
            env = os.environ.copy()
            returncode, stdout, stderr = run_command(["dpkg-architecture", f"-a{self.arch}"])
            if returncode != 0:
                raise BuildEnvError(f"dpkg-architecture -a{self.arch} failed: {stderr.strip()}")
            for line in stdout.splitlines():
                key, sep, value = line.partition("=")
                if sep and key:
                    env[key.strip()] = value.strip()
            env["CROSS_COMPILE"] = self.cross_compile
            self._env = env
        return self._env

    def run(self, target: str) -> str:
        """Run one debian/rules target, returning its output."""
        env = dict(self.environment())
        env["LANG"] = "C"
        logger.info(f"Running fakeroot debian/rules {target}")
        returncode, stdout, stderr = run_command(
            ["fakeroot", "debian/rules", target],
            cwd=self.source_tree,
            env=env,
            timeout=self.timeout,
        )
        if returncode != 0:
            raise BuildEnvError(f"debian/rules {target} failed ({returncode}):\n{stdout}{stderr}")
        return stdout

    def clean(self) -> None:
        self.run("clean")

    def printenv(self) -> str:
        output = self.run("printenv")
        logger.debug(output)
        return output
