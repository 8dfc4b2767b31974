"""
Kernel git repository handling.
"""

import re
from pathlib import Path
from typing import List, Optional

from git import GitCommandError, InvalidGitRepositoryError, Repo

from rtkernel.common import logger
from rtkernel.exceptions import SourceError
from rtkernel.models import KernelVersion


class SourceRepository:
    """Clone, tag lookup and checkout of the distribution kernel tree."""

    def __init__(self, path: Path, url: str, branch: str = "master"):
        self.path = Path(path)
        self.url = url
        self.branch = branch
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            try:
                self._repo = Repo(self.path)
            except (InvalidGitRepositoryError, OSError) as e:
                raise SourceError(f"Not a git repository: {self.path}") from e
        return self._repo

    def fetch(self) -> None:
        """Clone the repository, or update it in place, and fetch all tags."""
        try:
            if (self.path / ".git").exists():
                logger.info(f"Updating existing repository {self.path}")
            else:
                logger.info(f"Cloning {self.url} ({self.branch}) into {self.path}")
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._repo = Repo.clone_from(
                    self.url,
                    self.path,
                    branch=self.branch,
                    single_branch=True,
                )
            self.repo.remotes.origin.fetch(tags=True)
        except GitCommandError as e:
            raise SourceError(f"Failed to fetch {self.url}: {e}") from e

    def tags(self) -> List[str]:
        return [tag.name for tag in self.repo.tags]

    def checkout(self, tag: str) -> None:
        logger.info(f"Checking out {tag}")
        try:
            self.repo.git.checkout(tag)
        except GitCommandError as e:
            raise SourceError(f"Failed to check out {tag}: {e}") from e

    def kernel_version(self) -> KernelVersion:
        """
        Read the upstream kernel version from the top-level Makefile.

        Equivalent to ``make kernelversion`` without invoking make.
        """
        makefile = self.path / "Makefile"
        if not makefile.exists():
            raise SourceError(f"Makefile not found in {self.path}")
        return parse_makefile_version(makefile.read_text())


def parse_makefile_version(content: str) -> KernelVersion:
    """Extract VERSION.PATCHLEVEL.SUBLEVEL from kernel Makefile content."""
    values = {}
    for key in ("VERSION", "PATCHLEVEL", "SUBLEVEL"):
        match = re.search(rf"^{key}\s*=\s*(\d+)\s*$", content, re.MULTILINE)
        if not match:
            raise SourceError(f"{key} not found in kernel Makefile")
        values[key] = int(match.group(1))
    return KernelVersion(
        major=values["VERSION"],
        minor=values["PATCHLEVEL"],
        sublevel=values["SUBLEVEL"],
    )
