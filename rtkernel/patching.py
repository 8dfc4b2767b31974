"""
RT patch download and tolerant application.
"""

import re
from pathlib import Path
from typing import List, Optional

from rtkernel.common import download_file, gunzip_file, logger, run_command
from rtkernel.config import BuildConfig
from rtkernel.exceptions import PatchConflictError
from rtkernel.models import ApplyResult, ApplyStatus, HunkOutcome, RTPatchVersion


_PATCHING_FILE = re.compile(r"^(?:patching|checking) file (.+)$")
_HUNK_FAILED = re.compile(r"^Hunk #(\d+) FAILED")
_HUNKS_FAILED_SUMMARY = re.compile(r"^\d+ out of \d+ hunks? FAILED")
_MISSING_FILE = re.compile(r"^can't find file to patch")
_NO_FILE_SKIP = re.compile(r"^No file to patch\.")
_FATAL = re.compile(r"^patch: \*\*\*\*|^Only garbage was found")


def parse_patch_output(output: str, returncode: int) -> ApplyResult:
    """
    Classify GNU patch diagnostics into applied, skipped and rejected parts.

    A skip is any "... Skipping patch." notice that is not about a missing
    file (already applied, file already created, file already deleted).
    Everything that leaves a hunk unapplied for another reason is a reject.
    """
    result = ApplyResult(returncode=returncode, output=output)
    files: List[str] = []
    current: Optional[str] = None
    rejected_files = set()

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        match = _PATCHING_FILE.match(line)
        if match:
            current = match.group(1).strip("'\"")
            files.append(current)
            continue

        if _MISSING_FILE.match(line):
            current = None
            result.rejected.append(HunkOutcome(file=None, reason=line))
            continue

        if _NO_FILE_SKIP.match(line):
            # follows "can't find file to patch", already rejected
            continue

        match = _HUNK_FAILED.match(line)
        if match:
            result.rejected.append(HunkOutcome(file=current, reason=line, hunk=int(match.group(1))))
            rejected_files.add(current)
            continue

        if _HUNKS_FAILED_SUMMARY.match(line):
            if current not in rejected_files:
                result.rejected.append(HunkOutcome(file=current, reason=line))
                rejected_files.add(current)
            continue

        if _FATAL.match(line):
            result.rejected.append(HunkOutcome(file=current, reason=line))
            continue

        if "Skipping patch" in line:
            result.skipped.append(HunkOutcome(file=current, reason=line))

    touched = {outcome.file for outcome in result.skipped + result.rejected}
    result.applied = [f for f in dict.fromkeys(files) if f not in touched]
    return result


class RTPatchFetcher:
    """Download RT patches from the kernel.org projects tree."""

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or BuildConfig()

    def url_for(self, rt_patch: RTPatchVersion) -> str:
        return f"{self.config.rt_patch_url(rt_patch.series)}{rt_patch.filename}"

    def fetch(self, rt_patch: RTPatchVersion) -> Path:
        """Download and decompress an RT patch, returning the plain patch path."""
        gz_path = self.config.download_dir / rt_patch.filename
        download_file(self.url_for(rt_patch), gz_path, timeout=self.config.download_timeout)
        patch_path = gunzip_file(gz_path)
        logger.info(f"RT patch ready: {patch_path}")
        return patch_path


class PatchApplier:
    """Apply a patch forward-only, tolerating hunks that are already present."""

    def __init__(self, timeout: int = 600):
        self.timeout = timeout

    def apply(self, patch_file: Path, source_tree: Path) -> ApplyResult:
        """
        Apply ``patch_file`` to ``source_tree`` with ``patch -p1 --forward``.

        Returns:
            ApplyResult with status APPLIED, or SKIPPED when every failure
            is an already-applied hunk

        Raises:
            PatchConflictError: any hunk failed for another reason
        """
        logger.info(f"Applying {Path(patch_file).name} to {source_tree}")
        returncode, stdout, stderr = run_command(
            ["patch", "-p1", "--forward", "-i", str(Path(patch_file).resolve())],
            cwd=source_tree,
            timeout=self.timeout,
            input_text="",
        )
        result = parse_patch_output(stdout + stderr, returncode)

        if not result.tolerated:
            raise PatchConflictError(
                f"{Path(patch_file).name} does not apply: {len(result.rejected)} rejected, "
                f"{len(result.skipped)} skipped",
                result,
            )
        if result.status == ApplyStatus.SKIPPED:
            logger.warning(
                f"{len(result.skipped)} part(s) of {Path(patch_file).name} already applied, skipped"
            )
        else:
            logger.info(f"Patched {len(result.applied)} files")
        return result
