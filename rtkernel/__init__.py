"""
rt-kernel-prep - Real-time kernel source preparation for Ubuntu raspi kernels.

This package provides tools for:
- Resolving the raspi kernel release from the Ubuntu ports pool
- Matching the nearest PREEMPT_RT patch from kernel.org
- Selecting and checking out the matching Launchpad git tag
- Patching the tree and merging the kernel configuration
"""

__version__ = "1.0.0"
__author__ = "RT Kernel Working Group"

from rtkernel.config import BuildConfig, SERIES_MAPPINGS
from rtkernel.models import (
    ApplyResult,
    ApplyStatus,
    BuildInfoEntry,
    KernelReleaseId,
    KernelVersion,
    RTPatchVersion,
)

__all__ = [
    "__version__",
    "BuildConfig",
    "SERIES_MAPPINGS",
    "ApplyResult",
    "ApplyStatus",
    "BuildInfoEntry",
    "KernelReleaseId",
    "KernelVersion",
    "RTPatchVersion",
]
