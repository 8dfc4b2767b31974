"""
Exception classes for version resolution and pipeline failures.
"""

from typing import Optional


class RtKernelError(Exception):
    """Base exception for all rt-kernel errors."""

    kind = "ERROR"

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        if kind:
            self.kind = kind

    @property
    def detail(self) -> str:
        return str(self)


class ResolutionError(RtKernelError):
    """Raised when a required version or tag cannot be determined."""

    NO_MATCH = "NO_MATCH"
    NO_CANDIDATE = "NO_CANDIDATE"
    NO_TAG = "NO_TAG"
    INVALID_HINT = "INVALID_HINT"


class FetchError(RtKernelError):
    """Raised when a remote artifact cannot be retrieved."""

    NOT_FOUND = "NOT_FOUND"
    TRANSPORT = "TRANSPORT"

    def __init__(self, message: str, kind: str = TRANSPORT, url: Optional[str] = None):
        super().__init__(message, kind)
        self.url = url


class SourceError(RtKernelError):
    """Raised when the kernel git repository cannot be cloned or checked out."""

    kind = "SOURCE"


class PatchConflictError(RtKernelError):
    """Raised when the RT patch has hunks that are not already applied."""

    kind = "PATCH_CONFLICT"

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result

    @property
    def detail(self) -> str:
        if self.result is not None and self.result.output:
            return f"{self}\n{self.result.output}"
        return str(self)


class ModuleIntegrationError(RtKernelError):
    """Raised when the tracing modules cannot be built into the tree."""

    kind = "MODULE_INTEGRATION"


class ConfigMergeError(RtKernelError):
    """Raised when the kernel configuration cannot be merged."""

    kind = "CONFIG_MERGE"


class BuildEnvError(RtKernelError):
    """Raised when a step of the debian/rules build environment fails."""

    kind = "BUILD_ENV"


class StateError(RtKernelError):
    """Raised when a persisted pipeline value would be overwritten or is unreadable."""

    kind = "STATE"
