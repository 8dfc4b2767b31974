"""
Pipeline orchestration: resolve versions, fetch, patch and configure the tree.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rtkernel.buildenv import DebianRules
from rtkernel.buildinfo import BuildInfoFetcher
from rtkernel.catalog import HttpVersionCatalog, VersionCatalog
from rtkernel.common import format_duration, logger
from rtkernel.config import BuildConfig
from rtkernel.exceptions import ResolutionError, RtKernelError
from rtkernel.kconfig import ConfigComposer, ConfigurationSet, KconfigNormalizer, load_fragment
from rtkernel.models import (
    ApplyResult,
    ApplyStatus,
    KernelReleaseId,
    KernelVersion,
    RTPatchVersion,
)
from rtkernel.modules import ModuleIntegrator
from rtkernel.patching import PatchApplier, RTPatchFetcher
from rtkernel.resolution import KernelReleaseResolver, PatchVersionMatcher, SourceTagResolver
from rtkernel.source import SourceRepository
from rtkernel.state import PipelineState


class Stage(str, Enum):
    """Pipeline states; each names what has been completed."""
    INIT = "Init"
    RELEASE_RESOLVED = "ReleaseResolved"
    PATCH_MATCHED = "PatchMatched"
    SOURCE_FETCHED = "SourceFetched"
    TAG_CHECKED_OUT = "TagCheckedOut"
    BUILD_INFO_FETCHED = "BuildInfoFetched"
    MODULE_DEPS_APPLIED = "ModuleDepsApplied"
    PATCHED = "Patched"
    CONFIG_COMPOSED = "ConfigComposed"
    READY = "Ready"


# The RT patch is matched against the SUBLEVEL of the checked-out tree,
# so PATCH_MATCHED runs after TAG_CHECKED_OUT.
EXECUTION_ORDER: List[Stage] = [
    Stage.RELEASE_RESOLVED,
    Stage.SOURCE_FETCHED,
    Stage.TAG_CHECKED_OUT,
    Stage.PATCH_MATCHED,
    Stage.BUILD_INFO_FETCHED,
    Stage.MODULE_DEPS_APPLIED,
    Stage.PATCHED,
    Stage.CONFIG_COMPOSED,
    Stage.READY,
]


@dataclass
class StageFailure:
    """Terminal failure: the stage being entered and why it could not be."""
    stage: Stage
    kind: str
    detail: str
    error: Optional[RtKernelError] = None

    def __str__(self) -> str:
        return f"Failed({self.stage.value}, {self.kind})"


@dataclass
class PipelineContext:
    """Values produced by the stages of one run."""
    release: Optional[KernelReleaseId] = None
    tag: Optional[str] = None
    kernel_version: Optional[KernelVersion] = None
    rt_patch: Optional[RTPatchVersion] = None
    base_config: Optional[ConfigurationSet] = None
    patch_file: Optional[Path] = None
    apply_result: Optional[ApplyResult] = None
    final_config: Optional[ConfigurationSet] = None


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""
    stage: Stage
    context: PipelineContext
    failure: Optional[StageFailure] = None
    warnings: List[str] = field(default_factory=list)
    duration_seconds: int = 0

    @property
    def success(self) -> bool:
        return self.failure is None and self.stage == Stage.READY

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class PipelineOrchestrator:
    """
    Sequential, fail-fast preparation of an RT kernel tree.

    Collaborators default to the real implementations built from ``config``
    and may be injected. Resolved values are persisted in PipelineState so a
    re-run skips resolution; explicit overrides in ``config`` win over the
    catalog but must agree with what is already persisted.
    """

    def __init__(
        self,
        config: Optional[BuildConfig] = None,
        catalog: Optional[VersionCatalog] = None,
        source: Optional[SourceRepository] = None,
        buildinfo: Optional[BuildInfoFetcher] = None,
        patch_fetcher: Optional[RTPatchFetcher] = None,
        applier: Optional[PatchApplier] = None,
        module_integrator: Optional[ModuleIntegrator] = None,
        composer: Optional[ConfigComposer] = None,
        debian_rules: Optional[DebianRules] = None,
        state: Optional[PipelineState] = None,
    ):
        self.config = config or BuildConfig()
        self.catalog = catalog or HttpVersionCatalog(self.config)
        self.source = source or SourceRepository(
            self.config.source_dir, self.config.git_url, self.config.git_branch
        )
        self.buildinfo = buildinfo or BuildInfoFetcher(self.config)
        self.patch_fetcher = patch_fetcher or RTPatchFetcher(self.config)
        self.applier = applier or PatchApplier()
        self.module_integrator = module_integrator or ModuleIntegrator(
            self.config.work_dir, self.config.lttng_version
        )
        self.composer = composer or ConfigComposer(
            KconfigNormalizer(self.config.source_dir, self.config.arch, self.config.cross_compile)
        )
        if debian_rules is None and self.config.run_debian_rules:
            debian_rules = DebianRules(
                self.config.source_dir, self.config.arch, self.config.cross_compile
            )
        self.debian_rules = debian_rules
        self.state = state or PipelineState(self.config.state_dir)

        self.release_resolver = KernelReleaseResolver(self.catalog)
        self.patch_matcher = PatchVersionMatcher(self.catalog)
        self.tag_resolver = SourceTagResolver()

        self.stage = Stage.INIT
        self.context = PipelineContext()
        self.warnings: List[str] = []
        self._handlers: Dict[Stage, Callable[[], None]] = {
            Stage.RELEASE_RESOLVED: self._resolve_release,
            Stage.SOURCE_FETCHED: self._fetch_source,
            Stage.TAG_CHECKED_OUT: self._checkout_tag,
            Stage.PATCH_MATCHED: self._match_patch,
            Stage.BUILD_INFO_FETCHED: self._fetch_buildinfo,
            Stage.MODULE_DEPS_APPLIED: self._apply_module_deps,
            Stage.PATCHED: self._patch,
            Stage.CONFIG_COMPOSED: self._compose_config,
            Stage.READY: self._finish,
        }

    def run(self) -> PipelineResult:
        """Run every stage in order, stopping at the first fatal error."""
        started = time.time()
        failure: Optional[StageFailure] = None

        for stage in EXECUTION_ORDER:
            logger.info(f"=== {stage.value} ===")
            try:
                self._handlers[stage]()
            except RtKernelError as e:
                failure = StageFailure(stage=stage, kind=e.kind, detail=e.detail, error=e)
                logger.error(f"{failure}: {e}")
                break
            self.stage = stage

        duration = int(time.time() - started)
        if failure is None:
            logger.info(f"Tree ready at {self.config.source_dir} after {format_duration(duration)}")
        return PipelineResult(
            stage=self.stage,
            context=self.context,
            failure=failure,
            warnings=list(self.warnings),
            duration_seconds=duration,
        )

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _resolve_release(self) -> None:
        hint = None
        if self.config.kernel_release:
            try:
                hint = KernelReleaseId.parse(self.config.kernel_release, arch=self.config.arch)
            except ValueError as e:
                raise ResolutionError(str(e), ResolutionError.INVALID_HINT) from e
        else:
            persisted = self.state.release
            if persisted is not None:
                logger.info(f"Reusing recorded kernel release {persisted}")
                hint = persisted.with_arch(self.config.arch)

        release = self.release_resolver.resolve(
            hint, self.config.arch, self.config.kernel_version_prefix
        )
        self.state.record_release(release)
        self.context.release = release

    def _fetch_source(self) -> None:
        self.source.fetch()

    def _checkout_tag(self) -> None:
        tag = self.state.tag
        if tag is not None:
            logger.info(f"Reusing recorded source tag {tag}")
        else:
            tag = self.tag_resolver.resolve_tag(self.source.tags(), self.context.release)
            self.state.record_tag(tag)
        self.source.checkout(tag)
        self.context.tag = tag

    def _match_patch(self) -> None:
        kernel_version = self.source.kernel_version()
        self.context.kernel_version = kernel_version
        logger.info(f"Kernel version of {self.context.tag}: {kernel_version}")

        hint = None
        if self.config.rt_patch:
            try:
                hint = RTPatchVersion.parse(self.config.rt_patch)
            except ValueError as e:
                raise ResolutionError(str(e), ResolutionError.INVALID_HINT) from e
        elif self.state.rt_patch is not None:
            hint = self.state.rt_patch
            logger.info(f"Reusing recorded RT patch {hint}")

        rt_patch = self.patch_matcher.match(hint, kernel_version)
        self.state.record_rt_patch(rt_patch)
        self.context.rt_patch = rt_patch

    def _fetch_buildinfo(self) -> None:
        self.context.base_config = self.buildinfo.fetch(self.context.release, self.context.tag)

    def _apply_module_deps(self) -> None:
        if not self.config.enable_tracing:
            logger.info("Tracing modules disabled, skipping")
            return
        self.module_integrator.integrate(self.config.source_dir)

    def _patch(self) -> None:
        patch_file = self.patch_fetcher.fetch(self.context.rt_patch)
        self.context.patch_file = patch_file
        result = self.applier.apply(patch_file, self.config.source_dir)
        self.context.apply_result = result
        if result.status == ApplyStatus.SKIPPED:
            self._warn(
                f"RT patch {self.context.rt_patch} partially present in the tree: "
                f"{len(result.skipped)} part(s) skipped"
            )

    def _compose_config(self) -> None:
        if self.debian_rules is not None:
            self.debian_rules.clean()
            self.debian_rules.printenv()

        fragment = load_fragment(self.config.config_fragment)
        final = self.composer.compose(self.context.base_config, fragment)
        final.write(self.config.source_dir / ".config")
        self.context.final_config = final

    def _finish(self) -> None:
        if self.debian_rules is not None:
            self.debian_rules.clean()
