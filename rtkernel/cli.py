"""
Command-line interface for rt-kernel-prep.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table
from rich.traceback import Traceback

from rtkernel import __version__
from rtkernel.catalog import HttpVersionCatalog
from rtkernel.common import console, log_file_name, setup_logging
from rtkernel.config import (
    SUPPORTED_ARCHES,
    SUPPORTED_SERIES,
    BuildConfig,
    validate_arch,
    validate_series,
)
from rtkernel.exceptions import RtKernelError
from rtkernel.models import KernelReleaseId, KernelVersion, RTPatchVersion
from rtkernel.pipeline import PipelineOrchestrator
from rtkernel.resolution import KernelReleaseResolver, PatchVersionMatcher
from rtkernel.state import PipelineState


def print_banner():
    """Print application banner."""
    console.print(Panel.fit(
        f"[bold blue]RT Kernel Prep[/bold blue] v{__version__}\n"
        "[dim]PREEMPT_RT source trees for Ubuntu raspi kernels[/dim]",
        border_style="blue",
    ))


def _validate_release(ctx, param, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        KernelReleaseId.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return value


def _validate_rt_patch(ctx, param, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        RTPatchVersion.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return value


def _build_config(
    arch: Optional[str] = None,
    series: Optional[str] = None,
    kernel_version: Optional[str] = None,
    work_dir: Optional[str] = None,
) -> BuildConfig:
    config = BuildConfig.from_env()
    if arch:
        config.arch = arch
    if series:
        config.series = series
    if kernel_version:
        config.kernel_version = kernel_version
    if work_dir:
        config.work_dir = Path(work_dir)
    if not validate_arch(config.arch):
        raise click.BadParameter(
            f"{config.arch!r} is not one of {', '.join(SUPPORTED_ARCHES)}", param_hint="RT_KERNEL_ARCH"
        )
    if not validate_series(config.series):
        raise click.BadParameter(
            f"{config.series!r} is not one of {', '.join(SUPPORTED_SERIES)}", param_hint="RT_KERNEL_SERIES"
        )
    return config


def _fail(ctx, e: RtKernelError) -> None:
    console.print(f"[red]Error ({e.kind}): {e}[/red]")
    if ctx.obj.get("verbose"):
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def main(ctx, verbose: bool, quiet: bool):
    """
    Real-time kernel tree preparation.

    Resolves the raspi kernel release, RT patch and git tag, then fetches,
    patches and configures the tree for the kernel's own build.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    setup_logging(level=logging.DEBUG if verbose else logging.INFO)
    if not quiet:
        print_banner()


@main.command()
@click.option("--arch", "-a", type=click.Choice(SUPPORTED_ARCHES), help="Target architecture")
@click.option("--series", "-s", type=click.Choice(SUPPORTED_SERIES), help="Ubuntu series")
@click.option("--kernel-version", help="Kernel version, e.g. 5.15.0 (series default)")
@click.option("--kernel-release", callback=_validate_release,
              help="Kernel release, e.g. 5.15.0-1023-raspi (latest if omitted)")
@click.option("--rt-patch", callback=_validate_rt_patch,
              help="RT patch, e.g. 5.15.76-rt53 (nearest to the kernel if omitted)")
@click.option("--lttng-version", help="LTTng stable series")
@click.option("--work-dir", "-w", type=click.Path(file_okay=False), help="Build directory")
@click.option("--fragment", "-f", type=click.Path(dir_okay=False), help="Kernel config fragment")
@click.option("--no-tracing", is_flag=True, help="Do not build LTTng modules into the tree")
@click.option("--no-debian-rules", is_flag=True, help="Skip debian/rules clean and printenv")
@click.option("--fresh", is_flag=True, help="Forget recorded release, RT patch and tag")
@click.pass_context
def prepare(
    ctx,
    arch: Optional[str],
    series: Optional[str],
    kernel_version: Optional[str],
    kernel_release: Optional[str],
    rt_patch: Optional[str],
    lttng_version: Optional[str],
    work_dir: Optional[str],
    fragment: Optional[str],
    no_tracing: bool,
    no_debian_rules: bool,
    fresh: bool,
):
    """
    Prepare a patched, configured RT kernel tree.

    Examples:

        # Latest 5.15 raspi kernel with the nearest RT patch
        rt-kernel prepare

        # Latest 5.4 raspi kernel
        rt-kernel prepare --series focal --kernel-version 5.4.0

        # Pinned release and RT patch
        rt-kernel prepare --kernel-release 5.15.0-1023-raspi --rt-patch 5.15.76-rt53
    """
    config = _build_config(arch, series, kernel_version, work_dir)
    if kernel_release:
        config.kernel_release = kernel_release
    if rt_patch:
        config.rt_patch = rt_patch
    if lttng_version:
        config.lttng_version = lttng_version
    if fragment:
        config.config_fragment = Path(fragment)
    if no_tracing:
        config.enable_tracing = False
    if no_debian_rules:
        config.run_debian_rules = False

    setup_logging(
        level=logging.DEBUG if ctx.obj.get("verbose") else logging.INFO,
        log_file=config.log_dir / log_file_name("prepare"),
    )

    state = PipelineState(config.state_dir)
    if fresh:
        state.clear()

    result = PipelineOrchestrator(config, state=state).run()

    if result.success:
        for warning in result.warnings:
            console.print(f"[yellow]⚠ {warning}[/yellow]")
        context = result.context
        console.print(f"[green]Tree ready: {config.source_dir}[/green]")
        console.print(f"  Kernel release: [cyan]{context.release}[/cyan]")
        console.print(f"  Source tag:     [cyan]{context.tag}[/cyan]")
        console.print(f"  RT patch:       [cyan]{context.rt_patch}[/cyan]")
        sys.exit(0)

    failure = result.failure
    console.print(f"[red]{failure}[/red]")
    console.print(f"  Stage:  {failure.stage.value}")
    console.print(f"  Error:  {failure.kind}")
    console.print(f"  Detail: {failure.detail}", markup=False)
    error = failure.error
    if ctx.obj.get("verbose") and error is not None and error.__traceback__ is not None:
        console.print(Traceback.from_exception(type(error), error, error.__traceback__))
    sys.exit(result.exit_code)


@main.command()
@click.option("--arch", "-a", type=click.Choice(SUPPORTED_ARCHES), help="Target architecture")
@click.option("--series", "-s", type=click.Choice(SUPPORTED_SERIES), help="Ubuntu series")
@click.option("--kernel-version", help="Kernel version, e.g. 5.15.0 (series default)")
@click.option("--target-kernel", help="Upstream kernel version to match an RT patch for, e.g. 5.15.74")
@click.pass_context
def resolve(
    ctx,
    arch: Optional[str],
    series: Optional[str],
    kernel_version: Optional[str],
    target_kernel: Optional[str],
):
    """
    Resolve the latest kernel release and, optionally, its RT patch.

    No source tree is needed.
    """
    config = _build_config(arch, series, kernel_version)
    catalog = HttpVersionCatalog(config)

    try:
        release = KernelReleaseResolver(catalog).resolve(
            None, config.arch, config.kernel_version_prefix
        )
        console.print(f"Kernel release: [cyan]{release}[/cyan]")

        if target_kernel:
            try:
                target = KernelVersion.parse(target_kernel)
            except ValueError as e:
                raise click.BadParameter(str(e), param_hint="--target-kernel")
            rt_patch = PatchVersionMatcher(catalog).match(None, target)
            console.print(f"RT patch:       [cyan]{rt_patch}[/cyan]")
    except RtKernelError as e:
        _fail(ctx, e)


@main.command()
@click.option("--arch", "-a", type=click.Choice(SUPPORTED_ARCHES), help="Target architecture")
@click.option("--series", "-s", type=click.Choice(SUPPORTED_SERIES), help="Ubuntu series")
@click.option("--kernel-version", help="Kernel version, e.g. 5.15.0 (series default)")
@click.option("--max-rows", type=int, default=20, help="Max rows to display per table")
@click.pass_context
def catalog(
    ctx,
    arch: Optional[str],
    series: Optional[str],
    kernel_version: Optional[str],
    max_rows: int,
):
    """
    Show the parsed build-info and RT patch listings.
    """
    config = _build_config(arch, series, kernel_version)
    version_catalog = HttpVersionCatalog(config)

    try:
        entries = version_catalog.list_kernel_releases(config.arch, config.kernel_version_prefix)
        patches = version_catalog.list_patch_versions(config.kernel_series)
    except RtKernelError as e:
        _fail(ctx, e)
        return

    releases = Table(title=f"linux-buildinfo ({config.arch}, {config.kernel_version_prefix})")
    releases.add_column("Release", style="cyan")
    releases.add_column("Package version")
    releases.add_column("File", style="dim")
    for entry in sorted(entries, key=lambda e: e.sort_key, reverse=True)[:max_rows]:
        releases.add_row(str(entry.release), entry.package_version, entry.filename)
    console.print(releases)

    rt_table = Table(title=f"RT patches ({config.kernel_series})")
    rt_table.add_column("RT patch", style="cyan")
    rt_table.add_column("Sublevel", justify="right")
    for patch in sorted(patches, reverse=True)[:max_rows]:
        rt_table.add_row(str(patch), str(patch.sublevel))
    console.print(rt_table)


@main.command()
@click.option("--work-dir", "-w", type=click.Path(file_okay=False), help="Build directory")
@click.pass_context
def status(ctx, work_dir: Optional[str]):
    """
    Show the recorded kernel release, RT patch and source tag.
    """
    config = _build_config(work_dir=work_dir)
    state = PipelineState(config.state_dir)

    table = Table(title=f"Pipeline state ({config.state_dir})")
    table.add_column("Value")
    table.add_column("Recorded", style="cyan")
    for name, value in state.as_dict().items():
        table.add_row(name, value or "[yellow]not resolved[/yellow]")
    console.print(table)


if __name__ == "__main__":
    main()
