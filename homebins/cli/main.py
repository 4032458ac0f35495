"""Main CLI application for homebins."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from homebins import __version__
from homebins.config.parser import ConfigError, load_config, load_manifest
from homebins.config.schemas import CHECKSUM_PRIORITY, HomebinsConfig, Manifest
from homebins.core.cache import DownloadCache
from homebins.core.checksum import file_digest
from homebins.core.dirs import InstallDirs
from homebins.core.discovery import VersionCheckError, installed_version, is_outdated
from homebins.core.installer import PLANNERS, Action, InstallSummary, ManifestInstaller
from homebins.core.operations import Operation, describe
from homebins.core.planner import (
    PlanError,
    destination_conflicts,
    operation_destinations,
    plan_install,
    plan_remove,
    plan_update,
)
from homebins.registry.git import GitRepoError, ManifestRepo
from homebins.registry.store import ManifestStore
from homebins.utils.version import SemVer

# Create the main Typer app
app = typer.Typer(
    name="homebins",
    help="Install binaries, man pages and completions to $HOME",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

# Set up logger for the homebins package
logger = logging.getLogger("homebins")

ManifestDirOption = Annotated[
    Path | None,
    typer.Option(
        "--manifest-dir",
        "-m",
        help="Read manifests from this directory instead of the manifest repository",
    ),
]
DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Print planned operations without applying them"),
]
NamesArgument = Annotated[list[str], typer.Argument(help="Manifest names")]
PathsArgument = Annotated[
    list[Path], typer.Argument(help="Manifest files", exists=True, dir_okay=False)
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {escape(message)}", soft_wrap=True)


def print_line(message: str) -> None:
    """Print a line of plain output, e.g. a path."""
    console.print(message, markup=False, highlight=False, soft_wrap=True)


def get_config() -> HomebinsConfig:
    """Load user configuration, exiting on errors."""
    try:
        return load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_store(config: HomebinsConfig, dirs: InstallDirs, manifest_dir: Path | None) -> ManifestStore:
    """Get the manifest store, syncing the manifest repository if needed."""
    if manifest_dir is not None:
        return ManifestStore(manifest_dir)

    repo_config = config.manifest_repo
    try:
        repo = ManifestRepo.cloned(
            repo_config.url, dirs.repos_dir / repo_config.name, repo_config.branch
        )
    except GitRepoError as e:
        print_error(f"Failed to sync manifests from {repo_config.url}: {e}")
        raise typer.Exit(1) from e
    return repo.store()


def load_named(store: ManifestStore, names: list[str]) -> tuple[list[Manifest], bool]:
    """Load manifests by name.

    Returns:
        Tuple of (loaded manifests, whether any failed to load)
    """
    manifests: list[Manifest] = []
    failed = False
    for name in names:
        try:
            manifest = store.load_manifest(name)
        except ConfigError as e:
            print_error(str(e))
            failed = True
            continue
        if manifest is None:
            print_error(f"Manifest not found: {name}")
            failed = True
            continue
        manifests.append(manifest)
    return manifests, failed


def load_files(paths: list[Path]) -> tuple[list[Manifest], bool]:
    """Load manifests from files.

    Returns:
        Tuple of (loaded manifests, whether any failed to load)
    """
    manifests: list[Manifest] = []
    failed = False
    for path in paths:
        try:
            manifests.append(load_manifest(path))
        except (ConfigError, FileNotFoundError) as e:
            print_error(str(e))
            failed = True
    return manifests, failed


def load_all(store: ManifestStore) -> tuple[list[Manifest], bool]:
    """Load every manifest of the store, reporting invalid ones."""
    manifests: list[Manifest] = []
    failed = False
    for name, result in store.manifests():
        if isinstance(result, ConfigError):
            print_error(f"{name}: {result}")
            failed = True
        else:
            manifests.append(result)
    return manifests, failed


def check_version(manifest: Manifest, dirs: InstallDirs) -> tuple[SemVer | None, bool]:
    """Get the installed version of a manifest.

    Returns:
        Tuple of (installed version or None, whether the version check failed)
    """
    try:
        return installed_version(manifest, dirs), False
    except VersionCheckError as e:
        print_error(f"{manifest.name}: {e}")
        return None, True


def print_plan(manifests: list[Manifest], planner: Callable[[Manifest], list[Operation]]) -> bool:
    """Print planned operations of manifests.

    Returns:
        Whether planning failed for any manifest
    """
    failed = False
    for manifest in manifests:
        try:
            operations = planner(manifest)
        except PlanError as e:
            print_error(f"{manifest.name}: {e}")
            failed = True
            continue
        console.print(f"[bold]{manifest.name}[/bold] {manifest.info.version}")
        for operation in operations:
            print_line(f"  {describe(operation)}")
    return failed


def report(summary: InstallSummary, action: Action, verb: str) -> bool:
    """Print results of a batch run.

    Returns:
        Whether any manifest failed
    """
    for result in summary.results:
        if result.success:
            print_success(f"{verb} {result.name} {result.version}")
        else:
            print_error(f"Failed to {action.value} {result.name}: {result.message}")
    return not summary.all_successful


def run_action(
    action: Action,
    manifests: list[Manifest],
    config: HomebinsConfig,
    dirs: InstallDirs,
    dry_run: bool,
) -> bool:
    """Apply an action to manifests, or print the plan on a dry run.

    Returns:
        Whether any manifest failed
    """
    if dry_run:
        return print_plan(manifests, PLANNERS[action])

    verbs = {Action.INSTALL: "Installed", Action.REMOVE: "Removed", Action.UPDATE: "Updated"}
    installer = ManifestInstaller(dirs, config.download)
    return report(installer.run(action, manifests), action, verbs[action])


def print_files(
    manifests: list[Manifest], dirs: InstallDirs, existing: bool, remove: bool
) -> bool:
    """Print the installed files of manifests.

    Returns:
        Whether planning failed for any manifest
    """
    failed = False
    for manifest in manifests:
        try:
            operations = plan_remove(manifest) if remove else plan_install(manifest)
        except PlanError as e:
            print_error(f"{manifest.name}: {e}")
            failed = True
            continue
        for destination in operation_destinations(operations):
            path = dirs.path(destination.directory) / destination.name
            if existing and not (path.exists() or path.is_symlink()):
                continue
            print_line(str(path))
    return failed


def finish(failed: bool) -> None:
    if failed:
        raise typer.Exit(1)


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug)",
        ),
    ] = 0,
) -> None:
    """homebins - install binaries to $HOME."""
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the homebins version."""
    console.print(f"homebins {__version__}")


@app.command("list")
def list_manifests(manifest_dir: ManifestDirOption = None) -> None:
    """List all available manifests."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_all(store)
    for manifest in manifests:
        print_line(f"{manifest.name}: {manifest.info.version}")
    finish(failed)


@app.command()
def installed(manifest_dir: ManifestDirOption = None) -> None:
    """List installed manifests with their installed version."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_all(store)
    for manifest in manifests:
        current, check_failed = check_version(manifest, dirs)
        failed = failed or check_failed
        if current is not None:
            print_line(f"{manifest.name} = {current}")
    finish(failed)


@app.command()
def outdated(manifest_dir: ManifestDirOption = None) -> None:
    """List installed manifests with a newer version available."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_all(store)
    for manifest in manifests:
        current, check_failed = check_version(manifest, dirs)
        failed = failed or check_failed
        if current is not None and is_outdated(current, manifest):
            print_line(f"{manifest.name} = {current} -> {manifest.info.version}")
    finish(failed)


@app.command()
def files(
    names: NamesArgument,
    existing: Annotated[
        bool, typer.Option("--existing", "-e", help="Only show files that exist")
    ] = False,
    remove: Annotated[
        bool, typer.Option("--remove", "-r", help="Show files the remove plan deletes")
    ] = False,
    manifest_dir: ManifestDirOption = None,
) -> None:
    """Show the files installed by manifests."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_named(store, names)
    failed = print_files(manifests, dirs, existing, remove) or failed
    finish(failed)


@app.command()
def install(
    names: NamesArgument,
    manifest_dir: ManifestDirOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Install manifests by name."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_named(store, names)
    failed = run_action(Action.INSTALL, manifests, config, dirs, dry_run) or failed
    finish(failed)


@app.command()
def remove(
    names: NamesArgument,
    manifest_dir: ManifestDirOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Remove manifests by name."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_named(store, names)
    failed = run_action(Action.REMOVE, manifests, config, dirs, dry_run) or failed
    finish(failed)


@app.command()
def update(
    names: Annotated[
        list[str] | None, typer.Argument(help="Manifest names; all outdated if omitted")
    ] = None,
    manifest_dir: ManifestDirOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Update installed manifests.

    Without names, updates every outdated manifest. Named manifests which
    are up to date are skipped; named manifests which are not installed
    are errors.
    """
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    if names:
        candidates, failed = load_named(store, names)
    else:
        candidates, failed = load_all(store)

    manifests: list[Manifest] = []
    for manifest in candidates:
        current, check_failed = check_version(manifest, dirs)
        failed = failed or check_failed
        if current is None:
            if names:
                print_error(f"{manifest.name} is not installed")
                failed = True
        elif is_outdated(current, manifest):
            manifests.append(manifest)
        elif names:
            console.print(f"{manifest.name} is up to date ({current})")

    if not manifests and not failed:
        console.print("Nothing to update")
    failed = run_action(Action.UPDATE, manifests, config, dirs, dry_run) or failed
    finish(failed)


@app.command()
def check(manifest_dir: ManifestDirOption = None) -> None:
    """Validate all manifests and detect files claimed by several manifests."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    store = get_store(config, dirs, manifest_dir)

    manifests, failed = load_all(store)
    plannable: list[Manifest] = []
    for manifest in manifests:
        try:
            plan_install(manifest)
            plan_update(manifest)
        except PlanError as e:
            print_error(f"{manifest.name}: {e}")
            failed = True
        else:
            plannable.append(manifest)

    for destination, owners in destination_conflicts(plannable).items():
        path = dirs.path(destination.directory) / destination.name
        print_error(f"{path} is installed by {', '.join(owners)}")
        failed = True

    if not failed:
        print_success(f"All {len(plannable)} manifest(s) are valid")
    finish(failed)


@app.command()
def checksum(
    paths: Annotated[
        list[Path], typer.Argument(help="Files to hash", exists=True, dir_okay=False)
    ],
    algorithm: Annotated[
        str, typer.Option("--algorithm", "-a", help="One of b2, sha512, sha256, sha1")
    ] = "sha256",
) -> None:
    """Print checksums of files for the checksums table of a manifest."""
    if algorithm not in CHECKSUM_PRIORITY:
        print_error(
            f"Unknown checksum algorithm {algorithm}, use one of {', '.join(CHECKSUM_PRIORITY)}"
        )
        raise typer.Exit(1)

    failed = False
    for path in paths:
        try:
            digest = file_digest(path, algorithm)
        except OSError as e:
            print_error(f"Failed to read {path}: {e}")
            failed = True
            continue
        print_line(f'{path}: {algorithm} = "{digest}"')
    finish(failed)


@app.command()
def clean(
    clean_all: Annotated[
        bool, typer.Option("--all", help="Remove all cached downloads")
    ] = False,
    manifest_dir: ManifestDirOption = None,
) -> None:
    """Remove cached downloads of old manifest versions."""
    config = get_config()
    dirs = InstallDirs.from_config(config)
    cache = DownloadCache(dirs.download_root)

    if clean_all:
        cache.clear()
        print_success(f"Cleared {dirs.download_root}")
        return

    store = get_store(config, dirs, manifest_dir)
    manifests, failed = load_all(store)
    if failed:
        # Versions of invalid manifests are unknown, so keep everything
        print_error("Not pruning downloads while manifests are invalid")
        raise typer.Exit(1)

    removed = cache.prune({manifest.name: manifest.info.version for manifest in manifests})
    for path in removed:
        print_line(f"Removed {path}")
    print_success(f"Removed {len(removed)} cached version(s)")


@app.command("manifest-files")
def manifest_files(
    paths: PathsArgument,
    existing: Annotated[
        bool, typer.Option("--existing", "-e", help="Only show files that exist")
    ] = False,
    remove: Annotated[
        bool, typer.Option("--remove", "-r", help="Show files the remove plan deletes")
    ] = False,
) -> None:
    """Show the files installed by manifest files."""
    config = get_config()
    dirs = InstallDirs.from_config(config)

    manifests, failed = load_files(paths)
    failed = print_files(manifests, dirs, existing, remove) or failed
    finish(failed)


@app.command("manifest-install")
def manifest_install(paths: PathsArgument, dry_run: DryRunOption = False) -> None:
    """Install manifest files."""
    config = get_config()
    dirs = InstallDirs.from_config(config)

    manifests, failed = load_files(paths)
    failed = run_action(Action.INSTALL, manifests, config, dirs, dry_run) or failed
    finish(failed)


@app.command("manifest-remove")
def manifest_remove(paths: PathsArgument, dry_run: DryRunOption = False) -> None:
    """Remove manifest files."""
    config = get_config()
    dirs = InstallDirs.from_config(config)

    manifests, failed = load_files(paths)
    failed = run_action(Action.REMOVE, manifests, config, dirs, dry_run) or failed
    finish(failed)


@app.command("manifest-update")
def manifest_update(paths: PathsArgument, dry_run: DryRunOption = False) -> None:
    """Update manifest files in place, regardless of the installed version."""
    config = get_config()
    dirs = InstallDirs.from_config(config)

    manifests, failed = load_files(paths)
    failed = run_action(Action.UPDATE, manifests, config, dirs, dry_run) or failed
    finish(failed)


if __name__ == "__main__":
    app()
