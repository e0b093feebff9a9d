"""
Main CLI entry point for EKS Pause.

Provides the ``eks-pause`` command with pause, restore, status and snapshots
subcommands.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler

from eks_pause import __version__
from eks_pause.auth.session import SessionProvider
from eks_pause.cli.interactive import InteractiveFlow
from eks_pause.core.config import Config, ConfigManager
from eks_pause.core.exceptions import (
    AuthenticationError, ConfigurationError, EKSPauseError, ServiceError, UserCancelled
)
from eks_pause.services.factory import ServiceFactory
from eks_pause.services.operations import PauseResumeOperations
from eks_pause.state.snapshot_manager import SnapshotManager


console = Console()
err_console = Console(stderr=True)

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_SERVICE_ERROR = 4
EXIT_USER_CANCELLED = 130


def setup_logging(verbose: bool) -> None:
    """Route package logs through rich. User-facing output goes through ``console``."""
    logger = logging.getLogger("eks_pause")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(console=err_console, rich_tracebacks=True, show_path=verbose)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_operations(config: Config) -> PauseResumeOperations:
    """Authenticate and wire up the service layer.

    Raises:
        AuthenticationError: If AWS credentials are missing or unusable
    """
    provider = SessionProvider(config)
    session = provider.get_session()
    provider.verify_credentials(session)
    factory = ServiceFactory(session, config)
    return PauseResumeOperations(factory, SnapshotManager(config.backup_root))


def load_config(ctx: click.Context, **extra: Any) -> Config:
    """Defaults, then config file, then environment/flags.

    Raises:
        ConfigurationError: If the config file or an override is invalid
    """
    params = ctx.find_root().params
    overrides: Dict[str, Any] = {
        'cluster_name': params.get('cluster'),
        'region': params.get('region'),
        'backup_root': params.get('backup_root'),
        'kube_context': params.get('kube_context'),
    }
    overrides.update(extra)

    try:
        return ConfigManager(params.get('config_dir')).load_config(overrides)
    except ValueError as e:
        raise ConfigurationError(str(e))


def run_flow(action: Callable[[], int]) -> None:
    """Run a command body, mapping errors to exit codes."""
    try:
        code = action()
    except (KeyboardInterrupt, UserCancelled):
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except ConfigurationError as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except AuthenticationError as e:
        console.print(f"❌ [red]Authentication error: {e}[/red]")
        sys.exit(EXIT_AUTH_ERROR)
    except ServiceError as e:
        console.print(f"❌ [red]Service error: {e}[/red]")
        sys.exit(EXIT_SERVICE_ERROR)
    except EKSPauseError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except Exception as e:
        logging.getLogger(__name__).debug("Unexpected error", exc_info=True)
        console.print(f"💥 [red]Unexpected error: {e}[/red]")
        console.print("[dim]Re-run with -v for the full traceback.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)
    sys.exit(code)


@click.group()
@click.option("--cluster", envvar="EKS_PAUSE_CLUSTER", help="EKS cluster name (default: rodngun-eks)")
@click.option("--region", envvar="AWS_REGION", help="AWS region of the cluster (default: us-east-1)")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding config.json (default: ~/.eks-pause)",
)
@click.option(
    "--backup-root",
    envvar="EKS_PAUSE_BACKUP_ROOT",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory where eks-backup-* snapshots are written (default: .)",
)
@click.option("--kube-context", envvar="EKS_PAUSE_KUBE_CONTEXT", help="kubeconfig context to use")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.version_option(version=__version__)
def main(
    cluster: Optional[str] = None,
    region: Optional[str] = None,
    config_dir: Optional[Path] = None,
    backup_root: Optional[Path] = None,
    kube_context: Optional[str] = None,
    verbose: bool = False,
) -> None:
    """
    ⏸️  EKS Pause - pause and restore an EKS environment

    Scale workloads and node groups down to save money, keep a snapshot,
    and bring everything back later.
    """
    setup_logging(verbose)


def _flow(config: Config, assume_yes: bool = False, with_operations: bool = True) -> InteractiveFlow:
    operations = build_operations(config) if with_operations else None
    return InteractiveFlow(console, config, operations, SnapshotManager(config.backup_root), assume_yes)


@main.command()
@click.option("--yes", "-y", "--force", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be changed without making actual changes")
@click.option(
    "--namespace", "namespaces", multiple=True,
    help="Namespace to scale down (repeatable; default: configured namespaces)",
)
@click.pass_context
def pause(ctx: click.Context, assume_yes: bool, dry_run: bool, namespaces: Tuple[str, ...]) -> None:
    """Snapshot the cluster, then scale it down."""
    def action() -> int:
        config = load_config(ctx, namespaces=list(namespaces) or None)
        return _flow(config, assume_yes).pause(dry_run)

    run_flow(action)


@main.command()
@click.argument("backup_dir", required=False, type=click.Path(path_type=Path))
@click.option("--yes", "-y", "--force", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be changed without making actual changes")
@click.option("--latest", is_flag=True, help="Restore from the most recent backup")
@click.pass_context
def restore(ctx: click.Context, backup_dir: Optional[Path], assume_yes: bool, dry_run: bool, latest: bool) -> None:
    """Restore the cluster from BACKUP_DIR."""
    def action() -> int:
        config = load_config(ctx)
        snapshots = SnapshotManager(config.backup_root)

        target = backup_dir
        if target is None and latest:
            target = snapshots.latest_snapshot()
            if target is None:
                console.print(f"❌ [red]No backups found under {snapshots.backup_root}[/red]")
                return EXIT_GENERAL_ERROR
        if target is None:
            return _flow(config, with_operations=False).restore_usage()

        # Checked before authenticating so nothing is contacted for a bad path
        if not target.is_dir():
            console.print(f"❌ [red]Error: Backup directory {target} not found[/red]")
            return EXIT_GENERAL_ERROR

        return _flow(config, assume_yes).restore(target, dry_run)

    run_flow(action)


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show cluster status and estimated cost."""
    run_flow(lambda: _flow(load_config(ctx)).show_status())


@main.command()
@click.pass_context
def snapshots(ctx: click.Context) -> None:
    """List available backups."""
    run_flow(lambda: _flow(load_config(ctx), with_operations=False).list_snapshots())


if __name__ == "__main__":
    main()
