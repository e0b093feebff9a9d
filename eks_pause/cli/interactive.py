"""Interactive CLI flow for EKS Pause."""

from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from eks_pause.core.config import Config
from eks_pause.services.models import OperationResult
from eks_pause.services.operations import PauseResumeOperations
from eks_pause.services.status import ClusterStatus, CostEstimate
from eks_pause.state.snapshot_manager import SnapshotManager


EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_OPERATION_FAILED = 4


class InteractiveFlow:
    """Handles interactive CLI flows for EKS Pause."""

    def __init__(
        self,
        console: Console,
        config: Config,
        operations: Optional[PauseResumeOperations],
        snapshots: SnapshotManager,
        assume_yes: bool = False
    ):
        """Initialize interactive flow.

        Args:
            console: Rich console for output
            config: Runtime configuration
            operations: Pause/resume operations. Only the snapshot listing works without it.
            snapshots: Snapshot store
            assume_yes: Skip confirmation prompts
        """
        self.console = console
        self.config = config
        self.operations = operations
        self.snapshots = snapshots
        self.assume_yes = assume_yes

    def confirm(self, message: str) -> bool:
        if self.assume_yes:
            return True
        try:
            return Confirm.ask(message, console=self.console, default=False)
        except EOFError:
            # stdin closed, nobody confirmed
            return False

    def _header(self, title: str) -> None:
        self.console.print(f"⏸️  [bold cyan]EKS Pause - {title}[/bold cyan]")
        self.console.print("━" * 50)
        self.console.print(f"Cluster: [bold]{self.config.cluster_name}[/bold]")
        self.console.print(f"Region:  [bold]{self.config.region}[/bold]")
        self.console.print()

    def pause(self, dry_run: bool) -> int:
        """Snapshot and pause the cluster. Returns the exit code."""
        self._header("Pause Cluster")

        if not dry_run:
            self.console.print(Panel(
                "• Deployments and statefulsets in "
                f"{', '.join(self.config.namespaces)} scaled to 0 replicas\n"
                "• General node groups scaled to 0 instances\n"
                f"• Data-bearing node groups kept at {self.config.data_bearing_pause_size} instance(s)\n"
                "• Standalone EC2 instances and RDS databases stopped",
                title="This will",
                border_style="yellow",
                expand=False
            ))
            if not self.confirm("Are you sure you want to pause the EKS cluster?"):
                self.console.print("Operation cancelled")
                return EXIT_SUCCESS

        results, snapshot = self.operations.pause(dry_run=dry_run)
        self.show_results(results, "Pause Results" if not dry_run else "Pause Plan")

        if snapshot is not None:
            for warning in snapshot.warnings:
                self.console.print(f"⚠️  [yellow]{warning}[/yellow]")
            self.console.print(Panel(
                f"Backup saved to: [bold]{snapshot.path}[/bold]\n\n"
                f"Restore with: [cyan]eks-pause restore {snapshot.path}[/cyan]\n\n"
                "Still running at minimal cost: EKS control plane, data-bearing node(s), "
                "VPC networking and EBS volumes.",
                title="✅ Cluster paused",
                border_style="green",
                expand=False
            ))

        return self._exit_code(results)

    def restore(self, backup_dir: Path, dry_run: bool) -> int:
        """Restore the cluster from a snapshot directory. Returns the exit code."""
        self._header("Restore Cluster")
        snapshot = self.snapshots.load_snapshot(backup_dir)
        self.console.print(f"Backup: [bold]{snapshot.path}[/bold]")
        self.console.print()

        if not dry_run and not self.confirm("Are you sure you want to restore the EKS cluster?"):
            self.console.print("Operation cancelled")
            return EXIT_SUCCESS

        results = self.operations.resume(backup_dir, dry_run=dry_run)
        self.show_results(results, "Restore Results" if not dry_run else "Restore Plan")

        if not dry_run:
            self.console.print("✅ [green]Restore complete.[/green] Pods may take a few minutes to become ready.")
        return self._exit_code(results)

    def show_results(self, results: List[OperationResult], title: str) -> None:
        if not results:
            self.console.print("[dim]Nothing to do.[/dim]")
            return

        table = Table(title=title)
        table.add_column("Target", style="cyan")
        table.add_column("Result")
        table.add_column("Message")

        for result in results:
            if not result.success:
                outcome = "[red]failed[/red]"
            elif result.skipped:
                outcome = "[dim]skipped[/dim]"
            else:
                outcome = "[green]ok[/green]"
            table.add_row(result.target, outcome, result.message)

        self.console.print(table)

        summary = self.operations.summarize(results)
        self.console.print(
            f"{summary['successful_operations']}/{summary['total_operations']} succeeded "
            f"({summary['skipped_operations']} already in place), "
            f"{summary['failed_operations']} failed"
        )

    def show_status(self) -> int:
        self._header("Status")
        status, estimate = self.operations.status()
        self._render_status(status)
        self._render_cost(estimate)
        return EXIT_SUCCESS

    def _render_status(self, status: ClusterStatus) -> None:
        if status.cluster is None:
            self.console.print(f"❌ [red]Cluster {status.cluster_name} not found[/red]")
        else:
            self.console.print(Panel(
                f"Status:   {status.cluster_status}\n"
                f"Version:  {status.cluster.get('version', 'unknown')}\n"
                f"Endpoint: {status.cluster.get('endpoint', 'unknown')}",
                title=f"Cluster {status.cluster_name}",
                expand=False
            ))

        if status.nodegroups.items:
            table = Table(title="Node Groups")
            for column in ("Name", "Status", "Instance Types", "Min", "Max", "Desired"):
                table.add_column(column)
            for nodegroup in status.nodegroups.items:
                table.add_row(
                    nodegroup.name,
                    nodegroup.status,
                    ", ".join(nodegroup.instance_types) or "-",
                    str(nodegroup.scaling.min_size),
                    str(nodegroup.scaling.max_size),
                    str(nodegroup.scaling.desired_size)
                )
            self.console.print(table)
        elif not status.nodegroups.ok:
            self.console.print(f"⚠️  [yellow]Node groups unavailable: {status.nodegroups.error}[/yellow]")

        if status.nodes.ok:
            ready = sum(1 for node in status.nodes.items if node['ready'])
            self.console.print(f"Kubernetes nodes: {len(status.nodes.items)} ({ready} Ready)")
        if status.deployments.ok:
            active = [d for d in status.deployments.items if d.replicas]
            self.console.print(f"Deployments: {len(status.deployments.items)} ({len(active)} with replicas)")
        if status.running_pods is not None:
            self.console.print(f"Running pods: {status.running_pods}")

        if status.ec2_instances.items:
            table = Table(title="Standalone EC2 Instances")
            for column in ("Instance", "Type", "State", "Name"):
                table.add_column(column)
            for instance in status.ec2_instances.items:
                table.add_row(instance['instance_id'], instance['instance_type'], instance['state'], instance['name'] or "-")
            self.console.print(table)

        if status.rds_instances.items:
            table = Table(title="RDS Instances")
            for column in ("Instance", "Class", "Status", "Storage (GB)"):
                table.add_column(column)
            for database in status.rds_instances.items:
                table.add_row(
                    database['db_instance_id'],
                    database['instance_class'],
                    database['status'],
                    str(database['allocated_storage'] or "-")
                )
            self.console.print(table)
        self.console.print()

    def _render_cost(self, estimate: CostEstimate) -> None:
        table = Table(title="Estimated Cost")
        table.add_column("Item")
        table.add_column("Qty", justify="right")
        table.add_column("$/hour", justify="right")
        for item in estimate.line_items:
            table.add_row(item.description, str(item.quantity), f"{item.hourly:.2f}")
        table.add_row("[bold]Total[/bold]", "", f"[bold]{estimate.hourly:.2f}[/bold]")
        self.console.print(table)
        self.console.print(f"Monthly estimate (730 hours): ~${estimate.monthly:.0f}")

        if estimate.is_paused:
            self.console.print("⏸️  [yellow]Cluster appears to be paused[/yellow]")
        else:
            self.console.print("▶️  [green]Cluster is active[/green]")

    def list_snapshots(self) -> int:
        snapshots = self.snapshots.list_snapshots()
        if not snapshots:
            self.console.print(f"No backups found under {self.snapshots.backup_root}")
            return EXIT_SUCCESS

        table = Table(title="Available Backups")
        table.add_column("Backup", style="cyan")
        table.add_column("Created")
        table.add_column("Files")
        for snapshot in snapshots:
            table.add_row(
                str(snapshot['path']),
                snapshot['created_at'].strftime('%Y-%m-%d %H:%M:%S'),
                ", ".join(snapshot['files'])
            )
        self.console.print(table)
        return EXIT_SUCCESS

    def restore_usage(self) -> int:
        """Printed when restore is called without a backup directory."""
        self.console.print("Usage: eks-pause restore <backup-directory>")
        self.console.print()
        self.list_snapshots()
        return EXIT_GENERAL_ERROR

    def _exit_code(self, results: List[OperationResult]) -> int:
        return EXIT_OPERATION_FAILED if any(not r.success for r in results) else EXIT_SUCCESS
