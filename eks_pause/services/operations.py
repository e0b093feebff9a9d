"""
High-level pause, resume and status operations for an EKS environment.
"""
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .capture import SnapshotCapturer
from .factory import ServiceFactory
from .kubernetes import KubernetesWorkloads
from .models import OperationResult, Snapshot
from .policy import NodeGroupPolicy
from .pricing import pricing_from_config
from .restorer import ClusterRestorer
from .scaler import ClusterScaler
from .status import ClusterStatus, CostEstimate, StatusReporter
from ..core.exceptions import ConfigurationError, ServiceError
from ..state.snapshot_manager import SnapshotManager

logger = logging.getLogger(__name__)


class PauseResumeOperations:
    """High-level operations for pausing and resuming the environment."""

    def __init__(
        self,
        factory: ServiceFactory,
        snapshots: Optional[SnapshotManager] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel_event: Optional[threading.Event] = None
    ):
        """Initialize with a service factory.

        Args:
            factory: ServiceFactory handing out AWS and Kubernetes clients
            snapshots: Snapshot store. Defaults to ``config.backup_root``.
            sleep: Sleep function used by waits during restore
            clock: Monotonic clock used by waits during restore
            cancel_event: When set, pending waits are abandoned
        """
        self.factory = factory
        self.config = factory.config
        self.snapshots = snapshots or SnapshotManager(self.config.backup_root)
        self.policy = NodeGroupPolicy(self.config)
        self._sleep = sleep
        self._clock = clock
        self._cancel_event = cancel_event

    def pause(self, dry_run: bool = False) -> Tuple[List[OperationResult], Optional[Snapshot]]:
        """Capture a snapshot, then scale everything down.

        This method:
        1. Verifies that the cluster exists
        2. Captures workloads, node groups and instance ids to a new snapshot
        3. Scales workloads to zero, shrinks node groups, stops EC2 and RDS

        Args:
            dry_run: If True, report what would change without capturing or changing anything

        Returns:
            Tuple of (operation_results, snapshot). For dry_run, snapshot is None.

        Raises:
            ServiceError: If the cluster does not exist
            ConfigurationError: If kubeconfig cannot be loaded
        """
        logger.info(f"Starting pause of cluster {self.config.cluster_name}")
        kube = self._kubernetes(self._require_cluster())
        scaler = ClusterScaler(
            self.config, self.factory.eks, self.factory.ec2, self.factory.rds, kube, self.policy
        )

        if dry_run:
            return self._dry_run_results(scaler.plan(), 'pause'), None

        capturer = SnapshotCapturer(
            self.config, self.factory.eks, self.factory.ec2, self.factory.rds, kube, self.snapshots, self.policy
        )
        snapshot = capturer.capture()
        results = scaler.pause(snapshot)
        self._log_summary('Pause', results)
        return results, snapshot

    def resume(self, snapshot_path: Path, dry_run: bool = False) -> List[OperationResult]:
        """Restore the environment from a snapshot directory.

        The snapshot is loaded before any API call, so a missing directory
        fails without touching anything.

        Raises:
            StateError: If the snapshot directory is missing or corrupt
            ServiceError: If the cluster does not exist
            ConfigurationError: If kubeconfig cannot be loaded
        """
        snapshot = self.snapshots.load_snapshot(Path(snapshot_path))
        logger.info(f"Starting restore of cluster {self.config.cluster_name} from {snapshot.snapshot_id}")

        kube = self._kubernetes(self._require_cluster())
        restorer = ClusterRestorer(
            self.config, self.factory.eks, self.factory.ec2, self.factory.rds, kube, self.policy,
            sleep=self._sleep, clock=self._clock, cancel_event=self._cancel_event
        )

        if dry_run:
            return self._dry_run_results(restorer.plan(snapshot), 'restore')

        results = restorer.restore(snapshot)
        self._log_summary('Restore', results)
        return results

    def status(self) -> Tuple[ClusterStatus, CostEstimate]:
        """Collect the current state and its estimated cost. Read-only."""
        eks = self.factory.eks
        cluster = eks.describe_cluster(self.config.cluster_name)

        kube: Optional[KubernetesWorkloads] = None
        if cluster is not None:
            try:
                kube = self._kubernetes(cluster)
            except ConfigurationError as e:
                logger.warning(f"Kubernetes details unavailable: {e}")

        reporter = StatusReporter(
            self.config, eks, self.factory.ec2, self.factory.rds, kube,
            pricing=pricing_from_config(self.config.pricing_file),
            policy=self.policy
        )
        status = reporter.collect()
        return status, reporter.estimate_cost(status)

    def summarize(self, operation_results: List[OperationResult]) -> Dict[str, Any]:
        """Generate a summary of operation results."""
        successful_operations = [r for r in operation_results if r.success]
        failed_operations = [r for r in operation_results if not r.success]

        by_service = {}
        for result in operation_results:
            counts = by_service.setdefault(result.service_type, {'success': 0, 'failed': 0, 'skipped': 0, 'total': 0})
            counts['total'] += 1
            if not result.success:
                counts['failed'] += 1
            elif result.skipped:
                counts['skipped'] += 1
            else:
                counts['success'] += 1

        return {
            'total_operations': len(operation_results),
            'successful_operations': len(successful_operations),
            'failed_operations': len(failed_operations),
            'skipped_operations': len([r for r in successful_operations if r.skipped]),
            'success_rate': len(successful_operations) / len(operation_results) if operation_results else 0,
            'total_duration_seconds': sum(r.duration or 0 for r in operation_results),
            'by_service_type': by_service,
            'failed_targets': [
                {'target': r.target, 'error_message': r.message}
                for r in failed_operations
            ]
        }

    def _require_cluster(self) -> Dict[str, Any]:
        cluster = self.factory.eks.describe_cluster(self.config.cluster_name)
        if cluster is None:
            raise ServiceError(
                f"Cluster {self.config.cluster_name} not found in {self.config.region}"
            )
        return cluster

    def _kubernetes(self, cluster: Dict[str, Any]) -> KubernetesWorkloads:
        return self.factory.kubernetes(cluster_arn=cluster.get('arn'))

    def _dry_run_results(self, actions: List[str], operation: str) -> List[OperationResult]:
        current_time = datetime.now()
        return [
            OperationResult(
                success=True,
                target=_action_target(action),
                operation=operation,
                message=f"[DRY RUN] Would {action[0].lower()}{action[1:]}",
                timestamp=current_time,
                duration=0.0
            )
            for action in actions
        ]

    def _log_summary(self, label: str, results: List[OperationResult]) -> None:
        summary = self.summarize(results)
        logger.info(f"{label} summary: {summary['successful_operations']}/{summary['total_operations']} succeeded")

        if summary['failed_operations'] > 0:
            logger.warning(f"{summary['failed_operations']} operations failed:")
            for failed in summary['failed_targets']:
                logger.warning(f"  - {failed['target']}: {failed['error_message']}")


def _action_target(action: str) -> str:
    # "Scale deployment/ns/web from 3 to 0 replicas" -> "deployment/ns/web"
    parts = action.split()
    return parts[1] if len(parts) > 1 else action
