"""
Restore of a paused environment from a snapshot.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .kubernetes import KubernetesWorkloads
from .models import WORKLOAD_KINDS, NodeGroupScaling, OperationResult, Snapshot, WorkloadReplicas
from .policy import NodeGroupPolicy
from .rds import RDSServiceManager
from ..core.config import Config
from ..core.exceptions import ServiceError, StateError
from ..core.waiter import poll_until

logger = logging.getLogger(__name__)


class ClusterRestorer:
    """Brings a paused environment back using a snapshot.

    Node groups come first so that restored workloads have somewhere to run.
    Waits are bounded by ``config.poll_timeout_seconds``; a wait that times
    out is logged and the restore carries on.
    """

    def __init__(
        self,
        config: Config,
        eks: EKSServiceManager,
        ec2: EC2ServiceManager,
        rds: RDSServiceManager,
        kube: KubernetesWorkloads,
        policy: Optional[NodeGroupPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel_event: Optional[threading.Event] = None
    ):
        self.config = config
        self.eks = eks
        self.ec2 = ec2
        self.rds = rds
        self.kube = kube
        self.policy = policy or NodeGroupPolicy(config)
        self._poll_kwargs = {'sleep': sleep, 'clock': clock, 'cancel_event': cancel_event}

    def restore(self, snapshot: Snapshot) -> List[OperationResult]:
        """Restore node groups, workloads, EC2 and RDS in that order.

        Raises:
            StateError: If the snapshot directory no longer exists
        """
        if snapshot is None or not snapshot.path.is_dir():
            raise StateError(f"Backup directory {getattr(snapshot, 'path', None)} not found")

        logger.info(f"Restoring cluster {self.config.cluster_name} from {snapshot.snapshot_id}")
        results: List[OperationResult] = []

        nodegroup_results, targets = self.restore_nodegroups(snapshot)
        results.extend(nodegroup_results)
        self.wait_for_nodes(sum(t.desired_size for t in targets.values()))

        results.extend(self.restore_workloads(snapshot))
        results.extend(self.start_instances(snapshot))
        results.extend(self.start_databases(snapshot))
        return results

    def nodegroup_names(self, snapshot: Snapshot) -> List[str]:
        listing = self.eks.list_nodegroups(self.config.cluster_name)
        if listing.ok:
            return listing.items

        names = list(snapshot.nodegroups) or self.policy.literal_names()
        logger.warning(f"Node group listing failed, restoring {', '.join(names) or 'nothing'}")
        return names

    def restore_nodegroups(self, snapshot: Snapshot):
        """Scale every node group to its restore target.

        Returns:
            Tuple of (results, targets by node group name)
        """
        results = []
        targets: Dict[str, NodeGroupScaling] = {}

        for name in self.nodegroup_names(snapshot):
            start_time = datetime.now()
            role = self.policy.classify(name)
            target_scaling = self.policy.restore_target(role)
            targets[name] = target_scaling
            target = f"nodegroup/{name}"

            try:
                current = self.eks.describe_nodegroup(self.config.cluster_name, name).scaling
            except ServiceError as e:
                logger.warning(f"Could not read current scaling of {name}: {e}")
                current = None

            if current == target_scaling:
                results.append(_result(target, True, f"{name} already at {target_scaling}", start_time, skipped=True))
                continue

            try:
                self.eks.update_scaling(self.config.cluster_name, name, target_scaling)
            except ServiceError as e:
                results.append(_result(target, False, str(e), start_time))
                continue

            results.append(_result(target, True, f"Scaled {name} to {target_scaling}", start_time))

        return results, targets

    def wait_for_nodes(self, expected: int) -> bool:
        if expected <= 0:
            return True

        logger.info(f"Waiting for {expected} node(s) to become Ready")
        return poll_until(
            lambda: self.kube.ready_node_count() >= expected,
            timeout=self.config.poll_timeout_seconds,
            interval=self.config.poll_interval_seconds,
            description=f"{expected} Ready node(s)",
            **self._poll_kwargs
        )

    def restore_workloads(self, snapshot: Snapshot) -> List[OperationResult]:
        results = []
        protected = set(self.config.protected_namespaces)

        for kind in WORKLOAD_KINDS:
            start_time = datetime.now()
            listing = self.kube.list_workloads(kind)
            if not listing.ok:
                results.append(_result(kind, False, f"Could not list {kind}s: {listing.error}", start_time))
                continue

            current = [w for w in listing.items if w.ref.namespace not in protected]
            if snapshot.workloads(kind) is None:
                logger.warning(f"No {kind}s recorded in {snapshot.snapshot_id}, scaling idle {kind}s to 1")
                results.extend(self._restore_unrecorded(current))
            else:
                results.extend(self._restore_recorded(snapshot, current))
        return results

    def _restore_recorded(self, snapshot: Snapshot, current: List[WorkloadReplicas]) -> List[OperationResult]:
        results = []
        for workload in current:
            recorded = snapshot.recorded_replicas(workload.ref)
            if not recorded:
                logger.debug(f"Leaving {workload.ref} untouched (recorded replicas: {recorded})")
                continue
            results.append(self._scale(workload, recorded))
        return results

    def _restore_unrecorded(self, current: List[WorkloadReplicas]) -> List[OperationResult]:
        return [self._scale(workload, 1) for workload in current if workload.replicas == 0]

    def _scale(self, workload: WorkloadReplicas, replicas: int) -> OperationResult:
        start_time = datetime.now()
        target = str(workload.ref)
        if workload.replicas == replicas:
            return _result(target, True, f"{target} already at {replicas} replicas", start_time, skipped=True)

        try:
            self.kube.scale(workload.ref, replicas)
        except ServiceError as e:
            return _result(target, False, str(e), start_time)

        logger.info(f"Scaled {target} from {workload.replicas} to {replicas} replicas")
        return _result(target, True, f"Scaled {target} to {replicas} replicas", start_time)

    def start_instances(self, snapshot: Snapshot) -> List[OperationResult]:
        ids = snapshot.ec2_instance_ids or []
        if not ids:
            logger.info("No EC2 instances recorded")
            return []

        results = self.ec2.start_instances(ids)
        started = [r.target.split('/', 1)[1] for r in results if r.success]
        self.ec2.wait_until_running(
            started,
            timeout=self.config.poll_timeout_seconds,
            interval=self.config.poll_interval_seconds,
            **self._poll_kwargs
        )
        return results

    def start_databases(self, snapshot: Snapshot) -> List[OperationResult]:
        ids = snapshot.rds_instance_ids or []
        if not ids:
            logger.info("No RDS instances recorded")
            return []

        results = [self.rds.start_instance(db_instance_id) for db_instance_id in ids]
        started = [r.target.split('/', 1)[1] for r in results if r.success and not r.skipped]
        self.rds.wait_until_available(
            started,
            timeout=self.config.poll_timeout_seconds,
            interval=self.config.poll_interval_seconds,
            **self._poll_kwargs
        )
        return results

    def plan(self, snapshot: Snapshot) -> List[str]:
        """Describe what ``restore`` would do, without changing anything."""
        actions = []
        for name in self.nodegroup_names(snapshot):
            target_scaling = self.policy.restore_target(self.policy.classify(name))
            actions.append(f"Set nodegroup/{name} to {target_scaling}")

        protected = set(self.config.protected_namespaces)
        for kind in WORKLOAD_KINDS:
            recorded = snapshot.workloads(kind)
            for workload in self.kube.list_workloads(kind).items:
                if workload.ref.namespace in protected:
                    continue
                if recorded is None:
                    replicas = 1 if workload.replicas == 0 else None
                else:
                    replicas = snapshot.recorded_replicas(workload.ref)
                if replicas and replicas != workload.replicas:
                    actions.append(f"Scale {workload.ref} from {workload.replicas} to {replicas} replicas")

        actions.extend(f"Start ec2/{i}" for i in snapshot.ec2_instance_ids or [])
        actions.extend(f"Start rds/{d}" for d in snapshot.rds_instance_ids or [])
        return actions


def _result(target: str, success: bool, message: str, start_time: datetime, skipped: bool = False) -> OperationResult:
    return OperationResult(
        success=success,
        target=target,
        operation='restore',
        message=message,
        timestamp=start_time,
        duration=(datetime.now() - start_time).total_seconds(),
        skipped=skipped
    )
