"""
Scale-down of workloads, node groups and standalone instances.
"""
import logging
from datetime import datetime
from typing import List, Optional

from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .kubernetes import KubernetesWorkloads
from .models import WORKLOAD_KINDS, NodeGroupRole, OperationResult, Snapshot, WorkloadReplicas
from .policy import NodeGroupPolicy
from .rds import RDSServiceManager
from ..core.config import Config
from ..core.exceptions import ServiceError, StateError

logger = logging.getLogger(__name__)


class ClusterScaler:
    """Pauses the environment.

    Order matters: workloads go to zero before node groups shrink, so pods
    are not evicted by capacity removal, and node groups shrink before
    instances and databases are stopped. Every step compares against the
    current state first, so re-running on a paused cluster changes nothing.
    """

    def __init__(
        self,
        config: Config,
        eks: EKSServiceManager,
        ec2: EC2ServiceManager,
        rds: RDSServiceManager,
        kube: KubernetesWorkloads,
        policy: Optional[NodeGroupPolicy] = None
    ):
        self.config = config
        self.eks = eks
        self.ec2 = ec2
        self.rds = rds
        self.kube = kube
        self.policy = policy or NodeGroupPolicy(config)

    def pause(self, snapshot: Snapshot) -> List[OperationResult]:
        """Scale everything down. Requires the snapshot taken just before.

        Raises:
            StateError: If no snapshot is given
        """
        if snapshot is None:
            raise StateError("Refusing to pause without a snapshot to restore from")

        logger.info(f"Pausing cluster {self.config.cluster_name} (snapshot {snapshot.snapshot_id})")
        results: List[OperationResult] = []
        results.extend(self.scale_down_workloads())
        results.extend(self.scale_down_nodegroups())
        results.extend(self.stop_instances(snapshot))
        results.extend(self.stop_databases(snapshot))
        return results

    def target_namespaces(self) -> List[str]:
        protected = set(self.config.protected_namespaces)
        for namespace in self.config.namespaces:
            if namespace in protected:
                logger.info(f"Keeping {namespace} components running for cluster management")
        return [ns for ns in self.config.namespaces if ns not in protected]

    def scale_down_workloads(self) -> List[OperationResult]:
        results = []
        for namespace in self.target_namespaces():
            start_time = datetime.now()
            try:
                if not self.kube.namespace_exists(namespace):
                    logger.info(f"Namespace {namespace} not found, skipping")
                    continue
            except ServiceError as e:
                results.append(_result(f"namespace/{namespace}", False, str(e), start_time))
                continue

            for kind in WORKLOAD_KINDS:
                listing = self.kube.list_workloads(kind, namespace)
                if not listing.ok:
                    results.append(_result(
                        f"{kind}/{namespace}", False,
                        f"Could not list {kind}s in {namespace}: {listing.error}", start_time
                    ))
                    continue
                for workload in listing.items:
                    results.append(self._scale_to_zero(workload))
        return results

    def _scale_to_zero(self, workload: WorkloadReplicas) -> OperationResult:
        start_time = datetime.now()
        target = str(workload.ref)
        if workload.replicas == 0:
            return _result(target, True, f"{target} already at 0 replicas", start_time, skipped=True)

        try:
            self.kube.scale(workload.ref, 0)
        except ServiceError as e:
            return _result(target, False, str(e), start_time)

        logger.info(f"Scaled {target} from {workload.replicas} to 0 replicas")
        return _result(target, True, f"Scaled {target} to 0 replicas", start_time)

    def scale_down_nodegroups(self) -> List[OperationResult]:
        start_time = datetime.now()
        listing = self.eks.list_nodegroups(self.config.cluster_name)
        if not listing.ok:
            return [_result("nodegroup/*", False, f"Could not list node groups: {listing.error}", start_time)]
        if not listing.items:
            logger.info("No node groups found")

        results = []
        for name in listing.items:
            start_time = datetime.now()
            role = self.policy.classify(name)
            target_scaling = self.policy.pause_target(role)
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

            note = " (data preservation mode)" if role is NodeGroupRole.DATA_BEARING else ""
            results.append(_result(target, True, f"Scaled {name} to {target_scaling}{note}", start_time))
        return results

    def stop_instances(self, snapshot: Snapshot) -> List[OperationResult]:
        ids = snapshot.ec2_instance_ids or []
        if not ids:
            logger.info("No standalone EC2 instances to stop")
            return []
        return self.ec2.stop_instances(ids)

    def stop_databases(self, snapshot: Snapshot) -> List[OperationResult]:
        ids = snapshot.rds_instance_ids or []
        if not ids:
            logger.info("No RDS instances to stop")
        return [self.rds.stop_instance(db_instance_id) for db_instance_id in ids]

    def plan(self) -> List[str]:
        """Describe what ``pause`` would do, without changing anything."""
        actions = []
        for namespace in self.target_namespaces():
            if not self.kube.namespace_exists(namespace):
                continue
            for kind in WORKLOAD_KINDS:
                for workload in self.kube.list_workloads(kind, namespace).items:
                    if workload.replicas != 0:
                        actions.append(f"Scale {workload.ref} from {workload.replicas} to 0 replicas")

        for name in self.eks.list_nodegroups(self.config.cluster_name).items:
            target_scaling = self.policy.pause_target(self.policy.classify(name))
            actions.append(f"Set nodegroup/{name} to {target_scaling}")

        instances = self.ec2.list_standalone_instances(
            self.config.application_tag_key, self.config.application_tag, states=['running']
        )
        actions.extend(f"Stop ec2/{i['instance_id']}" for i in instances.items)

        databases = self.rds.list_tagged_instances(self.config.application_tag, statuses=['available'])
        actions.extend(f"Stop rds/{d['db_instance_id']}" for d in databases.items)
        return actions


def _result(target: str, success: bool, message: str, start_time: datetime, skipped: bool = False) -> OperationResult:
    return OperationResult(
        success=success,
        target=target,
        operation='pause',
        message=message,
        timestamp=start_time,
        duration=(datetime.now() - start_time).total_seconds(),
        skipped=skipped
    )
