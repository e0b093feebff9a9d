"""
Snapshot capture: record desired state before anything is scaled down.
"""
import logging
from datetime import datetime
from typing import Optional

from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .kubernetes import KubernetesWorkloads, parse_workload_items
from .models import DEPLOYMENT, WORKLOAD_KINDS, Snapshot
from .policy import NodeGroupPolicy
from .rds import RDSServiceManager
from ..core.config import Config
from ..core.exceptions import ServiceError
from ..state.snapshot_manager import EC2_FILE, RDS_FILE, SnapshotManager

logger = logging.getLogger(__name__)


class SnapshotCapturer:
    """Writes a new snapshot directory describing the current desired state.

    Only local files are written. A listing that fails is logged, recorded in
    ``Snapshot.warnings`` and left out of the snapshot; capture carries on.
    """

    def __init__(
        self,
        config: Config,
        eks: EKSServiceManager,
        ec2: EC2ServiceManager,
        rds: RDSServiceManager,
        kube: KubernetesWorkloads,
        snapshots: SnapshotManager,
        policy: Optional[NodeGroupPolicy] = None
    ):
        self.config = config
        self.eks = eks
        self.ec2 = ec2
        self.rds = rds
        self.kube = kube
        self.snapshots = snapshots
        self.policy = policy or NodeGroupPolicy(config)

    def capture(self) -> Snapshot:
        """Capture workloads, node groups and instance ids into a new snapshot."""
        now = datetime.now()
        snapshot_id, path = self.snapshots.create_snapshot_dir(now)
        snapshot = Snapshot(snapshot_id=snapshot_id, path=path, created_at=now)

        logger.info(f"Capturing snapshot {snapshot_id}")
        self._capture_workloads(snapshot)
        self._capture_nodegroups(snapshot)
        self._capture_instances(snapshot)
        self._capture_databases(snapshot)

        if snapshot.warnings:
            logger.warning(f"Snapshot {snapshot_id} is incomplete: {len(snapshot.warnings)} capture(s) failed")
        else:
            logger.info(f"Snapshot {snapshot_id} captured")
        return snapshot

    def _capture_workloads(self, snapshot: Snapshot) -> None:
        for kind in WORKLOAD_KINDS:
            listing = self.kube.list_raw(kind)
            if not listing.ok:
                snapshot.warnings.append(f"{kind}s not captured: {listing.error}")
                continue

            self.snapshots.write_workloads(snapshot.path, kind, listing.items)
            workloads = parse_workload_items(kind, listing.items)
            if kind == DEPLOYMENT:
                snapshot.deployments = workloads
            else:
                snapshot.statefulsets = workloads
            logger.info(f"Captured {len(workloads)} {kind}(s)")

    def _capture_nodegroups(self, snapshot: Snapshot) -> None:
        listing = self.eks.list_nodegroups(self.config.cluster_name)
        if listing.ok:
            names = listing.items
        else:
            snapshot.warnings.append(f"node group listing failed: {listing.error}")
            names = self.policy.literal_names()

        for name in names:
            try:
                raw = self.eks.describe_nodegroup_raw(self.config.cluster_name, name)
                info = self.eks.parse_nodegroup(raw)
            except (ServiceError, KeyError, ValueError) as e:
                snapshot.warnings.append(f"node group {name} not captured: {e}")
                continue

            self.snapshots.write_nodegroup(snapshot.path, name, raw)
            snapshot.nodegroups[name] = info.scaling
            logger.info(f"Captured node group {name} ({info.scaling})")

    def _capture_instances(self, snapshot: Snapshot) -> None:
        listing = self.ec2.list_standalone_instances(
            self.config.application_tag_key,
            self.config.application_tag,
            states=['running']
        )
        if not listing.ok:
            snapshot.warnings.append(f"EC2 instances not captured: {listing.error}")
            return

        ids = [instance['instance_id'] for instance in listing.items]
        self.snapshots.write_id_list(snapshot.path, EC2_FILE, ids)
        snapshot.ec2_instance_ids = ids
        logger.info(f"Captured {len(ids)} running EC2 instance(s)")

    def _capture_databases(self, snapshot: Snapshot) -> None:
        listing = self.rds.list_tagged_instances(self.config.application_tag, statuses=['available'])
        if not listing.ok:
            snapshot.warnings.append(f"RDS instances not captured: {listing.error}")
            return

        ids = [instance['db_instance_id'] for instance in listing.items]
        self.snapshots.write_id_list(snapshot.path, RDS_FILE, ids)
        snapshot.rds_instance_ids = ids
        logger.info(f"Captured {len(ids)} available RDS instance(s)")
