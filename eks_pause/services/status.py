"""
Read-only status report and cost estimate for the environment.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .kubernetes import KubernetesWorkloads
from .models import DEPLOYMENT, Listing, NodeGroupInfo, NodeGroupRole, WorkloadReplicas
from .policy import NodeGroupPolicy
from .pricing import HOURS_PER_MONTH, PricingSource, StaticPricing
from .rds import RDSServiceManager
from ..core.config import Config
from ..core.exceptions import ServiceError

logger = logging.getLogger(__name__)

# Assumed when EKS does not report a node group's instance type
DEFAULT_INSTANCE_TYPES = {
    NodeGroupRole.DATA_BEARING: 't3.large',
    NodeGroupRole.GENERAL: 't3.medium',
    NodeGroupRole.OTHER: 't3.medium',
}


@dataclass
class ClusterStatus:
    """Snapshot of what is currently running. Nothing here is persisted."""
    cluster_name: str
    cluster: Optional[Dict[str, Any]]       # None when the cluster does not exist
    nodegroups: Listing[NodeGroupInfo]
    nodes: Listing[Dict[str, Any]]
    deployments: Listing[WorkloadReplicas]
    running_pods: Optional[int]
    ec2_instances: Listing[Dict[str, Any]]
    rds_instances: Listing[Dict[str, Any]]
    collected_at: datetime = field(default_factory=datetime.now)

    @property
    def cluster_status(self) -> str:
        return self.cluster.get('status', 'UNKNOWN') if self.cluster else 'NOT FOUND'


@dataclass
class CostLineItem:
    description: str
    quantity: int
    unit_hourly: float

    @property
    def hourly(self) -> float:
        return self.quantity * self.unit_hourly


@dataclass
class CostEstimate:
    line_items: List[CostLineItem]
    is_paused: bool

    @property
    def hourly(self) -> float:
        return sum(item.hourly for item in self.line_items)

    @property
    def monthly(self) -> float:
        return self.hourly * HOURS_PER_MONTH


class StatusReporter:
    """Collects the current state of the cluster and prices it."""

    def __init__(
        self,
        config: Config,
        eks: EKSServiceManager,
        ec2: EC2ServiceManager,
        rds: RDSServiceManager,
        kube: Optional[KubernetesWorkloads] = None,
        pricing: Optional[PricingSource] = None,
        policy: Optional[NodeGroupPolicy] = None
    ):
        self.config = config
        self.eks = eks
        self.ec2 = ec2
        self.rds = rds
        self.kube = kube
        self.pricing = pricing or StaticPricing()
        self.policy = policy or NodeGroupPolicy(config)

    def collect(self) -> ClusterStatus:
        cluster_name = self.config.cluster_name
        cluster = self.eks.describe_cluster(cluster_name)
        if cluster is None:
            logger.warning(f"Cluster {cluster_name} not found")

        return ClusterStatus(
            cluster_name=cluster_name,
            cluster=cluster,
            nodegroups=self._collect_nodegroups() if cluster else Listing(),
            nodes=self._kube_listing(lambda kube: kube.list_nodes()),
            deployments=self._kube_listing(lambda kube: kube.list_workloads(DEPLOYMENT)),
            running_pods=self.kube.running_pod_count() if self.kube else None,
            ec2_instances=self.ec2.list_standalone_instances(
                self.config.application_tag_key, self.config.application_tag
            ),
            rds_instances=self.rds.list_tagged_instances(self.config.application_tag)
        )

    def _collect_nodegroups(self) -> Listing[NodeGroupInfo]:
        names = self.eks.list_nodegroups(self.config.cluster_name)
        if not names.ok:
            return Listing.failed(names.error)

        nodegroups = []
        for name in names.items:
            try:
                nodegroups.append(self.eks.describe_nodegroup(self.config.cluster_name, name))
            except (ServiceError, KeyError, ValueError) as e:
                logger.warning(f"Could not describe node group {name}: {e}")
        return Listing(items=nodegroups)

    def _kube_listing(self, fetch) -> Listing:
        if self.kube is None:
            return Listing.failed("kubeconfig not available")
        return fetch(self.kube)

    def estimate_cost(self, status: ClusterStatus) -> CostEstimate:
        items: List[CostLineItem] = []
        if status.cluster is not None:
            items.append(CostLineItem("EKS control plane", 1, self.pricing.eks_control_plane_hourly()))

        general_nodes = 0
        for nodegroup in status.nodegroups.items:
            role = self.policy.classify(nodegroup.name)
            instance_type = (nodegroup.instance_types or [DEFAULT_INSTANCE_TYPES[role]])[0]
            desired = nodegroup.scaling.desired_size
            if role is NodeGroupRole.GENERAL:
                general_nodes += desired
            items.append(CostLineItem(
                f"Node group {nodegroup.name} ({instance_type})",
                desired,
                self.pricing.ec2_hourly(instance_type)
            ))

        running = [i for i in status.ec2_instances.items if i['state'] == 'running']
        for instance in running:
            items.append(CostLineItem(
                f"EC2 {instance['instance_id']} ({instance['instance_type']})",
                1,
                self.pricing.ec2_hourly(instance['instance_type'])
            ))

        available = [d for d in status.rds_instances.items if d['status'] == 'available']
        for database in available:
            items.append(CostLineItem(
                f"RDS {database['db_instance_id']} ({database['instance_class']})",
                1,
                self.pricing.rds_hourly(database['instance_class'])
            ))

        return CostEstimate(
            line_items=items,
            is_paused=general_nodes == 0 and not running and not available
        )
