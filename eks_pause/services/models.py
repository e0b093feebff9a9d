"""
Data models for cluster pause/restore.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

DEPLOYMENT = 'deployment'
STATEFULSET = 'statefulset'
WORKLOAD_KINDS = (DEPLOYMENT, STATEFULSET)


@dataclass(frozen=True)
class WorkloadRef:
    """A deployment or statefulset in the cluster."""
    kind: str                  # 'deployment' or 'statefulset'
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


@dataclass
class WorkloadReplicas:
    """Recorded replica count of a workload (None when spec.replicas is unset)."""
    ref: WorkloadRef
    replicas: Optional[int]


@dataclass
class NodeGroupScaling:
    """EKS node group scaling configuration."""
    min_size: int
    max_size: int
    desired_size: int

    def __post_init__(self):
        if min(self.min_size, self.max_size, self.desired_size) < 0:
            raise ValueError(f"Node group sizes cannot be negative: {self}")
        if self.max_size < 1:
            raise ValueError(f"Node group max size must be at least 1: {self}")
        if not self.min_size <= self.desired_size <= self.max_size:
            raise ValueError(
                f"Node group sizes must satisfy min <= desired <= max: {self}"
            )

    @classmethod
    def from_aws(cls, scaling_config: Dict[str, int]) -> "NodeGroupScaling":
        return cls(
            min_size=scaling_config['minSize'],
            max_size=scaling_config['maxSize'],
            desired_size=scaling_config['desiredSize'],
        )

    def to_aws(self) -> Dict[str, int]:
        return {
            'minSize': self.min_size,
            'maxSize': self.max_size,
            'desiredSize': self.desired_size,
        }

    def __str__(self) -> str:
        return f"min={self.min_size}, max={self.max_size}, desired={self.desired_size}"


class NodeGroupRole(Enum):
    """How a node group is treated during pause and restore."""
    DATA_BEARING = 'data-bearing'
    GENERAL = 'general'
    OTHER = 'other'


@dataclass
class NodeGroupInfo:
    """A node group as described by EKS."""
    name: str
    scaling: NodeGroupScaling
    status: str = 'UNKNOWN'
    instance_types: List[str] = field(default_factory=list)
    raw: Dict = field(default_factory=dict)


@dataclass
class Listing(Generic[T]):
    """Result of a best-effort listing call.

    An empty listing with ``error`` unset means nothing exists; a listing with
    ``error`` set means the call itself failed and ``items`` is meaningless.
    """
    items: List[T] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str) -> "Listing[T]":
        return cls(items=[], error=error)


@dataclass
class Snapshot:
    """Point-in-time record of desired state, captured before a pause.

    Fields left as None were not captured (the file is absent on disk).
    """
    snapshot_id: str
    path: Path
    created_at: datetime
    deployments: Optional[List[WorkloadReplicas]] = None
    statefulsets: Optional[List[WorkloadReplicas]] = None
    nodegroups: Dict[str, NodeGroupScaling] = field(default_factory=dict)
    ec2_instance_ids: Optional[List[str]] = None
    rds_instance_ids: Optional[List[str]] = None
    warnings: List[str] = field(default_factory=list)  # capture problems, not persisted

    def workloads(self, kind: str) -> Optional[List[WorkloadReplicas]]:
        return self.deployments if kind == DEPLOYMENT else self.statefulsets

    def recorded_replicas(self, ref: WorkloadRef) -> Optional[int]:
        """Replica count recorded for a workload, None when absent or unset."""
        for entry in self.workloads(ref.kind) or []:
            if entry.ref == ref:
                return entry.replicas
        return None


@dataclass
class OperationResult:
    """Result of a single pause/restore action."""
    success: bool
    target: str                # e.g. 'deployment/rodngun/web', 'nodegroup/general-nodes'
    operation: str             # 'pause', 'restore'
    message: str
    timestamp: datetime
    duration: Optional[float] = None  # Operation duration in seconds
    skipped: bool = False      # Nothing to do (already in target state)

    @property
    def service_type(self) -> str:
        return self.target.split('/', 1)[0]
