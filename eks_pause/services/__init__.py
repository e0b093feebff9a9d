"""AWS and Kubernetes service management package."""

from .base import BaseServiceManager
from .models import Listing, NodeGroupScaling, OperationResult, Snapshot, WorkloadRef
from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .rds import RDSServiceManager

__all__ = [
    'BaseServiceManager',
    'Listing',
    'NodeGroupScaling',
    'OperationResult',
    'Snapshot',
    'WorkloadRef',
    'EC2ServiceManager',
    'EKSServiceManager',
    'RDSServiceManager'
]
