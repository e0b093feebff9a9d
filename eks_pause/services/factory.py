"""
Construction and caching of the clients used by pause, restore and status.
"""
import logging
from typing import Dict, Optional

import boto3

from .base import BaseServiceManager
from .ec2 import EC2ServiceManager
from .eks import EKSServiceManager
from .kubernetes import KubernetesWorkloads
from .rds import RDSServiceManager
from ..core.config import Config
from ..core.exceptions import ServiceError

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Hands out one service manager per AWS service, plus the Kubernetes client."""

    def __init__(self, session: boto3.Session, config: Config, kube: Optional[KubernetesWorkloads] = None):
        """Initialize the factory.

        Args:
            session: Authenticated boto3 session
            config: Runtime configuration
            kube: Pre-built Kubernetes client. Loaded from kubeconfig on first use when omitted.
        """
        self.session = session
        self.config = config

        self.service_managers = {
            'eks': EKSServiceManager,
            'ec2': EC2ServiceManager,
            'rds': RDSServiceManager,
        }

        self._manager_cache: Dict[str, BaseServiceManager] = {}
        self._kube = kube

    def get_service_manager(self, service_type: str) -> BaseServiceManager:
        """Get or create a service manager instance.

        Raises:
            ServiceError: If service type is not supported
        """
        if service_type not in self._manager_cache:
            if service_type not in self.service_managers:
                raise ServiceError(f"Unsupported service type: {service_type}")

            manager_class = self.service_managers[service_type]
            self._manager_cache[service_type] = manager_class(self.session, self.config.region)

        return self._manager_cache[service_type]

    @property
    def eks(self) -> EKSServiceManager:
        return self.get_service_manager('eks')

    @property
    def ec2(self) -> EC2ServiceManager:
        return self.get_service_manager('ec2')

    @property
    def rds(self) -> RDSServiceManager:
        return self.get_service_manager('rds')

    def kubernetes(self, cluster_arn: Optional[str] = None) -> KubernetesWorkloads:
        """Kubernetes client for the cluster.

        Raises:
            ConfigurationError: If kubeconfig cannot be loaded
        """
        if self._kube is None:
            self._kube = KubernetesWorkloads.from_kubeconfig(
                context=self.config.kube_context,
                cluster_arn=cluster_arn
            )
        return self._kube
