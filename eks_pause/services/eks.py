"""
EKS service manager for the cluster and its managed node groups.
"""
import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from .base import BaseServiceManager
from .models import Listing, NodeGroupInfo, NodeGroupScaling

logger = logging.getLogger(__name__)


class EKSServiceManager(BaseServiceManager):
    """Service manager for an EKS cluster's node groups."""

    @property
    def service_name(self) -> str:
        return 'eks'

    def describe_cluster(self, cluster_name: str) -> Optional[Dict[str, Any]]:
        """Describe a cluster.

        Returns:
            The cluster description, or None if the cluster does not exist

        Raises:
            ServiceError: For any failure other than the cluster not existing
        """
        try:
            return self.client.describe_cluster(name=cluster_name)['cluster']
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ResourceNotFoundException':
                return None
            self._handle_aws_error(e, 'describe_cluster', cluster_name)
        except Exception as e:
            self._handle_aws_error(e, 'describe_cluster', cluster_name)

    def list_nodegroups(self, cluster_name: str) -> Listing[str]:
        """List node group names of a cluster (best effort)."""
        try:
            names: List[str] = []
            paginator = self.client.get_paginator('list_nodegroups')
            for page in paginator.paginate(clusterName=cluster_name):
                names.extend(page.get('nodegroups', []))
            return Listing(items=names)
        except Exception as e:
            logger.warning(f"Could not list node groups of {cluster_name}: {e}")
            return Listing.failed(str(e))

    def describe_nodegroup_raw(self, cluster_name: str, nodegroup_name: str) -> Dict[str, Any]:
        """Raw describe-nodegroup response, as stored in snapshots.

        Raises:
            ServiceError: If the call fails
        """
        try:
            response = self.client.describe_nodegroup(
                clusterName=cluster_name,
                nodegroupName=nodegroup_name
            )
            response.pop('ResponseMetadata', None)
            return response
        except Exception as e:
            self._handle_aws_error(e, 'describe_nodegroup', nodegroup_name)

    def describe_nodegroup(self, cluster_name: str, nodegroup_name: str) -> NodeGroupInfo:
        """Describe a node group.

        Raises:
            ServiceError: If the call fails
        """
        raw = self.describe_nodegroup_raw(cluster_name, nodegroup_name)
        return self.parse_nodegroup(raw)

    @staticmethod
    def parse_nodegroup(raw: Dict[str, Any]) -> NodeGroupInfo:
        nodegroup = raw['nodegroup']
        return NodeGroupInfo(
            name=nodegroup['nodegroupName'],
            scaling=NodeGroupScaling.from_aws(nodegroup['scalingConfig']),
            status=nodegroup.get('status', 'UNKNOWN'),
            instance_types=nodegroup.get('instanceTypes') or [],
            raw=raw
        )

    def update_scaling(self, cluster_name: str, nodegroup_name: str, scaling: NodeGroupScaling) -> str:
        """Update a node group's scaling configuration.

        Returns:
            The EKS update id

        Raises:
            ServiceError: If the update is rejected
        """
        try:
            response = self.client.update_nodegroup_config(
                clusterName=cluster_name,
                nodegroupName=nodegroup_name,
                scalingConfig=scaling.to_aws()
            )
            update_id = response.get('update', {}).get('id', '')
            logger.info(f"Node group {nodegroup_name} scaling update {update_id}: {scaling}")
            return update_id
        except Exception as e:
            self._handle_aws_error(e, 'update_nodegroup_config', nodegroup_name)
