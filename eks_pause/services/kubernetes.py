"""
Kubernetes workload access through the official client.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from .models import (
    DEPLOYMENT, STATEFULSET, Listing, WorkloadRef, WorkloadReplicas,
)
from ..core.exceptions import ConfigurationError, ServiceError

logger = logging.getLogger(__name__)


def parse_workload_items(kind: str, items: Iterable[Dict[str, Any]]) -> List[WorkloadReplicas]:
    """Turn ``kubectl get -o json`` style items into replica records."""
    workloads = []
    for item in items:
        metadata = item.get('metadata') or {}
        spec = item.get('spec') or {}
        replicas = spec.get('replicas')
        workloads.append(WorkloadReplicas(
            ref=WorkloadRef(kind=kind, namespace=metadata.get('namespace', 'default'), name=metadata['name']),
            replicas=int(replicas) if replicas is not None else None
        ))
    return workloads


class KubernetesWorkloads:
    """Reads and scales deployments and statefulsets of one cluster."""

    def __init__(self, apps_api, core_api, api_client=None):
        self.apps_api = apps_api
        self.core_api = core_api
        self.api_client = api_client or k8s_client.ApiClient()

    @classmethod
    def from_kubeconfig(cls, context: Optional[str] = None, cluster_arn: Optional[str] = None) -> "KubernetesWorkloads":
        """Build clients from kubeconfig.

        Args:
            context: Explicit kubeconfig context
            cluster_arn: Cluster ARN; used as the context name when no explicit
                context is given and ``aws eks update-kubeconfig`` created one

        Raises:
            ConfigurationError: If kubeconfig cannot be loaded
        """
        try:
            if context is None and cluster_arn:
                contexts, _ = k8s_config.list_kube_config_contexts()
                if any(c['name'] == cluster_arn for c in contexts):
                    context = cluster_arn

            k8s_config.load_kube_config(context=context)
        except (ConfigException, OSError) as e:
            raise ConfigurationError(
                f"Could not load kubeconfig (context {context or 'current'}): {e}. "
                "Run 'aws eks update-kubeconfig --name <cluster>' first."
            )

        logger.info(f"Using kubeconfig context {context or '(current)'}")
        api_client = k8s_client.ApiClient()
        return cls(k8s_client.AppsV1Api(api_client), k8s_client.CoreV1Api(api_client), api_client)

    def list_raw(self, kind: str, namespace: Optional[str] = None) -> Listing[Dict[str, Any]]:
        """List workloads as JSON-ready dicts (same shape as ``kubectl -o json`` items)."""
        try:
            if kind == DEPLOYMENT:
                if namespace:
                    response = self.apps_api.list_namespaced_deployment(namespace)
                else:
                    response = self.apps_api.list_deployment_for_all_namespaces()
            elif kind == STATEFULSET:
                if namespace:
                    response = self.apps_api.list_namespaced_stateful_set(namespace)
                else:
                    response = self.apps_api.list_stateful_set_for_all_namespaces()
            else:
                raise ValueError(f"Unsupported workload kind: {kind}")

            items = [self.api_client.sanitize_for_serialization(item) for item in response.items]
            return Listing(items=items)

        except (ApiException, ValueError) as e:
            scope = f"namespace {namespace}" if namespace else "all namespaces"
            logger.warning(f"Could not list {kind}s in {scope}: {e}")
            return Listing.failed(str(e))

    def list_workloads(self, kind: str, namespace: Optional[str] = None) -> Listing[WorkloadReplicas]:
        raw = self.list_raw(kind, namespace)
        if not raw.ok:
            return Listing.failed(raw.error)
        return Listing(items=parse_workload_items(kind, raw.items))

    def scale(self, ref: WorkloadRef, replicas: int) -> None:
        """Set the replica count through the scale subresource.

        Raises:
            ServiceError: If the API rejects the change
        """
        body = {'spec': {'replicas': replicas}}
        try:
            if ref.kind == DEPLOYMENT:
                self.apps_api.patch_namespaced_deployment_scale(ref.name, ref.namespace, body)
            else:
                self.apps_api.patch_namespaced_stateful_set_scale(ref.name, ref.namespace, body)
        except ApiException as e:
            raise ServiceError(f"Failed to scale {ref} to {replicas}: {e.reason}", details=str(e))

    def namespace_exists(self, namespace: str) -> bool:
        try:
            self.core_api.read_namespace(namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise ServiceError(f"Could not read namespace {namespace}: {e.reason}", details=str(e))

    def list_nodes(self) -> Listing[Dict[str, Any]]:
        """Nodes with name, readiness and instance type label."""
        try:
            nodes = []
            for node in self.core_api.list_node().items:
                conditions = (node.status.conditions if node.status else None) or []
                ready = any(c.type == 'Ready' and c.status == 'True' for c in conditions)
                labels = node.metadata.labels or {}
                nodes.append({
                    'name': node.metadata.name,
                    'ready': ready,
                    'instance_type': labels.get('node.kubernetes.io/instance-type'),
                    'nodegroup': labels.get('eks.amazonaws.com/nodegroup'),
                })
            return Listing(items=nodes)
        except ApiException as e:
            logger.warning(f"Could not list nodes: {e}")
            return Listing.failed(str(e))

    def ready_node_count(self) -> int:
        nodes = self.list_nodes()
        return sum(1 for node in nodes.items if node['ready'])

    def running_pod_count(self) -> Optional[int]:
        try:
            pods = self.core_api.list_pod_for_all_namespaces(field_selector='status.phase=Running')
            return len(pods.items)
        except ApiException as e:
            logger.warning(f"Could not count running pods: {e}")
            return None
