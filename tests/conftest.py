"""
Pytest configuration and shared fixtures for EKS Pause tests.

EKS node group updates and the Kubernetes API are not modelled by moto, so
they are replaced by small in-memory fakes. EC2 and RDS have fakes too for
fast unit tests; moto is used where the real managers are exercised.
"""

import os
from datetime import datetime
from typing import Dict, List, Optional

import pytest
from moto import mock_aws

from eks_pause.core.config import Config
from eks_pause.core.exceptions import ServiceError
from eks_pause.services.eks import EKSServiceManager
from eks_pause.services.kubernetes import parse_workload_items
from eks_pause.services.models import (
    DEPLOYMENT, STATEFULSET, Listing, NodeGroupScaling, OperationResult, WorkloadRef,
)
from eks_pause.state.snapshot_manager import SnapshotManager


class FakeEKS:
    """In-memory stand-in for EKSServiceManager."""

    def __init__(self, cluster_name: str = "rodngun-eks", nodegroups: Optional[Dict[str, NodeGroupScaling]] = None):
        self.cluster_name = cluster_name
        self.cluster_exists = True
        self.nodegroups: Dict[str, NodeGroupScaling] = dict(nodegroups or {})
        self.instance_types: Dict[str, List[str]] = {}
        self.fail_listing = False
        self.fail_updates = set()
        self.updates: List[tuple] = []

    def describe_cluster(self, cluster_name):
        if not self.cluster_exists or cluster_name != self.cluster_name:
            return None
        return {
            'name': cluster_name,
            'arn': f"arn:aws:eks:us-east-1:123456789012:cluster/{cluster_name}",
            'status': 'ACTIVE',
            'version': '1.29',
            'endpoint': 'https://example.eks.amazonaws.com',
        }

    def list_nodegroups(self, cluster_name):
        if self.fail_listing:
            return Listing.failed("AccessDenied")
        return Listing(items=sorted(self.nodegroups))

    def describe_nodegroup_raw(self, cluster_name, nodegroup_name):
        if nodegroup_name not in self.nodegroups:
            raise ServiceError(f"Node group {nodegroup_name} not found")
        return {
            'nodegroup': {
                'nodegroupName': nodegroup_name,
                'clusterName': cluster_name,
                'status': 'ACTIVE',
                'instanceTypes': self.instance_types.get(nodegroup_name, ['t3.medium']),
                'scalingConfig': self.nodegroups[nodegroup_name].to_aws(),
            }
        }

    def describe_nodegroup(self, cluster_name, nodegroup_name):
        return self.parse_nodegroup(self.describe_nodegroup_raw(cluster_name, nodegroup_name))

    parse_nodegroup = staticmethod(EKSServiceManager.parse_nodegroup)

    def update_scaling(self, cluster_name, nodegroup_name, scaling):
        if nodegroup_name in self.fail_updates:
            raise ServiceError(f"Update of {nodegroup_name} rejected")
        self.updates.append((nodegroup_name, scaling))
        self.nodegroups[nodegroup_name] = scaling
        return f"update-{len(self.updates)}"


class FakeKube:
    """In-memory stand-in for KubernetesWorkloads.

    Ready nodes follow the desired sizes of the linked FakeEKS, as if every
    node group converged instantly.
    """

    def __init__(self, eks: Optional[FakeEKS] = None, namespaces=("rodngun", "default", "kube-system")):
        self.eks = eks
        self.namespaces = set(namespaces)
        self.replicas: Dict[WorkloadRef, Optional[int]] = {}
        self.fail_kinds = set()
        self.fail_scale = set()
        self.scale_calls: List[tuple] = []
        self.ready_nodes: Optional[int] = None

    def add(self, kind: str, namespace: str, name: str, replicas: Optional[int]) -> WorkloadRef:
        ref = WorkloadRef(kind=kind, namespace=namespace, name=name)
        self.replicas[ref] = replicas
        self.namespaces.add(namespace)
        return ref

    def list_raw(self, kind, namespace=None):
        if kind in self.fail_kinds:
            return Listing.failed(f"cannot list {kind}s")
        items = []
        for ref, replicas in sorted(self.replicas.items(), key=lambda kv: str(kv[0])):
            if ref.kind != kind or (namespace and ref.namespace != namespace):
                continue
            spec = {} if replicas is None else {'replicas': replicas}
            items.append({
                'apiVersion': 'apps/v1',
                'kind': 'Deployment' if kind == DEPLOYMENT else 'StatefulSet',
                'metadata': {'name': ref.name, 'namespace': ref.namespace},
                'spec': spec,
            })
        return Listing(items=items)

    def list_workloads(self, kind, namespace=None):
        raw = self.list_raw(kind, namespace)
        if not raw.ok:
            return Listing.failed(raw.error)
        return Listing(items=parse_workload_items(kind, raw.items))

    def scale(self, ref, replicas):
        if ref in self.fail_scale:
            raise ServiceError(f"Failed to scale {ref} to {replicas}")
        self.scale_calls.append((ref, replicas))
        self.replicas[ref] = replicas

    def namespace_exists(self, namespace):
        return namespace in self.namespaces

    def ready_node_count(self):
        if self.ready_nodes is not None:
            return self.ready_nodes
        if self.eks is None:
            return 0
        return sum(s.desired_size for s in self.eks.nodegroups.values())

    def list_nodes(self):
        return Listing(items=[
            {'name': f"node-{i}", 'ready': True, 'instance_type': 't3.medium', 'nodegroup': None}
            for i in range(self.ready_node_count())
        ])

    def running_pod_count(self):
        return sum(r or 0 for r in self.replicas.values())


def _result(target, operation, message, skipped=False):
    return OperationResult(
        success=True, target=target, operation=operation, message=message,
        timestamp=datetime.now(), duration=0.0, skipped=skipped
    )


class FakeEC2:
    """In-memory stand-in for EC2ServiceManager. Instances are id -> (type, state)."""

    def __init__(self, instances: Optional[Dict[str, str]] = None, instance_type: str = 't3.medium'):
        self.states: Dict[str, str] = dict(instances or {})
        self.instance_type = instance_type
        self.stopped: List[str] = []
        self.started: List[str] = []
        self.waited: List[List[str]] = []

    def list_standalone_instances(self, tag_key, tag_value, states=None):
        return Listing(items=[
            {'instance_id': i, 'instance_type': self.instance_type, 'state': s, 'name': None}
            for i, s in sorted(self.states.items())
            if not states or s in states
        ])

    def stop_instances(self, instance_ids):
        for i in instance_ids:
            self.states[i] = 'stopped'
            self.stopped.append(i)
        return [_result(f"ec2/{i}", 'pause', f"EC2 instance {i} stop initiated") for i in instance_ids]

    def start_instances(self, instance_ids):
        for i in instance_ids:
            self.states[i] = 'running'
            self.started.append(i)
        return [_result(f"ec2/{i}", 'restore', f"EC2 instance {i} start initiated") for i in instance_ids]

    def wait_until_running(self, instance_ids, timeout, interval, **poll_kwargs):
        self.waited.append(list(instance_ids))
        return True


class FakeRDS:
    """In-memory stand-in for RDSServiceManager. Databases are id -> status."""

    def __init__(self, databases: Optional[Dict[str, str]] = None):
        self.statuses: Dict[str, str] = dict(databases or {})
        self.waited: List[List[str]] = []

    def list_tagged_instances(self, tag_value, statuses=None):
        return Listing(items=[
            {'db_instance_id': d, 'instance_class': 'db.t3.micro', 'status': s, 'allocated_storage': 20}
            for d, s in sorted(self.statuses.items())
            if not statuses or s in statuses
        ])

    def stop_instance(self, db_instance_id):
        return self._change(db_instance_id, 'pause', 'available', 'stopped', 'stop')

    def start_instance(self, db_instance_id):
        return self._change(db_instance_id, 'restore', 'stopped', 'available', 'start')

    def _change(self, db_instance_id, operation, required, new_status, verb):
        if self.statuses.get(db_instance_id) != required:
            return _result(f"rds/{db_instance_id}", operation, "skipped", skipped=True)
        self.statuses[db_instance_id] = new_status
        return _result(f"rds/{db_instance_id}", operation, f"DB instance {db_instance_id} {verb} initiated")

    def wait_until_available(self, db_instance_ids, timeout, interval, **poll_kwargs):
        self.waited.append(list(db_instance_ids))
        return True


class FakeClock:
    """Monotonic clock advanced only by the paired sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def config(tmp_path):
    """Default configuration with backups under a temporary directory."""
    return Config(backup_root=tmp_path / "backups", poll_interval_seconds=5, poll_timeout_seconds=60)


@pytest.fixture
def snapshot_manager(config):
    return SnapshotManager(config.backup_root)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def environment(config):
    """The reference environment: web (3 replicas) and mongodb-nodes at 3/3/3."""
    eks = FakeEKS(config.cluster_name, {
        'general-nodes': NodeGroupScaling(2, 10, 3),
        'mongodb-nodes': NodeGroupScaling(3, 3, 3),
    })
    eks.instance_types['mongodb-nodes'] = ['t3.large']
    kube = FakeKube(eks)
    kube.add(DEPLOYMENT, 'rodngun', 'web', 3)
    kube.add(DEPLOYMENT, 'rodngun', 'worker', 2)
    kube.add(STATEFULSET, 'rodngun', 'mongodb', 3)
    kube.add(DEPLOYMENT, 'kube-system', 'coredns', 2)
    ec2 = FakeEC2({'i-0123456789abcdef0': 'running'})
    rds = FakeRDS({'rodngun-db': 'available'})
    return {'eks': eks, 'kube': kube, 'ec2': ec2, 'rds': rds}


@pytest.fixture
def fakes():
    """Fake classes, for tests that build their own environments."""
    return {'EKS': FakeEKS, 'Kube': FakeKube, 'EC2': FakeEC2, 'RDS': FakeRDS}
