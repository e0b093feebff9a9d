"""Tests for snapshot capture."""

import json

from eks_pause.services.capture import SnapshotCapturer
from eks_pause.services.models import DEPLOYMENT, STATEFULSET, NodeGroupScaling, WorkloadRef


def make_capturer(config, environment, snapshot_manager):
    return SnapshotCapturer(
        config, environment['eks'], environment['ec2'], environment['rds'],
        environment['kube'], snapshot_manager
    )


class TestSnapshotCapture:

    def test_captures_everything(self, config, environment, snapshot_manager):
        snapshot = make_capturer(config, environment, snapshot_manager).capture()

        files = sorted(p.name for p in snapshot.path.iterdir())
        assert files == [
            'deployments.json', 'ec2-instances.txt',
            'nodegroup-general-nodes.json', 'nodegroup-mongodb-nodes.json',
            'rds-instances.txt', 'statefulsets.json',
        ]
        assert snapshot.warnings == []
        assert snapshot.recorded_replicas(WorkloadRef(DEPLOYMENT, 'rodngun', 'web')) == 3
        assert snapshot.recorded_replicas(WorkloadRef(STATEFULSET, 'rodngun', 'mongodb')) == 3
        assert snapshot.nodegroups['mongodb-nodes'] == NodeGroupScaling(3, 3, 3)
        assert snapshot.ec2_instance_ids == ['i-0123456789abcdef0']
        assert snapshot.rds_instance_ids == ['rodngun-db']

    def test_capture_does_not_mutate_cluster(self, config, environment, snapshot_manager):
        make_capturer(config, environment, snapshot_manager).capture()

        assert environment['eks'].updates == []
        assert environment['kube'].scale_calls == []
        assert environment['ec2'].stopped == []
        assert environment['rds'].statuses == {'rodngun-db': 'available'}

    def test_written_snapshot_loads_back(self, config, environment, snapshot_manager):
        captured = make_capturer(config, environment, snapshot_manager).capture()
        loaded = snapshot_manager.load_snapshot(captured.path)

        assert loaded.deployments == captured.deployments
        assert loaded.statefulsets == captured.statefulsets
        assert loaded.nodegroups == captured.nodegroups
        assert loaded.ec2_instance_ids == captured.ec2_instance_ids
        assert loaded.rds_instance_ids == captured.rds_instance_ids

    def test_nodegroup_file_matches_describe_output(self, config, environment, snapshot_manager):
        snapshot = make_capturer(config, environment, snapshot_manager).capture()
        document = json.loads((snapshot.path / "nodegroup-general-nodes.json").read_text())
        assert document['nodegroup']['scalingConfig'] == {'minSize': 2, 'maxSize': 10, 'desiredSize': 3}

    def test_failed_listing_leaves_file_absent(self, config, environment, snapshot_manager):
        environment['kube'].fail_kinds.add(STATEFULSET)
        snapshot = make_capturer(config, environment, snapshot_manager).capture()

        assert not (snapshot.path / "statefulsets.json").exists()
        assert (snapshot.path / "deployments.json").exists()
        assert snapshot.statefulsets is None
        assert any("statefulset" in w for w in snapshot.warnings)

    def test_nodegroup_listing_failure_falls_back_to_known_names(self, config, environment, snapshot_manager):
        environment['eks'].fail_listing = True
        snapshot = make_capturer(config, environment, snapshot_manager).capture()

        assert set(snapshot.nodegroups) == {'general-nodes', 'mongodb-nodes'}
        assert any("node group listing failed" in w for w in snapshot.warnings)

    def test_empty_instance_lists_are_still_recorded(self, config, environment, snapshot_manager):
        environment['ec2'].states.clear()
        snapshot = make_capturer(config, environment, snapshot_manager).capture()

        assert (snapshot.path / "ec2-instances.txt").read_text() == ""
        assert snapshot.ec2_instance_ids == []

    def test_only_running_instances_recorded(self, config, environment, snapshot_manager):
        environment['ec2'].states['i-0stopped'] = 'stopped'
        environment['rds'].statuses['rodngun-old'] = 'stopped'
        snapshot = make_capturer(config, environment, snapshot_manager).capture()

        assert snapshot.ec2_instance_ids == ['i-0123456789abcdef0']
        assert snapshot.rds_instance_ids == ['rodngun-db']
