"""Tests for the status report, pricing and cost estimate."""

import json

import pytest

from eks_pause.core.exceptions import ConfigurationError
from eks_pause.services.models import NodeGroupScaling
from eks_pause.services.pricing import FilePricing, StaticPricing, pricing_from_config
from eks_pause.services.status import StatusReporter


def reporter_for(config, env, kube=True, pricing=None):
    return StatusReporter(
        config, env['eks'], env['ec2'], env['rds'],
        env['kube'] if kube else None,
        pricing=pricing
    )


class TestPricing:

    def test_static_table(self):
        pricing = StaticPricing()
        assert pricing.eks_control_plane_hourly() == 0.10
        assert pricing.ec2_hourly('t3.medium') == 0.0416
        assert pricing.ec2_hourly('t3.large') == 0.0832
        assert pricing.ec2_hourly('x9.huge') == 0.05
        assert pricing.rds_hourly('db.t3.micro') == 0.018
        assert pricing.rds_hourly('db.r5.large') == 0.018

    def test_file_overrides(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text(json.dumps({
            'eks_control_plane_hourly': 0.2,
            'ec2': {'t3.medium': 0.05},
            'rds': {'db.r5.large': 0.24},
        }))

        pricing = FilePricing(path)
        assert pricing.eks_control_plane_hourly() == 0.2
        assert pricing.ec2_hourly('t3.medium') == 0.05
        assert pricing.ec2_hourly('t3.large') == 0.0832
        assert pricing.rds_hourly('db.r5.large') == 0.24

    def test_bad_file(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            FilePricing(path)
        with pytest.raises(ConfigurationError):
            FilePricing(tmp_path / "missing.json")

    def test_selected_from_config(self, tmp_path):
        assert isinstance(pricing_from_config(None), StaticPricing)
        path = tmp_path / "prices.json"
        path.write_text("{}")
        assert isinstance(pricing_from_config(path), FilePricing)


class TestStatusReporter:

    def test_collect(self, config, environment):
        status = reporter_for(config, environment).collect()

        assert status.cluster_status == 'ACTIVE'
        assert status.cluster['version'] == '1.29'
        assert {n.name for n in status.nodegroups.items} == {'general-nodes', 'mongodb-nodes'}
        assert len(status.nodes.items) == 6
        assert len(status.deployments.items) == 3
        assert status.running_pods == 10
        assert [i['instance_id'] for i in status.ec2_instances.items] == ['i-0123456789abcdef0']
        assert [d['db_instance_id'] for d in status.rds_instances.items] == ['rodngun-db']

    def test_collect_is_read_only(self, config, environment):
        reporter_for(config, environment).collect()
        assert environment['eks'].updates == []
        assert environment['kube'].scale_calls == []

    def test_missing_cluster(self, config, environment):
        environment['eks'].cluster_exists = False
        status = reporter_for(config, environment).collect()

        assert status.cluster is None
        assert status.cluster_status == 'NOT FOUND'
        assert status.nodegroups.items == []

    def test_without_kubeconfig(self, config, environment):
        status = reporter_for(config, environment, kube=False).collect()
        assert not status.nodes.ok
        assert status.running_pods is None
        assert status.nodegroups.ok

    def test_cost_of_running_cluster(self, config, environment):
        reporter = reporter_for(config, environment)
        estimate = reporter.estimate_cost(reporter.collect())

        # control plane + 3 general t3.medium + 3 mongodb t3.large + 1 EC2 t3.medium + 1 RDS db.t3.micro
        expected = 0.10 + 3 * 0.0416 + 3 * 0.0832 + 0.0416 + 0.018
        assert estimate.hourly == pytest.approx(expected)
        assert estimate.monthly == pytest.approx(expected * 730)
        assert estimate.is_paused is False

    def test_paused_cluster(self, config, environment):
        environment['eks'].nodegroups.update({
            'general-nodes': NodeGroupScaling(0, 1, 0),
            'mongodb-nodes': NodeGroupScaling(1, 1, 1),
        })
        environment['ec2'].states['i-0123456789abcdef0'] = 'stopped'
        environment['rds'].statuses['rodngun-db'] = 'stopped'

        reporter = reporter_for(config, environment)
        estimate = reporter.estimate_cost(reporter.collect())

        assert estimate.is_paused is True
        assert estimate.hourly == pytest.approx(0.10 + 0.0832)

    def test_nodegroup_without_instance_type_uses_role_default(self, config, environment):
        environment['eks'].instance_types['mongodb-nodes'] = []
        reporter = reporter_for(config, environment)
        estimate = reporter.estimate_cost(reporter.collect())

        mongodb = [i for i in estimate.line_items if 'mongodb-nodes' in i.description][0]
        assert mongodb.unit_hourly == 0.0832
