"""
EC2 service manager for standalone (non node group) instances.
"""
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import WaiterError

from .base import BaseServiceManager
from .models import Listing, OperationResult
from ..core.waiter import poll_until

logger = logging.getLogger(__name__)

EKS_NODEGROUP_TAG = 'eks:nodegroup-name'


class EC2ServiceManager(BaseServiceManager):
    """Service manager for EC2 instances tagged as belonging to the application."""

    @property
    def service_name(self) -> str:
        return 'ec2'

    def list_standalone_instances(
        self,
        tag_key: str,
        tag_value: str,
        states: Optional[List[str]] = None
    ) -> Listing[Dict[str, Any]]:
        """List tagged instances that are not managed by an EKS node group.

        Args:
            tag_key: Tag key identifying the application
            tag_value: Tag value identifying the application
            states: Instance states to include (all non-terminated when None)

        Returns:
            Listing of dicts with instance_id, instance_type, state and name
        """
        filters = [{'Name': f'tag:{tag_key}', 'Values': [tag_value]}]
        if states:
            filters.append({'Name': 'instance-state-name', 'Values': states})

        try:
            instances = []
            paginator = self.client.get_paginator('describe_instances')
            for page in paginator.paginate(Filters=filters):
                for reservation in page['Reservations']:
                    for instance in reservation['Instances']:
                        if instance['State']['Name'] == 'terminated':
                            continue

                        tags = {tag['Key']: tag['Value'] for tag in instance.get('Tags', [])}
                        if EKS_NODEGROUP_TAG in tags:
                            continue

                        instances.append({
                            'instance_id': instance['InstanceId'],
                            'instance_type': instance['InstanceType'],
                            'state': instance['State']['Name'],
                            'name': tags.get('Name'),
                        })

            return Listing(items=instances)

        except Exception as e:
            logger.warning(f"Could not list EC2 instances tagged {tag_key}={tag_value}: {e}")
            return Listing.failed(str(e))

    def stop_instances(self, instance_ids: List[str]) -> List[OperationResult]:
        """Stop (never terminate) instances.

        Returns:
            One result per instance
        """
        return self._change_state(instance_ids, 'pause', self.client.stop_instances, 'stop')

    def start_instances(self, instance_ids: List[str]) -> List[OperationResult]:
        """Start previously stopped instances.

        Returns:
            One result per instance
        """
        return self._change_state(instance_ids, 'restore', self.client.start_instances, 'start')

    def _change_state(
        self,
        instance_ids: List[str],
        operation: str,
        call: Callable[..., Dict[str, Any]],
        verb: str
    ) -> List[OperationResult]:
        if not instance_ids:
            return []

        start_time = datetime.now()
        try:
            call(InstanceIds=instance_ids)
        except Exception as e:
            return [
                self._create_operation_result(
                    target=f"ec2/{instance_id}",
                    operation=operation,
                    success=False,
                    message=f"Failed to {verb} EC2 instance {instance_id}: {e}",
                    start_time=start_time
                )
                for instance_id in instance_ids
            ]

        return [
            self._create_operation_result(
                target=f"ec2/{instance_id}",
                operation=operation,
                success=True,
                message=f"EC2 instance {instance_id} {verb} initiated",
                start_time=start_time
            )
            for instance_id in instance_ids
        ]

    def get_states(self, instance_ids: List[str]) -> Dict[str, str]:
        """Current state name of each instance."""
        states = {}
        response = self.client.describe_instances(InstanceIds=instance_ids)
        for reservation in response['Reservations']:
            for instance in reservation['Instances']:
                states[instance['InstanceId']] = instance['State']['Name']
        return states

    def wait_until_running(
        self,
        instance_ids: List[str],
        timeout: float,
        interval: float,
        **poll_kwargs: Any
    ) -> bool:
        """Block until all instances are running.

        Uses the botocore ``instance_running`` waiter; if it gives up, falls
        back to manual polling for whatever is left of ``timeout``.

        Returns:
            True if every instance is running, False on timeout
        """
        if not instance_ids:
            return True

        clock = poll_kwargs.get('clock', time.monotonic)
        started_at = clock()

        try:
            waiter = self.client.get_waiter('instance_running')
            waiter.wait(
                InstanceIds=instance_ids,
                WaiterConfig={
                    'Delay': max(1, int(interval)),
                    'MaxAttempts': max(1, int(timeout // max(interval, 1)))
                }
            )
            return True
        except WaiterError as e:
            logger.warning(f"EC2 waiter gave up ({e}); polling instance state manually")

        def all_running() -> bool:
            states = self.get_states(instance_ids)
            return all(states.get(i) == 'running' for i in instance_ids)

        return poll_until(
            all_running,
            timeout=max(0.0, timeout - (clock() - started_at)),
            interval=interval,
            description=f"EC2 instances {', '.join(instance_ids)} to be running",
            **poll_kwargs
        )
