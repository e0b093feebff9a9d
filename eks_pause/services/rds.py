"""
RDS service manager for discovering and stopping/starting DB instances.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .base import BaseServiceManager
from .models import Listing, OperationResult
from ..core.waiter import poll_until

logger = logging.getLogger(__name__)


class RDSServiceManager(BaseServiceManager):
    """Service manager for RDS DB instances tagged with the application."""

    @property
    def service_name(self) -> str:
        return 'rds'

    def list_tagged_instances(self, tag_value: str, statuses: Optional[List[str]] = None) -> Listing[Dict[str, Any]]:
        """List DB instances carrying a tag whose value equals ``tag_value``.

        Args:
            tag_value: Tag value identifying the application
            statuses: DB instance statuses to include (all when None)

        Returns:
            Listing of dicts with db_instance_id, instance_class, status and allocated_storage
        """
        try:
            instances = []
            paginator = self.client.get_paginator('describe_db_instances')
            for page in paginator.paginate():
                for instance in page['DBInstances']:
                    if statuses and instance['DBInstanceStatus'] not in statuses:
                        continue

                    if tag_value not in self._tag_values(instance):
                        continue

                    instances.append({
                        'db_instance_id': instance['DBInstanceIdentifier'],
                        'instance_class': instance['DBInstanceClass'],
                        'status': instance['DBInstanceStatus'],
                        'allocated_storage': instance.get('AllocatedStorage'),
                    })

            return Listing(items=instances)

        except Exception as e:
            logger.warning(f"Could not list RDS instances tagged {tag_value}: {e}")
            return Listing.failed(str(e))

    def _tag_values(self, instance: Dict[str, Any]) -> List[str]:
        tag_list = instance.get('TagList')
        if tag_list is None:
            try:
                tag_list = self.client.list_tags_for_resource(
                    ResourceName=instance['DBInstanceArn']
                )['TagList']
            except Exception:
                # Tags might not be accessible, treat as untagged
                tag_list = []
        return [tag['Value'] for tag in tag_list]

    def get_status(self, db_instance_id: str) -> Optional[str]:
        """Current status of a DB instance, or None if it cannot be described."""
        try:
            response = self.client.describe_db_instances(DBInstanceIdentifier=db_instance_id)
            return response['DBInstances'][0]['DBInstanceStatus']
        except Exception as e:
            logger.debug(f"Could not describe DB instance {db_instance_id}: {e}")
            return None

    def stop_instance(self, db_instance_id: str) -> OperationResult:
        """Stop a DB instance if it is available."""
        return self._change_state(
            db_instance_id, 'pause', 'available', self.client.stop_db_instance, 'stop'
        )

    def start_instance(self, db_instance_id: str) -> OperationResult:
        """Start a DB instance if it is stopped."""
        return self._change_state(
            db_instance_id, 'restore', 'stopped', self.client.start_db_instance, 'start'
        )

    def _change_state(
        self,
        db_instance_id: str,
        operation: str,
        required_status: str,
        call: Callable[..., Dict[str, Any]],
        verb: str
    ) -> OperationResult:
        start_time = datetime.now()
        target = f"rds/{db_instance_id}"

        status = self.get_status(db_instance_id)
        if status != required_status:
            return self._create_operation_result(
                target=target,
                operation=operation,
                success=True,
                message=f"DB instance {db_instance_id} is not {required_status} (current state: {status}); skipped",
                start_time=start_time,
                skipped=True
            )

        try:
            call(DBInstanceIdentifier=db_instance_id)
        except Exception as e:
            return self._create_operation_result(
                target=target,
                operation=operation,
                success=False,
                message=f"Failed to {verb} DB instance {db_instance_id}: {e}",
                start_time=start_time
            )

        return self._create_operation_result(
            target=target,
            operation=operation,
            success=True,
            message=f"DB instance {db_instance_id} {verb} initiated",
            start_time=start_time
        )

    def wait_until_available(
        self,
        db_instance_ids: List[str],
        timeout: float,
        interval: float,
        **poll_kwargs: Any
    ) -> bool:
        """Poll until every DB instance reports ``available``."""
        if not db_instance_ids:
            return True

        return poll_until(
            lambda: all(self.get_status(i) == 'available' for i in db_instance_ids),
            timeout=timeout,
            interval=interval,
            description=f"DB instances {', '.join(db_instance_ids)} to be available",
            **poll_kwargs
        )
