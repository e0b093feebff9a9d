"""
Base service manager for AWS services.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import boto3

from .models import OperationResult
from ..core.exceptions import ServiceError


class BaseServiceManager(ABC):
    """Abstract base class for all AWS service managers."""

    def __init__(self, session: boto3.Session, region: str):
        """Initialize the service manager with AWS session and region.

        Args:
            session: Authenticated boto3 session
            region: AWS region to operate in
        """
        self.session = session
        self.region = region
        self._client = None

    @property
    def client(self):
        """Lazy-loaded AWS service client."""
        if self._client is None:
            self._client = self.session.client(self.service_name, region_name=self.region)
        return self._client

    @property
    @abstractmethod
    def service_name(self) -> str:
        """AWS service name (e.g., 'eks', 'ec2', 'rds')."""
        pass

    def _create_operation_result(
        self,
        target: str,
        operation: str,
        success: bool,
        message: str,
        start_time: datetime,
        skipped: bool = False
    ) -> OperationResult:
        """Helper method to create operation results, timing from ``start_time``."""
        return OperationResult(
            success=success,
            target=target,
            operation=operation,
            message=message,
            timestamp=start_time,
            duration=(datetime.now() - start_time).total_seconds(),
            skipped=skipped
        )

    def _handle_aws_error(self, error: Exception, operation: str, resource_id: Optional[str] = None) -> None:
        """Convert an AWS API error into a ServiceError.

        Raises:
            ServiceError: Wrapped error with context
        """
        resource_context = f" for resource {resource_id}" if resource_id else ""
        error_message = f"AWS {self.service_name} {operation} failed{resource_context}: {str(error)}"
        raise ServiceError(error_message, details=str(error))
