"""Configuration management for EKS Pause."""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from eks_pause.services.models import NodeGroupScaling


class Config(BaseModel):
    """Configuration model for EKS Pause.

    One instance is built at startup and passed explicitly to every component.
    """

    cluster_name: str = Field(default="rodngun-eks", description="EKS cluster to operate on")
    region: str = Field(default="us-east-1", description="AWS region of the cluster")
    namespaces: List[str] = Field(
        default_factory=lambda: ["rodngun", "default"],
        description="Namespaces whose workloads are scaled down on pause",
    )
    protected_namespaces: List[str] = Field(
        default_factory=lambda: ["kube-system"],
        description="Namespaces that are never scaled",
    )
    application_tag_key: str = Field(default="Application", description="Tag key marking standalone EC2 instances")
    application_tag: str = Field(default="rodngun", description="Tag value identifying EC2/RDS resources of the application")
    data_bearing_nodegroup_pattern: str = Field(default="mongodb-nodes", description="Glob matching data-bearing node groups")
    general_nodegroup_pattern: str = Field(default="general-nodes", description="Glob matching general-purpose node groups")
    data_bearing_pause_size: int = Field(default=1, description="Instances kept in data-bearing node groups while paused")
    data_bearing_restore: NodeGroupScaling = Field(default_factory=lambda: NodeGroupScaling(3, 3, 3))
    general_restore: NodeGroupScaling = Field(default_factory=lambda: NodeGroupScaling(2, 10, 3))
    default_restore: NodeGroupScaling = Field(default_factory=lambda: NodeGroupScaling(1, 5, 2))
    backup_root: Path = Field(default=Path("."), description="Directory holding eks-backup-* snapshot directories")
    kube_context: Optional[str] = Field(default=None, description="kubeconfig context for the cluster")
    role_arn: Optional[str] = Field(default=None, description="Optional IAM role to assume")
    poll_interval_seconds: float = Field(default=15.0, gt=0)
    poll_timeout_seconds: float = Field(default=600.0, gt=0)
    pricing_file: Optional[Path] = Field(default=None, description="JSON file overriding the built-in price table")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('region')
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        region_pattern = r'^[a-z]{2,3}-[a-z]+-\d+$'
        if not re.match(region_pattern, v):
            raise ValueError(
                f"Invalid AWS region format: {v}. "
                "Expected format: us-east-1, eu-west-1, ap-southeast-3, etc."
            )
        return v

    @field_validator('cluster_name')
    @classmethod
    def validate_cluster_name(cls, v: str) -> str:
        if not re.match(r'^[0-9A-Za-z][A-Za-z0-9\-_]{0,99}$', v):
            raise ValueError(f"Invalid EKS cluster name: {v}")
        return v

    @field_validator('role_arn')
    @classmethod
    def validate_role_arn(cls, v: Optional[str]) -> Optional[str]:
        """Validate IAM role ARN format."""
        if v is None:
            return v
        arn_pattern = r'^arn:aws:iam::\d{12}:role/[a-zA-Z0-9+=,.@_/-]+$'
        if not re.match(arn_pattern, v):
            raise ValueError(
                f"Invalid IAM role ARN format: {v}. "
                "Expected format: arn:aws:iam::123456789012:role/RoleName"
            )
        return v

    @field_validator('data_bearing_pause_size')
    @classmethod
    def validate_pause_floor(cls, v: int) -> int:
        if v < 1:
            raise ValueError("data_bearing_pause_size must be at least 1 to preserve data")
        return v

    @field_validator('data_bearing_restore')
    @classmethod
    def validate_data_bearing_restore(cls, v: NodeGroupScaling) -> NodeGroupScaling:
        if v.min_size < 1:
            raise ValueError("data_bearing_restore must keep at least 1 instance")
        return v


class ConfigManager:
    """Manages the local configuration file for EKS Pause."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.eks-pause/
        """
        if config_dir is None:
            config_dir = Path.home() / ".eks-pause"

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """Load configuration from file, applying overrides on top.

        A missing file yields the defaults. Overrides with a None value are ignored.

        Raises:
            ValueError: If configuration file is corrupted or invalid.
        """
        config_data: Dict[str, Any] = {}

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid configuration file: {e}")

            if isinstance(config_data.get('created_at'), str):
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                config_data['created_at'] = datetime.fromisoformat(dt_str).replace(tzinfo=None)

        for key, value in (overrides or {}).items():
            if value is not None:
                config_data[key] = value

        try:
            return Config(**config_data)
        except ValueError as e:
            raise ValueError(f"Invalid configuration: {e}")

    def save_config(self, config: Config) -> None:
        """Save configuration to file.

        Raises:
            OSError: If unable to write configuration file.
        """
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            config_dict = config.model_dump(mode='json')
            config_dict['created_at'] = config.created_at.isoformat() + 'Z'

            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except Exception as e:
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        return self.config_file
