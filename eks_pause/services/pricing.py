"""
Hourly price lookups used by the status report's cost estimate.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

HOURS_PER_MONTH = 730

EKS_CONTROL_PLANE_HOURLY = 0.10
DEFAULT_EC2_HOURLY = 0.05
DEFAULT_RDS_HOURLY = 0.018

# On-demand us-east-1 Linux prices, USD per hour
EC2_HOURLY: Dict[str, float] = {
    't2.nano': 0.0058,
    't2.micro': 0.0116,
    't2.small': 0.023,
    't2.medium': 0.0464,
    't2.large': 0.0928,
    't2.xlarge': 0.1856,
    't2.2xlarge': 0.3712,
    't3.nano': 0.0052,
    't3.micro': 0.0104,
    't3.small': 0.0208,
    't3.medium': 0.0416,
    't3.large': 0.0832,
    't3.xlarge': 0.1664,
    't3.2xlarge': 0.3328,
    't4g.nano': 0.0042,
    't4g.micro': 0.0084,
    't4g.small': 0.0168,
    't4g.medium': 0.0336,
    't4g.large': 0.0672,
    'm5.large': 0.096,
    'm5.xlarge': 0.192,
    'm5.2xlarge': 0.384,
    'm5.4xlarge': 0.768,
    'm6i.large': 0.096,
    'm6i.xlarge': 0.192,
    'c5.large': 0.085,
    'c5.xlarge': 0.17,
    'c5.2xlarge': 0.34,
    'c6i.large': 0.085,
    'r5.large': 0.126,
    'r5.xlarge': 0.252,
    'r6i.large': 0.126,
}

RDS_HOURLY: Dict[str, float] = {
    'db.t3.micro': 0.018,
}


class PricingSource(ABC):
    """Source of hourly prices, in USD."""

    @abstractmethod
    def eks_control_plane_hourly(self) -> float:
        pass

    @abstractmethod
    def ec2_hourly(self, instance_type: str) -> float:
        pass

    @abstractmethod
    def rds_hourly(self, instance_class: str) -> float:
        pass


class StaticPricing(PricingSource):
    """Built-in price table. Unknown types fall back to a flat default."""

    def __init__(
        self,
        ec2_prices: Optional[Dict[str, float]] = None,
        rds_prices: Optional[Dict[str, float]] = None,
        control_plane_hourly: float = EKS_CONTROL_PLANE_HOURLY,
        default_ec2_hourly: float = DEFAULT_EC2_HOURLY,
        default_rds_hourly: float = DEFAULT_RDS_HOURLY
    ):
        self.ec2_prices = dict(EC2_HOURLY if ec2_prices is None else ec2_prices)
        self.rds_prices = dict(RDS_HOURLY if rds_prices is None else rds_prices)
        self.control_plane_hourly = control_plane_hourly
        self.default_ec2_hourly = default_ec2_hourly
        self.default_rds_hourly = default_rds_hourly

    def eks_control_plane_hourly(self) -> float:
        return self.control_plane_hourly

    def ec2_hourly(self, instance_type: str) -> float:
        return self.ec2_prices.get(instance_type, self.default_ec2_hourly)

    def rds_hourly(self, instance_class: str) -> float:
        return self.rds_prices.get(instance_class, self.default_rds_hourly)


class FilePricing(StaticPricing):
    """Built-in table overridden by a JSON file.

    The file may contain any of::

        {
          "eks_control_plane_hourly": 0.10,
          "ec2": {"t3.medium": 0.0416},
          "rds": {"db.t3.micro": 0.018},
          "default_ec2_hourly": 0.05,
          "default_rds_hourly": 0.018
        }
    """

    def __init__(self, path: Path):
        path = Path(path)
        try:
            with open(path, 'r') as f:
                overrides = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read pricing file {path}: {e}")
        if not isinstance(overrides, dict):
            raise ConfigurationError(f"Pricing file {path} must contain a JSON object")

        try:
            ec2_prices = {**EC2_HOURLY, **{k: float(v) for k, v in overrides.get('ec2', {}).items()}}
            rds_prices = {**RDS_HOURLY, **{k: float(v) for k, v in overrides.get('rds', {}).items()}}
            super().__init__(
                ec2_prices=ec2_prices,
                rds_prices=rds_prices,
                control_plane_hourly=float(overrides.get('eks_control_plane_hourly', EKS_CONTROL_PLANE_HOURLY)),
                default_ec2_hourly=float(overrides.get('default_ec2_hourly', DEFAULT_EC2_HOURLY)),
                default_rds_hourly=float(overrides.get('default_rds_hourly', DEFAULT_RDS_HOURLY))
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid pricing file {path}: {e}")

        logger.info(f"Loaded price overrides from {path}")


def pricing_from_config(pricing_file: Optional[Path]) -> PricingSource:
    if pricing_file:
        return FilePricing(pricing_file)
    return StaticPricing()
