"""
EKS Pause - scale an EKS environment down to save money, and bring it back.

Captures the desired state of workloads, node groups and tagged EC2/RDS
instances into a snapshot directory, scales everything down, and later
replays the snapshot to restore the environment.
"""

__version__ = "1.0.0"

from eks_pause.core.exceptions import EKSPauseError

__all__ = ["EKSPauseError"]
