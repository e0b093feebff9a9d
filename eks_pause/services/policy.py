"""
Node group classification and scaling targets.
"""
from fnmatch import fnmatchcase

from .models import NodeGroupRole, NodeGroupScaling
from ..core.config import Config

# Data-bearing node groups never go below this many instances.
DATA_BEARING_FLOOR = 1


class NodeGroupPolicy:
    """Decides how each node group is scaled on pause and on restore."""

    def __init__(self, config: Config):
        self.config = config

    def classify(self, nodegroup_name: str) -> NodeGroupRole:
        if fnmatchcase(nodegroup_name, self.config.data_bearing_nodegroup_pattern):
            return NodeGroupRole.DATA_BEARING
        if fnmatchcase(nodegroup_name, self.config.general_nodegroup_pattern):
            return NodeGroupRole.GENERAL
        return NodeGroupRole.OTHER

    def pause_target(self, role: NodeGroupRole) -> NodeGroupScaling:
        if role is NodeGroupRole.DATA_BEARING:
            size = max(self.config.data_bearing_pause_size, DATA_BEARING_FLOOR)
            return NodeGroupScaling(min_size=size, max_size=size, desired_size=size)
        # EKS rejects maxSize=0
        return NodeGroupScaling(min_size=0, max_size=1, desired_size=0)

    def restore_target(self, role: NodeGroupRole) -> NodeGroupScaling:
        if role is NodeGroupRole.DATA_BEARING:
            target = self.config.data_bearing_restore
            if target.min_size < DATA_BEARING_FLOOR:
                floor = max(target.desired_size, DATA_BEARING_FLOOR)
                return NodeGroupScaling(DATA_BEARING_FLOOR, max(target.max_size, floor), floor)
            return target
        if role is NodeGroupRole.GENERAL:
            return self.config.general_restore
        return self.config.default_restore

    def literal_names(self):
        """Configured patterns that name a single node group (no glob characters)."""
        patterns = [self.config.general_nodegroup_pattern, self.config.data_bearing_nodegroup_pattern]
        return [p for p in patterns if not any(c in p for c in '*?[')]
