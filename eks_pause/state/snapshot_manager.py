"""
Snapshot directories: the on-disk record used to reverse a pause.

Layout (compatible with the shell tooling that predates this package)::

    eks-backup-20240105-143022/
        deployments.json          kubectl-style List of deployments
        statefulsets.json         kubectl-style List of statefulsets
        nodegroup-<name>.json     describe-nodegroup output
        ec2-instances.txt         whitespace separated instance ids
        rds-instances.txt         whitespace separated DB instance ids

A file is only present when its capture succeeded.
"""
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import StateError
from ..services.kubernetes import parse_workload_items
from ..services.models import DEPLOYMENT, STATEFULSET, NodeGroupScaling, Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "eks-backup-"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
WORKLOAD_FILES = {DEPLOYMENT: "deployments.json", STATEFULSET: "statefulsets.json"}
EC2_FILE = "ec2-instances.txt"
RDS_FILE = "rds-instances.txt"
NODEGROUP_FILE = re.compile(r"^nodegroup-(?P<name>.+)\.json$")


class SnapshotManager:
    """Creates, reads and lists snapshot directories under a backup root."""

    def __init__(self, backup_root: Optional[Path] = None):
        """Initialize the snapshot manager.

        Args:
            backup_root: Directory holding snapshot directories. Defaults to the
                current directory.
        """
        self.backup_root = Path(backup_root) if backup_root is not None else Path(".")

    def create_snapshot_dir(self, now: Optional[datetime] = None) -> Tuple[str, Path]:
        """Create a new, uniquely named snapshot directory.

        Returns:
            Tuple of (snapshot_id, path)

        Raises:
            StateError: If the directory cannot be created
        """
        now = now or datetime.now()
        base_id = f"{SNAPSHOT_PREFIX}{now.strftime(TIMESTAMP_FORMAT)}"
        snapshot_id = base_id
        suffix = 1

        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
            while True:
                path = self.backup_root / snapshot_id
                try:
                    path.mkdir()
                    break
                except FileExistsError:
                    snapshot_id = f"{base_id}-{suffix}"
                    suffix += 1
        except OSError as e:
            raise StateError(f"Failed to create snapshot directory under {self.backup_root}: {e}")

        logger.info(f"Created snapshot directory {path}")
        return snapshot_id, path

    def write_workloads(self, path: Path, kind: str, items: List[Dict[str, Any]]) -> Path:
        document = {"apiVersion": "v1", "kind": "List", "items": items, "metadata": {}}
        return self._write_json(path / WORKLOAD_FILES[kind], document)

    def write_nodegroup(self, path: Path, nodegroup_name: str, raw: Dict[str, Any]) -> Path:
        return self._write_json(path / f"nodegroup-{nodegroup_name}.json", raw)

    def write_id_list(self, path: Path, filename: str, ids: List[str]) -> Path:
        return self._write_text(path / filename, "\n".join(ids) + ("\n" if ids else ""))

    def load_snapshot(self, path: Path) -> Snapshot:
        """Read a snapshot directory.

        Missing files leave the corresponding field as None.

        Raises:
            StateError: If the directory does not exist or a workload file is corrupt
        """
        path = Path(path)
        if not path.is_dir():
            raise StateError(f"Backup directory {path} not found")

        snapshot = Snapshot(
            snapshot_id=path.name,
            path=path,
            created_at=self._created_at(path)
        )

        for kind, filename in WORKLOAD_FILES.items():
            document = self._read_json(path / filename)
            if document is None:
                continue
            try:
                workloads = parse_workload_items(kind, document.get('items', []))
            except (KeyError, TypeError, ValueError) as e:
                raise StateError(f"Snapshot file {path / filename} is malformed: {e}")
            if kind == DEPLOYMENT:
                snapshot.deployments = workloads
            else:
                snapshot.statefulsets = workloads

        for nodegroup_file in sorted(path.glob("nodegroup-*.json")):
            match = NODEGROUP_FILE.match(nodegroup_file.name)
            if not match:
                continue
            # Left empty by the shell script when the node group does not exist
            try:
                document = self._read_json(nodegroup_file)
            except StateError as e:
                logger.warning(f"Ignoring unreadable node group file {nodegroup_file}: {e}")
                continue
            if not document:
                continue
            try:
                scaling = NodeGroupScaling.from_aws(document['nodegroup']['scalingConfig'])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed node group file {nodegroup_file}: {e}")
                continue
            snapshot.nodegroups[match.group('name')] = scaling

        snapshot.ec2_instance_ids = self._read_id_list(path / EC2_FILE)
        snapshot.rds_instance_ids = self._read_id_list(path / RDS_FILE)

        return snapshot

    def list_snapshots(self) -> List[Dict[str, Any]]:
        """List snapshot directories under the backup root, oldest first."""
        if not self.backup_root.is_dir():
            return []

        snapshots = []
        for path in self.backup_root.glob(f"{SNAPSHOT_PREFIX}*"):
            if not path.is_dir():
                continue
            files = sorted(p.name for p in path.iterdir())
            snapshots.append({
                'snapshot_id': path.name,
                'path': path,
                'created_at': self._created_at(path),
                'files': files,
            })

        snapshots.sort(key=lambda s: (s['created_at'], s['snapshot_id']))
        return snapshots

    def latest_snapshot(self) -> Optional[Path]:
        snapshots = self.list_snapshots()
        return snapshots[-1]['path'] if snapshots else None

    def _created_at(self, path: Path) -> datetime:
        stamp = path.name[len(SNAPSHOT_PREFIX):len(SNAPSHOT_PREFIX) + 15]
        try:
            return datetime.strptime(stamp, TIMESTAMP_FORMAT)
        except ValueError:
            return datetime.fromtimestamp(path.stat().st_mtime)

    def _write_json(self, filepath: Path, document: Any) -> Path:
        return self._write_text(filepath, json.dumps(document, indent=2, default=str))

    def _write_text(self, filepath: Path, text: str) -> Path:
        temp_file = filepath.with_suffix(filepath.suffix + '.tmp')
        try:
            with open(temp_file, 'w') as f:
                f.write(text)
            temp_file.replace(filepath)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise StateError(f"Failed to write {filepath}: {e}")
        return filepath

    def _read_json(self, filepath: Path) -> Optional[Any]:
        if not filepath.exists():
            return None
        try:
            with open(filepath, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Snapshot file {filepath} corrupted: {e}")
        except OSError as e:
            raise StateError(f"Failed to read snapshot file {filepath}: {e}")

    def _read_id_list(self, filepath: Path) -> Optional[List[str]]:
        if not filepath.exists():
            return None
        try:
            return filepath.read_text().split()
        except OSError as e:
            raise StateError(f"Failed to read snapshot file {filepath}: {e}")
