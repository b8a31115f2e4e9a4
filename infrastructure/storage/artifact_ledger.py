# infrastructure/storage/artifact_ledger.py
import json
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from domain.exceptions import LedgerError
from domain.models.artifacts import Artifact, ArtifactDraft, ArtifactType, Handoff, IsolationContext
from domain.models.task_state import AgentRole
from shared.logging import logger, log_artifact_published, log_handoff_created

LEDGER_SUBDIRECTORIES = ("schemas", "interfaces", "contracts", "handoffs")
MANIFEST_FILENAME = "manifest.json"


def ledger_workspace_path(base_path: Path, isolation: Optional[IsolationContext] = None) -> Path:
    """Deterministic ledger location for a build, or the shared staging area"""
    if isolation:
        return (Path(base_path) / "solutions" / "users" / isolation.user_id
                / "projects" / isolation.project_id
                / "builds" / isolation.build_request_id / "artifacts")
    return Path(base_path) / "solutions" / "_staging" / "artifacts"


class ArtifactLedger:
    """Per-build record of artifacts and handoffs, mirrored to disk.

    State lives on the instance; one ledger belongs to exactly one build and
    is handed to collaborators explicitly. Published artifacts are never
    modified: publishing the same name twice yields two entries.
    """

    def __init__(self, base_path: Path, isolation: Optional[IsolationContext] = None):
        self.isolation = isolation
        self.workspace_path = ledger_workspace_path(base_path, isolation)
        self._artifacts: Dict[str, Artifact] = {}
        self._handoffs: List[Handoff] = []

    async def initialize(self) -> None:
        """Create the workspace and its fixed subdirectories; safe to repeat"""
        try:
            self.workspace_path.mkdir(parents=True, exist_ok=True)
            for subdirectory in LEDGER_SUBDIRECTORIES:
                (self.workspace_path / subdirectory).mkdir(exist_ok=True)
        except OSError as e:
            raise LedgerError(f"Failed to initialize ledger workspace {self.workspace_path}: {e}") from e

        logger.info("Artifact ledger initialized", workspace=str(self.workspace_path))

    async def publish(self, draft: ArtifactDraft) -> Artifact:
        artifact = Artifact(
            id=self._new_artifact_id(draft.produced_by),
            type=draft.type,
            name=draft.name,
            path=draft.path,
            content=draft.content,
            metadata=dict(draft.metadata),
            produced_by=draft.produced_by,
            consumed_by=tuple(draft.consumed_by),
            timestamp=datetime.now(timezone.utc),
        )

        artifact_dir = self.workspace_path / f"{artifact.type.value}s"
        try:
            artifact_dir.mkdir(parents=True, exist_ok=True)
            _write_json(artifact_dir / f"{artifact.name}.json", artifact.to_dict())
            if artifact.type != ArtifactType.DOCUMENTATION:
                (artifact_dir / artifact.name).write_text(artifact.content, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise LedgerError(f"Failed to persist artifact {artifact.name}: {e}") from e

        self._artifacts[artifact.id] = artifact
        log_artifact_published(artifact.id, artifact.type.value, artifact.produced_by.value, artifact.name)
        return artifact

    def get(self, artifact_id: str) -> Optional[Artifact]:
        return self._artifacts.get(artifact_id)

    def all_artifacts(self) -> List[Artifact]:
        return list(self._artifacts.values())

    def artifacts_by_type(self, artifact_type: ArtifactType) -> List[Artifact]:
        return [a for a in self._artifacts.values() if a.type == artifact_type]

    def artifacts_by_producer(self, role: AgentRole) -> List[Artifact]:
        return [a for a in self._artifacts.values() if a.produced_by == role]

    def artifacts_for_consumer(self, role: AgentRole) -> List[Artifact]:
        return [a for a in self._artifacts.values() if role in a.consumed_by]

    async def create_handoff(self, from_role: AgentRole, to_role: AgentRole,
                             artifact_ids: Sequence[str], message: Optional[str] = None) -> Handoff:
        """Group published artifacts for another role; unknown ids are dropped"""
        resolved = [self._artifacts[i] for i in artifact_ids if i in self._artifacts]
        dropped = [i for i in artifact_ids if i not in self._artifacts]

        handoff = Handoff(
            id=f"handoff-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
            from_role=from_role,
            to_role=to_role,
            artifacts=tuple(resolved),
            message=message,
            timestamp=datetime.now(timezone.utc),
        )

        try:
            handoff_dir = self.workspace_path / "handoffs"
            handoff_dir.mkdir(parents=True, exist_ok=True)
            _write_json(handoff_dir / f"{handoff.id}.json", handoff.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise LedgerError(f"Failed to persist handoff {handoff.id}: {e}") from e

        self._handoffs.append(handoff)
        log_handoff_created(handoff.id, from_role.value, to_role.value, len(resolved), dropped)
        return handoff

    def handoffs(self) -> List[Handoff]:
        return list(self._handoffs)

    def handoffs_for_role(self, role: AgentRole) -> List[Handoff]:
        return [h for h in self._handoffs if h.to_role == role]

    def manifest(self) -> Dict[str, Any]:
        return {
            "artifacts": [a.to_dict() for a in self._artifacts.values()],
            "handoffs": [h.to_dict() for h in self._handoffs],
        }

    async def export_manifest(self) -> Path:
        """Write the full ledger to manifest.json, replacing any previous one"""
        manifest_path = self.workspace_path / MANIFEST_FILENAME
        try:
            self.workspace_path.mkdir(parents=True, exist_ok=True)
            _write_json(manifest_path, self.manifest())
        except (OSError, TypeError, ValueError) as e:
            raise LedgerError(f"Failed to export manifest: {e}") from e

        logger.info("Manifest exported",
                   path=str(manifest_path),
                   artifacts=len(self._artifacts),
                   handoffs=len(self._handoffs))
        return manifest_path

    async def load_from_workspace(self) -> bool:
        """Repopulate from manifest.json; a missing manifest leaves the ledger empty"""
        manifest_path = self.workspace_path / MANIFEST_FILENAME
        if not manifest_path.exists():
            logger.info("No existing manifest found, starting fresh", workspace=str(self.workspace_path))
            return False

        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            artifacts = [Artifact.from_dict(a) for a in manifest.get("artifacts", [])]
            handoffs = [Handoff.from_dict(h) for h in manifest.get("handoffs", [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise LedgerError(f"Failed to load manifest {manifest_path}: {e}") from e

        for artifact in artifacts:
            self._artifacts[artifact.id] = artifact
        self._handoffs = handoffs

        logger.info("Manifest loaded",
                   path=str(manifest_path),
                   artifacts=len(artifacts),
                   handoffs=len(handoffs))
        return True

    @staticmethod
    def _new_artifact_id(role: AgentRole) -> str:
        return f"{role.value}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
