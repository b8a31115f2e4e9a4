# tests/unit/infrastructure/storage/test_artifact_ledger.py
import json

import pytest
import pytest_asyncio

from domain.exceptions import LedgerError
from domain.models.artifacts import ArtifactDraft, ArtifactType, IsolationContext
from domain.models.task_state import AgentRole
from infrastructure.storage.artifact_ledger import ArtifactLedger, ledger_workspace_path

def draft(name="users.schema", artifact_type=ArtifactType.SCHEMA, role=AgentRole.DATA, consumers=(AgentRole.BACKEND,)):
    return ArtifactDraft(
        type=artifact_type,
        name=name,
        path=f"schemas/{name}",
        content="{}",
        produced_by=role,
        metadata={"version": 1},
        consumed_by=consumers,
    )

@pytest_asyncio.fixture
async def ledger(tmp_path):
    ledger = ArtifactLedger(tmp_path, IsolationContext("u1", "p1", "r1"))
    await ledger.initialize()
    return ledger

class TestLedgerLayout:
    """Workspace location and initialization"""

    def test_isolated_path(self, tmp_path):
        path = ledger_workspace_path(tmp_path, IsolationContext("u1", "p1", "r1"))
        assert path == tmp_path / "solutions" / "users" / "u1" / "projects" / "p1" / "builds" / "r1" / "artifacts"

    def test_staging_path(self, tmp_path):
        assert ledger_workspace_path(tmp_path) == tmp_path / "solutions" / "_staging" / "artifacts"

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, tmp_path):
        """Repeated initialization keeps the same directories"""
        ledger = ArtifactLedger(tmp_path)
        await ledger.initialize()
        await ledger.initialize()

        for sub in ("schemas", "interfaces", "contracts", "handoffs"):
            assert (ledger.workspace_path / sub).is_dir()

    @pytest.mark.asyncio
    async def test_initialize_failure(self, tmp_path):
        """An unwritable location surfaces as LedgerError"""
        blocker = tmp_path / "solutions"
        blocker.write_text("not a directory")

        with pytest.raises(LedgerError):
            await ArtifactLedger(tmp_path).initialize()

class TestPublishing:
    """Artifact publication and queries"""

    @pytest.mark.asyncio
    async def test_publish_assigns_identity(self, ledger):
        artifact = await ledger.publish(draft())

        assert artifact.id.startswith("data-")
        assert artifact.timestamp.tzinfo is not None
        assert ledger.get(artifact.id) == artifact

    @pytest.mark.asyncio
    async def test_publish_writes_sidecar_and_content(self, ledger):
        artifact = await ledger.publish(draft())

        sidecar = ledger.workspace_path / "schemas" / "users.schema.json"
        assert json.loads(sidecar.read_text())["id"] == artifact.id
        assert (ledger.workspace_path / "schemas" / "users.schema").read_text() == "{}"

    @pytest.mark.asyncio
    async def test_documentation_has_no_raw_copy(self, ledger):
        await ledger.publish(draft(name="notes.md", artifact_type=ArtifactType.DOCUMENTATION, role=AgentRole.ARCHITECT))

        assert (ledger.workspace_path / "documentations" / "notes.md.json").exists()
        assert not (ledger.workspace_path / "documentations" / "notes.md").exists()

    @pytest.mark.asyncio
    async def test_same_name_twice_keeps_both(self, ledger):
        """Publishing never overwrites an earlier artifact"""
        first = await ledger.publish(draft())
        second = await ledger.publish(draft())

        assert first.id != second.id
        assert len(ledger.all_artifacts()) == 2

    @pytest.mark.asyncio
    async def test_queries(self, ledger):
        schema = await ledger.publish(draft())
        endpoint = await ledger.publish(draft(
            name="users.endpoint", artifact_type=ArtifactType.ENDPOINT,
            role=AgentRole.BACKEND, consumers=(AgentRole.FRONTEND, AgentRole.QA),
        ))

        assert ledger.artifacts_by_type(ArtifactType.SCHEMA) == [schema]
        assert ledger.artifacts_by_producer(AgentRole.BACKEND) == [endpoint]
        assert ledger.artifacts_for_consumer(AgentRole.BACKEND) == [schema]
        assert ledger.artifacts_for_consumer(AgentRole.QA) == [endpoint]
        assert ledger.artifacts_for_consumer(AgentRole.SECURITY) == []
        assert ledger.get("missing") is None

class TestHandoffs:
    """Handoff creation"""

    @pytest.mark.asyncio
    async def test_unknown_ids_are_dropped(self, ledger):
        artifact = await ledger.publish(draft())

        handoff = await ledger.create_handoff(
            AgentRole.DATA, AgentRole.BACKEND, [artifact.id, "ghost"], message="schemas ready"
        )

        assert [a.id for a in handoff.artifacts] == [artifact.id]
        assert handoff.id.startswith("handoff-")
        assert (ledger.workspace_path / "handoffs" / f"{handoff.id}.json").exists()

    @pytest.mark.asyncio
    async def test_handoffs_for_role(self, ledger):
        artifact = await ledger.publish(draft())
        await ledger.create_handoff(AgentRole.DATA, AgentRole.BACKEND, [artifact.id])
        await ledger.create_handoff(AgentRole.DATA, AgentRole.FRONTEND, [artifact.id])

        assert len(ledger.handoffs()) == 2
        assert [h.to_role for h in ledger.handoffs_for_role(AgentRole.FRONTEND)] == [AgentRole.FRONTEND]

class TestManifest:
    """Export and reload"""

    @pytest.mark.asyncio
    async def test_export_then_load_restores_everything(self, tmp_path, ledger):
        """A fresh ledger loaded from the manifest sees the same artifacts and handoffs"""
        artifact = await ledger.publish(draft())
        await ledger.create_handoff(AgentRole.DATA, AgentRole.BACKEND, [artifact.id])
        manifest_path = await ledger.export_manifest()

        assert manifest_path.name == "manifest.json"

        reloaded = ArtifactLedger(tmp_path, IsolationContext("u1", "p1", "r1"))
        assert await reloaded.load_from_workspace() is True

        assert reloaded.get(artifact.id) == artifact
        assert [h.id for h in reloaded.handoffs()] == [h.id for h in ledger.handoffs()]
        assert reloaded.manifest() == ledger.manifest()

    @pytest.mark.asyncio
    async def test_export_overwrites(self, ledger):
        await ledger.export_manifest()
        await ledger.publish(draft())
        path = await ledger.export_manifest()

        assert len(json.loads(path.read_text())["artifacts"]) == 1

    @pytest.mark.asyncio
    async def test_load_without_manifest(self, tmp_path):
        ledger = ArtifactLedger(tmp_path)
        assert await ledger.load_from_workspace() is False
        assert ledger.all_artifacts() == []

    @pytest.mark.asyncio
    async def test_load_corrupt_manifest(self, ledger):
        (ledger.workspace_path / "manifest.json").write_text("{not json")

        with pytest.raises(LedgerError):
            await ledger.load_from_workspace()
