"""
Tests for JobSubmitter.
"""

from collections import deque
from unittest.mock import AsyncMock

import pytest

from build_tracker.errors import RegistryWriteError, SubmissionFailed
from build_tracker.jobs import JobMeta, JobState, JobSubmitter
from build_tracker.storage import FileJobRegistry


@pytest.fixture
def submitter(fake_service, memory_registry, manager, quiet_logger):
    return JobSubmitter(fake_service, memory_registry, manager, logger=quiet_logger)


class TestJobSubmitter:
    """Test submission, registration and hand-off to polling."""

    @pytest.mark.asyncio
    async def test_successful_submission_registers_job(self, submitter, memory_registry, manager):
        job = await submitter.submit("agent-42", "Helper Bot", "user-1")

        assert job.job_id == "b-1"
        assert job.state is JobState.BUILDING
        assert await memory_registry.get_all() == {"agent-42": "b-1"}

        meta = await memory_registry.get_meta("b-1")
        assert meta == JobMeta("agent-42", "Helper Bot", job.started_at)

        assert manager.is_polling("b-1")
        await manager.close()

    @pytest.mark.asyncio
    async def test_forwards_request_fields(self, submitter, fake_service, manager):
        await submitter.submit("agent-42", "Helper Bot", "user-1", auth_token="tok")

        assert fake_service.submit_calls == [{
            "owner_id": "agent-42",
            "display_name": "Helper Bot",
            "requester_id": "user-1",
            "auth_token": "tok",
        }]
        await manager.close()

    @pytest.mark.asyncio
    async def test_rejected_submission_leaves_registry_untouched(
        self, submitter, fake_service, memory_registry, manager
    ):
        fake_service.reject("agent-7", SubmissionFailed("quota exceeded", remote_message="quota exceeded"))

        with pytest.raises(SubmissionFailed, match="quota exceeded"):
            await submitter.submit("agent-7", "Quota Bot", "user-1")

        assert await memory_registry.get_all() == {}
        assert manager.active_job_ids() == []

    @pytest.mark.asyncio
    async def test_failed_submission_is_not_retried(self, submitter, fake_service):
        fake_service.reject("agent-7", SubmissionFailed())

        with pytest.raises(SubmissionFailed):
            await submitter.submit("agent-7", "Quota Bot", "user-1")

        assert len(fake_service.submit_calls) == 1

    @pytest.mark.asyncio
    async def test_newest_job_wins_per_owner(self, submitter, fake_service, memory_registry, manager):
        fake_service.job_ids = deque(["b-1", "b-2"])

        await submitter.submit("agent-42", "Helper Bot", "user-1")
        assert await memory_registry.get_all() == {"agent-42": "b-1"}

        await submitter.submit("agent-42", "Helper Bot", "user-1")
        assert await memory_registry.get_all() == {"agent-42": "b-2"}
        await manager.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner_id, display_name", [("", "Helper Bot"), ("agent-42", "")])
    async def test_rejects_empty_inputs(self, submitter, fake_service, owner_id, display_name):
        with pytest.raises(ValueError):
            await submitter.submit(owner_id, display_name, "user-1")

        assert fake_service.submit_calls == []

    @pytest.mark.asyncio
    async def test_registry_failure_still_polls(self, fake_service, manager, quiet_logger):
        registry = AsyncMock()
        registry.put.side_effect = RegistryWriteError("disk full")
        submitter = JobSubmitter(fake_service, registry, manager, logger=quiet_logger)

        job = await submitter.submit("agent-42", "Helper Bot", "user-1")

        assert job.persisted is False
        assert manager.is_polling("b-1")
        await manager.close()

    @pytest.mark.asyncio
    async def test_unreadable_registry_still_polls(self, fake_service, manager, quiet_logger, tmp_path):
        # A directory where the registry file should be: every read fails.
        path = tmp_path / "registry.json"
        path.mkdir()
        registry = FileJobRegistry(path)
        submitter = JobSubmitter(fake_service, registry, manager, logger=quiet_logger)

        job = await submitter.submit("agent-42", "Helper Bot", "user-1")

        assert job.job_id == "b-1"
        assert job.persisted is False
        assert len(fake_service.submit_calls) == 1
        assert manager.is_polling("b-1")
        await manager.close()

    @pytest.mark.asyncio
    async def test_empty_job_id_is_a_submission_failure(self, submitter, fake_service, memory_registry):
        fake_service.job_ids = deque([""])

        with pytest.raises(SubmissionFailed):
            await submitter.submit("agent-42", "Helper Bot", "user-1")

        assert await memory_registry.get_all() == {}
