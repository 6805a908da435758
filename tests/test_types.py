"""
Tests for job types and state transitions.
"""

import pytest

from build_tracker.jobs.types import (
    VALID_TRANSITIONS,
    BuildJob,
    JobMeta,
    JobState,
    StatusReport,
)


class TestJobState:
    """Test JobState enumeration."""

    def test_only_building_is_non_terminal(self):
        assert not JobState.BUILDING.is_terminal
        assert JobState.COMPLETED.is_terminal
        assert JobState.FAILED.is_terminal
        assert JobState.EXPIRED.is_terminal

    def test_values_match_service_strings(self):
        assert JobState("building") is JobState.BUILDING
        assert JobState("completed") is JobState.COMPLETED
        assert JobState("failed") is JobState.FAILED

    def test_terminal_states_have_no_transitions(self):
        for state in JobState:
            if state.is_terminal:
                assert VALID_TRANSITIONS[state] == set()


class TestBuildJob:
    """Test BuildJob lifecycle."""

    def make_job(self, **kwargs) -> BuildJob:
        defaults = {"job_id": "b-1", "owner_id": "agent-42", "display_name": "Helper Bot"}
        defaults.update(kwargs)
        return BuildJob(**defaults)

    def test_new_job_is_building(self):
        job = self.make_job()
        assert job.state is JobState.BUILDING
        assert job.artifact_url is None
        assert job.error_message is None
        assert job.persisted is True

    def test_complete_sets_artifact(self):
        job = self.make_job().complete("https://x/y.apk")

        assert job.state is JobState.COMPLETED
        assert job.artifact_url == "https://x/y.apk"
        assert job.detail == "https://x/y.apk"

    def test_fail_sets_error(self):
        job = self.make_job().fail("quota exceeded")

        assert job.state is JobState.FAILED
        assert job.error_message == "quota exceeded"
        assert job.detail == "quota exceeded"

    def test_expire_sets_error(self):
        job = self.make_job().expire("gave up")
        assert job.state is JobState.EXPIRED
        assert job.detail == "gave up"

    def test_transitions_return_new_records(self):
        original = self.make_job()
        original.complete("https://x/y.apk")
        assert original.state is JobState.BUILDING

    def test_no_transition_out_of_terminal(self):
        job = self.make_job().complete("https://x/y.apk")

        with pytest.raises(ValueError, match="Invalid transition"):
            job.fail("late failure")
        with pytest.raises(ValueError):
            job.complete("https://x/other.apk")

    def test_with_progress_keeps_state(self):
        job = self.make_job().with_progress(40.0)
        assert job.progress == 40.0
        assert job.state is JobState.BUILDING

    def test_dict_roundtrip(self):
        job = self.make_job(started_at=1700000000.0).fail("boom")
        restored = BuildJob.from_dict(job.to_dict())
        assert restored == job

    def test_meta_and_from_meta(self):
        job = self.make_job(started_at=1700000000.0)
        meta = job.meta

        assert meta == JobMeta("agent-42", "Helper Bot", 1700000000.0)
        assert BuildJob.from_meta("b-1", meta) == job


class TestJobMeta:
    """Test JobMeta serialization."""

    def test_to_dict(self):
        meta = JobMeta(owner_id="agent-42", display_name="Helper Bot", started_at=12.5)
        assert meta.to_dict() == {
            "owner_id": "agent-42",
            "display_name": "Helper Bot",
            "started_at": 12.5,
        }

    def test_from_dict_accepts_legacy_layout(self):
        meta = JobMeta.from_dict({
            "agentId": "agent-42",
            "agentName": "Helper Bot",
            "buildId": "b-1",
            "startTime": "2024-01-01T00:00:00.000Z",
        })

        assert meta.owner_id == "agent-42"
        assert meta.display_name == "Helper Bot"
        assert meta.started_at == 1704067200.0


class TestStatusReport:
    def test_not_found_means_still_building(self):
        report = StatusReport.not_found()
        assert report.found is False
        assert report.state is JobState.BUILDING
