"""Tests for snapshot models, timestamps and progress events."""

from pathlib import Path

import pytest

from stow_dashboard.models import GitInfo, ProjectRecord
from stow_dashboard.progress import ProgressEvent, ProgressEventType, emit
from stow_dashboard.utils.timestamps import (
    iso_to_millis,
    millis_to_iso,
    nanos_to_iso,
    nanos_to_millis,
)


class TestProjectRecord:
    """Derived fields and schema tolerance."""

    def test_total_is_always_derived(self):
        record = ProjectRecord(
            directory="/p", content_size_bytes=10, libs_size_bytes=5, total_size_bytes=1
        )
        assert record.total_size_bytes == 15

    def test_name_falls_back_to_basename(self):
        assert ProjectRecord(directory=Path("/work/my-app")).project_name == "my-app"
        assert ProjectRecord(directory="/work/x", project_name="Named").project_name == "Named"

    def test_stack_and_credentials_are_deduplicated(self):
        record = ProjectRecord(
            directory="/p", stack=["a", "b", "a"], credentials=["K", "K"]
        )
        assert record.stack == ["a", "b"]
        assert record.credentials == ["K"]

    def test_minimal_legacy_line(self):
        record = ProjectRecord.from_dict({"directory": "/old", "stack": None})
        assert record.stack == []
        assert record.git_info.git_detected is False
        assert record.file_types == {}

    def test_unknown_fields_round_trip(self):
        record = ProjectRecord.from_dict({"directory": "/p", "hasReadme": True})
        assert record.to_dict()["hasReadme"] is True

    def test_directory_is_required(self):
        with pytest.raises(ValueError):
            ProjectRecord.from_dict({"project_name": "x"})


class TestGitInfoSerialisation:
    def test_not_detected_is_minimal(self):
        assert GitInfo().model_dump() == {"git_detected": False}
        assert GitInfo.not_detected("bad object").model_dump() == {
            "git_detected": False,
            "git_error": "bad object",
        }

    def test_detected_has_all_fields(self):
        data = GitInfo(git_detected=True, remotes=["u"]).model_dump()
        assert data["current_user"] == "Unknown"
        assert data["current_branch"] == "unknown"
        assert data["remotes"] == ["u"]
        assert "git_error" not in data

    def test_nested_in_record(self):
        record = ProjectRecord(directory="/p", git_info={"git_detected": False})
        assert record.to_dict()["git_info"] == {"git_detected": False}


class TestTimestamps:
    def test_epoch(self):
        assert millis_to_iso(0) == "1970-01-01T00:00:00.000Z"

    def test_nanos_are_floored(self):
        assert nanos_to_millis(1_999_999) == 1
        assert nanos_to_iso(1_600_000_000_123_999_999) == "2020-09-13T12:26:40.123Z"

    def test_iso_round_trip(self):
        value = millis_to_iso(1_740_824_523_120)
        assert value == "2025-03-01T10:22:03.120Z"
        assert iso_to_millis(value) == 1_740_824_523_120

    def test_iso_variants(self):
        assert iso_to_millis("2025-03-01T10:22:03.120+00:00") == 1_740_824_523_120
        assert iso_to_millis("2025-03-01T11:22:03.120+01:00") == 1_740_824_523_120
        assert iso_to_millis("2025-03-01T10:22:03.120") == 1_740_824_523_120
        assert iso_to_millis("yesterday") is None
        assert iso_to_millis(None) is None
        assert iso_to_millis("") is None


class TestProgressEvents:
    def test_to_dict_only_populated_fields(self):
        assert ProgressEvent.updated("/p", 0.12345).to_dict() == {
            "type": "updated",
            "directory": "/p",
            "processing_time": 0.123,
        }
        assert ProgressEvent.failed("/p", "boom").to_dict() == {
            "type": "error",
            "directory": "/p",
            "error": "boom",
        }
        assert ProgressEvent.complete(1.5, 3, cancelled=True).to_dict() == {
            "type": "complete",
            "total_time": 1.5,
            "count": 3,
            "cancelled": True,
        }
        assert ProgressEvent.deleted("/p/.project_meta.json").type == ProgressEventType.DELETED

    def test_failing_callback_is_contained(self):
        def explode(event):
            raise RuntimeError("sink down")

        emit(explode, ProgressEvent.synced("/tmp/x"))
        emit(None, ProgressEvent.synced("/tmp/x"))
