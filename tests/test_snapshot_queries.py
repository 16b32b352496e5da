"""Tests for read-only snapshot queries."""

import pytest

from stow_dashboard.models import GitInfo, ProjectRecord
from stow_dashboard.services.snapshot_queries import (
    dirty_projects,
    find_project,
    format_bytes,
    project_details,
    project_stats,
    read_readme,
    search_projects,
)


@pytest.fixture
def records():
    return [
        ProjectRecord(
            directory="/work/storefront",
            project_name="Storefront",
            description="Online shop frontend",
            stack=["react", "next"],
            content_size_bytes=2048,
            git_info=GitInfo(git_detected=True, uncommitted_changes=2),
        ),
        ProjectRecord(
            directory="/work/api",
            project_name="billing-api",
            description="Invoices",
            stack=["fastapi", "pydantic"],
            content_size_bytes=1024,
            libs_size_bytes=1024,
            git_info=GitInfo(git_detected=True, ahead=1, behind=4),
        ),
        ProjectRecord(
            directory="/play/scratch",
            stack=["react"],
            git_info=GitInfo(git_detected=True),
        ),
        ProjectRecord(directory="/play/notes", git_info=GitInfo.not_detected()),
    ]


class TestSearch:
    def test_query_matches_name_directory_description_and_stack(self, records):
        assert [r.project_name for r in search_projects(records, "store")] == ["Storefront"]
        assert [r.project_name for r in search_projects(records, "/play")] == [
            "scratch",
            "notes",
        ]
        assert [r.project_name for r in search_projects(records, "INVOICE")] == [
            "billing-api"
        ]
        assert [r.project_name for r in search_projects(records, "pydan")] == ["billing-api"]

    def test_stack_filter_and_limit(self, records):
        assert [r.directory for r in search_projects(records, stack="react")] == [
            "/work/storefront",
            "/play/scratch",
        ]
        assert len(search_projects(records, stack="react", limit=1)) == 1
        assert search_projects(records, "shop", stack="fastapi") == []

    def test_no_filters_returns_first_n(self, records):
        assert len(search_projects(records)) == 4
        assert len(search_projects(records, limit=2)) == 2


class TestFind:
    def test_exact_directory_then_name_then_substring(self, records):
        assert find_project(records, "/play/notes").directory == "/play/notes"
        assert find_project(records, "BILLING-API").directory == "/work/api"
        assert find_project(records, "scratch").directory == "/play/scratch"
        assert find_project(records, "work/stor").directory == "/work/storefront"
        assert find_project(records, "missing") is None


class TestDirty:
    def test_kinds(self, records):
        def names(found):
            return [r.project_name for r in found]

        assert names(dirty_projects(records)) == ["Storefront", "billing-api"]
        assert names(dirty_projects(records, "uncommitted")) == ["Storefront"]
        assert names(dirty_projects(records, "ahead")) == ["billing-api"]
        assert names(dirty_projects(records, "behind")) == ["billing-api"]

    def test_unknown_kind(self, records):
        with pytest.raises(ValueError):
            dirty_projects(records, "stale")


class TestStats:
    def test_totals(self, records):
        stats = project_stats(records)
        assert stats["total_projects"] == 4
        assert stats["with_git"] == 3
        assert stats["with_uncommitted"] == 1
        assert stats["behind_remote"] == 1
        assert stats["total_code_size"] == "3.0 KB"
        assert stats["total_size"] == "4.0 KB"
        assert stats["stack_breakdown"] == {"react": 2, "next": 1, "fastapi": 1, "pydantic": 1}

    def test_stack_breakdown_keeps_top_fifteen(self):
        many = [
            ProjectRecord(directory=f"/p{i}", stack=[f"lib{j}" for j in range(i + 1)])
            for i in range(20)
        ]
        breakdown = project_stats(many)["stack_breakdown"]
        assert len(breakdown) == 15
        assert breakdown["lib0"] == 20


class TestHelpers:
    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (None, "0 B"),
            (512, "512 B"),
            (1536, "1.5 KB"),
            (1024**2, "1.0 MB"),
            (5 * 1024**3, "5.0 GB"),
            (3 * 1024**5, "3072.0 TB"),
        ],
    )
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    def test_read_readme_candidates(self, tmp_path):
        assert read_readme(tmp_path) is None
        (tmp_path / "readme.txt").write_text("plain")
        assert read_readme(tmp_path) == "plain"
        (tmp_path / "README").write_text("bare")
        assert read_readme(tmp_path) == "bare"

    def test_project_details(self, records):
        details = project_details(records[1])
        assert details["git"]["behind"] == 4
        assert details["size"] == {"code": "1.0 KB", "libs": "1.0 KB", "total": "2.0 KB"}
        assert details["has_readme"] is False
        assert project_details(records[3])["git"] is None
