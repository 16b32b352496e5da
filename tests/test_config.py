"""Tests for ScanConfig and ConfigManager."""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from stow_dashboard.config import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_SNAPSHOT_PATH,
    ConfigManager,
    ScanConfig,
)


@pytest.fixture
def clean_scan_roots(monkeypatch):
    """Make sure SCAN_ROOTS is absent now and restored after the test."""
    monkeypatch.setenv("SCAN_ROOTS", "")
    monkeypatch.delenv("SCAN_ROOTS")


class TestScanConfig:
    """Validation and merging."""

    def test_defaults(self):
        config = ScanConfig()
        assert config.scan_roots == []
        assert config.snapshot_path is None
        assert config.max_workers == 1
        assert config.git_history_limit == 1000
        assert config.ignore_patterns == DEFAULT_IGNORE_PATTERNS

    def test_roots_from_comma_string(self):
        config = ScanConfig(scan_roots="~/code, /srv/work,,")
        assert config.scan_roots == [Path("~/code").expanduser(), Path("/srv/work")]

    def test_effective_patterns_merge_and_dedupe(self):
        config = ScanConfig(ignore_patterns=["build", "Dist"], extra_ignore_patterns=["dist", "vendor"])
        assert config.effective_ignore_patterns() == ["build", "dist", "vendor"]

    def test_frozen(self):
        config = ScanConfig()
        with pytest.raises(ValidationError):
            config.force_update = True

    def test_with_overrides_ignores_none(self):
        config = ScanConfig(scan_roots=["/a"], max_workers=2)
        updated = config.with_overrides(scan_roots=None, max_workers=4, force_update=True)
        assert updated.scan_roots == [Path("/a")]
        assert updated.max_workers == 4
        assert updated.force_update is True
        assert config.max_workers == 2

    def test_worker_bounds(self):
        with pytest.raises(ValidationError):
            ScanConfig(max_workers=0)


class TestConfigManager:
    """Loading from JSON, environment and .env files."""

    def test_missing_file_gives_defaults(self, tmp_path, clean_scan_roots):
        config = ConfigManager(tmp_path / "config.json").load()
        assert config.scan_roots == []
        assert config.snapshot_path == DEFAULT_SNAPSHOT_PATH

    def test_load_file(self, tmp_path, clean_scan_roots):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "scan_roots": ["/code"],
                    "extra_ignore_patterns": ["vendor"],
                    "snapshot_path": str(tmp_path / "snap.jsonl"),
                }
            )
        )
        config = ConfigManager(path).load()
        assert config.scan_roots == [Path("/code")]
        assert "vendor" in config.effective_ignore_patterns()
        assert config.snapshot_path == tmp_path / "snap.jsonl"

    def test_scan_roots_environment_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCAN_ROOTS", "/one,/two")
        config = ConfigManager(tmp_path / "config.json").load()
        assert config.scan_roots == [Path("/one"), Path("/two")]

    def test_dotenv_beside_config(self, tmp_path, clean_scan_roots):
        (tmp_path / ".env").write_text("SCAN_ROOTS=/from/dotenv\n")
        config = ConfigManager(tmp_path / "config.json").load()
        assert config.scan_roots == [Path("/from/dotenv")]
        assert os.environ["SCAN_ROOTS"] == "/from/dotenv"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken")
        with pytest.raises(ValueError, match="Failed to load config"):
            ConfigManager(path).load()

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_workers": 1000}))
        with pytest.raises(ValueError, match="Invalid configuration"):
            ConfigManager(path).load()

    def test_save_round_trip(self, tmp_path, clean_scan_roots):
        path = tmp_path / "nested" / "config.json"
        manager = ConfigManager(path)
        manager.save(ScanConfig(scan_roots=["/x"], snapshot_path=tmp_path / "s.jsonl"))

        reloaded = ConfigManager(path).get_config()

        assert reloaded.scan_roots == [Path("/x")]
        assert reloaded.snapshot_path == tmp_path / "s.jsonl"
        assert json.loads(path.read_text())["max_workers"] == 1

    def test_save_without_config(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigManager(tmp_path / "c.json").save()
