"""Tests for the console's vault input validation."""

from __future__ import annotations

import pytest

from src.local.console.validation import validate_data_dir, validate_mount_point, validate_name


class TestValidateName:
    def test_trims(self):
        assert validate_name("  personal ") == "personal"

    def test_blank(self):
        with pytest.raises(ValueError, match="invalid name"):
            validate_name("   ")


class TestValidatePaths:
    def test_empty_directory(self, tmp_path):
        assert validate_mount_point(str(tmp_path)) == str(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ValueError, match="existing directory"):
            validate_data_dir(str(tmp_path / "missing"))

    def test_non_empty_directory(self, tmp_path):
        (tmp_path / "file.bin").write_bytes(b"x")
        with pytest.raises(ValueError, match="must be empty"):
            validate_data_dir(str(tmp_path))

    def test_same_as_current(self, tmp_path):
        with pytest.raises(ValueError, match="different path"):
            validate_mount_point(str(tmp_path), current=str(tmp_path))

    def test_blank_path(self):
        with pytest.raises(ValueError, match="invalid mount point"):
            validate_mount_point("")
