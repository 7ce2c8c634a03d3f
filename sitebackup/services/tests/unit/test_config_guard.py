"""Tests for the configuration integrity guard.

Run with: uv run pytest sitebackup/services/tests/unit/test_config_guard.py -v
"""

import os

import pytest

from sitebackup.services.backup import ConfigFallback, ConfigInvalid
from sitebackup.services.backup.guard import (
    ConfigGuard,
    ensure_valid,
    is_valid,
    parse_config,
    read_if_valid,
    write_atomic,
)
from sitebackup.services.tests.factories import DEFAULT_CONFIG, OTHER_CONFIG, VALID_CONFIG

INVALID_DOCUMENTS = [
    b"",
    b"   \n\t",
    b"site: [unclosed",
    b"just a sentence",
    b"- a\n- b\n",
    b"{}",
    b"\xff\xfe\x00garbage",
]


class TestParseConfig:
    """Tests for parse_config() and is_valid()."""

    @pytest.mark.unit
    def test_valid_mapping(self):
        """Test a key-value document parses."""
        assert parse_config(VALID_CONFIG)["site"]["title"] == "Test Site"
        assert parse_config(VALID_CONFIG.decode()) == parse_config(VALID_CONFIG)

    @pytest.mark.unit
    @pytest.mark.parametrize("content", INVALID_DOCUMENTS)
    def test_invalid_documents(self, content):
        """Test empty, malformed and non-mapping documents are rejected."""
        with pytest.raises(ConfigInvalid):
            parse_config(content)
        assert is_valid(content) is False

    @pytest.mark.unit
    def test_none_is_invalid(self):
        """Test absent content is invalid."""
        assert is_valid(None) is False

    @pytest.mark.unit
    def test_read_if_valid(self, tmp_path):
        """Test missing and corrupt files read as None."""
        good = tmp_path / "good.yaml"
        good.write_bytes(VALID_CONFIG)
        bad = tmp_path / "bad.yaml"
        bad.write_bytes(b"site: [")

        assert read_if_valid(good) == VALID_CONFIG
        assert read_if_valid(bad) is None
        assert read_if_valid(tmp_path / "missing.yaml") is None
        assert read_if_valid(tmp_path) is None


class TestWriteAtomic:
    """Tests for write_atomic()."""

    @pytest.mark.unit
    def test_creates_parents(self, tmp_path):
        """Test missing parent directories are created."""
        target = tmp_path / "nested" / "dir" / "config.yaml"

        write_atomic(target, VALID_CONFIG)

        assert target.read_bytes() == VALID_CONFIG
        assert [p.name for p in target.parent.iterdir()] == ["config.yaml"]

    @pytest.mark.unit
    def test_writes_through_symlink(self, tmp_path):
        """Test a symlinked location keeps its link and gets new content."""
        real = tmp_path / "real.yaml"
        real.write_bytes(VALID_CONFIG)
        link = tmp_path / "config.yaml"
        os.symlink(real, link)

        written = write_atomic(link, OTHER_CONFIG)

        assert link.is_symlink()
        assert written == real.resolve()
        assert real.read_bytes() == OTHER_CONFIG


class TestEnsureValid:
    """Tests for ensure_valid()."""

    @pytest.fixture
    def paths(self, tmp_path):
        primary = tmp_path / "config.yaml"
        mirror = tmp_path / "data" / "config.yaml"
        default = tmp_path / "default.yaml"
        mirror.parent.mkdir()
        default.write_bytes(DEFAULT_CONFIG)
        return primary, mirror, default

    @pytest.mark.unit
    def test_valid_primary_untouched(self, paths):
        """Test a valid document is left byte-identical."""
        primary, mirror, default = paths
        primary.write_bytes(VALID_CONFIG)
        mtime = primary.stat().st_mtime_ns

        assert ensure_valid(primary, default, [mirror]) is None
        assert primary.read_bytes() == VALID_CONFIG
        assert primary.stat().st_mtime_ns == mtime

    @pytest.mark.unit
    def test_missing_primary_gets_default(self, paths):
        """Test a missing document is replaced by the bundled default."""
        primary, mirror, default = paths

        assert ensure_valid(primary, default) == ConfigFallback.DEFAULT
        assert primary.read_bytes() == DEFAULT_CONFIG

    @pytest.mark.unit
    @pytest.mark.parametrize("content", INVALID_DOCUMENTS)
    def test_corrupt_primary_gets_default(self, paths, content):
        """Test every invalid document is replaced."""
        primary, mirror, default = paths
        primary.write_bytes(content)

        assert ensure_valid(primary, default, [mirror]) == ConfigFallback.DEFAULT
        assert primary.read_bytes() == DEFAULT_CONFIG

    @pytest.mark.unit
    def test_valid_mirror_preferred_over_default(self, paths):
        """Test the last-known-good mirror is used before the default."""
        primary, mirror, default = paths
        primary.write_bytes(b"site: [")
        mirror.write_bytes(OTHER_CONFIG)

        assert ensure_valid(primary, default, [mirror]) == ConfigFallback.MIRROR
        assert primary.read_bytes() == OTHER_CONFIG

    @pytest.mark.unit
    def test_invalid_mirror_skipped(self, paths):
        """Test an invalid mirror does not count as a fallback."""
        primary, mirror, default = paths
        mirror.write_bytes(b"")

        assert ensure_valid(primary, default, [mirror]) == ConfigFallback.DEFAULT
        assert primary.read_bytes() == DEFAULT_CONFIG


class TestConfigGuard:
    """Tests for ConfigGuard bound to a site."""

    @pytest.mark.unit
    def test_install_valid(self, site, backup_config):
        """Test a valid payload reaches the primary and every mirror."""
        guard = ConfigGuard(backup_config)

        assert guard.install(OTHER_CONFIG) is True
        assert site.config_path.read_bytes() == OTHER_CONFIG
        assert site.mirror_path.read_bytes() == OTHER_CONFIG

    @pytest.mark.unit
    @pytest.mark.parametrize("content", INVALID_DOCUMENTS)
    def test_install_invalid_writes_nothing(self, site, backup_config, content):
        """Test a rejected payload never overwrites a live location."""
        guard = ConfigGuard(backup_config)

        assert guard.install(content) is False
        assert site.config_path.read_bytes() == VALID_CONFIG
        assert site.mirror_path.read_bytes() == VALID_CONFIG

    @pytest.mark.unit
    def test_canonical_source(self, site, backup_config):
        """Test the primary is preferred, then the first existing mirror."""
        guard = ConfigGuard(backup_config)

        assert guard.canonical_source() == site.config_path.resolve()
        site.config_path.unlink()
        assert guard.canonical_source() == site.mirror_path.resolve()
        site.mirror_path.unlink()
        assert guard.canonical_source() is None

    @pytest.mark.unit
    def test_guarantee_syncs_mirrors(self, site, backup_config):
        """Test mirrors end byte-identical to the primary."""
        site.mirror_path.write_bytes(b"stale: true\n")
        guard = ConfigGuard(backup_config)

        assert guard.guarantee() is None
        assert site.mirror_path.read_bytes() == VALID_CONFIG

    @pytest.mark.unit
    def test_guarantee_restores_from_mirror(self, site, backup_config):
        """Test a corrupt primary is recovered from a valid mirror."""
        site.config_path.write_bytes(b"")
        site.mirror_path.write_bytes(OTHER_CONFIG)
        guard = ConfigGuard(backup_config)

        assert guard.guarantee() == ConfigFallback.MIRROR
        assert site.config_path.read_bytes() == OTHER_CONFIG

    @pytest.mark.unit
    def test_sync_mirrors_skips_identical(self, site, backup_config):
        """Test identical mirrors are not rewritten."""
        guard = ConfigGuard(backup_config)

        assert guard.sync_mirrors() == []
