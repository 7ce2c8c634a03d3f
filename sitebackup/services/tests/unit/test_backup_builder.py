"""Tests for ArchiveBuilder.

Focuses on:
- Archive naming and collision handling
- Entry selection (store and mirrors excluded, config added once)
- Atomic publication and cleanup of partial files

Run with: uv run pytest sitebackup/services/tests/unit/test_backup_builder.py -v
"""

import os
import zipfile
from datetime import datetime, timezone

import pytest

from sitebackup.services.backup import IOFailure, ReservedPathPolicy
from sitebackup.services.backup.builder import ArchiveBuilder, archive_timestamp
from sitebackup.services.backup.guard import ConfigGuard
from sitebackup.services.backup.models import PRE_RESTORE_PREFIX
from sitebackup.services.tests.factories import OTHER_CONFIG, SITE_FILES, USER_NOTES, VALID_CONFIG, archive_names


def make_builder(config) -> ArchiveBuilder:
    return ArchiveBuilder(config, ReservedPathPolicy.from_config(config), ConfigGuard(config))


class TestArchiveTimestamp:
    """Tests for archive_timestamp()."""

    @pytest.mark.unit
    def test_format_is_filename_safe(self):
        """Test ':' and '.' are replaced and milliseconds kept."""
        now = datetime(2024, 5, 1, 10, 2, 3, 45000, tzinfo=timezone.utc)

        assert archive_timestamp(now) == "2024-05-01T10-02-03-045Z"

    @pytest.mark.unit
    def test_timestamps_sort_chronologically(self):
        """Test lexical order matches time order."""
        earlier = archive_timestamp(datetime(2024, 1, 9, 23, 59, 59, 999000, tzinfo=timezone.utc))
        later = archive_timestamp(datetime(2024, 1, 10, 0, 0, 0, 0, tzinfo=timezone.utc))

        assert earlier < later


class TestArchiveBuilderCreate:
    """Tests for ArchiveBuilder.create()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_creates_archive_in_store(self, site, backup_config):
        """Test a user backup lands in the store with its real size."""
        result = await make_builder(backup_config).create()

        path = site.store_dir / result.filename
        assert result.success is True
        assert result.filename.startswith("site-backup-")
        assert result.filename.endswith(".zip")
        assert path.is_file()
        assert result.size == path.stat().st_size
        assert zipfile.is_zipfile(path)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_archive_contents(self, site, backup_config):
        """Test every data file is archived and the config appears exactly once."""
        result = await make_builder(backup_config).create()

        path = site.store_dir / result.filename
        names = archive_names(path)
        for rel in SITE_FILES:
            assert rel in names
        assert names.count("config.yaml") == 1
        assert not any(name.startswith("_site_backups") for name in names)

        with zipfile.ZipFile(path) as zf:
            for rel, content in SITE_FILES.items():
                assert zf.read(rel) == content
            assert zf.read("config.yaml") == VALID_CONFIG

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_existing_archives_are_not_nested(self, site, backup_config):
        """Test a second backup does not contain the first."""
        builder = make_builder(backup_config)
        first = await builder.create()
        second = await builder.create()

        names = archive_names(site.store_dir / second.filename)
        assert not any(first.filename in name for name in names)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_taken_from_primary_location(self, site, backup_config):
        """Test the primary document wins over a diverged mirror."""
        site.mirror_path.write_bytes(OTHER_CONFIG)

        result = await make_builder(backup_config).create()

        with zipfile.ZipFile(site.store_dir / result.filename) as zf:
            assert zf.read("config.yaml") == VALID_CONFIG

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_falls_back_to_mirror(self, site, backup_config):
        """Test a missing primary is replaced by the first existing mirror."""
        site.config_path.unlink()
        site.mirror_path.write_bytes(OTHER_CONFIG)

        result = await make_builder(backup_config).create()

        with zipfile.ZipFile(site.store_dir / result.filename) as zf:
            assert zf.read("config.yaml") == OTHER_CONFIG

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_followed_through_symlink(self, site, tmp_path):
        """Test a symlinked primary config is archived by content."""
        real = tmp_path / "real-config.yaml"
        real.write_bytes(OTHER_CONFIG)
        site.config_path.unlink()
        os.symlink(real, site.config_path)

        result = await make_builder(site.config()).create()

        with zipfile.ZipFile(site.store_dir / result.filename) as zf:
            assert zf.read("config.yaml") == OTHER_CONFIG

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_config_anywhere(self, site, backup_config):
        """Test the archive simply omits a missing configuration."""
        site.config_path.unlink()
        site.mirror_path.unlink()

        result = await make_builder(backup_config).create()

        assert "config.yaml" not in archive_names(site.store_dir / result.filename)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_data_root(self, tmp_path):
        """Test an empty data root still produces a valid archive."""
        from sitebackup.services.backup import BackupConfig

        config = BackupConfig(data_root=tmp_path / "data", config_path=tmp_path / "config.yaml")
        config.data_root.mkdir()

        result = await make_builder(config).create()

        assert archive_names(config.store_dir / result.filename) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_symlinked_subdirectory_not_followed(self, site, backup_config, tmp_path):
        """Test nested directory symlinks are skipped."""
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("secret")
        os.symlink(outside, site.data_root / "posts" / "ext", target_is_directory=True)

        result = await make_builder(backup_config).create()

        names = archive_names(site.store_dir / result.filename)
        assert not any(name.startswith("posts/ext") for name in names)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pre_restore_prefix(self, site, backup_config):
        """Test snapshots use their own prefix."""
        result = await make_builder(backup_config).create(prefix=PRE_RESTORE_PREFIX)

        assert result.filename.startswith("pre-restore-")
        assert (site.store_dir / result.filename).is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_millisecond_names_get_suffix(self, site, backup_config, monkeypatch):
        """Test colliding timestamps never overwrite an archive."""
        monkeypatch.setattr(
            "sitebackup.services.backup.builder.archive_timestamp",
            lambda now=None: "2024-05-01T10-00-00-000Z",
        )
        builder = make_builder(backup_config)

        first = await builder.create()
        second = await builder.create()
        third = await builder.create()

        assert first.filename == "site-backup-2024-05-01T10-00-00-000Z.zip"
        assert second.filename == "site-backup-2024-05-01T10-00-00-000Z-1.zip"
        assert third.filename == "site-backup-2024-05-01T10-00-00-000Z-2.zip"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_partial_file_left(self, site, backup_config):
        """Test only the finished archive remains in the store."""
        await make_builder(backup_config).create()

        leftovers = [p.name for p in site.store_dir.iterdir() if p.name.endswith(".partial")]
        assert leftovers == []


class TestArchiveBuilderMirrors:
    """Tests for which data-root files count as config mirrors."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unmirrored_file_named_like_config_is_archived(self, site, tmp_path):
        """Test a data file sharing the config name is kept when mirrors live elsewhere."""
        config = site.config(config_mirrors=[tmp_path / "elsewhere" / "config.yaml"])
        site.mirror_path.write_bytes(USER_NOTES)

        result = await make_builder(config).create()

        with zipfile.ZipFile(site.store_dir / result.filename) as zf:
            entries = [info for info in zf.infolist() if info.filename == "config.yaml"]
            assert [zf.read(info) for info in entries] == [USER_NOTES, VALID_CONFIG]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nested_mirror_skipped(self, site):
        """Test a mirror below a data-root subdirectory is not archived twice."""
        nested = site.data_root / "default-user" / "config.yaml"
        nested.parent.mkdir()
        nested.write_bytes(OTHER_CONFIG)
        (nested.parent / "notes.txt").write_bytes(USER_NOTES)
        site.mirror_path.unlink()

        result = await make_builder(site.config(config_mirrors=[nested])).create()

        names = archive_names(site.store_dir / result.filename)
        assert "default-user/notes.txt" in names
        assert "default-user/config.yaml" not in names
        assert names.count("config.yaml") == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_top_level_mirror_stored_once(self, site, backup_config):
        """Test the default data-root mirror only appears as the config entry."""
        result = await make_builder(backup_config).create()

        names = archive_names(site.store_dir / result.filename)
        assert names.count("config.yaml") == 1


class TestArchiveBuilderFailure:
    """Tests for failed archive builds."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_raises_io_failure_and_cleans_up(self, site, backup_config, monkeypatch):
        """Test a read error leaves neither a partial nor a final archive."""
        builder = make_builder(backup_config)

        def broken(zf):
            zf.writestr("partial-entry.txt", b"data")
            raise OSError("disk read error")

        monkeypatch.setattr(builder, "_add_data_root", broken)

        with pytest.raises(IOFailure) as exc_info:
            await builder.create()

        assert exc_info.value.operation == "create"
        assert "disk read error" in exc_info.value.message
        assert list(site.store_dir.iterdir()) == []
