"""Shared pytest fixtures for backup service tests."""

import pytest

from sitebackup.services.tests.factories import SiteLayout, make_site


@pytest.fixture
def site(tmp_path) -> SiteLayout:
    """Populated data root with primary config, data-root mirror and a default."""
    return make_site(tmp_path)


@pytest.fixture
def backup_config(site):
    """BackupConfig for the fixture site."""
    return site.config()


@pytest.fixture
def service(site):
    """BackupService bound to the fixture site."""
    return site.service()
