"""Fixtures for backup API router tests."""

import pytest
from fastapi.testclient import TestClient

from sitebackup.api.main import create_app
from sitebackup.services.tests.factories import make_site

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def site(tmp_path):
    """Populated data root for the API under test."""
    return make_site(tmp_path)


@pytest.fixture
def service(site):
    return site.service()


@pytest.fixture
def admin_token(monkeypatch):
    """Configure the admin bearer token."""
    monkeypatch.setenv("SITE_BACKUP_ADMIN_TOKEN", ADMIN_TOKEN)
    return ADMIN_TOKEN


@pytest.fixture
def client(service, admin_token):
    """Test client authenticated as admin."""
    app = create_app(service=service)
    return TestClient(app, headers={"Authorization": f"Bearer {admin_token}"})


@pytest.fixture
def anonymous_client(service, admin_token):
    """Test client without credentials."""
    return TestClient(create_app(service=service))
