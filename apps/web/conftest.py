"""
Pytest configuration for Django app tests.
"""

from django.test import Client as DjangoClient

import pytest

from apps.web.core.models import Organization, User
from apps.web.restaurant.tests.factories import OrganizationFactory, UserFactory


@pytest.fixture
def organization() -> Organization:
    """Create a test organization (tenant) ready for pickup and delivery."""
    return OrganizationFactory(slug="chez-marie", name="Chez Marie")


@pytest.fixture
def owner(organization: Organization) -> User:
    """Create an owner belonging to the test organization."""
    return UserFactory(organization=organization, username="marie")


@pytest.fixture
def admin_user(organization: Organization) -> User:
    """Create an admin belonging to the test organization."""
    return UserFactory(organization=organization, username="admin", role=User.Role.ADMIN)


@pytest.fixture
def api_client() -> DjangoClient:
    """Django test client for API requests."""
    return DjangoClient()


@pytest.fixture
def owner_client(owner: User) -> DjangoClient:
    """Test client logged in as the owner."""
    client = DjangoClient()
    client.force_login(owner)
    return client
