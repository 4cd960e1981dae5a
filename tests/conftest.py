from decimal import Decimal

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from crm.models import Opportunity
from organizations.models import Organization, OrganizationMember, Territory

FULL_PILLARS = {
    "metrics": "Cut readmission costs by 15% across the three hospital sites this year",
    "economic_buyer": "Dr. Patel, CFO of the hospital group, owns the formulary budget",
    "decision_criteria": "Clinical outcomes, total cost of care and supply reliability",
    "decision_process": "P&T committee review, then CFO sign-off and board approval",
    "paper_process": "Legal redlines the MSA, procurement issues the PO within 30 days",
    "identify_pain": "Current therapy causes frequent adverse events and readmissions",
    "implicate_pain": "Each readmission costs about $12k and hurts quality scores",
    "champion": "Head pharmacist is championing the switch with the P&T committee",
    "competition": "Incumbent generic is cheaper but has worse adherence outcomes",
}


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def manager_user(db):
    return User.objects.create_user(
        email="manager@test.com",
        password="testpass123",
        first_name="Manager",
        last_name="User",
        role=User.Role.MANAGER,
    )


@pytest.fixture
def sales_user(db):
    return User.objects.create_user(
        email="sales@test.com",
        password="testpass123",
        first_name="Sales",
        last_name="User",
        role=User.Role.SALES,
    )


@pytest.fixture
def other_sales_user(db):
    return User.objects.create_user(
        email="sales2@test.com",
        password="testpass123",
        first_name="Second",
        last_name="Rep",
        role=User.Role.SALES,
    )


@pytest.fixture
def orphan_user(db):
    """User without any organization membership."""
    return User.objects.create_user(
        email="orphan@test.com",
        password="testpass123",
        role=User.Role.MANAGER,
    )


@pytest.fixture
def organization(db, admin_user, manager_user, sales_user):
    org = Organization.objects.create(name="Acme Pharma", code="ACME")
    OrganizationMember.objects.create(organization=org, user=admin_user, is_default=True)
    OrganizationMember.objects.create(organization=org, user=manager_user, is_default=True)
    OrganizationMember.objects.create(
        organization=org,
        user=sales_user,
        manager=manager_user,
        is_default=True,
    )
    return org


@pytest.fixture
def other_organization(db, other_sales_user):
    org = Organization.objects.create(name="Globex Health", code="GLOBEX")
    OrganizationMember.objects.create(organization=org, user=other_sales_user, is_default=True)
    return org


@pytest.fixture
def territory(organization):
    return Territory.objects.create(organization=organization, name="North East", code="NE")


@pytest.fixture
def opportunity(organization, sales_user):
    return Opportunity.objects.create(
        organization=organization,
        owner=sales_user,
        name="Regional hospital formulary",
        amount=Decimal("50000.00"),
    )


@pytest.fixture
def full_opportunity(organization, sales_user):
    return Opportunity.objects.create(
        organization=organization,
        owner=sales_user,
        name="Oncology network rollout",
        amount=Decimal("120000.00"),
        **FULL_PILLARS,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def bearer_client():
    """Return a factory building an APIClient authenticated with a Bearer token."""

    def _make(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")
        return client

    return _make
