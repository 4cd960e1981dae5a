import json

import pytest
from django.conf import settings
from django.test import Client
from rest_framework_simplejwt.tokens import AccessToken


def _meddpicc_url(opportunity):
    return f"/api/v1/opportunities/{opportunity.pk}/meddpicc/"


@pytest.mark.django_db
def test_bearer_token_identifies_user(bearer_client, sales_user, opportunity):
    response = bearer_client(sales_user).get(_meddpicc_url(opportunity))

    assert response.status_code == 200


@pytest.mark.django_db
def test_token_subject_claim_is_user_id(sales_user):
    token = AccessToken.for_user(sales_user)

    assert token["sub"] == str(sales_user.pk)


@pytest.mark.django_db
def test_invalid_bearer_token_is_rejected(api_client, opportunity):
    api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-real-token")

    response = api_client.get(_meddpicc_url(opportunity))

    assert response.status_code == 401
    assert response.json()["code"] == "token_not_valid"


@pytest.mark.django_db
def test_missing_credentials_return_401(api_client, opportunity):
    response = api_client.get(_meddpicc_url(opportunity))

    assert response.status_code == 401
    assert response.json()["code"] == "not_authenticated"


@pytest.mark.django_db
def test_access_cookie_authenticates_reads(client, sales_user, opportunity):
    client.cookies[settings.JWT_AUTH_COOKIE] = str(AccessToken.for_user(sales_user))

    response = client.get(_meddpicc_url(opportunity))

    assert response.status_code == 200


@pytest.mark.django_db
def test_stale_cookie_leaves_request_anonymous(client, opportunity):
    client.cookies[settings.JWT_AUTH_COOKIE] = "expired-or-garbage"

    response = client.get(_meddpicc_url(opportunity))

    assert response.status_code == 401
    assert response.json()["code"] == "not_authenticated"


@pytest.mark.django_db
def test_cookie_authenticated_write_requires_csrf(sales_user, full_opportunity):
    strict_client = Client(enforce_csrf_checks=True)
    strict_client.cookies[settings.JWT_AUTH_COOKIE] = str(AccessToken.for_user(sales_user))

    response = strict_client.post(
        "/api/v1/peak/transition/",
        data=json.dumps({"opportunity": str(full_opportunity.pk), "to_stage": "engaging"}),
        content_type="application/json",
    )

    assert response.status_code == 403
    assert response.json()["detail"].startswith("CSRF Failed")
    full_opportunity.refresh_from_db()
    assert full_opportunity.peak_stage == "prospecting"
