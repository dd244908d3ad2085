"""Billing tests — Stripe snapshot on the user row.

Learn: StripeClient is usually an AsyncMock here (a real client over
httpx.MockTransport where the error path matters); the service is tested for
what it stores and when it refuses, the API for status codes.
"""

import httpx
import pytest

from teamaccounts.api.deps import get_stripe
from teamaccounts.integrations.stripe_api import StripeClient, StripeError
from teamaccounts.main import app
from teamaccounts.services.billing_service import BillingError, BillingService

CUSTOMER = {
    "id": "cus_1",
    "object": "customer",
    "created": 1700000000,
    "currency": "usd",
    "default_source": "card_1",
    "description": None,
    "email": "jane@example.com",
    "livemode": False,
}
CARD = {
    "id": "card_1",
    "object": "card",
    "brand": "Visa",
    "funding": "credit",
    "country": "US",
    "last4": "4242",
    "exp_month": 12,
    "exp_year": 2030,
    "fingerprint": "not-kept",
}
INVOICES = {
    "object": "list",
    "has_more": False,
    "data": [
        {
            "id": "in_1",
            "object": "invoice",
            "amount_paid": 800,
            "created": 1700000100,
            "customer": "cus_1",
            "subscription": "sub_1",
            "hosted_invoice_url": "https://pay.stripe.com/in_1",
            "collection_method": "charge_automatically",
            "paid": True,
            "number": "0001",
            "metadata": {"teamId": "t-1", "teamName": "Acme"},
            "lines": {"data": []},
        }
    ],
}


@pytest.fixture()
def billing(db_session, stripe):
    return BillingService(db_session, stripe=stripe)


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_customer_stores_snapshot(billing, stripe, make_user):
    user = await make_user("jane@example.com")
    stripe.create_customer.return_value = CUSTOMER
    stripe.retrieve_card.return_value = CARD

    updated = await billing.create_customer(user.id, stripe_token={"id": "tok_1"})

    stripe.create_customer.assert_awaited_once_with(
        token="tok_1", team_leader_email="jane@example.com", team_leader_id=str(user.id)
    )
    stripe.retrieve_card.assert_awaited_once_with(customer_id="cus_1", card_id="card_1")
    assert updated.has_card_information is True
    assert updated.stripe_customer["id"] == "cus_1"
    assert "livemode" not in updated.stripe_customer
    assert updated.stripe_card["last4"] == "4242"
    assert "fingerprint" not in updated.stripe_card


@pytest.mark.asyncio
async def test_stripe_failure_leaves_user_untouched(billing, stripe, make_user):
    user = await make_user()
    stripe.create_customer.side_effect = StripeError("Your card was declined.")

    with pytest.raises(BillingError, match="declined"):
        await billing.create_customer(user.id, stripe_token={"id": "tok_1"})

    assert user.stripe_customer is None
    assert user.has_card_information is False


@pytest.mark.asyncio
async def test_token_without_id_rejected(billing, stripe, make_user):
    user = await make_user()
    with pytest.raises(BillingError):
        await billing.create_customer(user.id, stripe_token={})
    stripe.create_customer.assert_not_awaited()


@pytest.mark.asyncio
async def test_new_card_updates_default(billing, stripe, make_user):
    user = await make_user(stripe_customer={"id": "cus_1"}, has_card_information=True)
    new_card = {**CARD, "id": "card_2", "last4": "1881"}
    stripe.create_new_card.return_value = new_card
    stripe.update_customer.return_value = {**CUSTOMER, "default_source": "card_2"}

    updated = await billing.create_new_card_update_customer(
        user.id, stripe_token={"id": "tok_2"}
    )

    stripe.create_new_card.assert_awaited_once_with(customer_id="cus_1", token="tok_2")
    stripe.update_customer.assert_awaited_once_with(customer_id="cus_1", new_card_id="card_2")
    assert updated.stripe_card["last4"] == "1881"
    assert updated.stripe_customer["default_source"] == "card_2"


@pytest.mark.asyncio
async def test_new_card_requires_customer(billing, make_user):
    user = await make_user()
    with pytest.raises(BillingError, match="no Stripe customer"):
        await billing.create_new_card_update_customer(user.id, stripe_token={"id": "tok"})


@pytest.mark.asyncio
async def test_invoices_snapshot(billing, stripe, make_user):
    user = await make_user(stripe_customer={"id": "cus_1"})
    stripe.get_list_of_invoices.return_value = INVOICES

    updated = await billing.get_list_of_invoices_for_customer(user.id)

    stored = updated.stripe_list_of_invoices
    assert stored["object"] == "list"
    assert stored["has_more"] is False
    invoice = stored["data"][0]
    assert invoice["date"] == 1700000100
    assert invoice["billing"] == "charge_automatically"
    assert invoice["teamName"] == "Acme"
    assert "lines" not in invoice


@pytest.mark.asyncio
async def test_no_invoices_is_an_error(billing, stripe, make_user):
    user = await make_user(stripe_customer={"id": "cus_1"})
    stripe.get_list_of_invoices.return_value = {"object": "list", "data": []}

    with pytest.raises(BillingError, match="no payment history"):
        await billing.get_list_of_invoices_for_customer(user.id)


@pytest.mark.asyncio
async def test_stripe_outage_is_a_billing_error(db_session, make_user):
    """Network failures reach callers as BillingError, like declines do."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    stripe = StripeClient(secret_key="sk_test_1", transport=httpx.MockTransport(handler))
    user = await make_user(stripe_customer={"id": "cus_1"})

    with pytest.raises(BillingError, match="connection refused"):
        await BillingService(db_session, stripe=stripe).get_list_of_invoices_for_customer(user.id)
    assert user.stripe_list_of_invoices is None


@pytest.mark.asyncio
async def test_billing_does_not_build_mail_clients(db_session, stripe, make_user, monkeypatch):
    """Billing only needs the user row, not the sign-up side-effect clients."""
    from teamaccounts.services import user_service

    def fail(*args, **kwargs):
        raise AssertionError("mail client built by billing")

    monkeypatch.setattr(user_service, "EmailSender", fail)
    monkeypatch.setattr(user_service, "MailingList", fail)
    user = await make_user(stripe_customer={"id": "cus_1"})
    stripe.get_list_of_invoices.return_value = INVOICES

    updated = await BillingService(db_session, stripe=stripe).get_list_of_invoices_for_customer(
        user.id
    )
    assert updated.stripe_list_of_invoices["data"][0]["id"] == "in_1"


# ═══════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_customer_endpoint(signed_in, stripe, make_user):
    client = signed_in(await make_user())
    stripe.create_customer.return_value = CUSTOMER
    stripe.retrieve_card.return_value = CARD

    r = await client.post(
        "/api/v1/users/me/billing/customer", json={"stripe_token": {"id": "tok_1"}}
    )
    assert r.status_code == 200
    data = r.json()
    assert data["has_card_information"] is True
    assert data["stripe_card"]["brand"] == "Visa"


@pytest.mark.asyncio
async def test_card_endpoint_without_customer_402(signed_in, make_user):
    client = signed_in(await make_user())
    r = await client.post(
        "/api/v1/users/me/billing/card", json={"stripe_token": {"id": "tok_1"}}
    )
    assert r.status_code == 402


@pytest.mark.asyncio
async def test_invoices_endpoint(signed_in, stripe, make_user):
    client = signed_in(await make_user(stripe_customer={"id": "cus_1"}))
    stripe.get_list_of_invoices.return_value = INVOICES

    r = await client.get("/api/v1/users/me/billing/invoices")
    assert r.status_code == 200
    assert r.json()["stripe_list_of_invoices"]["data"][0]["id"] == "in_1"


@pytest.mark.asyncio
async def test_stripe_bad_gateway_returns_402(signed_in, make_user):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    client = signed_in(await make_user())
    app.dependency_overrides[get_stripe] = lambda: StripeClient(
        secret_key="sk_test_1", transport=httpx.MockTransport(handler)
    )

    r = await client.post(
        "/api/v1/users/me/billing/customer", json={"stripe_token": {"id": "tok_1"}}
    )
    assert r.status_code == 402


@pytest.mark.asyncio
async def test_billing_requires_sign_in(client):
    r = await client.get("/api/v1/users/me/billing/invoices")
    assert r.status_code == 401
