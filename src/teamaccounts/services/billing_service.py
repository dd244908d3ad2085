"""Billing service — the Stripe snapshot stored on each user.

Learn: Stripe is the source of truth for customers, cards, and invoices.
We keep a trimmed copy on the user row so the app can render billing
pages without calling Stripe on every request. Each operation calls
Stripe first and only writes the snapshot once Stripe has succeeded.
"""

import uuid
from typing import Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from teamaccounts.db.models import User
from teamaccounts.integrations.stripe_api import StripeClient, StripeError
from teamaccounts.services.user_service import load_user

logger = structlog.get_logger()

CUSTOMER_FIELDS = ("id", "object", "created", "currency", "default_source", "description")
CARD_FIELDS = (
    "id", "object", "brand", "funding", "country", "last4", "exp_month", "exp_year",
)


class BillingError(Exception):
    """Billing action failed — no customer, no history, or Stripe said no."""


def _pick(obj: dict, fields: tuple[str, ...]) -> dict:
    return {f: obj.get(f) for f in fields}


def _invoice_snapshot(invoice: dict) -> dict:
    metadata = invoice.get("metadata") or {}
    return {
        "id": invoice.get("id"),
        "object": invoice.get("object"),
        "amount_paid": invoice.get("amount_paid"),
        "date": invoice.get("created"),
        "customer": invoice.get("customer"),
        "subscription": invoice.get("subscription"),
        "hosted_invoice_url": invoice.get("hosted_invoice_url"),
        "billing": invoice.get("collection_method") or invoice.get("billing"),
        "paid": invoice.get("paid"),
        "number": invoice.get("number"),
        "teamId": metadata.get("teamId"),
        "teamName": metadata.get("teamName"),
    }


def _token_id(stripe_token: Optional[dict]) -> str:
    token_id = (stripe_token or {}).get("id")
    if not token_id:
        raise BillingError("Stripe token is missing an id")
    return token_id


class BillingService:
    def __init__(self, db: AsyncSession, stripe: Optional[StripeClient] = None):
        self.db = db
        self.stripe = stripe or StripeClient()

    def _customer_id(self, user: User) -> str:
        customer_id = (user.stripe_customer or {}).get("id")
        if not customer_id:
            raise BillingError("User has no Stripe customer")
        return customer_id

    async def create_customer(
        self, user_id: Union[str, uuid.UUID], *, stripe_token: dict
    ) -> User:
        """Create the Stripe customer and store it with its default card."""
        user = await load_user(self.db, user_id)
        token_id = _token_id(stripe_token)

        try:
            customer = await self.stripe.create_customer(
                token=token_id,
                team_leader_email=user.email,
                team_leader_id=str(user.id),
            )
            logger.debug("billing.customer_created", default_source=customer.get("default_source"))
            card = await self.stripe.retrieve_card(
                customer_id=customer["id"],
                card_id=str(customer["default_source"]),
            )
        except StripeError as e:
            raise BillingError(str(e)) from e

        user.stripe_customer = _pick(customer, CUSTOMER_FIELDS)
        user.stripe_card = _pick(card, CARD_FIELDS)
        user.has_card_information = True
        await self.db.commit()
        return user

    async def create_new_card_update_customer(
        self, user_id: Union[str, uuid.UUID], *, stripe_token: dict
    ) -> User:
        """Add a card to the customer and make it the default."""
        user = await load_user(self.db, user_id)
        customer_id = self._customer_id(user)
        token_id = _token_id(stripe_token)

        try:
            card = await self.stripe.create_new_card(customer_id=customer_id, token=token_id)
            logger.debug("billing.card_created", card_id=card.get("id"))
            customer = await self.stripe.update_customer(
                customer_id=customer_id, new_card_id=card["id"]
            )
        except StripeError as e:
            raise BillingError(str(e)) from e

        user.stripe_customer = _pick(customer, CUSTOMER_FIELDS)
        user.stripe_card = _pick(card, CARD_FIELDS)
        await self.db.commit()
        return user

    async def get_list_of_invoices_for_customer(
        self, user_id: Union[str, uuid.UUID]
    ) -> User:
        """Refresh the stored invoice list from Stripe."""
        user = await load_user(self.db, user_id)
        customer_id = self._customer_id(user)

        try:
            invoices = await self.stripe.get_list_of_invoices(customer_id=customer_id)
        except StripeError as e:
            raise BillingError(str(e)) from e

        if not invoices or not invoices.get("data"):
            raise BillingError("There is no payment history.")

        user.stripe_list_of_invoices = {
            "object": invoices.get("object"),
            "has_more": invoices.get("has_more"),
            "data": [_invoice_snapshot(inv) for inv in invoices["data"]],
        }
        await self.db.commit()
        return user
