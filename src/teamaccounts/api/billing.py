"""Billing API — Stripe customer, card, and invoices for the current user.

Learn: Routes:
- POST /users/me/billing/customer  → first card: create the Stripe customer
- POST /users/me/billing/card      → replace the default card
- GET  /users/me/billing/invoices  → refresh the stored invoice list

Any BillingError (no customer yet, no invoices, Stripe declined) is a 402.
"""

from fastapi import APIRouter, Depends, HTTPException

from teamaccounts.api.deps import get_billing_service
from teamaccounts.auth.dependencies import get_current_user
from teamaccounts.db.models import User
from teamaccounts.schemas.user import CardRead, CustomerRead, InvoicesRead, StripeTokenBody
from teamaccounts.services.billing_service import BillingError, BillingService

router = APIRouter(prefix="/users/me/billing")


@router.post("/customer", response_model=CustomerRead)
async def create_customer(
    body: StripeTokenBody,
    user: User = Depends(get_current_user),
    svc: BillingService = Depends(get_billing_service),
):
    try:
        return await svc.create_customer(user.id, stripe_token=body.stripe_token)
    except BillingError as e:
        raise HTTPException(status_code=402, detail=str(e))


@router.post("/card", response_model=CardRead)
async def create_new_card(
    body: StripeTokenBody,
    user: User = Depends(get_current_user),
    svc: BillingService = Depends(get_billing_service),
):
    try:
        return await svc.create_new_card_update_customer(
            user.id, stripe_token=body.stripe_token
        )
    except BillingError as e:
        raise HTTPException(status_code=402, detail=str(e))


@router.get("/invoices", response_model=InvoicesRead)
async def list_invoices(
    user: User = Depends(get_current_user),
    svc: BillingService = Depends(get_billing_service),
):
    try:
        return await svc.get_list_of_invoices_for_customer(user.id)
    except BillingError as e:
        raise HTTPException(status_code=402, detail=str(e))
