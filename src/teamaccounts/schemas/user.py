"""Pydantic schemas for users, profiles, and billing.

Learn: UserPublic is the public-field allowlist — anything not listed
here (OAuth tokens, provider ids, is_admin) never leaves the server
through a response_model.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserPublic(BaseModel):
    id: uuid.UUID
    display_name: Optional[str] = None
    email: str
    avatar_url: Optional[str] = None
    slug: str
    is_microsoft_user: bool = False
    is_google_user: bool = False
    default_team_slug: str = ""
    has_card_information: bool = False
    stripe_customer: Optional[dict] = None
    stripe_card: Optional[dict] = None
    stripe_list_of_invoices: Optional[dict] = None
    dark_theme: Optional[bool] = None

    model_config = {"from_attributes": True}


# ─── Profile ────────────────────────────────────────────

class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    avatar_url: Optional[str] = None


class ProfileRead(BaseModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    slug: str

    model_config = {"from_attributes": True}


class ThemeUpdate(BaseModel):
    dark_theme: bool


# ─── Billing ────────────────────────────────────────────

class StripeTokenBody(BaseModel):
    """Card token created client-side by Stripe.js."""
    stripe_token: dict = Field(..., description="Stripe token object; only `id` is used")


class CustomerRead(BaseModel):
    stripe_customer: Optional[dict] = None
    stripe_card: Optional[dict] = None
    has_card_information: bool

    model_config = {"from_attributes": True}


class CardRead(BaseModel):
    stripe_card: Optional[dict] = None

    model_config = {"from_attributes": True}


class InvoicesRead(BaseModel):
    stripe_list_of_invoices: Optional[dict] = None

    model_config = {"from_attributes": True}


# ─── Passwordless ───────────────────────────────────────

class SendTokenRequest(BaseModel):
    email: EmailStr
