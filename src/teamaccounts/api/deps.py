"""Shared route dependencies — services and their collaborators.

Learn: External clients (SES, Mailchimp, Stripe, the OAuth registry) are
provided through their own dependencies so tests can swap them with
app.dependency_overrides instead of patching modules.
"""

from authlib.integrations.starlette_client import OAuth
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamaccounts.auth.oauth import oauth
from teamaccounts.db.engine import get_db
from teamaccounts.integrations.mailchimp_api import MailingList
from teamaccounts.integrations.ses import EmailSender
from teamaccounts.integrations.stripe_api import StripeClient
from teamaccounts.services.billing_service import BillingService
from teamaccounts.services.invitation_service import InvitationService
from teamaccounts.services.login_token_service import LoginTokenService
from teamaccounts.services.team_service import TeamService
from teamaccounts.services.user_service import UserService


def get_mailer() -> EmailSender:
    return EmailSender()


def get_mailing_list() -> MailingList:
    return MailingList()


def get_stripe() -> StripeClient:
    return StripeClient()


def get_oauth() -> OAuth:
    return oauth


def get_user_service(
    db: AsyncSession = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
    mailing_list: MailingList = Depends(get_mailing_list),
) -> UserService:
    return UserService(db, mailer=mailer, mailing_list=mailing_list)


def get_login_token_service(
    db: AsyncSession = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
    users: UserService = Depends(get_user_service),
) -> LoginTokenService:
    return LoginTokenService(db, mailer=mailer, users=users)


def get_team_service(db: AsyncSession = Depends(get_db)) -> TeamService:
    return TeamService(db)


def get_invitation_service(db: AsyncSession = Depends(get_db)) -> InvitationService:
    return InvitationService(db)


def get_billing_service(
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe),
) -> BillingService:
    return BillingService(db, stripe=stripe)
