"""Mailing-list subscriptions via the Mailchimp Marketing API.

Learn: Only one list is used today — "signups" — mapped to a Mailchimp
list id in settings. Adding a member who is already subscribed is a 400
from Mailchimp ("Member Exists"); callers treat every failure as
best-effort anyway.
"""

from typing import Optional

import httpx

from teamaccounts.config import settings


class MailchimpError(Exception):
    """Raised when a subscription request can't be made or is rejected."""


class MailingList:
    def __init__(
        self,
        api_key: Optional[str] = None,
        region: Optional[str] = None,
        lists: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.mailchimp_api_key
        self.region = region or settings.mailchimp_region
        self.lists = lists if lists is not None else {
            "signups": settings.mailchimp_signups_list_id,
        }
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"https://{self.region}.api.mailchimp.com/3.0",
            auth=("apikey", self.api_key),
            timeout=10.0,
            transport=self._transport,
        )

    async def subscribe(self, *, email: str, list_name: str) -> dict:
        """Add an email to a named list as a subscribed member."""
        list_id = self.lists.get(list_name)
        if not self.api_key or not list_id:
            raise MailchimpError(f"Mailing list '{list_name}' is not configured")

        async with self._client() as client:
            r = await client.post(
                f"/lists/{list_id}/members",
                json={"email_address": email, "status": "subscribed"},
            )
        if r.status_code >= 400:
            raise MailchimpError(
                f"Mailchimp rejected {email} for '{list_name}': "
                f"{r.status_code} {r.text}"
            )
        return r.json()
