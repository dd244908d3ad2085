"""Stripe REST API calls used by billing.

Learn: Stripe takes form-encoded bodies (nested keys as `metadata[key]`)
and returns JSON. Errors come back as {"error": {"message": ...}} with a
4xx/5xx status; we surface the message in StripeError. Network failures
and non-JSON bodies (a proxy's HTML 502 page) become StripeError too, so
callers only ever handle one exception type.

Each call opens a short-lived AsyncClient — billing actions are rare
and user-initiated, so there's nothing to gain from pooling.
"""

from typing import Optional

import httpx

from teamaccounts.config import settings


class StripeError(Exception):
    """Raised when Stripe rejects a request or isn't configured."""


class StripeClient:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self.api_base = api_base or settings.stripe_api_base
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        data: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        if not self.secret_key:
            raise StripeError("Stripe is not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.api_base,
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=30.0,
                transport=self._transport,
            ) as client:
                r = await client.request(method, path, data=data, params=params)
        except httpx.HTTPError as e:
            raise StripeError(f"Stripe request failed: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = None

        if r.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            message = (error or {}).get("message") or f"Stripe returned {r.status_code}"
            raise StripeError(message)
        if not isinstance(body, dict):
            raise StripeError(f"Unexpected response from Stripe: {r.text[:200]}")
        return body

    async def create_customer(
        self, *, token: str, team_leader_email: str, team_leader_id: str
    ) -> dict:
        return await self._request(
            "POST",
            "/v1/customers",
            data={
                "email": team_leader_email,
                "source": token,
                "metadata[teamLeaderId]": team_leader_id,
            },
        )

    async def retrieve_card(self, *, customer_id: str, card_id: str) -> dict:
        return await self._request("GET", f"/v1/customers/{customer_id}/sources/{card_id}")

    async def create_new_card(self, *, customer_id: str, token: str) -> dict:
        return await self._request(
            "POST", f"/v1/customers/{customer_id}/sources", data={"source": token}
        )

    async def update_customer(self, *, customer_id: str, new_card_id: str) -> dict:
        return await self._request(
            "POST", f"/v1/customers/{customer_id}", data={"default_source": new_card_id}
        )

    async def get_list_of_invoices(self, *, customer_id: str) -> dict:
        return await self._request(
            "GET", "/v1/invoices", params={"customer": customer_id, "limit": 100}
        )
