"""Outbound email via AWS SES.

Learn: boto3 is synchronous, so the actual API call runs in a worker
thread (asyncio.to_thread) to keep the event loop free. The client is
created lazily — importing this module never touches AWS.
"""

import asyncio
from typing import Optional

import boto3
import structlog

from teamaccounts.config import settings

logger = structlog.get_logger()


class EmailSender:
    """Thin async wrapper around the SES SendEmail API."""

    def __init__(self, region: Optional[str] = None, default_from: Optional[str] = None):
        self.region = region or settings.aws_region
        self.default_from = default_from or settings.email_from
        self._client = None

    def _get_client(self):
        if self._client is None:
            kwargs = {"region_name": self.region}
            if settings.aws_access_key_id and settings.aws_secret_access_key:
                kwargs["aws_access_key_id"] = settings.aws_access_key_id
                kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            self._client = boto3.session.Session().client("ses", **kwargs)
        return self._client

    async def send(
        self,
        *,
        to: list[str],
        subject: str,
        body: str,
        from_: Optional[str] = None,
    ) -> str:
        """Send an HTML email. Returns the SES message id."""
        params = {
            "Source": from_ or self.default_from,
            "Destination": {"ToAddresses": to},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": body, "Charset": "UTF-8"}},
            },
        }
        response = await asyncio.to_thread(self._get_client().send_email, **params)
        message_id = response["MessageId"]
        logger.info("email.sent", to=to, subject=subject, message_id=message_id)
        return message_id
