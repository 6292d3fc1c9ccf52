"""
Email notifications for request events.

Sends through the SendGrid v3 HTTP API. When SENDGRID_API_KEY is not
configured, emails are logged but not sent (dev/test mode). Delivery is
best effort: failures are logged and never reach the caller.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from requestdesk.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class RequestEmailData:
    """Snapshot of a request taken before the session closes."""
    request_id: int
    request_type: str
    title: str
    priority: str
    status: str
    requester_name: str
    requester_email: str
    organization_name: str
    location: Optional[str] = None
    building: Optional[str] = None
    room_number: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    admin_emails: List[str] = field(default_factory=list)


class EmailClient:
    """Minimal SendGrid v3 client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.api_url = api_url or settings.SENDGRID_API_URL
        self.from_email = from_email or settings.EMAIL_FROM
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, text: str) -> bool:
        """Send one plain-text email. Returns True when the API accepted it."""
        if not self.enabled:
            logger.info("Email (log-only) to=%s subject=%r", to, subject)
            return False

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/plain", "value": text}],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Email to %s failed: %s", to, e)
            return False

        logger.info("Email sent to %s subject=%r", to, subject)
        return True


def _location_lines(data: RequestEmailData) -> str:
    if data.request_type == "building":
        return f"Building: {data.building}\nRoom: {data.room_number}"
    return f"Location: {data.location}"


def compose_created_email(data: RequestEmailData, for_requester: bool) -> tuple:
    """Subject and body of the new-request email."""
    if for_requester:
        subject = f"Your {data.request_type} request has been submitted - #{data.request_id}"
        greeting = f"Dear {data.requester_name},"
        message = (
            f"Your {data.request_type} request has been successfully submitted "
            f"and assigned ID #{data.request_id}."
        )
    else:
        subject = f"New {data.request_type} request submitted - #{data.request_id}"
        greeting = "Dear Administrator,"
        message = f"A new {data.request_type} request has been submitted by {data.requester_name}."

    body = (
        f"{greeting}\n\n{message}\n\n"
        f"Request Details:\n"
        f"- Request ID: #{data.request_id}\n"
        f"- Title: {data.title}\n"
        f"- Priority: {data.priority}\n"
        f"- Organization: {data.organization_name}\n"
        f"{_location_lines(data)}\n"
    )
    if data.description:
        body += f"\nDescription:\n{data.description}\n"
    return subject, body


def compose_status_email(data: RequestEmailData) -> tuple:
    """Subject and body of the status-change email sent to the requester."""
    subject = f"Request #{data.request_id} is now {data.status}"
    body = (
        f"Dear {data.requester_name},\n\n"
        f"The status of your request \"{data.title}\" (#{data.request_id}) "
        f"changed to {data.status}.\n"
    )
    if data.note:
        body += f"\nNote from staff:\n{data.note}\n"
    return subject, body


async def notify_request_created(data: RequestEmailData, client: Optional[EmailClient] = None) -> int:
    """Email the requester and every organization admin. Returns emails accepted."""
    client = client or EmailClient()
    sent = 0
    try:
        subject, body = compose_created_email(data, for_requester=True)
        sent += await client.send(data.requester_email, subject, body)

        subject, body = compose_created_email(data, for_requester=False)
        for admin_email in data.admin_emails:
            if admin_email == data.requester_email:
                continue
            sent += await client.send(admin_email, subject, body)
    except Exception as e:
        logger.error(f"Request #{data.request_id} creation notification error: {e}")
    return sent


async def notify_status_changed(data: RequestEmailData, client: Optional[EmailClient] = None) -> int:
    """Email the requester about a status change."""
    client = client or EmailClient()
    try:
        subject, body = compose_status_email(data)
        return int(await client.send(data.requester_email, subject, body))
    except Exception as e:
        logger.error(f"Request #{data.request_id} status notification error: {e}")
        return 0
