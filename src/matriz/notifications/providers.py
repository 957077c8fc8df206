"""HTTP clients for the messaging providers (Z-API, Brevo, Bird)."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from matriz.notifications.credentials import BirdCredentials, BrevoCredentials, ZApiCredentials
from matriz.notifications.errors import ProviderError

logger = logging.getLogger(__name__)


def _json_or_empty(response: httpx.Response) -> Any:
    """Parse a provider response body, tolerating empty or non-JSON bodies."""
    try:
        return response.json()
    except ValueError:
        return {}


async def zapi_send_text(
    client: httpx.AsyncClient,
    credentials: ZApiCredentials,
    phone: str,
    message: str,
    timeout: float = 15.0,
) -> Any:
    """Send a WhatsApp text message through Z-API.

    Returns:
        The provider's JSON response

    Raises:
        ProviderError: On a non-success response
    """
    url = (
        f"{credentials.base_url}/instances/{quote(credentials.instance_id, safe='')}"
        f"/token/{quote(credentials.instance_token, safe='')}/send-text"
    )
    response = await client.post(
        url,
        json={"phone": phone, "message": message},
        headers={"Client-Token": credentials.client_token},
        timeout=timeout,
    )
    data = _json_or_empty(response)
    if not response.is_success:
        logger.warning(f"Z-API rejected message to {phone}: HTTP {response.status_code}")
        raise ProviderError("Z-API", response.status_code, data)
    return data


async def brevo_send_email(
    client: httpx.AsyncClient,
    credentials: BrevoCredentials,
    to: str | list[str],
    subject: str,
    html: str | None = None,
    text: str | None = None,
    sender_email: str | None = None,
    sender_name: str | None = None,
    api_url: str = "https://api.brevo.com/v3/smtp/email",
    timeout: float = 15.0,
) -> Any:
    """Send a transactional e-mail through Brevo.

    Raises:
        ProviderError: On a non-success response
    """
    recipients = to if isinstance(to, list) else [to]
    body: dict[str, Any] = {
        "sender": {
            "name": sender_name or credentials.default_from_name,
            "email": sender_email or credentials.default_from,
        },
        "to": [{"email": email} for email in recipients],
        "subject": subject,
    }
    if html:
        body["htmlContent"] = html
    if text:
        body["textContent"] = text

    response = await client.post(
        api_url,
        json=body,
        headers={"accept": "application/json", "api-key": credentials.api_key},
        timeout=timeout,
    )
    data = _json_or_empty(response)
    if not response.is_success:
        logger.warning(f"Brevo rejected e-mail '{subject}': HTTP {response.status_code}")
        raise ProviderError("Brevo", response.status_code, data)
    return data


async def bird_send_sms(
    client: httpx.AsyncClient,
    credentials: BirdCredentials,
    phone: str,
    text: str,
    api_url: str = "https://api.bird.com",
    timeout: float = 15.0,
) -> Any:
    """Send an SMS through the Bird channels API.

    Raises:
        ProviderError: On a non-success response
    """
    url = (
        f"{api_url.rstrip('/')}/workspaces/{credentials.workspace_id}"
        f"/channels/{credentials.channel_id}/messages"
    )
    body = {
        "receiver": {
            "contacts": [{"identifierValue": phone, "identifierKey": "phonenumber"}],
        },
        "body": {"type": "text", "text": {"text": text}},
    }
    response = await client.post(
        url,
        json=body,
        headers={"Authorization": f"AccessKey {credentials.access_key}"},
        timeout=timeout,
    )
    if not response.is_success:
        raise ProviderError("Bird", response.status_code, response.text)
    return _json_or_empty(response)
