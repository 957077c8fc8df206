"""Function endpoints invoked by the back-office frontend and the auth service.

These keep the response contract of the functions they replace: JSON bodies
with an ``error`` key on failure rather than FastAPI's ``detail``.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matriz.auth import RequireFunctions, authenticate, extract_api_key
from matriz.cep import CepLookupError, InvalidCep, lookup_cep
from matriz.config import Settings, get_settings
from matriz.db.session import get_session_factory
from matriz.http_client import get_http_client
from matriz.notifications import CredentialsNotConfigured, NotificationService, ProviderError
from matriz.notifications import hook_signature
from matriz.notifications.otp import extract_phone_and_otp
from matriz.webhook import (
    InvalidDispatchEvent,
    SubscriptionLookupError,
    WebhookDispatcher,
    load_payload,
    validate_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["functions"])

INVALID_JSON_MESSAGE = "JSON inválido"


class InvalidJSONBody(ValueError):
    """Raised when a request body is not a JSON object."""


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _parse_object(raw: bytes) -> dict[str, Any]:
    try:
        body = load_payload(raw)
    except ValueError as e:
        raise InvalidJSONBody(INVALID_JSON_MESSAGE) from e
    if not isinstance(body, dict):
        raise InvalidJSONBody(INVALID_JSON_MESSAGE)
    return body


async def _read_object(request: Request) -> dict[str, Any]:
    return _parse_object(await request.body())


@router.post("/webhook-dispatcher", dependencies=[RequireFunctions])
async def webhook_dispatcher(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Fan an event out to every enabled subscription for its topic."""
    try:
        body = await _read_object(request)
    except InvalidJSONBody as e:
        return _error(400, str(e))

    topic = body.get("topic")
    payload = body.get("payload")
    try:
        validate_event(topic, payload)
    except InvalidDispatchEvent as e:
        return _error(400, str(e))

    dispatcher = WebhookDispatcher(session_factory, settings=settings)
    try:
        summary = await dispatcher.dispatch(topic, payload)
    except SubscriptionLookupError as e:
        logger.error(f"Dispatch of {topic!r} aborted: {e}")
        return _error(500, str(e))
    except Exception as e:
        logger.exception(f"Unexpected error dispatching {topic!r}")
        return _error(500, str(e) or type(e).__name__)

    return JSONResponse(status_code=200, content=summary.to_response())


@router.post("/zapi-send-text", dependencies=[RequireFunctions])
async def zapi_send_text(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Send a WhatsApp text through Z-API."""
    try:
        body = await _read_object(request)
    except InvalidJSONBody as e:
        return _error(400, str(e))

    phone = body.get("phone")
    message = body.get("message")
    if not phone or not message:
        return _error(400, "Missing phone or message")

    log_data = body.get("logData")
    service = NotificationService(session_factory, client=await get_http_client(), settings=settings)
    try:
        data = await service.send_whatsapp(
            str(phone),
            str(message),
            log_data=log_data if isinstance(log_data, dict) else None,
        )
    except CredentialsNotConfigured as e:
        return _error(500, str(e))
    except ProviderError as e:
        return _error(502, "Z-API error", status=e.status_code, data=e.data)
    except Exception as e:
        logger.exception("Unexpected error sending WhatsApp message")
        return _error(500, str(e) or type(e).__name__)

    return JSONResponse(status_code=200, content={"success": True, "data": data})


@router.post("/brevo-send-email", dependencies=[RequireFunctions])
async def brevo_send_email(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Send a transactional e-mail through Brevo."""
    try:
        body = await _read_object(request)
    except InvalidJSONBody as e:
        return _error(400, str(e))

    to = body.get("to")
    subject = body.get("subject")
    html = body.get("html")
    text = body.get("text")
    if not to or not subject or (not html and not text):
        return _error(400, "Missing required fields")

    log_data = body.get("logData")
    service = NotificationService(session_factory, client=await get_http_client(), settings=settings)
    try:
        data = await service.send_email(
            to,
            subject,
            html=html,
            text=text,
            sender_email=body.get("from"),
            sender_name=body.get("fromName"),
            log_data=log_data if isinstance(log_data, dict) else None,
        )
    except CredentialsNotConfigured as e:
        return _error(500, str(e))
    except ProviderError as e:
        return _error(502, "Brevo API error", data=e.data)
    except Exception as e:
        logger.exception("Unexpected error sending e-mail")
        return _error(500, str(e) or type(e).__name__)

    return JSONResponse(status_code=200, content={"success": True, "data": data})


@router.post("/send-sms")
async def send_sms(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Auth SMS hook: deliver a login code over SMS and WhatsApp.

    Signed hook calls are verified with the configured hook secret. Any
    other call must carry an API key.
    """
    raw = await request.body()

    if settings.sms_hook_secret is not None and hook_signature.has_signature_headers(
        request.headers
    ):
        try:
            hook_signature.verify(
                settings.sms_hook_secret.get_secret_value(),
                request.headers,
                raw,
                tolerance_seconds=settings.sms_hook_tolerance_seconds,
            )
        except hook_signature.HookVerificationError as e:
            logger.warning(f"SMS hook signature rejected: {e}")
            return _error(401, "Signature verification failed")
    else:
        auth = authenticate(extract_api_key(request.headers), settings)
        auth.require_scope("functions:invoke")

    try:
        payload = _parse_object(raw)
    except InvalidJSONBody:
        return _error(400, "Malformed JSON")

    phone, otp = extract_phone_and_otp(payload)
    if not phone or not otp:
        return _error(400, "Missing phone or otp")

    service = NotificationService(session_factory, client=await get_http_client(), settings=settings)
    delivery = await service.send_login_otp(phone, otp)
    if not delivery.any_sent:
        return _error(502, "Failed to send OTP via SMS and WhatsApp")

    return JSONResponse(
        status_code=200,
        content={"status": "sent", "channels": delivery.to_dict()},
    )


@router.get("/cep-lookup", dependencies=[RequireFunctions])
async def cep_lookup(
    cep: str | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Look up an address by CEP."""
    try:
        data = await lookup_cep(
            await get_http_client(),
            cep,
            base_url=settings.viacep_base_url,
            timeout=settings.provider_timeout,
        )
    except InvalidCep as e:
        return _error(400, str(e))
    except CepLookupError as e:
        logger.warning(f"CEP lookup for {cep} failed: {e}")
        return _error(500, str(e))

    return JSONResponse(status_code=200, content=data)
